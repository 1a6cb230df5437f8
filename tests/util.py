"""
Shared helpers for the modcsv tests
"""

import os


def write_csv(directory, name, rows):
    """Write rows (lists of cells) as a CSV file and return its path"""
    path = os.path.join(directory, name)
    with open(path, 'w', newline='') as f:
        for row in rows:
            f.write(','.join(str(cell) for cell in row) + '\n')
    return path


def write_bytes(directory, name, data):
    """Write raw bytes as a file and return its path"""
    path = os.path.join(directory, name)
    with open(path, 'wb') as f:
        f.write(data)
    return path
