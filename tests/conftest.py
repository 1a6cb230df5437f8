"""
pytest configuration: quiet logging and isolate the configuration file location
"""

import os

# Must be set before modcsv is imported
os.environ.setdefault('LOG_LEVEL', 'WARNING')
os.environ.setdefault('MODCSV_CONFIG', os.path.join(os.path.dirname(__file__), 'unused-config.yaml'))


def pytest_collection_modifyitems(items):
    """Run the slow statistical tests last"""
    items.sort(key=lambda item: 'statistical' in item.name)
