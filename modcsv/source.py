"""
Cyclic CSV data source - replays the rows of one CSV file forever
"""

import csv
import logging
from typing import List, Optional

from . import codec
from .exceptions import FatalConfigError, ParseError
from .models import ParameterSpec

logger = logging.getLogger(__name__)

CSV_ENCODING = 'utf-8'


class CyclicSource:
    """
    Replays one CSV file row by row, rewinding at end of file

    The last decoded row is kept in ``values``: one register-ready byte
    string per parameter, in column order. A cell that fails to parse leaves
    its previous bytes in place.
    """

    def __init__(self,
                 filename: str,
                 params: List[ParameterSpec],
                 skip_header: bool = False,
                 skip_index: bool = False):
        self.filename = filename
        self.params = list(params)
        self.skip_header = skip_header
        self.skip_index = skip_index
        self.values: List[bytes] = [codec.zero_bytes(p.value_type) for p in self.params]
        self.rows_read = 0
        self._file = None
        self._reader = None

    def open(self) -> None:
        """
        (Re)open the file and position the reader after the optional header

        Raises:
            FatalConfigError: If the file cannot be opened or has no header row
        """
        self.close()
        try:
            self._file = open(self.filename, newline='', encoding=CSV_ENCODING)
        except OSError as e:
            raise FatalConfigError(f"cannot open {self.filename}: {e}") from e
        self._reader = csv.reader(self._file)
        if self.skip_header:
            if self._read_row() is None:
                self.close()
                raise FatalConfigError(f"{self.filename} is empty!")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self._reader = None

    def _read_row(self) -> Optional[List[str]]:
        try:
            return next(self._reader, None)
        except (csv.Error, UnicodeDecodeError) as e:
            self.close()
            raise FatalConfigError(f"cannot read {self.filename}: {e}") from e

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def next_row(self) -> List[str]:
        """
        Read the next raw row, rewinding once at end of file

        Raises:
            FatalConfigError: If the file is undecodable or still empty after rewinding
        """
        if self._reader is None:
            self.open()
        row = self._read_row()
        if row is None:
            logger.debug(f"End of {self.filename}, rewinding")
            self.open()
            row = self._read_row()
            if row is None:
                raise FatalConfigError(f"{self.filename} has no data rows")
        self.rows_read += 1
        return row

    def data_fields(self, row: List[str]) -> List[str]:
        # A single column is data even when an index column was declared
        if self.skip_index and len(row) > 1:
            return row[1:]
        return row

    def read_record(self) -> List[bytes]:
        """
        Advance one row and decode each field into ``values``

        Returns:
            List[bytes]: The current register bytes, one entry per parameter
        """
        fields = self.data_fields(self.next_row())
        for i, (param, raw) in enumerate(zip(self.params, fields)):
            try:
                self.values[i] = codec.decode(raw, param.value_type, param.byte_order)
            except ParseError as e:
                logger.warning(f"{self.filename} row {self.rows_read}, column {i}: {e}")
        return self.values

    def decoded_values(self) -> List[codec.Value]:
        """Current values as tagged values, for reporting"""
        return [
            codec.unpack_value(data, p.value_type, p.byte_order)
            for p, data in zip(self.params, self.values)
        ]

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def count_data_columns(filename: str, skip_header: bool = False, skip_index: bool = False) -> int:
    """
    Number of data columns in the first data row of a CSV file

    Returns:
        int: Column count, 0 if the file has no data row

    Raises:
        FatalConfigError: If the file cannot be opened or read
    """
    try:
        with open(filename, newline='', encoding=CSV_ENCODING) as f:
            reader = csv.reader(f)
            if skip_header:
                next(reader, None)
            row: Optional[List[str]] = next(reader, None)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise FatalConfigError(f"cannot read {filename}: {e}") from e
    if not row:
        return 0
    if skip_index and len(row) > 1:
        return len(row) - 1
    return len(row)
