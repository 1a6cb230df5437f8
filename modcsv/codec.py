"""
Value codec - converts CSV text fields into register-sized byte sequences

Every value is encoded into whole 16-bit registers. Booleans and 8-bit
integers occupy a single register (zero or sign extended), 32-bit types two
registers and 64-bit types four. Byte swapping selects little-endian
encoding of the whole value; the Modbus default is big-endian.
"""

import logging
import re
import struct
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from .exceptions import ParseError

logger = logging.getLogger(__name__)

BIG_ENDIAN = '>'
LITTLE_ENDIAN = '<'

# value type -> (family, bit width, struct format of the register-sized encoding)
_VALUE_FORMATS: Dict[str, Tuple[str, int, str]] = {
    'bool': ('bool', 1, 'H'),
    'int8': ('int', 8, 'h'),
    'int16': ('int', 16, 'h'),
    'int32': ('int', 32, 'i'),
    'int64': ('int', 64, 'q'),
    'uint8': ('uint', 8, 'H'),
    'uint16': ('uint', 16, 'H'),
    'uint32': ('uint', 32, 'I'),
    'uint64': ('uint', 64, 'Q'),
    'float32': ('float', 32, 'f'),
    'float64': ('float', 64, 'd'),
}

# Accepted spellings for booleans
_BOOL_STRINGS = {
    '1': True, 't': True, 'T': True, 'true': True, 'TRUE': True, 'True': True,
    '0': False, 'f': False, 'F': False, 'false': False, 'FALSE': False, 'False': False,
}

_INT_PATTERN = re.compile(r'^[+-]?[0-9]+$')
_UINT_PATTERN = re.compile(r'^[0-9]+$')


@dataclass(frozen=True)
class BoolValue:
    value: bool

    @property
    def value_type(self) -> str:
        return 'bool'


@dataclass(frozen=True)
class IntValue:
    value: int
    bits: int = 64

    @property
    def value_type(self) -> str:
        return f'int{self.bits}'


@dataclass(frozen=True)
class UintValue:
    value: int
    bits: int = 64

    @property
    def value_type(self) -> str:
        return f'uint{self.bits}'


@dataclass(frozen=True)
class FloatValue:
    value: float
    bits: int = 64

    @property
    def value_type(self) -> str:
        return f'float{self.bits}'


Value = Union[BoolValue, IntValue, UintValue, FloatValue]


def byte_order(byte_swap: bool) -> str:
    """Return the struct byte order prefix for a byte-swap flag"""
    return LITTLE_ENDIAN if byte_swap else BIG_ENDIAN


def is_value_type(value_type: str) -> bool:
    return value_type in _VALUE_FORMATS


def _format_of(value_type: str) -> Tuple[str, int, str]:
    try:
        return _VALUE_FORMATS[value_type]
    except KeyError:
        raise ValueError(f"Unknown value type: {value_type}")


def register_width(value_type: str) -> int:
    """
    Number of 16-bit registers occupied by a value type

    Args:
        value_type: One of the recognised value type names

    Returns:
        int: 1 for bool and 8/16-bit types, 2 for 32-bit, 4 for 64-bit
    """
    _, _, fmt = _format_of(value_type)
    return struct.calcsize(fmt) // 2


def parse_value(raw: str, value_type: str) -> Value:
    """
    Parse CSV text into a tagged value of the declared type

    Args:
        raw: CSV cell text
        value_type: Declared value type

    Returns:
        Value: Parsed value

    Raises:
        ParseError: If the text is not a valid value of that type
    """
    family, bits, fmt = _format_of(value_type)
    text = raw.strip()

    if family == 'bool':
        if text not in _BOOL_STRINGS:
            raise ParseError(raw, value_type, 'not a boolean')
        return BoolValue(_BOOL_STRINGS[text])

    if family == 'int':
        if not _INT_PATTERN.match(text):
            raise ParseError(raw, value_type, 'not a decimal integer')
        value = int(text)
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        if not low <= value <= high:
            raise ParseError(raw, value_type, 'value out of range')
        return IntValue(value, bits)

    if family == 'uint':
        if not _UINT_PATTERN.match(text):
            raise ParseError(raw, value_type, 'not an unsigned decimal integer')
        value = int(text)
        if value >= (1 << bits):
            raise ParseError(raw, value_type, 'value out of range')
        return UintValue(value, bits)

    try:
        value = float(text)
    except ValueError:
        raise ParseError(raw, value_type, 'not a number')
    try:
        struct.pack(f'>{fmt}', value)
    except OverflowError:
        raise ParseError(raw, value_type, 'value out of range')
    return FloatValue(value, bits)


def encode_value(value: Value, order: str = BIG_ENDIAN) -> bytes:
    """Encode a tagged value into its register-sized byte sequence"""
    _, _, fmt = _format_of(value.value_type)
    payload = int(value.value) if isinstance(value, BoolValue) else value.value
    return struct.pack(f'{order}{fmt}', payload)


def decode(raw: str, value_type: str, order: str = BIG_ENDIAN) -> bytes:
    """
    Parse a CSV field into the bytes written to the register bank

    Args:
        raw: CSV cell text
        value_type: Declared value type
        order: BIG_ENDIAN (Modbus default) or LITTLE_ENDIAN (byte swapped)

    Returns:
        bytes: 2 * register_width(value_type) bytes

    Raises:
        ParseError: If the text cannot be parsed as value_type
    """
    return encode_value(parse_value(raw, value_type), order)


def unpack_value(data: bytes, value_type: str, order: str = BIG_ENDIAN) -> Value:
    """Inverse of decode: rebuild the tagged value from register bytes"""
    family, bits, fmt = _format_of(value_type)
    (value,) = struct.unpack(f'{order}{fmt}', data)
    if family == 'bool':
        return BoolValue(bool(value))
    if family == 'int':
        return IntValue(value, bits)
    if family == 'uint':
        return UintValue(value, bits)
    return FloatValue(value, bits)


def zero_bytes(value_type: str) -> bytes:
    return bytes(2 * register_width(value_type))


def bytes_to_registers(data: bytes) -> List[int]:
    """Split a byte sequence into big-endian 16-bit register words"""
    if len(data) % 2:
        data = b'\x00' + data
    return list(struct.unpack(f'>{len(data) // 2}H', data))
