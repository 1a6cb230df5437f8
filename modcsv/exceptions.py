"""
modcsv exceptions
"""

from .config import EXCEPTION_DEVICE_BUSY


class ModcsvError(Exception):
    """Base class for all modcsv errors"""


class FatalConfigError(ModcsvError):
    """Configuration or data problem that makes a simulation unusable.

    Raised before any listener opens (empty or unreadable CSV, column count
    mismatch, malformed listen address, broken YAML) and terminates the
    process with a non-zero status.
    """


class ParseError(ModcsvError, ValueError):
    """A single CSV cell could not be parsed as its declared value type"""

    def __init__(self, raw: str, value_type: str, reason: str = ''):
        self.raw = raw
        self.value_type = value_type
        self.reason = reason
        message = f"cannot parse {raw!r} as {value_type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DeviceBusyError(ModcsvError):
    """Raised by the fault handler instead of serving a request

    ``exception_code`` is the Modbus exception code sent to the client.
    """

    def __init__(self, function_code: int, exception_code: int = EXCEPTION_DEVICE_BUSY):
        self.function_code = function_code
        self.exception_code = exception_code
        super().__init__(f"device busy (function code {function_code})")
