"""
Modbus TCP server backing one simulation

Wraps a pymodbus device context whose register tables are reached through a
per-function-code handler table, so request handling can be switched
between normal answers and a busy device without touching the data.
"""

import ipaddress
import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from pymodbus.datastore import (
    ModbusDeviceContext,
    ModbusServerContext,
    ModbusSequentialDataBlock,
)
from pymodbus.pdu import ExceptionResponse
from pymodbus.pdu.bit_message import (
    ReadCoilsRequest, ReadCoilsResponse,
    ReadDiscreteInputsRequest, ReadDiscreteInputsResponse,
)
from pymodbus.pdu.register_message import (
    ReadHoldingRegistersRequest, ReadHoldingRegistersResponse,
    ReadInputRegistersRequest, ReadInputRegistersResponse,
)
from pymodbus.server import ModbusTcpServer

from .config import (
    STANDARD_FUNCTION_CODES, REGISTER_KIND_FUNCTION_CODES, REGISTER_TABLE_SIZE,
    DEFAULT_HOST, DEFAULT_SLAVE_ID,
)
from .exceptions import DeviceBusyError, FatalConfigError

logger = logging.getLogger(__name__)


class RegisterRequest(NamedTuple):
    func_code: int
    address: int
    count: int
    values: Optional[List] = None

    @property
    def is_write(self) -> bool:
        return self.values is not None


Handler = Callable[['SimulatedDeviceContext', RegisterRequest], Optional[List]]


def default_handler(context: 'SimulatedDeviceContext', request: RegisterRequest) -> Optional[List]:
    """Serve the request from the register tables"""
    if request.is_write:
        context.write_table(request.func_code, request.address, request.values)
        return None
    return context.read_table(request.func_code, request.address, request.count)


def device_busy_handler(context: 'SimulatedDeviceContext', request: RegisterRequest) -> Optional[List]:
    """Refuse every request"""
    raise DeviceBusyError(request.func_code)


class SimulatedDeviceContext(ModbusDeviceContext):
    """
    Device context with four full-range register tables and a handler table

    ``getValues``/``setValues`` are what the protocol server calls while
    answering clients; they dispatch through the registered handler.
    ``store_values``/``load_values`` and ``read_table``/``write_table`` bypass
    the handlers.
    """

    def __init__(self, size: int = REGISTER_TABLE_SIZE):
        super().__init__(
            di=ModbusSequentialDataBlock(0, [0] * size),
            co=ModbusSequentialDataBlock(0, [0] * size),
            hr=ModbusSequentialDataBlock(0, [0] * size),
            ir=ModbusSequentialDataBlock(0, [0] * size),
        )
        self._handlers: Dict[int, Handler] = {}
        self.restore_default_handlers()

    def register_function_handler(self, func_code: int, handler: Handler) -> None:
        self._handlers[func_code] = handler

    def restore_default_handlers(self) -> None:
        for func_code in STANDARD_FUNCTION_CODES:
            self.register_function_handler(func_code, default_handler)

    def handler_for(self, func_code: int) -> Handler:
        return self._handlers.get(func_code, default_handler)

    def getValues(self, func_code, address, count=1):
        return self.handler_for(func_code)(self, RegisterRequest(func_code, address, count))

    def setValues(self, func_code, address, values):
        values = list(values)
        self.handler_for(func_code)(self, RegisterRequest(func_code, address, len(values), values))

    async def async_getValues(self, func_code, address, count=1):
        """Register values, or the exception code of a refused request"""
        try:
            return self.getValues(func_code, address, count)
        except DeviceBusyError as e:
            return e.exception_code

    async def async_setValues(self, func_code, address, values):
        """None on success, the exception code of a refused request otherwise"""
        try:
            self.setValues(func_code, address, values)
        except DeviceBusyError as e:
            return e.exception_code
        return None

    def read_table(self, func_code: int, address: int, count: int = 1) -> List:
        return super().getValues(func_code, address, count)

    def write_table(self, func_code: int, address: int, values: List) -> None:
        super().setValues(func_code, address, values)

    def store_values(self, reg_type: str, address: int, values: List) -> None:
        """Write values into the table of a register kind"""
        self.write_table(REGISTER_KIND_FUNCTION_CODES[reg_type], address, values)

    def load_values(self, reg_type: str, address: int, count: int = 1) -> List:
        """Read values from the table of a register kind"""
        return self.read_table(REGISTER_KIND_FUNCTION_CODES[reg_type], address, count)


class ExceptionAwareRead:
    """
    Read request mixin answering with an exception response when the
    datastore returns an exception code instead of values

    pymodbus only checks for a returned code on writes, so the four read
    requests are replaced with these on the server side.
    """

    response_class = None
    response_field = 'registers'

    async def update_datastore(self, context):
        values = await context.async_getValues(self.function_code, self.address, self.count)
        if isinstance(values, int):
            return ExceptionResponse(self.function_code, values)
        return self.response_class(**{self.response_field: values})


class ExceptionAwareReadCoils(ExceptionAwareRead, ReadCoilsRequest):
    response_class = ReadCoilsResponse
    response_field = 'bits'


class ExceptionAwareReadDiscreteInputs(ExceptionAwareRead, ReadDiscreteInputsRequest):
    response_class = ReadDiscreteInputsResponse
    response_field = 'bits'


class ExceptionAwareReadHoldingRegisters(ExceptionAwareRead, ReadHoldingRegistersRequest):
    response_class = ReadHoldingRegistersResponse


class ExceptionAwareReadInputRegisters(ExceptionAwareRead, ReadInputRegistersRequest):
    response_class = ReadInputRegistersResponse


READ_REQUESTS = (
    ExceptionAwareReadCoils,
    ExceptionAwareReadDiscreteInputs,
    ExceptionAwareReadHoldingRegisters,
    ExceptionAwareReadInputRegisters,
)


def listen_address(host: str, port: int) -> Tuple[str, int]:
    """
    Validate a listen address

    Raises:
        FatalConfigError: If the host is not an IP address or the port is out of range
    """
    try:
        ipaddress.ip_address(host)
    except ValueError:
        raise FatalConfigError(f"malformed listen address {host}:{port}")
    if not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise FatalConfigError(f"malformed listen address {host}:{port}")
    return host, port


class SimulationServer:
    """One Modbus TCP listener serving one simulated device"""

    def __init__(self,
                 port: int,
                 unit_id: int = DEFAULT_SLAVE_ID,
                 host: str = DEFAULT_HOST):
        self.address = listen_address(host, port)
        self.unit_id = unit_id
        self.context = SimulatedDeviceContext()
        self.server_context = ModbusServerContext(devices={unit_id: self.context}, single=False)
        self.responding = True
        self._server: Optional[ModbusTcpServer] = None

    def register_function_handler(self, func_code: int, handler: Handler) -> None:
        self.context.register_function_handler(func_code, handler)

    def set_responding(self, respond: bool) -> None:
        """Serve requests normally, or answer every standard request as busy"""
        if respond:
            self.context.restore_default_handlers()
        else:
            for func_code in STANDARD_FUNCTION_CODES:
                self.register_function_handler(func_code, device_busy_handler)
        self.responding = respond

    @property
    def is_listening(self) -> bool:
        return self._server is not None

    async def listen(self) -> None:
        """
        Start serving on the configured address in the running event loop

        Returns once the socket is bound.

        Raises:
            OSError: If the address cannot be bound
        """
        if self.is_listening:
            return
        server = ModbusTcpServer(
            self.server_context,
            address=self.address,
            custom_pdu=list(READ_REQUESTS),
        )
        try:
            await server.serve_forever(background=True)
        except RuntimeError as e:
            raise OSError(f"cannot listen on {self.address[0]}:{self.address[1]}: {e}") from e
        self._server = server
        logger.info(f"Listening on {self.address[0]}:{self.address[1]} (unit {self.unit_id})")

    async def close(self) -> None:
        if self._server is not None:
            await self._server.shutdown()
        self._server = None
