"""
Simulation and parameter definitions with pre-flight validation
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Tuple

from . import codec
from .config import (
    REGISTER_KINDS, BIT_REGISTER_KINDS, VALUE_TYPES,
    DEFAULT_VALUE_TYPE, DEFAULT_REG_TYPE, DEFAULT_PARAM_VALUE_TYPE, DEFAULT_SLAVE_ID,
)
from .exceptions import FatalConfigError

logger = logging.getLogger(__name__)


@dataclass
class ParameterSpec:
    """
    One CSV column mapped onto the register bank

    Coils and discrete inputs are single bits: their value type is always
    bool and they are never byte swapped, whatever the configuration says.
    """
    reg_address: int = 0
    reg_type: str = DEFAULT_REG_TYPE
    byte_swap: bool = False
    value_type: str = DEFAULT_PARAM_VALUE_TYPE

    def __post_init__(self):
        if self.reg_type in BIT_REGISTER_KINDS:
            self.byte_swap = False
            self.value_type = 'bool'

    @property
    def byte_order(self) -> str:
        return codec.byte_order(self.byte_swap)

    @property
    def width(self) -> int:
        """Register width in 16-bit words"""
        return codec.register_width(self.value_type)

    @property
    def writable(self) -> bool:
        return self.reg_type in REGISTER_KINDS

    @property
    def end_address(self) -> int:
        return self.reg_address + self.width


@dataclass
class SimulationSpec:
    """One simulated Modbus server fed by one CSV file"""
    filename: str
    port: int = 502
    slave_id: int = DEFAULT_SLAVE_ID
    has_header: bool = False
    has_index: bool = False
    missing_rate: float = 0.0
    timestep: int = 0
    params: List[ParameterSpec] = field(default_factory=list)


def validate_parameter(param: ParameterSpec, index: int = 0) -> ParameterSpec:
    """
    Validate one parameter, substituting safe defaults for unknown types

    Unknown register kinds are kept (the parameter is then never written);
    unknown value types fall back to float32.

    Raises:
        FatalConfigError: If the register address is not a 16-bit address or
            the value does not fit below address 65536
    """
    if not isinstance(param.reg_address, int) or not 0 <= param.reg_address <= 0xFFFF:
        raise FatalConfigError(
            f"param {index}: register address {param.reg_address!r} is not in 0..65535"
        )

    value_type = param.value_type
    if param.reg_type not in REGISTER_KINDS:
        logger.warning(
            f"param {index}: unrecognised register type {param.reg_type!r}, "
            f"parameter will not be written"
        )
        value_type = DEFAULT_VALUE_TYPE
    elif value_type not in VALUE_TYPES:
        logger.warning(
            f"param {index}: unrecognised value type {value_type!r} "
            f"(defaulting to {DEFAULT_VALUE_TYPE})"
        )
        value_type = DEFAULT_VALUE_TYPE

    validated = replace(param, value_type=value_type)
    if validated.writable and validated.end_address > 0x10000:
        raise FatalConfigError(
            f"param {index}: {value_type} at register address {param.reg_address} "
            f"runs past address 65535"
        )
    return validated


def validate_params(params: List[ParameterSpec]) -> List[ParameterSpec]:
    validated = [validate_parameter(p, i) for i, p in enumerate(params)]
    for first, second in overlapping_parameters(validated):
        logger.warning(
            f"params {first} and {second} overlap in the {validated[first].reg_type} table"
        )
    return validated


def overlapping_parameters(params: List[ParameterSpec]) -> List[Tuple[int, int]]:
    """
    Find pairs of parameters whose register ranges overlap

    Overlaps are not rejected: the later column simply overwrites the
    earlier one on every update.

    Returns:
        List of (index, index) pairs, lower index first
    """
    overlaps = []
    for i, a in enumerate(params):
        if not a.writable:
            continue
        for j in range(i + 1, len(params)):
            b = params[j]
            if b.reg_type != a.reg_type:
                continue
            if a.reg_address < b.end_address and b.reg_address < a.end_address:
                overlaps.append((i, j))
    return overlaps


def validate_simulation(spec: SimulationSpec) -> SimulationSpec:
    """
    Validate a simulation definition before any file or socket is opened

    Raises:
        FatalConfigError: On a malformed listen port or parameter address
    """
    if not isinstance(spec.port, int) or not 0 <= spec.port <= 0xFFFF:
        raise FatalConfigError(f"{spec.filename}: invalid listen port {spec.port!r}")

    missing_rate = spec.missing_rate
    if not 0.0 <= missing_rate < 1.0:
        logger.warning(
            f"{spec.filename}: missing rate {missing_rate} not in [0, 1), using 0"
        )
        missing_rate = 0.0

    timestep = spec.timestep
    if timestep < 0:
        logger.warning(f"{spec.filename}: negative timestep {timestep}, treating as unset")
        timestep = 0

    try:
        params = validate_params(spec.params)
    except FatalConfigError as e:
        raise FatalConfigError(f"{spec.filename}: {e}") from e

    return replace(spec, missing_rate=missing_rate, timestep=timestep, params=params)
