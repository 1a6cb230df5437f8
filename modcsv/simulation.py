"""
Simulation unit - one CSV source driving one Modbus server
"""

import logging
import random
from typing import List, Optional

from . import codec
from .config import BIT_REGISTER_KINDS, DEFAULT_HOST
from .exceptions import FatalConfigError
from .models import SimulationSpec, validate_simulation
from .server import SimulationServer
from .source import CyclicSource, count_data_columns

logger = logging.getLogger(__name__)


class SimulationUnit:
    """
    Binds a CyclicSource to the register bank of a SimulationServer

    ``multiplier`` is the number of base ticks between updates and is
    assigned from the scheduling plan before the run starts.
    """

    def __init__(self,
                 spec: SimulationSpec,
                 source: CyclicSource,
                 server: SimulationServer,
                 rng: Optional[random.Random] = None):
        self.spec = spec
        self.source = source
        self.server = server
        self.multiplier = 1
        self.rng = rng if rng is not None else random.Random()
        self.updates = 0
        self.faults = 0

    @property
    def name(self) -> str:
        return self.spec.filename

    @property
    def params(self):
        return self.source.params

    @property
    def fault_probability(self) -> float:
        return self.spec.missing_rate

    @property
    def responding(self) -> bool:
        return self.server.responding

    def is_due(self, tick: int) -> bool:
        return tick % self.multiplier == 0

    def update(self) -> None:
        """Advance to the next row, refresh registers and draw the fault mode"""
        self.source.read_record()
        self.write_registers()
        responding = self.rng.random() >= self.fault_probability
        self.set_fault_mode(responding)
        self.updates += 1
        if not responding:
            self.faults += 1
            logger.debug(f"{self.name}: simulating unavailable device")

    def write_registers(self) -> None:
        """Copy the current row into the register bank"""
        context = self.server.context
        for param, value in zip(self.source.params, self.source.values):
            if not param.writable:
                continue
            if param.reg_type in BIT_REGISTER_KINDS:
                context.store_values(param.reg_type, param.reg_address, [any(value)])
            else:
                context.store_values(param.reg_type, param.reg_address, codec.bytes_to_registers(value))

    def set_fault_mode(self, responding: bool) -> None:
        self.server.set_responding(responding)

    async def listen(self) -> None:
        await self.server.listen()

    async def close(self) -> None:
        self.source.close()
        await self.server.close()

    def __repr__(self):
        return f"SimulationUnit({self.name!r}, port={self.spec.port}, multiplier={self.multiplier})"


def build_simulation(spec: SimulationSpec,
                     host: str = DEFAULT_HOST,
                     rng: Optional[random.Random] = None) -> SimulationUnit:
    """
    Validate a simulation definition and build a primed unit

    The data source is opened and one row decoded into the register bank,
    so the server has valid data before its first request.

    Raises:
        FatalConfigError: Empty file, column count mismatch or bad address
    """
    spec = validate_simulation(spec)

    column_count = count_data_columns(spec.filename, spec.has_header, spec.has_index)
    if column_count == 0:
        raise FatalConfigError(f"{spec.filename} is empty!")
    if column_count != len(spec.params):
        raise FatalConfigError(
            f"{spec.filename} has {column_count} data columns, "
            f"configuration supplies params for {len(spec.params)}"
        )

    server = SimulationServer(spec.port, unit_id=spec.slave_id, host=host)
    source = CyclicSource(spec.filename, spec.params, spec.has_header, spec.has_index)
    source.open()
    unit = SimulationUnit(spec, source, server, rng=rng)
    source.read_record()
    unit.write_registers()
    logger.info(f"Prepared {spec.filename}: {column_count} column(s) on port {spec.port}")
    return unit


def build_simulations(specs: List[SimulationSpec],
                      host: str = DEFAULT_HOST,
                      rng: Optional[random.Random] = None) -> List[SimulationUnit]:
    """Build every unit, closing those already opened if one fails"""
    units: List[SimulationUnit] = []
    try:
        for spec in specs:
            units.append(build_simulation(spec, host=host, rng=rng))
    except Exception:
        for unit in units:
            unit.source.close()
        raise
    return units
