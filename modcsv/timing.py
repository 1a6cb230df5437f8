"""
Rate coordination - one shared base tick for all simulations

Each simulation updates every ``multiplier`` base ticks. The base tick is
derived from the greatest common divisor of the configured periods so every
update cadence is an exact integer number of ticks.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .config import DEFAULT_TIMESTEP, NS_PER_SECOND

logger = logging.getLogger(__name__)


def gcd(p: int, q: int) -> int:
    """Euclid's algorithm"""
    while q:
        p, q = q, p % q
    return p


def gcd_list(values: Sequence[int]) -> int:
    """GCD of a list, reduced left to right"""
    if not values:
        raise ValueError("gcd_list() of an empty sequence")
    result = values[0]
    for value in values[1:]:
        result = gcd(result, value)
    return result


@dataclass(frozen=True)
class SchedulingPlan:
    base_tick_ns: int
    multipliers: Tuple[int, ...]

    @property
    def base_tick(self) -> float:
        """Base tick in seconds"""
        return self.base_tick_ns / NS_PER_SECOND

    @property
    def flat_rate(self) -> bool:
        return all(m == 1 for m in self.multipliers)

    def effective_periods(self) -> List[float]:
        """Seconds between updates for each simulation"""
        return [m * self.base_tick for m in self.multipliers]


def compute_plan(periods: Sequence[int], global_period: Optional[float] = None) -> SchedulingPlan:
    """
    Compute the base tick and per-simulation multipliers

    When only one simulation is configured, or any period is unset (0), every
    simulation updates on every tick of ``global_period``. Otherwise the base
    tick is ``gcd(periods) * global_period / min(periods)`` and each
    multiplier is ``period / gcd(periods)``: the fastest simulation runs at
    ``global_period`` and the others keep their relative rates.

    Args:
        periods: Configured update period of each simulation, in seconds
        global_period: Global timestep in seconds (default from MODCSV_TIMESTEP)

    Returns:
        SchedulingPlan: Immutable timing parameters
    """
    if global_period is None:
        global_period = DEFAULT_TIMESTEP
    if global_period <= 0:
        raise ValueError(f"global period must be positive, got {global_period}")

    periods = [int(p) for p in periods]
    global_ns = int(round(global_period * NS_PER_SECOND))

    if len(periods) <= 1 or any(p <= 0 for p in periods):
        logger.debug(f"Flat rate plan for {len(periods)} simulation(s)")
        return SchedulingPlan(global_ns, tuple(1 for _ in periods))

    g = gcd_list(periods)
    min_period = min(periods)
    base_tick_ns = g * global_ns // min_period
    multipliers = tuple(p // g for p in periods)
    return SchedulingPlan(base_tick_ns, multipliers)
