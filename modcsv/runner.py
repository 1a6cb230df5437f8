"""
Scheduler and runner - drives every simulation from one base tick

One asyncio task fires at the base tick and updates the due simulations one
after another; the caller waits on a Termination until an interrupt or the
automatic timeout ends the run, then every unit is torn down.
"""

import asyncio
import logging
import signal
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .simulation import SimulationUnit
from .timing import SchedulingPlan, compute_plan

logger = logging.getLogger(__name__)

REASON_INTERRUPT = 'user interrupt'
REASON_TIMEOUT = 'automatic timeout'


class RunState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    TERMINATING = 'terminating'
    STOPPED = 'stopped'


@dataclass
class RunnerState:
    """Process-wide run state, owned by the runner and passed to whoever needs it"""
    units: List[SimulationUnit]
    plan: SchedulingPlan
    tick_count: int = 0
    state: RunState = RunState.IDLE
    reason: Optional[str] = None

    def due_units(self, tick: int) -> List[SimulationUnit]:
        return [unit for unit in self.units if unit.is_due(tick)]

    def tick(self) -> List[SimulationUnit]:
        """Advance the tick counter and update every due unit"""
        self.tick_count += 1
        due = self.due_units(self.tick_count)
        for unit in due:
            unit.update()
        logger.debug(f"Tick {self.tick_count}: updated {len(due)} simulation(s)")
        return due


def apply_plan(units: Sequence[SimulationUnit], plan: SchedulingPlan) -> None:
    if len(units) != len(plan.multipliers):
        raise ValueError(
            f"plan has {len(plan.multipliers)} multipliers for {len(units)} simulations"
        )
    for unit, multiplier in zip(units, plan.multipliers):
        unit.multiplier = multiplier


def plan_simulations(units: Sequence[SimulationUnit], global_period: Optional[float] = None) -> SchedulingPlan:
    """Compute the scheduling plan from the units' periods and assign multipliers"""
    plan = compute_plan([unit.spec.timestep for unit in units], global_period)
    apply_plan(units, plan)
    logger.info(
        f"Base tick {plan.base_tick:g}s, multipliers {list(plan.multipliers)}"
    )
    return plan


class Termination:
    """
    Two one-shot termination sources: operator interrupt and elapsed timeout

    Args:
        timeout: Seconds before automatic termination, None or 0 to disable
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or None
        self.interrupt = asyncio.Event()

    def trigger_interrupt(self) -> None:
        self.interrupt.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to the interrupt channel"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.trigger_interrupt)
            except NotImplementedError:
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.trigger_interrupt))

    async def wait(self) -> str:
        """Block until either source fires and return the reason"""
        try:
            await asyncio.wait_for(self.interrupt.wait(), self.timeout)
        except asyncio.TimeoutError:
            return REASON_TIMEOUT
        return REASON_INTERRUPT


async def run_scheduler(state: RunnerState) -> None:
    """
    Fire ``state.tick()`` every base tick until the run leaves RUNNING

    Deadlines are computed from the start time, so late wakeups do not
    accumulate drift; ticks missed entirely are dropped.
    """
    loop = asyncio.get_running_loop()
    interval = state.plan.base_tick
    next_fire = loop.time() + interval
    while state.state is RunState.RUNNING:
        delay = next_fire - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        state.tick()
        next_fire += interval
        now = loop.time()
        if next_fire <= now:
            missed = int((now - next_fire) // interval) + 1
            logger.warning(f"Scheduler overrun, dropping {missed} tick(s)")
            next_fire += missed * interval


async def report_values(state: RunnerState, interval: float) -> None:
    """Periodically log the current values of every simulation"""
    while state.state is RunState.RUNNING:
        await asyncio.sleep(interval)
        for unit in state.units:
            values = [v.value for v in unit.source.decoded_values()]
            logger.info(f"{unit.name}: {values}{'' if unit.responding else ' (busy)'}")


async def terminate(units: Sequence[SimulationUnit], reason: str) -> None:
    """Close every data source and listener"""
    logger.info(f"Simulation terminated: {reason}")
    for unit in units:
        try:
            await unit.close()
        except Exception as e:
            logger.error(f"Error closing {unit.name}: {e}")


async def start(units: List[SimulationUnit],
                plan: SchedulingPlan,
                termination: Termination,
                state: Optional[RunnerState] = None,
                report_interval: Optional[float] = None) -> RunnerState:
    """
    Run the simulations until termination

    Args:
        units: Built simulation units
        plan: Scheduling plan for those units
        termination: Termination channels to wait on
        state: Pre-created run state (e.g. shared with the status API)
        report_interval: Seconds between value reports, None to disable

    Returns:
        RunnerState: Final state, with ``reason`` set

    Raises:
        Exception: Any error that stopped the scheduler, after teardown
    """
    if state is None:
        state = RunnerState(units, plan)
    apply_plan(units, plan)

    try:
        for unit in units:
            await unit.listen()
    except Exception as e:
        state.reason = f"listen failed: {e}"
        await terminate(units, state.reason)
        state.state = RunState.STOPPED
        raise

    state.state = RunState.RUNNING
    scheduler = asyncio.create_task(run_scheduler(state))
    waiter = asyncio.create_task(termination.wait())
    background = [scheduler, waiter]
    if report_interval:
        background.append(asyncio.create_task(report_values(state, report_interval)))
    logger.info(f"Simulation started ({len(units)} simulation(s))")

    await asyncio.wait([scheduler, waiter], return_when=asyncio.FIRST_COMPLETED)
    state.state = RunState.TERMINATING

    error = None
    if waiter.done():
        state.reason = waiter.result()
    else:
        error = scheduler.exception()
        state.reason = f"fatal error: {error}"

    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)

    await terminate(units, state.reason)
    state.state = RunState.STOPPED
    if error is not None:
        raise error
    return state
