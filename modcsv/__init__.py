"""
modcsv - Simulate Modbus TCP servers from CSV data
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

__version__ = '0.2.0'

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format=os.environ.get(
        'LOG_FORMAT',
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
)
logger = logging.getLogger(__name__)


def load_env_files():
    """Load environment variables from .env files in the working and project directories."""
    # Try to load from current directory
    if load_dotenv(dotenv_path='.env'):
        logger.debug('Loaded .env from current directory')

    # Try to load from project root
    parent_env = Path(__file__).parent.parent / '.env'
    if parent_env.exists() and load_dotenv(dotenv_path=parent_env):
        logger.debug(f'Loaded .env from {parent_env}')


# Load environment variables
load_env_files()

# Import components after environment is configured
from modcsv.exceptions import FatalConfigError, ParseError, DeviceBusyError  # noqa: E402
from modcsv.models import ParameterSpec, SimulationSpec  # noqa: E402
from modcsv.timing import SchedulingPlan, compute_plan  # noqa: E402
from modcsv.simulation import SimulationUnit, build_simulations  # noqa: E402
from modcsv.runner import RunnerState, Termination, start, terminate  # noqa: E402

__all__ = [
    'FatalConfigError',
    'ParseError',
    'DeviceBusyError',
    'ParameterSpec',
    'SimulationSpec',
    'SchedulingPlan',
    'compute_plan',
    'SimulationUnit',
    'build_simulations',
    'RunnerState',
    'Termination',
    'start',
    'terminate',
    'load_env_files'
]
