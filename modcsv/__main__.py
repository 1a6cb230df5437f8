"""
modcsv - Main entry point for running as a module
"""

import sys
import asyncio
import argparse
import logging

from . import __version__
from .api import api_available, create_rest_app, start_api_thread
from .config import CONFIG_FILE, DEFAULT_HOST, DEFAULT_TIMESTEP, DEFAULT_TIMEOUT_HOURS
from .exceptions import FatalConfigError
from .loader import create_default_config, load_or_create_config, save_config, select_files
from .runner import RunnerState, Termination, plan_simulations, start
from .simulation import build_simulations

# Configure logging
logger = logging.getLogger(__name__)

COMMANDS = ('serve', 'init')


def _positive_float(text):
    value = float(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {text}")
    return value


def _non_negative_float(text):
    value = float(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='modcsv',
        description='Simulate Modbus TCP servers from CSV data',
        epilog='Example: modcsv serve -t 1 -T 2 -F data.csv'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the simulation (default)')
    serve_parser.add_argument('-t', '--timestep', type=_positive_float, default=DEFAULT_TIMESTEP,
                              help='Global simulation timestep in seconds')
    serve_parser.add_argument('-T', '--timeout', type=_non_negative_float, default=DEFAULT_TIMEOUT_HOURS,
                              help='Automatic timeout in hours (0 disables it)')
    serve_parser.add_argument('-F', '--files', nargs='+', default=None,
                              help='Simulate only the given files')
    serve_parser.add_argument('-c', '--config', default=CONFIG_FILE, help='Configuration file')
    serve_parser.add_argument('--host', default=DEFAULT_HOST, help='Host to bind the Modbus servers')
    serve_parser.add_argument('--api-port', type=int, default=None,
                              help='Serve the status REST API on this port')
    serve_parser.add_argument('--report-interval', type=_positive_float, default=None,
                              help='Log current values every N seconds')
    serve_parser.add_argument('--log-level', default=None,
                              choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                              help='Override LOG_LEVEL')

    # Init command
    init_parser = subparsers.add_parser('init', help='Generate a default configuration from CSV files')
    init_parser.add_argument('-c', '--config', default=CONFIG_FILE, help='Configuration file')
    init_parser.add_argument('--force', action='store_true', help='Overwrite an existing configuration')

    return parser


async def run_simulation(units, plan, args) -> RunnerState:
    termination = Termination(timeout=args.timeout * 3600)
    termination.install_signal_handlers()
    state = RunnerState(units, plan)

    if args.api_port:
        app = create_rest_app(state, host=args.host, api_port=args.api_port)
        start_api_thread(app)
        logger.info(f"Status API on http://{args.host}:{args.api_port}/api/status")

    return await start(units, plan, termination, state=state,
                       report_interval=args.report_interval)


def serve(args) -> int:
    """Build and run the simulations, returning the process exit status"""
    if args.log_level:
        logging.getLogger().setLevel(args.log_level)
    if args.api_port and not api_available():
        logger.error("--api-port needs Flask, install it with: pip install modcsv[api]")
        return 1

    try:
        specs = select_files(load_or_create_config(args.config), args.files)
        if not specs:
            logger.error("No simulations configured")
            return 1
        units = build_simulations(specs, host=args.host)
        plan = plan_simulations(units, args.timestep)
    except FatalConfigError as e:
        logger.error(f"Error: {e}")
        return 1

    logger.info(f"Starting simulation (timestep={args.timestep:g}s) of {len(units)} file(s)")
    if args.timeout:
        logger.info(f"Automatic timeout after {args.timeout:g}h, or CTRL-C to end simulation")
    else:
        logger.info("CTRL-C to end simulation")

    try:
        asyncio.run(run_simulation(units, plan, args))
    except Exception as e:
        logger.error(f"Simulation failed: {e}")
        return 1
    return 0


def init(args) -> int:
    specs = create_default_config('.')
    if not specs:
        logger.error("No CSV files found in the working directory")
        return 1
    if not save_config(specs, args.config, overwrite=args.force):
        logger.error(f"{args.config} already exists (use --force to overwrite)")
        return 1
    return 0


def main(argv=None):
    """Main entry point for the modcsv module"""
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    # serve is the default command
    if not argv or argv[0] not in COMMANDS + ('-h', '--help', '--version'):
        argv.insert(0, 'serve')

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'init':
        sys.exit(init(args))
    sys.exit(serve(args))


if __name__ == '__main__':
    main()
