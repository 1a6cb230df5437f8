"""
modcsv.api.rest - read-only REST API over running simulations
"""

import logging
import threading

from ..config import REG_COIL, REG_DISCRETE, REG_HOLDING, REG_INPUT
from ..runner import RunnerState

# Configure logging
logger = logging.getLogger(__name__)

# Try to import Flask for REST API
try:
    from flask import Flask, jsonify
except ImportError:
    logger.warning("Flask not installed. REST API will not be available.")
    Flask = None

# URL segment -> register kind
TABLES = {
    'coils': REG_COIL,
    'discrete_inputs': REG_DISCRETE,
    'holding_registers': REG_HOLDING,
    'input_registers': REG_INPUT,
}


def api_available() -> bool:
    return Flask is not None


def require_flask(func):
    """Decorator to check if Flask is available"""
    def wrapper(*args, **kwargs):
        if Flask is None:
            raise ImportError(
                "Flask is required for REST API. Install with: pip install flask"
            )
        return func(*args, **kwargs)
    return wrapper


def _json_value(value):
    # JSON has no NaN/Infinity
    if isinstance(value, float) and (value != value or value in (float('inf'), float('-inf'))):
        return str(value)
    return value


@require_flask
def create_rest_app(state: RunnerState,
                    host: str = '0.0.0.0',
                    api_port: int = 8080,
                    debug: bool = False) -> Flask:
    """
    Create Flask application exposing the simulation state

    Args:
        state: Run state shared with the scheduler
        host: Host to bind the API server (default: 0.0.0.0)
        api_port: Port to bind the API server (default: 8080)
        debug: Enable debug mode (default: False)

    Returns:
        Flask application
    """
    app = Flask(__name__)

    if not debug:
        log = logging.getLogger('werkzeug')
        log.setLevel(logging.ERROR)

    def get_unit(index):
        if 0 <= index < len(state.units):
            return state.units[index]
        return None

    @app.after_request
    def add_cors_headers(response):
        """Add CORS headers to allow cross-origin requests"""
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Get run status"""
        return jsonify({
            'status': state.state.value,
            'reason': state.reason,
            'tick_count': state.tick_count,
            'base_tick': state.plan.base_tick,
            'simulations': len(state.units)
        })

    @app.route('/api/simulations', methods=['GET'])
    def list_simulations():
        """List simulations"""
        return jsonify([
            {
                'index': i,
                'filename': unit.name,
                'port': unit.spec.port,
                'unit_id': unit.spec.slave_id,
                'multiplier': unit.multiplier,
                'responding': unit.responding,
                'fault_probability': unit.fault_probability,
                'updates': unit.updates,
                'faults': unit.faults
            }
            for i, unit in enumerate(state.units)
        ])

    @app.route('/api/simulations/<int:index>/values', methods=['GET'])
    def get_values(index):
        """Current decoded value of every parameter"""
        unit = get_unit(index)
        if unit is None:
            return jsonify({'error': f'No simulation {index}'}), 404

        values = unit.source.decoded_values()
        return jsonify({
            'filename': unit.name,
            'responding': unit.responding,
            'values': [
                {
                    'column': column,
                    'address': param.reg_address,
                    'reg_type': param.reg_type,
                    'value_type': param.value_type,
                    'value': _json_value(value.value)
                }
                for column, (param, value) in enumerate(zip(unit.params, values))
            ]
        })

    @app.route('/api/simulations/<int:index>/<table>/<int:address>/<int:count>', methods=['GET'])
    def read_table(index, table, address, count):
        """Read raw register table contents, bypassing fault injection"""
        unit = get_unit(index)
        if unit is None:
            return jsonify({'error': f'No simulation {index}'}), 404
        if table not in TABLES:
            return jsonify({'error': f'Unknown table {table}'}), 404
        if count < 1 or address + count > 0x10000:
            return jsonify({'error': 'Address range out of bounds'}), 400

        result = unit.server.context.load_values(TABLES[table], address, count)
        response = {
            'address': address,
            'count': count,
            'values': result,
            'values_dict': {str(i): val for i, val in enumerate(result, address)},
        }
        if TABLES[table] in (REG_HOLDING, REG_INPUT):
            response['hex_values'] = [f"0x{val:04X}" for val in result]
        return jsonify(response)

    @app.route('/api/docs', methods=['GET'])
    def get_docs():
        """Get API documentation"""
        return jsonify({
            'endpoints': [
                {
                    'path': '/api/status',
                    'method': 'GET',
                    'description': 'Get run status'
                },
                {
                    'path': '/api/simulations',
                    'method': 'GET',
                    'description': 'List simulations'
                },
                {
                    'path': '/api/simulations/<index>/values',
                    'method': 'GET',
                    'description': 'Current decoded values of a simulation'
                },
                {
                    'path': '/api/simulations/<index>/<table>/<address>/<count>',
                    'method': 'GET',
                    'description': 'Read a register table',
                    'params': [f'table: {", ".join(TABLES)}']
                }
            ]
        })

    def run_server():
        """Run the Flask server"""
        app.run(host=host, port=api_port, debug=debug, use_reloader=False)

    # Add run method to app
    app.run_server = run_server

    return app


def start_api_thread(app) -> threading.Thread:
    """Serve the API from a daemon thread; it ends with the process"""
    thread = threading.Thread(target=app.run_server, name='modcsv-api', daemon=True)
    thread.start()
    return thread
