"""
modcsv configuration constants and environment-driven defaults
"""

import os

# Modbus function codes handled by the simulated devices
READ_COILS = 0x01
READ_DISCRETE_INPUTS = 0x02
READ_HOLDING_REGISTERS = 0x03
READ_INPUT_REGISTERS = 0x04
WRITE_SINGLE_COIL = 0x05
WRITE_SINGLE_REGISTER = 0x06
WRITE_MULTIPLE_COILS = 0x0F
WRITE_MULTIPLE_REGISTERS = 0x10

STANDARD_FUNCTION_CODES = (
    READ_COILS, READ_DISCRETE_INPUTS,
    READ_HOLDING_REGISTERS, READ_INPUT_REGISTERS,
    WRITE_SINGLE_COIL, WRITE_SINGLE_REGISTER,
    WRITE_MULTIPLE_COILS, WRITE_MULTIPLE_REGISTERS,
)

# Modbus exception codes
EXCEPTION_DEVICE_FAILURE = 0x04
EXCEPTION_DEVICE_BUSY = 0x06

# Register kinds as written in the configuration file
REG_COIL = 'coil'
REG_DISCRETE = 'discrete'
REG_HOLDING = 'holding'
REG_INPUT = 'input'

REGISTER_KINDS = (REG_COIL, REG_DISCRETE, REG_HOLDING, REG_INPUT)
BIT_REGISTER_KINDS = (REG_COIL, REG_DISCRETE)

# Function code used to address each register table directly
REGISTER_KIND_FUNCTION_CODES = {
    REG_COIL: READ_COILS,
    REG_DISCRETE: READ_DISCRETE_INPUTS,
    REG_HOLDING: READ_HOLDING_REGISTERS,
    REG_INPUT: READ_INPUT_REGISTERS,
}

# Value types
VALUE_TYPES = (
    'bool',
    'int8', 'int16', 'int32', 'int64',
    'uint8', 'uint16', 'uint32', 'uint64',
    'float32', 'float64',
)
DEFAULT_VALUE_TYPE = 'float32'

# Register table size: every 16-bit address plus pymodbus' one-based offset
REGISTER_TABLE_SIZE = 0x10000 + 1

# Default configuration
CONFIG_FILE = os.environ.get('MODCSV_CONFIG', 'config.yaml')
DEFAULT_HOST = os.environ.get('MODCSV_HOST', '0.0.0.0')
DEFAULT_TIMESTEP = float(os.environ.get('MODCSV_TIMESTEP', 1))
DEFAULT_TIMEOUT_HOURS = float(os.environ.get('MODCSV_TIMEOUT', 1))
DEFAULT_BASE_PORT = 5000
DEFAULT_SLAVE_ID = 1
DEFAULT_REG_TYPE = REG_HOLDING
DEFAULT_PARAM_VALUE_TYPE = 'int16'

NS_PER_SECOND = 1_000_000_000
