"""
Configuration file handling - YAML load/save and default generation
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from . import codec
from .config import (
    CONFIG_FILE, DEFAULT_BASE_PORT, DEFAULT_SLAVE_ID,
    DEFAULT_REG_TYPE, DEFAULT_PARAM_VALUE_TYPE,
)
from .exceptions import FatalConfigError
from .models import ParameterSpec, SimulationSpec
from .source import count_data_columns

logger = logging.getLogger(__name__)


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Lower-case keys and drop underscores: slave_id, SlaveId and slaveid match"""
    return {str(k).replace('_', '').lower(): v for k, v in data.items()}


def _as_bool(value: Any, key: str) -> bool:
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ('true', 'yes', 'on', '1'):
        return True
    if isinstance(value, str) and value.strip().lower() in ('false', 'no', 'off', '0', ''):
        return False
    if isinstance(value, int):
        return bool(value)
    raise FatalConfigError(f"{key}: expected a boolean, got {value!r}")


def _as_number(value: Any, key: str, kind=int):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise FatalConfigError(f"{key}: expected a number, got {value!r}")


def param_from_dict(data: Dict[str, Any]) -> ParameterSpec:
    data = _normalize_keys(data)
    return ParameterSpec(
        reg_address=_as_number(data.get('regaddress', 0), 'regaddress'),
        reg_type=str(data.get('regtype', DEFAULT_REG_TYPE)).lower(),
        byte_swap=_as_bool(data.get('byteswap', False), 'byteswap'),
        value_type=str(data.get('valuetype', DEFAULT_PARAM_VALUE_TYPE)).lower(),
    )


def param_to_dict(param: ParameterSpec) -> Dict[str, Any]:
    return {
        'regaddress': param.reg_address,
        'regtype': param.reg_type,
        'byteswap': param.byte_swap,
        'valuetype': param.value_type,
    }


def simulation_from_dict(data: Dict[str, Any]) -> SimulationSpec:
    """
    Build a SimulationSpec from one ``servers`` entry

    Raises:
        FatalConfigError: If the entry is not a mapping or has no filename
    """
    if not isinstance(data, dict):
        raise FatalConfigError(f"server entry must be a mapping, got {data!r}")
    data = _normalize_keys(data)
    if not data.get('filename'):
        raise FatalConfigError(f"server entry without filename: {data!r}")
    filename = str(data['filename'])
    params = data.get('params') or []
    if not isinstance(params, list):
        raise FatalConfigError(f"{filename}: params must be a list")
    return SimulationSpec(
        filename=filename,
        port=_as_number(data.get('port', 502), f"{filename}: port"),
        slave_id=_as_number(data.get('slaveid', DEFAULT_SLAVE_ID), f"{filename}: slaveid"),
        has_header=_as_bool(data.get('hasheader', False), f"{filename}: hasheader"),
        has_index=_as_bool(data.get('hasindex', False), f"{filename}: hasindex"),
        missing_rate=_as_number(data.get('missingrate', 0.0), f"{filename}: missingrate", float),
        timestep=_as_number(data.get('timestep', 0), f"{filename}: timestep"),
        params=[param_from_dict(_check_mapping(p, filename)) for p in params],
    )


def _check_mapping(value: Any, filename: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise FatalConfigError(f"{filename}: param entry must be a mapping, got {value!r}")
    return value


def simulation_to_dict(spec: SimulationSpec) -> Dict[str, Any]:
    return {
        'filename': spec.filename,
        'port': spec.port,
        'slaveid': spec.slave_id,
        'hasheader': spec.has_header,
        'hasindex': spec.has_index,
        'missingrate': spec.missing_rate,
        'timestep': spec.timestep,
        'params': [param_to_dict(p) for p in spec.params],
    }


def load_config(path: str = CONFIG_FILE) -> List[SimulationSpec]:
    """
    Read simulation definitions from a YAML file

    Raises:
        FatalConfigError: If the file is unreadable or malformed
    """
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise FatalConfigError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise FatalConfigError(f"malformed YAML in {path}: {e}") from e

    if not isinstance(document, dict):
        raise FatalConfigError(f"{path}: expected a mapping with a 'servers' list")
    servers = _normalize_keys(document).get('servers')
    if not isinstance(servers, list):
        raise FatalConfigError(f"{path}: expected a mapping with a 'servers' list")
    logger.info(f"Using config file: {path}")
    return [simulation_from_dict(entry) for entry in servers]


def save_config(specs: Sequence[SimulationSpec], path: str = CONFIG_FILE, overwrite: bool = False) -> bool:
    """
    Write simulation definitions to a YAML file

    Returns:
        bool: True if written, False if the file exists and overwrite is off
    """
    if os.path.exists(path) and not overwrite:
        logger.debug(f"{path} already exists, not overwriting")
        return False
    document = {'servers': [simulation_to_dict(s) for s in specs]}
    with open(path, 'w') as f:
        yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
    logger.info(f"Wrote configuration to {path}")
    return True


def find_by_ext(root: str, ext: str) -> List[str]:
    """Files with the given extension directly in root (not recursive), sorted"""
    return sorted(
        entry.name for entry in Path(root).iterdir()
        if entry.is_file() and entry.suffix == ext
    )


def default_params(column_count: int) -> List[ParameterSpec]:
    """One holding register parameter per column, packed at consecutive addresses"""
    params = []
    address = 0
    for _ in range(column_count):
        params.append(ParameterSpec(reg_address=address))
        address += codec.register_width(DEFAULT_PARAM_VALUE_TYPE)
    return params


def create_default_config(root: str = '.') -> List[SimulationSpec]:
    """
    Build a default definition for every CSV file in root

    Each file gets its own server on port 5000 + index, slave id 1 and one
    int16 holding register per column of its first row.
    """
    specs = []
    for i, filename in enumerate(find_by_ext(root, '.csv')):
        path = os.path.join(root, filename)
        column_count = count_data_columns(path)
        if column_count == 0:
            logger.warning(f"Skipping empty file {path}")
            continue
        specs.append(SimulationSpec(
            filename=filename if root == '.' else path,
            port=DEFAULT_BASE_PORT + i,
            slave_id=DEFAULT_SLAVE_ID,
            params=default_params(column_count),
        ))
    return specs


def load_or_create_config(path: str = CONFIG_FILE, root: str = '.') -> List[SimulationSpec]:
    """Load the configuration, generating and saving defaults if it does not exist"""
    if os.path.exists(path):
        return load_config(path)
    logger.info(f"No config file found, generating defaults from CSV files in {root}")
    specs = create_default_config(root)
    save_config(specs, path)
    return specs


def select_files(specs: Sequence[SimulationSpec], files: Optional[Sequence[str]]) -> List[SimulationSpec]:
    """Keep only the simulations whose filename is listed (all if files is empty)"""
    if not files:
        return list(specs)
    wanted = set(files)
    selected = [s for s in specs if s.filename in wanted]
    for name in wanted - {s.filename for s in selected}:
        logger.warning(f"{name} is not in the configuration, ignoring")
    return selected
