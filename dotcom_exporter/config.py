#!/usr/bin/env python3
"""
Exporter configuration

Values come from three layers: built-in defaults, an optional YAML file and
explicit command line flags, later layers winning. The result is validated
once and frozen before the exporter is built.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .metrics import DEVICE_STATUS

logger = logging.getLogger(__name__)

DEFAULTS = {
    'listen_address': ':9423',
    'telemetry_path': '/metrics',
    'sites': '*',
    'pid': None,
    'http_timeout': '10s',
    'default_labels': {},
    'log_level': 'INFO',
}

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')
_DURATION = re.compile(r'(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|ms|s|m|h))+')
_LABEL_NAME = re.compile(r'[a-zA-Z_][a-zA-Z0-9_]*')


@dataclass(frozen=True)
class ExporterConfig:
    """Validated exporter settings"""
    pid: str
    sites: Tuple[str, ...]
    http_timeout: float
    listen_address: str = ':9423'
    telemetry_path: str = '/metrics'
    default_labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    log_level: str = 'INFO'

    @property
    def listen(self) -> Tuple[str, int]:
        return parse_listen_address(self.listen_address)


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts bare numbers (seconds) and Go style strings such as "10s",
    "500ms" or "1m30s".
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            if not _DURATION.fullmatch(text):
                raise ConfigError(f"invalid duration: {value!r}")
            seconds = sum(float(number) * _DURATION_UNITS[unit]
                          for number, unit in _DURATION_PART.findall(text))

    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigError(f"duration must be positive: {value!r}")
    return seconds


def parse_sites(value: Any) -> Tuple[str, ...]:
    """Site filters from a comma separated string or a list"""
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigError(f"sites must be a string or a list, got {type(value).__name__}")

    sites = tuple(item.strip() for item in items if item.strip())
    if not sites:
        raise ConfigError("at least one site filter is required (use '*' for all sites)")
    return sites


def parse_listen_address(address: str) -> Tuple[str, int]:
    """Split "host:port", ":port" or "[v6]:port" into (host, port)"""
    host, sep, port = str(address).rpartition(':')
    if not sep:
        raise ConfigError(f"listen address must be host:port, got {address!r}")
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigError(f"invalid port in listen address {address!r}")
    if not 0 <= port_number <= 65535:
        raise ConfigError(f"port out of range in listen address {address!r}")
    return host, port_number


def _parse_default_labels(value: Any) -> Mapping[str, str]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, dict):
        raise ConfigError("default_labels must be a mapping")

    labels = {}
    for name, label_value in value.items():
        name = str(name)
        if not _LABEL_NAME.fullmatch(name) or name.startswith('__'):
            raise ConfigError(f"invalid label name: {name!r}")
        if name in DEVICE_STATUS.labelnames:
            raise ConfigError(f"label name {name!r} is reserved for device metrics")
        labels[name] = str(label_value)
    return MappingProxyType(labels)


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML configuration file into a dict"""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}")
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML configuration: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping")
    return data


def build_config(file_values: Optional[Dict[str, Any]] = None,
                 overrides: Optional[Dict[str, Any]] = None) -> ExporterConfig:
    """
    Merge defaults, file values and overrides into a validated config.

    Args:
        file_values: Values read from the YAML file
        overrides: Values from command line flags; None entries are ignored

    Returns:
        ExporterConfig: Frozen configuration

    Raises:
        ConfigError: a value is missing or invalid
    """
    values = dict(DEFAULTS)

    for key, value in (file_values or {}).items():
        if key not in DEFAULTS:
            logger.warning(f"Ignoring unknown configuration key: {key}")
            continue
        values[key] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    pid = values['pid']
    if pid is None or not str(pid).strip():
        raise ConfigError("an account PID is required")

    telemetry_path = str(values['telemetry_path'])
    if not telemetry_path.startswith('/'):
        raise ConfigError(f"telemetry path must start with '/', got {telemetry_path!r}")

    log_level = str(values['log_level']).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"log level must be one of {', '.join(LOG_LEVELS)}")

    listen_address = str(values['listen_address'])
    parse_listen_address(listen_address)

    return ExporterConfig(
        pid=str(pid).strip(),
        sites=parse_sites(values['sites']),
        http_timeout=parse_duration(values['http_timeout']),
        listen_address=listen_address,
        telemetry_path=telemetry_path,
        default_labels=_parse_default_labels(values['default_labels']),
        log_level=log_level,
    )
