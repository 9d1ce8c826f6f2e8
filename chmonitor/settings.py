"""
Settings loading for the ClickHouse query-compatibility layer.

Settings come from a YAML file (config/config.yaml by default) and are merged
over defaults. Example:

    hosts:
      - host: localhost
        http_port: 8123
        user: default
        password: ''
    table_cache:
      ttl_seconds: 300
      max_entries: 500
    version_cache:
      ttl_seconds: 86400
"""

import copy
import logging

import yaml

logger = logging.getLogger(__name__)


class SettingsError(ValueError):
    """Raised for malformed or invalid configuration."""


DEFAULT_CONFIG_PATH = 'config/config.yaml'

DEFAULT_SETTINGS = {
    'hosts': [],
    'table_cache': {
        'ttl_seconds': 300,
        'max_entries': 500,
    },
    'version_cache': {
        'ttl_seconds': 24 * 60 * 60,
    },
}


def _merge(defaults, overrides):
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _positive_number(settings, section, key):
    value = settings[section][key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise SettingsError(f"Setting {section}.{key} must be a positive number, got {value!r}")
    return value


def build_settings(raw):
    """
    Merges raw settings over the defaults and validates them.

    Args:
        raw (dict | None): Parsed YAML content.

    Returns:
        dict: Complete settings

    Raises:
        SettingsError: If the structure or values are invalid.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings root must be a mapping, got {type(raw).__name__}")

    settings = _merge(DEFAULT_SETTINGS, raw)

    hosts = settings['hosts']
    if not isinstance(hosts, list) or any(not isinstance(host, dict) for host in hosts):
        raise SettingsError("Setting 'hosts' must be a list of host mappings")

    _positive_number(settings, 'table_cache', 'ttl_seconds')
    _positive_number(settings, 'version_cache', 'ttl_seconds')
    max_entries = _positive_number(settings, 'table_cache', 'max_entries')
    if not isinstance(max_entries, int):
        raise SettingsError(f"Setting table_cache.max_entries must be an integer, got {max_entries!r}")

    return settings


def load_settings(config_file=DEFAULT_CONFIG_PATH):
    """
    Loads settings from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        SettingsError: If the file is not valid YAML or fails validation.
    """
    try:
        with open(config_file, 'r') as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in {config_file}: {e}")

    settings = build_settings(raw)
    logger.info(f"Loaded settings from {config_file} ({len(settings['hosts'])} host(s))")
    return settings
