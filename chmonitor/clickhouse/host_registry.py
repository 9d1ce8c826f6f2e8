"""
Host registry for configured ClickHouse clusters.

Host ids are positions in the `hosts` list of the settings file. The registry
owns one lazily connected ClickHouseConnector per host and provides:

- check_exists(host_id, database, table): the existence-check primitive
  used by the TableExistenceCache
- get_version(host_id): the cluster version, cached per host for
  version_ttl_seconds (it only changes on server upgrade)
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .connector import ClickHouseConnector
from .utils.version_compatibility import ParsedVersion, parse_version

logger = logging.getLogger(__name__)

DEFAULT_VERSION_TTL_SECONDS = 24 * 60 * 60


class HostValidationError(ValueError):
    """Raised for a missing or malformed host id."""


def validate_host_id(raw) -> int:
    """
    Parses a host id supplied by a caller.

    Args:
        raw: int or decimal string.

    Returns:
        int: Non-negative host id

    Raises:
        HostValidationError: If the value is missing, non-numeric or negative.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise HostValidationError("Missing required parameter: hostId")
    if isinstance(raw, bool):
        raise HostValidationError("Invalid hostId: must be a non-negative number")
    if isinstance(raw, int):
        host_id = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        host_id = int(raw.strip())
    else:
        raise HostValidationError("Invalid hostId: must be a non-negative number")
    if host_id < 0:
        raise HostValidationError("Invalid hostId: must be a non-negative number")
    return host_id


class HostRegistry:
    """
    Maps host ids to connectors.

    Args:
        hosts: List of per-host connection settings (see ClickHouseConnector).
        version_ttl_seconds: How long a host's version string is reused.
        connector_factory: Builds a connector from host settings.
        clock: Monotonic time source.
    """

    def __init__(self, hosts: List[dict], version_ttl_seconds: float = DEFAULT_VERSION_TTL_SECONDS,
                 connector_factory: Callable[[dict], ClickHouseConnector] = ClickHouseConnector,
                 clock: Callable[[], float] = time.monotonic):
        self.hosts = list(hosts)
        self.version_ttl_seconds = version_ttl_seconds
        self._connector_factory = connector_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._connectors: Dict[int, ClickHouseConnector] = {}
        self._versions: Dict[int, Tuple[Optional[ParsedVersion], float]] = {}

    def __len__(self):
        return len(self.hosts)

    def get_connector(self, host_id) -> ClickHouseConnector:
        host_id = validate_host_id(host_id)
        if host_id >= len(self.hosts):
            raise HostValidationError(
                f"Invalid hostId: {host_id}, available: 0-{len(self.hosts) - 1}"
            )
        with self._lock:
            connector = self._connectors.get(host_id)
            if connector is None:
                connector = self._connector_factory(self.hosts[host_id])
                self._connectors[host_id] = connector
        return connector

    def check_exists(self, host_id, database: str, table: str) -> bool:
        """Existence-check primitive: asks system.tables on the host."""
        return self.get_connector(host_id).table_exists(database, table)

    def table_has_data(self, host_id, database: str, table: str) -> bool:
        """Whether an existing table on the host holds any rows."""
        return self.get_connector(host_id).table_has_data(database, table)

    def get_version(self, host_id) -> Optional[ParsedVersion]:
        """
        Returns the parsed cluster version, or None if it cannot be determined.

        A missing or expired entry asks the server again, so an upgrade is
        picked up once version_ttl_seconds have passed. Failures are logged and
        yield None so callers fall back to the oldest compatible SQL; they are
        not cached.
        """
        host_id = validate_host_id(host_id)
        with self._lock:
            cached = self._versions.get(host_id)
            if cached is not None and self._clock() < cached[1]:
                return cached[0]

        try:
            version = parse_version(self.get_connector(host_id).refresh_version())
        except HostValidationError:
            raise
        except Exception as e:
            logger.error(f"Error fetching ClickHouse version for host {host_id}: {e}")
            return None

        if version is None:
            logger.warning(f"Host {host_id} did not report a usable version")
            return None

        with self._lock:
            self._versions[host_id] = (version, self._clock() + self.version_ttl_seconds)
        logger.debug(f"Host {host_id}: ClickHouse {version}")
        return version

    def clear_version_cache(self):
        with self._lock:
            self._versions.clear()

    def close(self):
        """Disconnects every connector that was opened."""
        with self._lock:
            connectors = list(self._connectors.values())
            self._connectors.clear()
        for connector in connectors:
            try:
                connector.disconnect()
            except Exception as e:
                logger.warning(f"Error while disconnecting: {e}")
