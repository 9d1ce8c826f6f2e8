"""
ClickHouse connector used by the query-compatibility layer.

One connector per configured host, shared by every thread that resolves or
runs queries against it. It makes four kinds of round trip:
1. Version lookup (SELECT version()), on connect and on refresh_version()
2. Table existence check against system.tables
3. Row check (does an existing table hold any rows)
4. Execution of resolved SQL
"""

import logging
import threading
from typing import Any, Dict, Optional

import clickhouse_connect
from clickhouse_connect.driver.exceptions import OperationalError

from chmonitor.common.retry_utils import is_transient_error, retry_on_failure
from chmonitor.settings import SettingsError

logger = logging.getLogger(__name__)

VERSION_QUERY = "SELECT version(), hostName()"

TABLE_EXISTS_QUERY = """
SELECT count()
FROM system.tables
WHERE database = {database:String} AND name = {table:String}
"""

TABLE_HAS_DATA_QUERY = """
SELECT count() > 0 AS has_data
FROM {database:Identifier}.{table:Identifier}
LIMIT 1
"""

# clickhouse_connect only speaks HTTP(S); default port keyed by `secure`
_HTTP_PORTS = {False: 8123, True: 8443}


def build_client_kwargs(host_settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translates one `hosts` entry from the settings file into keyword
    arguments for clickhouse_connect.get_client().

    `hosts` may be a list (first entry wins) or a string; `host` is the
    single-host spelling. An explicit `port` wins over `http_port`.

    Sessions are disabled: a ClickHouse session runs one query at a time
    (SESSION_IS_LOCKED otherwise) and the client is shared across threads.

    Raises:
        SettingsError: If `protocol` is anything but 'http'.
    """
    address = host_settings.get('hosts') or host_settings.get('host') or 'localhost'
    if isinstance(address, (list, tuple)):
        address = address[0]

    protocol = str(host_settings.get('protocol', 'http')).lower()
    if protocol != 'http':
        raise SettingsError(
            f"Unsupported ClickHouse protocol '{protocol}': only 'http' is supported "
            f"(set secure: true for HTTPS)"
        )
    secure = bool(host_settings.get('secure', False))
    port = host_settings.get('http_port', _HTTP_PORTS[secure])
    port = host_settings.get('port', port)

    kwargs = {
        'host': address,
        'port': port,
        'interface': 'https' if secure else 'http',
        'secure': secure,
        'username': host_settings.get('user', 'default'),
        'password': host_settings.get('password', ''),
        'database': host_settings.get('database', 'default'),
        'connect_timeout': host_settings.get('connection_timeout', 10),
        'send_receive_timeout': host_settings.get('request_timeout', 30),
        'client_name': host_settings.get('client_name', 'chmonitor'),
        'autogenerate_session_id': False,
    }
    if host_settings.get('compression', True):
        kwargs['compress'] = True
    return kwargs


class ClickHouseConnector:
    """
    Lazily connected client for a single ClickHouse host.

    Host settings keys (all optional):
        hosts / host, protocol (only 'http'), secure, http_port, port, user,
        password, database, connection_timeout, request_timeout, compression,
        client_name, retry_attempts
    """

    def __init__(self, host_settings: Dict[str, Any]):
        self.host_settings = host_settings
        self.client = None
        self._server = {}
        self._lock = threading.Lock()

    def connect(self):
        """Opens the client and reads the server version."""
        with self._lock:
            self._open()

    def _open(self):
        kwargs = build_client_kwargs(self.host_settings)
        target = f"{kwargs['interface']}://{kwargs['host']}:{kwargs['port']}"
        logger.info(f"Connecting to ClickHouse at {target}")
        try:
            client = clickhouse_connect.get_client(**kwargs)
        except Exception as e:
            logger.error(f"Connection to {target} failed: {e}")
            raise ConnectionError(f"Could not connect to ClickHouse at {target}: {e}")
        self.client = client
        self._server = self._read_server_info()

    def _ensure_connected(self) -> bool:
        """Connects if needed; returns True when this call opened the client."""
        if self.client is not None:
            return False
        with self._lock:
            if self.client is not None:
                return False
            self._open()
            return True

    def _read_server_info(self) -> Dict[str, Any]:
        """
        Reads version and hostname from the server.

        A failure is logged and yields an empty dict; version-aware callers
        then fall back to the oldest SQL variant.
        """
        try:
            rows = self.client.query(VERSION_QUERY).result_rows
        except Exception as e:
            logger.warning(f"Could not read ClickHouse version: {e}")
            return {}
        if not rows:
            return {}
        version, hostname = rows[0][0], rows[0][1]
        logger.info(f"ClickHouse {version} on {hostname}")
        return {'version': version, 'hostname': hostname}

    def disconnect(self):
        with self._lock:
            client, self.client = self.client, None
        if client is None:
            return
        client.close()
        logger.info("ClickHouse client closed")

    def get_version_string(self) -> Optional[str]:
        """Returns the version read on connect, or None when it could not be read."""
        self._ensure_connected()
        return self._server.get('version')

    def refresh_version(self) -> Optional[str]:
        """Reads the server version again, e.g. after an upgrade."""
        if not self._ensure_connected():
            self._server = self._read_server_info()
        return self._server.get('version')

    def table_exists(self, database: str, table: str) -> bool:
        """
        Checks system.tables for database.table.

        Transient driver failures are retried `retry_attempts` times (default
        3); the last failure propagates.
        """
        attempts = int(self.host_settings.get('retry_attempts', 3))

        @retry_on_failure(max_attempts=attempts, delay=0.5, exceptions=(OperationalError,),
                          retry_if=is_transient_error)
        def _lookup():
            self._ensure_connected()
            rows = self.client.query(
                TABLE_EXISTS_QUERY,
                parameters={'database': database, 'table': table},
            ).result_rows
            return bool(rows) and int(rows[0][0]) > 0

        exists = _lookup()
        logger.debug(f"system.tables lookup for {database}.{table}: {exists}")
        return exists

    def table_has_data(self, database: str, table: str) -> bool:
        """
        Checks whether database.table holds at least one row.

        Any failure (missing table, missing grant, network) is logged and
        reported as no data.
        """
        self._ensure_connected()
        try:
            rows = self.client.query(
                TABLE_HAS_DATA_QUERY,
                parameters={'database': database, 'table': table},
            ).result_rows
        except Exception as e:
            logger.warning(f"Could not check rows in {database}.{table}: {e}")
            return False
        has_data = bool(rows) and int(rows[0][0]) == 1
        logger.debug(f"Row check for {database}.{table}: {has_data}")
        return has_data

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None):
        """
        Runs resolved SQL.

        Returns:
            list: Result rows as tuples
        """
        self._ensure_connected()
        try:
            return self.client.query(query, parameters=params).result_rows
        except Exception as e:
            logger.error(f"ClickHouse query failed: {e}")
            logger.debug(f"SQL was: {query}")
            raise

    @property
    def version_info(self) -> Dict[str, Any]:
        """Version and hostname read on connect."""
        return self._server
