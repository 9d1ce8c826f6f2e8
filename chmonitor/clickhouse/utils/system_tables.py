"""
Known ClickHouse system tables that may be absent on a cluster.

Log tables only exist once the matching server setting is enabled (and, for
some, once the first event has been logged), so monitoring queries against
them are declared optional. The guidance here is shown instead of an error
when such a query is skipped, and check_table_availability() tells an absent
table apart from one that exists but is still empty.
"""

from typing import Callable, NamedTuple, Optional


SYSTEM_TABLE_INFO = {
    'system.metric_log': {
        'min_version': (20, 5),
        'requires_config': True,
        'config_key': 'metric_log',
        'description': 'Historical metrics log. Requires <metric_log> in server config.',
    },
    'system.asynchronous_metric_log': {
        'min_version': (20, 5),
        'requires_config': True,
        'config_key': 'asynchronous_metric_log',
        'description': 'Historical async metrics. Requires <asynchronous_metric_log> in server config.',
    },
    'system.part_log': {
        'requires_config': True,
        'config_key': 'part_log',
        'description': 'Part operations log. Requires <part_log> in server config. Usually enabled by default.',
    },
    'system.query_log': {
        'requires_config': True,
        'config_key': 'query_log',
        'description': 'Query execution log. Requires <query_log> in server config. Usually enabled by default.',
    },
    'system.backup_log': {
        'min_version': (22, 0),
        'requires_config': True,
        'config_key': 'backup_log',
        'description': 'Backup operations log. Requires backup configuration and <backup_log> in server config.',
    },
    'system.error_log': {
        'min_version': (22, 8),
        'requires_config': True,
        'config_key': 'error_log',
        'description': 'Error log. Requires <error_log> in server config. Available since 22.8.',
    },
    'system.zookeeper': {
        'requires_config': True,
        'description': 'ZooKeeper data. Requires ZooKeeper/Keeper configuration in server.',
    },
}


def get_table_info_message(full_table_name: str) -> str:
    """Returns a user-facing explanation of why a table may be missing."""
    info = SYSTEM_TABLE_INFO.get(full_table_name)
    if not info:
        return f"Table {full_table_name} may require specific configuration."
    return info['description']


class TableAvailability(NamedTuple):
    """Whether a table exists and holds rows, with a message when it is not usable."""

    exists: bool
    has_data: bool
    message: Optional[str] = None

    def to_dict(self):
        result = {'exists': self.exists, 'hasData': self.has_data}
        if self.message:
            result['message'] = self.message
        return result


def check_table_availability(check_exists: Callable[[int, str, str], bool],
                             check_has_data: Callable[[int, str, str], bool],
                             host_id: int, database: str, table: str) -> TableAvailability:
    """
    Distinguishes a missing table from an empty one.

    Args:
        check_exists: Existence check, e.g. TableExistenceCache.check_table_exists.
        check_has_data: Row check, e.g. HostRegistry.table_has_data. Only
            called when the table exists.
        host_id (int): Target cluster.
        database (str): Database name.
        table (str): Table name.

    Returns:
        TableAvailability
    """
    if not check_exists(host_id, database, table):
        return TableAvailability(
            exists=False,
            has_data=False,
            message=f"Table {database}.{table} does not exist. It may require configuration in ClickHouse.",
        )
    if not check_has_data(host_id, database, table):
        return TableAvailability(
            exists=True,
            has_data=False,
            message=f"Table {database}.{table} exists but contains no data.",
        )
    return TableAvailability(exists=True, has_data=True)
