"""
Registry of ClickHouse monitoring queries.

Each qry_* module declares QueryDefinition objects; they are collected here
by name for the CLI and the dashboard layer.
"""

from typing import Dict, List

from ..query_definition import QueryDefinition
from . import (
    qry_backups,
    qry_errors,
    qry_parts,
    qry_processes,
    qry_query_log,
    qry_system_metrics,
    qry_zookeeper,
)

_MODULES = (
    qry_backups,
    qry_errors,
    qry_parts,
    qry_processes,
    qry_query_log,
    qry_system_metrics,
    qry_zookeeper,
)


def _collect() -> Dict[str, QueryDefinition]:
    registry = {}
    for module in _MODULES:
        for value in vars(module).values():
            if isinstance(value, QueryDefinition):
                if value.name in registry:
                    raise ValueError(f"Duplicate query name '{value.name}' in {module.__name__}")
                registry[value.name] = value
    return registry


QUERY_REGISTRY = _collect()


def get_query_definition(name: str) -> QueryDefinition:
    """
    Looks a query up by name.

    Raises:
        KeyError: If no query has that name.
    """
    try:
        return QUERY_REGISTRY[name]
    except KeyError:
        available = ', '.join(sorted(QUERY_REGISTRY)) or 'none'
        raise KeyError(f"Invalid query name '{name}'. Available queries: {available}")


def list_query_definitions() -> List[QueryDefinition]:
    return [QUERY_REGISTRY[name] for name in sorted(QUERY_REGISTRY)]
