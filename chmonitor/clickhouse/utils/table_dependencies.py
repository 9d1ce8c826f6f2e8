"""
Table dependency resolution for monitoring queries.

Finds the fully-qualified `database.table` names a query reads from, so that
optional queries can be skipped when their system tables are absent (for
example system.backup_log or system.error_log, which only exist once the
server logs into them).

The SQL scan is lexical: only `FROM db.table` and `JOIN db.table` are
recognized. Tables behind table functions such as clusterAllReplicas(...),
CTE names and unqualified tables are not detected; declare them with
`table_check` instead.
"""

import re
from typing import Iterable, List, Optional, Tuple

from .query_definition import QueryDefinition

TABLE_REFERENCE_PATTERN = re.compile(r'(?:FROM|JOIN)\s+(\w+\.\w+)', re.IGNORECASE)


def _unique(names: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def parse_tables_from_sql(sql: str) -> List[str]:
    """
    Extracts `database.table` references that follow FROM or JOIN.

    Args:
        sql (str): SQL text.

    Returns:
        list: Table names in order of first appearance, without duplicates.
    """
    if not sql:
        return []
    return _unique(match.group(1) for match in TABLE_REFERENCE_PATTERN.finditer(sql))


def resolve_dependencies(query: QueryDefinition) -> List[str]:
    """
    Returns the tables that must exist for a query to run.

    An explicit `table_check` is authoritative and skips SQL scanning.
    Otherwise every declared SQL variant is scanned, so a table used by any
    variant counts as a dependency.
    """
    if query.table_check is not None:
        return _unique(query.table_check)

    tables = []
    for text in query.sql_texts():
        tables.extend(parse_tables_from_sql(text))
    return _unique(tables)


def split_table_name(full_name: str) -> Optional[Tuple[str, str]]:
    """Splits 'database.table' into its parts; None if either part is missing."""
    database, _, table = full_name.partition('.')
    if not database or not table or '.' in table:
        return None
    return database, table
