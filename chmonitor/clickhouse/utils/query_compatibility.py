"""
Query Compatibility Service

Turns a registry QueryDefinition into something the execution layer can act
on for one cluster:

- ResolvedQuery: the SQL variant matching the cluster version, ready to run
- SkippedQuery: an optional query whose tables are missing on the cluster

Required queries are never checked against system.tables; if their table is
missing the execution failure is classified like any other error.
"""

import logging
from typing import Callable, List, Optional

from .query_definition import QueryDefinition
from .system_tables import get_table_info_message
from .table_dependencies import resolve_dependencies, split_table_name
from .table_existence_cache import TableExistenceCache
from .version_compatibility import ParsedVersion, select_versioned_sql

logger = logging.getLogger(__name__)


class ValidationResult:
    """Outcome of checking a query's table dependencies on one host."""

    def __init__(self, should_proceed: bool, missing_tables: Optional[List[str]] = None,
                 error: Optional[str] = None):
        self.should_proceed = should_proceed
        self.missing_tables = list(missing_tables or [])
        self.error = error

    def __repr__(self):
        return (f"ValidationResult(should_proceed={self.should_proceed}, "
                f"missing_tables={self.missing_tables}, error={self.error!r})")


class ResolvedQuery:
    """Verdict: run `sql`."""

    skip = False

    def __init__(self, sql: str):
        self.sql = sql

    def to_dict(self):
        return {'sql': self.sql}

    def __eq__(self, other):
        return isinstance(other, ResolvedQuery) and other.sql == self.sql

    def __repr__(self):
        return f"ResolvedQuery(sql={self.sql!r})"


class SkippedQuery:
    """Verdict: do not run the query; the listed tables are missing."""

    skip = True

    def __init__(self, missing_tables: List[str]):
        self.missing_tables = list(missing_tables)

    @property
    def guidance(self):
        """Per-table explanation to show instead of the chart."""
        return {table: get_table_info_message(table) for table in self.missing_tables}

    def to_dict(self):
        return {'skip': True, 'missingTables': list(self.missing_tables)}

    def __eq__(self, other):
        return isinstance(other, SkippedQuery) and other.missing_tables == self.missing_tables

    def __repr__(self):
        return f"SkippedQuery(missing_tables={self.missing_tables})"


class QueryCompatibilityService:
    """
    Resolves queries for a cluster using a shared TableExistenceCache.

    Args:
        cache: Table existence cache backed by the existence-check primitive.
        version_provider: Optional callable host_id -> ParsedVersion | None,
            used by resolve_for_host (typically HostRegistry.get_version).
    """

    def __init__(self, cache: TableExistenceCache,
                 version_provider: Optional[Callable[[int], Optional[ParsedVersion]]] = None):
        self.cache = cache
        self.version_provider = version_provider

    def validate(self, query: QueryDefinition, host_id) -> ValidationResult:
        """
        Checks that every table the query depends on exists on the host.

        For optional queries a failing existence check counts the table as
        missing. For required queries the failure is re-raised.
        """
        tables = resolve_dependencies(query)
        if not tables:
            return ValidationResult(should_proceed=True)

        missing = []
        errors = []
        for full_name in tables:
            parts = split_table_name(full_name)
            if parts is None:
                logger.warning(f"Query '{query.name}' declares malformed table name '{full_name}'")
                missing.append(full_name)
                continue

            database, table = parts
            try:
                exists = self.cache.check_table_exists(host_id, database, table)
            except Exception as e:
                if not query.optional:
                    raise
                logger.warning(
                    f"Existence check for {full_name} on host {host_id} failed, treating as missing: {e}"
                )
                errors.append(f"{full_name}: {e}")
                exists = False

            if not exists:
                missing.append(full_name)

        return ValidationResult(
            should_proceed=not missing,
            missing_tables=missing,
            error='; '.join(errors) or None,
        )

    def resolve(self, query: QueryDefinition, host_id, version: Optional[ParsedVersion] = None):
        """
        Resolves a query for a host.

        Args:
            query (QueryDefinition): Registry entry.
            host_id (int): Target cluster.
            version (ParsedVersion | None): Cluster version; None selects the
                oldest SQL variant.

        Returns:
            ResolvedQuery or SkippedQuery
        """
        sql = select_versioned_sql(query.sql, version)
        if not query.optional:
            return ResolvedQuery(sql)

        result = self.validate(query, host_id)
        if result.should_proceed:
            return ResolvedQuery(sql)

        logger.info(
            f"Skipping optional query '{query.name}' on host {host_id}: "
            f"missing {', '.join(result.missing_tables)}"
        )
        return SkippedQuery(result.missing_tables)

    def resolve_for_host(self, query: QueryDefinition, host_id):
        """Like resolve(), looking the cluster version up first."""
        version = self.version_provider(host_id) if self.version_provider else None
        return self.resolve(query, host_id, version)
