"""
Query Definition Types

Declarative description of a dashboard monitoring query. The SQL of a query is
either version independent (PlainSql) or a chronological list of variants
(VersionedSql), each tagged with the first ClickHouse release it applies to.

Registry modules under qrylib/ build their definitions with
QueryDefinition.create(), which accepts the loose forms used in query
libraries (a string, SqlVariant objects or {"since", "sql"} mappings).
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class SqlVariant:
    """One version-scoped alternative of a query's SQL text."""

    since: str
    sql: str


@dataclass(frozen=True)
class PlainSql:
    """SQL that runs unchanged on every ClickHouse version."""

    text: str


@dataclass(frozen=True)
class VersionedSql:
    """SQL variants ordered oldest to newest by their `since` release."""

    variants: Tuple[SqlVariant, ...]

    def texts(self):
        return [variant.sql for variant in self.variants]


SqlSource = Union[PlainSql, VersionedSql]


def _to_variant(item) -> SqlVariant:
    if isinstance(item, SqlVariant):
        return item
    if isinstance(item, Mapping):
        try:
            return SqlVariant(since=str(item['since']), sql=str(item['sql']))
        except KeyError as e:
            raise ValueError(f"SQL variant is missing field {e}")
    raise ValueError(f"Unsupported SQL variant type: {type(item).__name__}")


def to_sql_source(sql: Any) -> SqlSource:
    """
    Normalizes a registry `sql` value into a tagged SQL source.

    Args:
        sql: A SQL string, a PlainSql/VersionedSql, or a sequence of
            SqlVariant objects / {"since": ..., "sql": ...} mappings.

    Returns:
        PlainSql or VersionedSql

    Raises:
        ValueError: If the value is an empty variant list or of an unsupported type.
    """
    if isinstance(sql, (PlainSql, VersionedSql)):
        if isinstance(sql, VersionedSql) and not sql.variants:
            raise ValueError("VersionedSql must contain at least one variant")
        return sql
    if isinstance(sql, str):
        return PlainSql(sql)
    if isinstance(sql, Sequence):
        variants = tuple(_to_variant(item) for item in sql)
        if not variants:
            raise ValueError("VersionedSql must contain at least one variant")
        return VersionedSql(variants)
    raise ValueError(f"Unsupported SQL definition type: {type(sql).__name__}")


@dataclass(frozen=True)
class QueryDefinition:
    """A named monitoring query as declared in the query registry."""

    name: str
    sql: SqlSource
    optional: bool = False
    table_check: Optional[Tuple[str, ...]] = None
    description: str = ''
    docs: Optional[str] = None

    @classmethod
    def create(cls, name, sql, optional=False, table_check=None, description='', docs=None):
        """Builds a definition, normalizing `sql` and `table_check`."""
        if isinstance(table_check, str):
            table_check = (table_check,)
        elif table_check is not None:
            table_check = tuple(table_check)
        return cls(
            name=name,
            sql=to_sql_source(sql),
            optional=bool(optional),
            table_check=table_check,
            description=description,
            docs=docs,
        )

    @property
    def is_versioned(self) -> bool:
        return isinstance(self.sql, VersionedSql)

    def sql_texts(self):
        """Returns every SQL text declared for this query, in declaration order."""
        if isinstance(self.sql, VersionedSql):
            return self.sql.texts()
        return [self.sql.text]
