"""
ClickHouse Query Log Query Library

Queries:
- FAILED_QUERIES: Recent failed queries from system.query_log (optional;
  query_log can be disabled in the server config)
- EXPENSIVE_QUERIES: Slowest finished queries joined with their user
"""

from ..query_definition import QueryDefinition

FAILED_QUERIES = QueryDefinition.create(
    name='failed-queries',
    description='Queries that failed in the last day',
    sql="""
    SELECT
        type,
        query_start_time,
        query_duration_ms,
        query_id,
        user,
        exception_code,
        exception,
        query
    FROM system.query_log
    WHERE type IN ('ExceptionBeforeStart', 'ExceptionWhileProcessing')
      AND event_date >= yesterday()
    ORDER BY query_start_time DESC
    LIMIT 100
    """,
    optional=True,
)

EXPENSIVE_QUERIES = QueryDefinition.create(
    name='expensive-queries',
    description='Slowest finished queries of the last day with their user settings profile',
    sql="""
    SELECT
        q.query_id,
        q.user,
        q.query_duration_ms,
        formatReadableSize(q.memory_usage) AS readable_memory_usage,
        u.default_roles_all AS user_default_roles_all,
        q.query
    FROM system.query_log AS q
    LEFT JOIN system.users AS u ON q.user = u.name
    WHERE q.type = 'QueryFinish'
      AND q.event_date >= yesterday()
    ORDER BY q.query_duration_ms DESC
    LIMIT 50
    """,
    optional=True,
)
