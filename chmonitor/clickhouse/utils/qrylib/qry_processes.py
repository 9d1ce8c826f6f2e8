"""
ClickHouse Running Queries Query Library

Queries:
- RUNNING_QUERIES: Currently executing queries from system.processes.
  peak_threads_usage was added to system.processes in 24.8.
"""

from ..query_definition import QueryDefinition, SqlVariant

RUNNING_QUERIES = QueryDefinition.create(
    name='running-queries',
    description='Queries that are currently running on the node',
    sql=[
        SqlVariant(
            since='23.8',
            sql="""
    SELECT
        query_id,
        user,
        elapsed,
        formatReadableTimeDelta(elapsed) AS readable_elapsed,
        read_rows,
        formatReadableQuantity(read_rows) AS readable_read_rows,
        memory_usage,
        formatReadableSize(memory_usage) AS readable_memory_usage,
        query
    FROM system.processes
    WHERE is_cancelled = 0
    ORDER BY elapsed DESC
    """,
        ),
        SqlVariant(
            since='24.8',
            sql="""
    SELECT
        query_id,
        user,
        elapsed,
        formatReadableTimeDelta(elapsed) AS readable_elapsed,
        read_rows,
        formatReadableQuantity(read_rows) AS readable_read_rows,
        memory_usage,
        formatReadableSize(memory_usage) AS readable_memory_usage,
        peak_threads_usage,
        toString(peak_threads_usage) AS readable_peak_threads_usage,
        round(100 * peak_threads_usage / nullIf(max(peak_threads_usage) OVER (), 0), 2) AS pct_peak_threads_usage,
        query
    FROM system.processes
    WHERE is_cancelled = 0
    ORDER BY elapsed DESC
    """,
        ),
    ],
)
