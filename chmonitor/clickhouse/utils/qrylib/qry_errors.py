"""
ClickHouse Error Tracking Query Library

Queries:
- ERRORS_SUMMARY: Current error counters from system.errors
- ERROR_LOG_TREND: Hourly error occurrences from system.error_log
  (optional; needs <error_log> in the server config, 22.8+)
"""

from ..query_definition import QueryDefinition

ERRORS_SUMMARY = QueryDefinition.create(
    name='errors-summary',
    description='Errors that have occurred since server start, most frequent first',
    sql="""
    SELECT
        name,
        code,
        value AS error_count,
        last_error_time,
        last_error_message
    FROM system.errors
    WHERE value > 0
    ORDER BY value DESC, last_error_time DESC
    """,
)

ERROR_LOG_TREND = QueryDefinition.create(
    name='error-log-trend',
    description='Error occurrences per hour over the last day',
    sql="""
    SELECT
        toStartOfHour(event_time) AS event_time,
        error,
        sum(value) AS occurrences
    FROM system.error_log
    WHERE event_time >= now() - INTERVAL 24 HOUR
    GROUP BY event_time, error
    ORDER BY event_time ASC
    """,
    optional=True,
    docs='https://clickhouse.com/docs/en/operations/system-tables/error_log',
)
