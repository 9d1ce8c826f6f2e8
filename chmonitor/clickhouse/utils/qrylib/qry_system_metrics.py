"""
ClickHouse System Metrics History Query Library

The history tables are read through merge('system', '^metric_log') so that
renamed tables left behind by upgrades (metric_log_0, ...) are included. The
table scanner cannot see through merge(), so each query names the table it
needs in table_check.

Queries:
- MEMORY_USAGE: Average tracked memory over time (system.metric_log)
- CPU_USAGE: Average CPU time over time (system.metric_log)
- DISKS_USAGE: Disk space over time (system.asynchronous_metric_log)
"""

from ..query_definition import QueryDefinition

MEMORY_USAGE = QueryDefinition.create(
    name='memory-usage',
    description='Average tracked memory per ten minutes over the last day',
    sql="""
    SELECT
        toStartOfTenMinutes(event_time) AS event_time,
        avg(CurrentMetric_MemoryTracking) AS avg_memory,
        formatReadableSize(avg_memory) AS readable_avg_memory
    FROM merge('system', '^metric_log')
    WHERE event_time >= (now() - INTERVAL 24 HOUR)
    GROUP BY 1
    ORDER BY 1 ASC
    """,
    optional=True,
    table_check='system.metric_log',
)

CPU_USAGE = QueryDefinition.create(
    name='cpu-usage',
    description='Average CPU seconds per ten minutes over the last day',
    sql="""
    SELECT
        toStartOfTenMinutes(event_time) AS event_time,
        avg(ProfileEvent_OSCPUVirtualTimeMicroseconds) / 1000000 AS avg_cpu
    FROM merge('system', '^metric_log')
    WHERE event_time >= (now() - INTERVAL 24 HOUR)
    GROUP BY 1
    ORDER BY 1
    """,
    optional=True,
    table_check='system.metric_log',
)

DISKS_USAGE = QueryDefinition.create(
    name='disks-usage',
    description='Daily available and used space of the default disk',
    sql="""
    WITH CAST(sumMap(map(metric, value)), 'Map(LowCardinality(String), UInt32)') AS map
    SELECT
        toStartOfDay(event_time) AS event_time,
        map['DiskAvailable_default'] AS DiskAvailable_default,
        map['DiskUsed_default'] AS DiskUsed_default,
        formatReadableSize(DiskAvailable_default) AS readable_DiskAvailable_default,
        formatReadableSize(DiskUsed_default) AS readable_DiskUsed_default
    FROM merge('system', '^asynchronous_metric_log')
    WHERE event_time >= (now() - toIntervalDay(30))
    GROUP BY 1
    ORDER BY 1 ASC
    """,
    optional=True,
    table_check='system.asynchronous_metric_log',
)
