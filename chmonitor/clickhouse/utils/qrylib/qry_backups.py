"""
ClickHouse Backups Monitoring Query Library

Queries:
- RECENT_BACKUPS: Recent backup operations from system.backups
- BACKUP_SIZE: Backup volume from system.backup_log (optional; the table
  only exists once backups are configured and logged)
"""

from ..query_definition import QueryDefinition

RECENT_BACKUPS = QueryDefinition.create(
    name='recent-backups',
    description='Recent backup operations',
    sql="""
    SELECT
        id,
        name,
        status,
        error,
        start_time,
        end_time,
        total_size,
        formatReadableSize(total_size) AS readable_total_size
    FROM system.backups
    ORDER BY start_time DESC
    LIMIT 20
    """,
)

BACKUP_SIZE = QueryDefinition.create(
    name='backup-size',
    description='Total, uncompressed and compressed size of created backups',
    sql="""
    SELECT
        SUM(total_size) AS total_size,
        SUM(uncompressed_size) AS uncompressed_size,
        SUM(compressed_size) AS compressed_size,
        formatReadableSize(total_size) AS readable_total_size,
        formatReadableSize(uncompressed_size) AS readable_uncompressed_size,
        formatReadableSize(compressed_size) AS readable_compressed_size
    FROM system.backup_log
    WHERE status = 'BACKUP_CREATED'
    """,
    optional=True,
    docs='https://clickhouse.com/docs/en/operations/system-tables/backup_log',
)
