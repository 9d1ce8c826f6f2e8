"""
ClickHouse Data Parts Query Library

Queries:
- PART_INFO: Active parts of one table. primary_key_bytes_in_memory is only
  available from 21.8; older servers get placeholder columns.
- NEW_PARTS_CREATED: New parts per table from system.part_log (optional)
"""

from ..query_definition import QueryDefinition

_PART_INFO_COLUMNS = """
        name,
        partition,
        level,
        rows,
        formatReadableQuantity(rows) AS readable_rows,
        data_compressed_bytes,
        formatReadableSize(data_compressed_bytes) AS readable_compressed,
        data_uncompressed_bytes,
        formatReadableSize(data_uncompressed_bytes) AS readable_uncompressed,
        round(data_uncompressed_bytes / nullIf(data_compressed_bytes, 0), 2) AS compression_ratio,
        marks,"""

PART_INFO = QueryDefinition.create(
    name='part-info',
    description='Active parts and levels of a table',
    sql=[
        {
            'since': '19.1',
            'sql': f"""
    SELECT{_PART_INFO_COLUMNS}
        0 AS primary_key_bytes_in_memory,
        '-' AS readable_primary_key_size,
        modification_time,
        disk_name
    FROM system.parts
    WHERE database = {{database:String}}
      AND table = {{table:String}}
      AND active = 1
    ORDER BY name ASC
    """,
        },
        {
            'since': '21.8',
            'sql': f"""
    SELECT{_PART_INFO_COLUMNS}
        primary_key_bytes_in_memory,
        formatReadableSize(primary_key_bytes_in_memory) AS readable_primary_key_size,
        modification_time,
        disk_name
    FROM system.parts
    WHERE database = {{database:String}}
      AND table = {{table:String}}
      AND active = 1
    ORDER BY name ASC
    """,
        },
    ],
)

NEW_PARTS_CREATED = QueryDefinition.create(
    name='new-parts-created',
    description='New parts created per table over the last day',
    sql="""
    SELECT
        toStartOfFifteenMinutes(event_time) AS event_time,
        count() AS new_parts,
        table,
        sum(rows) AS total_rows,
        formatReadableQuantity(total_rows) AS readable_total_rows
    FROM system.part_log
    WHERE event_type = 'NewPart'
      AND event_time > (now() - toIntervalHour(24))
    GROUP BY event_time, table
    ORDER BY event_time ASC, table DESC
    """,
    optional=True,
)
