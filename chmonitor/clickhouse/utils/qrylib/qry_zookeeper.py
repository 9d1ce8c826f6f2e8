"""
ClickHouse ZooKeeper / Keeper Query Library

Queries:
- ZOOKEEPER_ROOT: Top-level znodes. system.zookeeper only exists when the
  server has ZooKeeper or Keeper configured, hence optional.
"""

from ..query_definition import QueryDefinition

ZOOKEEPER_ROOT = QueryDefinition.create(
    name='zookeeper-root',
    description='Top-level znodes of the configured ZooKeeper/Keeper',
    sql="""
    SELECT
        name,
        value,
        numChildren AS num_children,
        ctime,
        mtime
    FROM system.zookeeper
    WHERE path = '/'
    ORDER BY name
    """,
    optional=True,
    table_check=['system.zookeeper'],
    docs='https://clickhouse.com/docs/en/operations/system-tables/zookeeper',
)
