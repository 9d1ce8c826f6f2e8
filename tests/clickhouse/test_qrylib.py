import unittest

from chmonitor.clickhouse.utils.qrylib import (
    QUERY_REGISTRY,
    get_query_definition,
    list_query_definitions,
)
from chmonitor.clickhouse.utils.query_definition import VersionedSql
from chmonitor.clickhouse.utils.table_dependencies import resolve_dependencies, split_table_name
from chmonitor.clickhouse.utils.version_compatibility import parse_version, select_versioned_sql


class TestQueryRegistry(unittest.TestCase):
    def test_lookup(self):
        query = get_query_definition('backup-size')
        self.assertTrue(query.optional)
        self.assertEqual(resolve_dependencies(query), ['system.backup_log'])

    def test_unknown_query(self):
        with self.assertRaises(KeyError) as ctx:
            get_query_definition('no-such-query')
        self.assertIn("Invalid query name 'no-such-query'", str(ctx.exception))

    def test_list_is_sorted(self):
        names = [query.name for query in list_query_definitions()]
        self.assertEqual(names, sorted(names))
        self.assertEqual(len(names), len(QUERY_REGISTRY))

    def test_optional_queries_declare_resolvable_tables(self):
        for query in list_query_definitions():
            if not query.optional:
                continue
            with self.subTest(query=query.name):
                tables = resolve_dependencies(query)
                self.assertTrue(tables)
                for table in tables:
                    self.assertIsNotNone(split_table_name(table))

    def test_metric_log_queries_use_table_check(self):
        for name in ('memory-usage', 'cpu-usage'):
            with self.subTest(query=name):
                self.assertEqual(resolve_dependencies(get_query_definition(name)), ['system.metric_log'])

    def test_versioned_queries_select_by_server_version(self):
        query = get_query_definition('running-queries')
        self.assertIsInstance(query.sql, VersionedSql)

        old_sql = select_versioned_sql(query.sql, parse_version('23.8.16.40'))
        new_sql = select_versioned_sql(query.sql, parse_version('24.8.1.2684'))
        self.assertNotIn('peak_threads_usage', old_sql)
        self.assertIn('peak_threads_usage', new_sql)

    def test_every_variant_is_nonempty(self):
        for query in list_query_definitions():
            for sql in query.sql_texts():
                with self.subTest(query=query.name):
                    self.assertTrue(sql.strip())


if __name__ == '__main__':
    unittest.main()
