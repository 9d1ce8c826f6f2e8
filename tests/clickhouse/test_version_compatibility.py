import unittest

from chmonitor.clickhouse.utils.query_definition import SqlVariant, VersionedSql
from chmonitor.clickhouse.utils.version_compatibility import (
    ParsedVersion,
    compare_versions,
    get_sql_for_display,
    meets_min_version,
    parse_version,
    select_versioned_sql,
    version_matches_range,
)

VARIANTS = [
    SqlVariant(since='23.8', sql='SELECT a FROM system.processes'),
    SqlVariant(since='24.1', sql='SELECT a, b FROM system.processes'),
    SqlVariant(since='24.8', sql='SELECT a, b, peak_threads_usage FROM system.processes'),
]


class TestParseVersion(unittest.TestCase):
    def test_full_version(self):
        version = parse_version('24.3.1.2672')
        self.assertEqual((version.major, version.minor, version.patch, version.build), (24, 3, 1, 2672))
        self.assertEqual(version.raw, '24.3.1.2672')

    def test_missing_components_default_to_zero(self):
        version = parse_version('24')
        self.assertEqual((version.major, version.minor, version.patch, version.build), (24, 0, 0, 0))

    def test_non_numeric_suffix_is_best_effort(self):
        version = parse_version('24.8.4.13-stable')
        self.assertEqual(version.release, (24, 8))
        self.assertEqual(version.build, 13)

        version = parse_version('23.x.1')
        self.assertEqual((version.major, version.minor, version.patch), (23, 0, 1))

    def test_unparsable_input_returns_none(self):
        self.assertIsNone(parse_version(None))
        self.assertIsNone(parse_version(''))
        self.assertIsNone(parse_version('   '))
        self.assertIsNone(parse_version('unknown'))

    def test_only_first_four_segments_are_used(self):
        version = parse_version('1.2.3.4.5')
        self.assertEqual((version.major, version.minor, version.patch, version.build), (1, 2, 3, 4))

    def test_parsed_version_is_immutable(self):
        version = parse_version('24.1')
        with self.assertRaises(AttributeError):
            version.major = 25


class TestVersionComparisons(unittest.TestCase):
    def test_compare_versions(self):
        self.assertEqual(compare_versions(parse_version('24.1'), parse_version('24.3')), -1)
        self.assertEqual(compare_versions(parse_version('24.3.1'), parse_version('24.3.1.99')), 0)
        self.assertEqual(compare_versions(parse_version('25.1'), parse_version('24.12')), 1)

    def test_meets_min_version(self):
        self.assertTrue(meets_min_version(parse_version('22.8.1'), 22, 8))
        self.assertFalse(meets_min_version(parse_version('22.3'), 22, 8))
        self.assertFalse(meets_min_version(None, 1))

    def test_version_matches_range(self):
        version = parse_version('24.3.1.1')
        self.assertTrue(version_matches_range(version, '24.1', '24.5'))
        self.assertFalse(version_matches_range(version, '24.5'))
        self.assertFalse(version_matches_range(version, max_version='24.3'))
        self.assertTrue(version_matches_range(version))


class TestSelectVersionedSql(unittest.TestCase):
    def test_plain_string_is_returned_unchanged(self):
        self.assertEqual(select_versioned_sql('SELECT 1', parse_version('24.1')), 'SELECT 1')
        self.assertEqual(select_versioned_sql('SELECT 1', None), 'SELECT 1')

    def test_selects_greatest_qualifying_variant(self):
        cases = {
            '23.8': VARIANTS[0].sql,
            '24.0': VARIANTS[0].sql,
            '24.1': VARIANTS[1].sql,
            '24.7': VARIANTS[1].sql,
            '24.8': VARIANTS[2].sql,
            '25.1': VARIANTS[2].sql,
        }
        for version, expected in cases.items():
            with self.subTest(version=version):
                self.assertEqual(select_versioned_sql(VARIANTS, parse_version(version)), expected)

    def test_unknown_version_uses_oldest(self):
        self.assertEqual(select_versioned_sql(VARIANTS, None), VARIANTS[0].sql)

    def test_version_older_than_all_variants_uses_oldest(self):
        self.assertEqual(select_versioned_sql(VARIANTS, parse_version('21.3')), VARIANTS[0].sql)

    def test_patch_and_build_do_not_change_selection(self):
        self.assertEqual(
            select_versioned_sql(VARIANTS, parse_version('24.1.0.0')),
            select_versioned_sql(VARIANTS, parse_version('24.1.99.999')),
        )
        self.assertEqual(select_versioned_sql(VARIANTS, parse_version('24.8.0.1')), VARIANTS[2].sql)

    def test_unsorted_variants_are_tolerated(self):
        shuffled = [VARIANTS[2], VARIANTS[0], VARIANTS[1]]
        self.assertEqual(select_versioned_sql(shuffled, parse_version('24.3')), VARIANTS[1].sql)
        self.assertEqual(select_versioned_sql(shuffled, None), VARIANTS[0].sql)

    def test_duplicate_since_last_declared_wins(self):
        variants = [
            SqlVariant(since='23.8', sql='old'),
            SqlVariant(since='24.1', sql='first override'),
            SqlVariant(since='24.1', sql='second override'),
        ]
        self.assertEqual(select_versioned_sql(variants, parse_version('24.2')), 'second override')

    def test_accepts_mappings_and_tagged_source(self):
        raw = [{'since': '23.8', 'sql': 'old'}, {'since': '24.8', 'sql': 'new'}]
        self.assertEqual(select_versioned_sql(raw, parse_version('24.9')), 'new')
        tagged = VersionedSql(tuple(VARIANTS))
        self.assertEqual(select_versioned_sql(tagged, parse_version('24.1')), VARIANTS[1].sql)

    def test_empty_variant_list_is_rejected(self):
        with self.assertRaises(ValueError):
            select_versioned_sql([], parse_version('24.1'))

    def test_display_sql_is_newest_variant(self):
        self.assertEqual(get_sql_for_display(VARIANTS), VARIANTS[2].sql)
        self.assertEqual(get_sql_for_display('SELECT 1'), 'SELECT 1')

    def test_version_str(self):
        self.assertEqual(str(parse_version('24.8.4.13')), '24.8.4.13')
        self.assertEqual(str(ParsedVersion(24, 8)), '24.8.0.0')


if __name__ == '__main__':
    unittest.main()
