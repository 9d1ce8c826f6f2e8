import threading
import time
import unittest
from unittest.mock import MagicMock

from chmonitor.clickhouse.utils.table_existence_cache import TableExistenceCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTableExistenceCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.check_exists = MagicMock(return_value=True)
        self.cache = TableExistenceCache(self.check_exists, ttl_seconds=300, max_entries=10, clock=self.clock)

    def test_second_call_is_served_from_cache(self):
        self.assertTrue(self.cache.check_table_exists(0, 'system', 'backup_log'))
        self.assertTrue(self.cache.check_table_exists(0, 'system', 'backup_log'))
        self.assertEqual(self.check_exists.call_count, 1)
        self.check_exists.assert_called_once_with(0, 'system', 'backup_log')

    def test_negative_results_are_cached(self):
        self.check_exists.return_value = False
        self.assertFalse(self.cache.check_table_exists(0, 'system', 'error_log'))
        self.assertFalse(self.cache.check_table_exists(0, 'system', 'error_log'))
        self.assertEqual(self.check_exists.call_count, 1)

    def test_expired_entry_is_rechecked(self):
        self.check_exists.return_value = False
        self.assertFalse(self.cache.check_table_exists(0, 'system', 'backup_log'))

        self.clock.advance(299)
        self.assertFalse(self.cache.check_table_exists(0, 'system', 'backup_log'))
        self.assertEqual(self.check_exists.call_count, 1)

        self.check_exists.return_value = True
        self.clock.advance(1)
        self.assertTrue(self.cache.check_table_exists(0, 'system', 'backup_log'))
        self.assertEqual(self.check_exists.call_count, 2)

    def test_keys_are_distinct_per_host_and_case(self):
        self.cache.check_table_exists(0, 'system', 'tables')
        self.cache.check_table_exists(1, 'system', 'tables')
        self.cache.check_table_exists(0, 'system', 'Tables')
        self.assertEqual(self.check_exists.call_count, 3)
        self.assertEqual(self.cache.size(), 3)

    def test_failures_propagate_and_are_not_cached(self):
        self.check_exists.side_effect = [ConnectionError('Connection refused'), True]
        with self.assertRaises(ConnectionError):
            self.cache.check_table_exists(0, 'system', 'backup_log')
        self.assertEqual(self.cache.size(), 0)

        self.assertTrue(self.cache.check_table_exists(0, 'system', 'backup_log'))
        self.assertEqual(self.check_exists.call_count, 2)

    def test_least_recently_used_entry_is_evicted(self):
        cache = TableExistenceCache(self.check_exists, ttl_seconds=300, max_entries=2, clock=self.clock)
        cache.check_table_exists(0, 'db', 'a')
        cache.check_table_exists(0, 'db', 'b')
        cache.check_table_exists(0, 'db', 'a')
        cache.check_table_exists(0, 'db', 'c')

        self.assertEqual(cache.size(), 2)
        self.assertEqual(self.check_exists.call_count, 3)

        cache.check_table_exists(0, 'db', 'a')
        self.assertEqual(self.check_exists.call_count, 3)
        cache.check_table_exists(0, 'db', 'b')
        self.assertEqual(self.check_exists.call_count, 4)
        self.assertEqual(cache.get_metrics()['evictions'], 2)

    def test_invalidate_and_clear(self):
        self.cache.check_table_exists(0, 'system', 'tables')
        self.cache.check_table_exists(0, 'system', 'users')
        self.cache.invalidate(0, 'system', 'tables')
        self.assertEqual(self.cache.size(), 1)
        self.cache.invalidate(0, 'system', 'nonexistent')

        self.cache.check_table_exists(0, 'system', 'tables')
        self.assertEqual(self.check_exists.call_count, 3)

        self.cache.clear()
        self.assertEqual(self.cache.size(), 0)

    def test_metrics(self):
        metrics = self.cache.get_metrics()
        self.assertEqual(metrics['size'], 0)
        self.assertEqual(metrics['max_entries'], 10)
        self.assertEqual(metrics['ttl_seconds'], 300)

        self.cache.check_table_exists(0, 'system', 'tables')
        self.cache.check_table_exists(0, 'system', 'tables')
        metrics = self.cache.get_metrics()
        self.assertEqual(metrics['size'], 1)
        self.assertEqual(metrics['misses'], 1)
        self.assertEqual(metrics['hits'], 1)

    def test_invalid_configuration(self):
        with self.assertRaises(ValueError):
            TableExistenceCache(self.check_exists, ttl_seconds=0)
        with self.assertRaises(ValueError):
            TableExistenceCache(self.check_exists, max_entries=0)


class TestTableExistenceCacheConcurrency(unittest.TestCase):
    def _wait_for(self, predicate, timeout=5.0):
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                self.fail("Timed out waiting for condition")
            time.sleep(0.01)

    def _run_concurrently(self, cache, callers, release):
        results = [None] * callers
        errors = [None] * callers

        def worker(index):
            try:
                results[index] = cache.check_table_exists(0, 'system', 'backup_log')
            except Exception as e:
                errors[index] = e

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(callers)]
        for thread in threads:
            thread.start()
        self._wait_for(lambda: cache.get_metrics()['coalesced'] == callers - 1)
        release.set()
        for thread in threads:
            thread.join(timeout=5)
        return results, errors

    def test_concurrent_callers_share_one_check(self):
        release = threading.Event()
        calls = []

        def slow_check(host_id, database, table):
            calls.append((host_id, database, table))
            release.wait(timeout=5)
            return True

        cache = TableExistenceCache(slow_check)
        results, errors = self._run_concurrently(cache, 8, release)

        self.assertEqual(len(calls), 1)
        self.assertEqual(results, [True] * 8)
        self.assertEqual(errors, [None] * 8)
        self.assertEqual(cache.get_metrics()['in_flight'], 0)

    def test_concurrent_callers_share_one_failure(self):
        release = threading.Event()
        calls = []

        def failing_check(host_id, database, table):
            calls.append(table)
            release.wait(timeout=5)
            raise ConnectionError('Connection refused')

        cache = TableExistenceCache(failing_check)
        results, errors = self._run_concurrently(cache, 4, release)

        self.assertEqual(len(calls), 1)
        self.assertTrue(all(isinstance(error, ConnectionError) for error in errors))
        self.assertEqual(cache.size(), 0)

    def test_unrelated_keys_do_not_block_each_other(self):
        release = threading.Event()

        def check(host_id, database, table):
            if table == 'slow':
                release.wait(timeout=5)
            return True

        cache = TableExistenceCache(check)
        slow = threading.Thread(target=cache.check_table_exists, args=(0, 'system', 'slow'))
        slow.start()
        self._wait_for(lambda: cache.get_metrics()['in_flight'] == 1)

        self.assertTrue(cache.check_table_exists(0, 'system', 'fast'))
        self.assertEqual(cache.size(), 1)

        release.set()
        slow.join(timeout=5)
        self.assertEqual(cache.size(), 2)


if __name__ == '__main__':
    unittest.main()
