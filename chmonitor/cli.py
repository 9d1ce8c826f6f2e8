#!/usr/bin/env python3
"""
Command-line entrypoint for the ClickHouse query-compatibility layer.

Subcommands:
    list     Show the registered monitoring queries
    resolve  Print the SQL a query would run on a host, or why it is skipped
    run      Resolve and execute a query, printing rows or a classified error
    tables   Report whether each table a query reads exists and holds data
"""

import argparse
import json
import logging
import sys

from chmonitor.settings import DEFAULT_CONFIG_PATH, load_settings
from chmonitor.clickhouse.host_registry import HostRegistry, validate_host_id
from chmonitor.clickhouse.utils.error_classifier import classify
from chmonitor.clickhouse.utils.qrylib import get_query_definition, list_query_definitions
from chmonitor.clickhouse.utils.query_compatibility import QueryCompatibilityService
from chmonitor.clickhouse.utils.system_tables import check_table_availability
from chmonitor.clickhouse.utils.table_dependencies import resolve_dependencies, split_table_name
from chmonitor.clickhouse.utils.table_existence_cache import TableExistenceCache
from chmonitor.clickhouse.utils.version_compatibility import parse_version

logger = logging.getLogger(__name__)


def build_service(settings):
    """Wires the host registry, existence cache and service from settings."""
    registry = HostRegistry(
        settings['hosts'],
        version_ttl_seconds=settings['version_cache']['ttl_seconds'],
    )
    cache = TableExistenceCache(
        registry.check_exists,
        ttl_seconds=settings['table_cache']['ttl_seconds'],
        max_entries=settings['table_cache']['max_entries'],
    )
    return registry, QueryCompatibilityService(cache, version_provider=registry.get_version)


def _print_error(classified):
    print(json.dumps({'status': classified.status_code, 'error': classified.to_dict()}, indent=2, default=str))


def _resolve(service, query, host_id, server_version):
    if server_version:
        return service.resolve(query, host_id, parse_version(server_version))
    return service.resolve_for_host(query, host_id)


def cmd_list(args):
    for query in list_query_definitions():
        flags = []
        if query.optional:
            flags.append('optional')
        if query.is_versioned:
            flags.append('versioned')
        suffix = f" [{', '.join(flags)}]" if flags else ''
        print(f"{query.name}{suffix} - {query.description}")
    return 0


def cmd_resolve(args, service):
    query = get_query_definition(args.query)
    try:
        verdict = _resolve(service, query, args.host, args.server_version)
    except Exception as e:
        _print_error(classify(e, query_optional=query.optional))
        return 1

    if verdict.skip:
        print(f"Skipped '{query.name}': missing {', '.join(verdict.missing_tables)}")
        for table, message in verdict.guidance.items():
            print(f"  - {table}: {message}")
    else:
        print(verdict.sql.strip())
    return 0


def cmd_run(args, service, registry):
    query = get_query_definition(args.query)
    try:
        verdict = _resolve(service, query, args.host, args.server_version)
        if verdict.skip:
            print(json.dumps(verdict.to_dict(), indent=2))
            return 0
        rows = registry.get_connector(args.host).execute_query(verdict.sql)
    except Exception as e:
        _print_error(classify(e, query_optional=query.optional))
        return 1

    for row in rows:
        print(json.dumps(list(row), default=str))
    logger.info(f"{len(rows)} row(s) returned for '{query.name}'")
    return 0


def cmd_tables(args, service, registry):
    query = get_query_definition(args.query)
    try:
        report = {}
        for full_name in resolve_dependencies(query):
            parts = split_table_name(full_name)
            if parts is None:
                report[full_name] = {'exists': False, 'hasData': False,
                                     'message': f"Malformed table name {full_name}"}
                continue
            availability = check_table_availability(
                service.cache.check_table_exists, registry.table_has_data, args.host, *parts,
            )
            report[full_name] = availability.to_dict()
    except Exception as e:
        _print_error(classify(e, query_optional=query.optional))
        return 1

    print(json.dumps(report, indent=2))
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='ClickHouse monitoring query compatibility tool')
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help='Path to configuration file')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='List registered monitoring queries')

    for name, help_text in (('resolve', 'Show the SQL selected for a host'),
                            ('run', 'Resolve and execute a query on a host'),
                            ('tables', 'Show whether the tables a query reads exist and hold data')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('--host', required=True, help='Host id (index in the hosts list)')
        sub.add_argument('--query', required=True, help='Query name (see "list")')
        sub.add_argument('--server-version', help='Use this ClickHouse version instead of asking the host')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    if args.command == 'list':
        return cmd_list(args)

    try:
        args.host = validate_host_id(args.host)
        settings = load_settings(args.config)
        get_query_definition(args.query)
    except (FileNotFoundError, ValueError, KeyError) as e:
        _print_error(classify(e))
        return 1

    registry, service = build_service(settings)
    try:
        registry.get_connector(args.host)
        if args.command == 'resolve':
            return cmd_resolve(args, service)
        if args.command == 'tables':
            return cmd_tables(args, service, registry)
        return cmd_run(args, service, registry)
    except Exception as e:
        _print_error(classify(e))
        return 1
    finally:
        registry.close()


if __name__ == '__main__':
    sys.exit(main())
