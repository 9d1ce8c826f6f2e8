"""ClickHouse monitoring query-compatibility layer."""

__version__ = '0.1.0'
