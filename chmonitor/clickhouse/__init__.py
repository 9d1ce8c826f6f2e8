"""ClickHouse connector, host registry and version-aware query tooling."""
