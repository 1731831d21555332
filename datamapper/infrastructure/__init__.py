"""
Infrastructure package for datamapper.

Centralizes database connectivity concerns (driver selection, connecting,
translating driver errors). Keep this layer focused on I/O and resource
management, decoupled from entity mapping logic.
"""

from datamapper.infrastructure.db_factory import (
    ConnectionFactory,
    Diagnostics,
    MySQLConnectionFactory,
    PostgresConnectionFactory,
    available_drivers,
    get_connection_factory,
)

__all__ = [
    "ConnectionFactory",
    "Diagnostics",
    "MySQLConnectionFactory",
    "PostgresConnectionFactory",
    "available_drivers",
    "get_connection_factory",
]
