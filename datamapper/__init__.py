"""
datamapper - a minimal generic data-mapping layer for relational stores.

This package provides:

- An `Entity` base contract: identity, timestamps, table/column metadata,
  insert values and row hydration for concrete record types
- A generic `Repository[E]` that opens one connection per operation and
  offers `execute`, `query`, `get_by_id` and `insert`
- Connection factories for MySQL (default) and PostgreSQL
- A `key=value` connection-file loader and environment-backed settings
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from datamapper.config import DatabaseConfig, Settings, get_settings, load_database_config
from datamapper.domain.entity import Entity, EntityMeta, Row
from datamapper.errors import (
    ConfigurationInvalid,
    ConnectionFailure,
    DataMapperError,
    HydrationFailure,
    RepositoryError,
    StatementFailure,
)
from datamapper.infrastructure.db_factory import ConnectionFactory, get_connection_factory
from datamapper.repository import Repository
from datamapper.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "DatabaseConfig",
    "Settings",
    "get_settings",
    "load_database_config",
    # Entity contract
    "Entity",
    "EntityMeta",
    "Row",
    # Repository
    "Repository",
    "ConnectionFactory",
    "get_connection_factory",
    # Errors
    "DataMapperError",
    "ConfigurationInvalid",
    "RepositoryError",
    "ConnectionFailure",
    "StatementFailure",
    "HydrationFailure",
    # Logging
    "configure_logging",
    "get_logger",
]
