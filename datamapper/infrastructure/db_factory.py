"""
Connection factories for datamapper.

A factory opens and authenticates one DB-API connection for a
`DatabaseConfig` and translates driver exceptions into the repository's
failure types. Two drivers are provided:

- `mysql` (default): mysql-connector-python.
- `postgresql`: psycopg 3.

Connections are never pooled or cached here; the caller owns and closes each
one. Connect retries are off by default and can be enabled with
`DB_CONNECT_ATTEMPTS` (exponential backoff via tenacity).
"""

from __future__ import annotations

import abc
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

import mysql.connector
import psycopg
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from datamapper.config import DatabaseConfig
from datamapper.errors import ConfigurationInvalid, ConnectionFailure
from datamapper.utils.logging import get_logger

log = get_logger(__name__)


class Diagnostics(NamedTuple):
    """Engine diagnostics extracted from a driver exception."""

    sqlstate: Optional[str]
    code: Optional[int]
    message: str


class ConnectionFactory(abc.ABC):
    """
    Opens connections for a given configuration.

    Subclasses implement `_open` and `diagnostics` and list the driver's
    exception base classes in `error_types`.
    """

    name: str
    error_types: Tuple[type, ...] = ()

    def __init__(self, attempts: int = 1) -> None:
        self._attempts = max(1, attempts)

    def connect(self, config: DatabaseConfig) -> Any:
        """
        Open a new connection.

        Raises
        ------
        ConnectionFailure
            If the driver cannot connect or authenticate, after all attempts.
        """
        if self._attempts == 1:
            return self._connect_once(config)
        retrying = Retrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(ConnectionFailure),
            reraise=True,
        )
        return retrying(self._connect_once, config)

    def _connect_once(self, config: DatabaseConfig) -> Any:
        try:
            return self._open(config)
        except self.error_types as exc:
            diag = self.diagnostics(exc)
            log.error(
                f"Connection to {config.safe_summary()} failed: {diag.message}",
                extra={"driver": self.name, "sqlstate": diag.sqlstate, "code": diag.code},
            )
            raise ConnectionFailure(diag.message, code=diag.code, sqlstate=diag.sqlstate) from exc

    @abc.abstractmethod
    def _open(self, config: DatabaseConfig) -> Any:  # pragma: no cover - interface only
        """Open a raw driver connection."""
        raise NotImplementedError

    @abc.abstractmethod
    def diagnostics(self, exc: BaseException) -> Diagnostics:  # pragma: no cover
        """Extract SQLSTATE, error code and message from a driver exception."""
        raise NotImplementedError

    def insert_suffix(self) -> str:
        """Text appended to INSERT statements before the terminator."""
        return ""

    def inserted_id(self, cursor: Any) -> int:
        """Identity generated by the last INSERT on `cursor`."""
        return int(cursor.lastrowid)


class MySQLConnectionFactory(ConnectionFactory):
    name = "mysql"
    error_types = (mysql.connector.Error,)

    def _open(self, config: DatabaseConfig) -> Any:
        kwargs: Dict[str, Any] = {
            "host": config.host,
            "port": int(config.port),
            "user": config.user,
            "password": config.password,
            "database": config.database,
        }
        if config.connect_timeout is not None:
            kwargs["connection_timeout"] = config.connect_timeout
        return mysql.connector.connect(**kwargs)

    def diagnostics(self, exc: BaseException) -> Diagnostics:
        return Diagnostics(
            sqlstate=getattr(exc, "sqlstate", None),
            code=getattr(exc, "errno", None),
            message=getattr(exc, "msg", None) or str(exc),
        )


class PostgresConnectionFactory(ConnectionFactory):
    name = "postgresql"
    error_types = (psycopg.Error,)

    def _open(self, config: DatabaseConfig) -> Any:
        kwargs: Dict[str, Any] = {
            "host": config.host,
            "port": int(config.port),
            "user": config.user,
            "password": config.password,
            "dbname": config.database,
        }
        if config.connect_timeout is not None:
            kwargs["connect_timeout"] = config.connect_timeout
        return psycopg.connect(**kwargs)

    def diagnostics(self, exc: BaseException) -> Diagnostics:
        return Diagnostics(
            sqlstate=getattr(exc, "sqlstate", None),
            code=None,
            message=str(exc).strip(),
        )

    def insert_suffix(self) -> str:
        return " RETURNING id"

    def inserted_id(self, cursor: Any) -> int:
        row = cursor.fetchone()
        return int(row[0])


_FACTORIES: Dict[str, Callable[[int], ConnectionFactory]] = {
    "mysql": MySQLConnectionFactory,
    "postgresql": PostgresConnectionFactory,
}


def available_drivers() -> list[str]:
    """List registered driver names."""
    return sorted(_FACTORIES)


def get_connection_factory(driver: str = "mysql", attempts: int = 1) -> ConnectionFactory:
    """
    Resolve a connection factory by driver name.

    Raises
    ------
    ConfigurationInvalid
        If the driver name is not registered.
    """
    try:
        factory_cls = _FACTORIES[driver]
    except KeyError:
        raise ConfigurationInvalid(
            f"Unknown driver '{driver}'. Available: {', '.join(available_drivers())}"
        ) from None
    return factory_cls(attempts)


__all__ = [
    "ConnectionFactory",
    "Diagnostics",
    "MySQLConnectionFactory",
    "PostgresConnectionFactory",
    "available_drivers",
    "get_connection_factory",
]
