"""
Generic repository for `Entity` subclasses.

Usage:
    from datamapper.config import load_database_config
    from datamapper.domain.models import Product
    from datamapper.repository import Repository

    products = Repository(Product, load_database_config())
    product = products.get_by_id(42)
    if product is None:
        ...  # no such row

Every operation opens its own connection and closes it before returning, so a
Repository holds no live resources between calls and can be shared between
threads. Failures surface as `ConnectionFailure`, `StatementFailure` or
`HydrationFailure`; a missing row is `None`, not an error.
"""

from __future__ import annotations

from contextlib import closing, contextmanager
from datetime import datetime
from typing import Any, Generator, Generic, List, Optional, Sequence, TypeVar

from datamapper.config import DatabaseConfig, get_settings
from datamapper.domain.entity import ID_COLUMN, Entity, Row
from datamapper.errors import StatementFailure
from datamapper.infrastructure.db_factory import ConnectionFactory, get_connection_factory
from datamapper.utils.logging import get_logger

log = get_logger(__name__)

E = TypeVar("E", bound=Entity)

Params = Optional[Sequence[Any]]


def render_cell(value: Any) -> str:
    """Render a driver value as the string cell stored in a `Row`."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


class Repository(Generic[E]):
    """
    Persistence gateway for one entity type.

    Parameters
    ----------
    entity_type : type[E]
        Concrete `Entity` subclass this repository maps.
    config : DatabaseConfig
        Connection settings used for every operation.
    connection_factory : ConnectionFactory | None
        Factory used to open connections. Defaults to the factory registered
        for `config.driver`, with `Settings.db_connect_attempts` attempts.
    """

    def __init__(
        self,
        entity_type: type[E],
        config: DatabaseConfig,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        entity_type.meta()  # fail fast on types without a mapping
        self._entity_type = entity_type
        self._config = config
        self._factory = connection_factory or get_connection_factory(
            config.driver, attempts=get_settings().db_connect_attempts
        )

    @property
    def entity_type(self) -> type[E]:
        return self._entity_type

    @contextmanager
    def _connection(self) -> Generator[Any, None, None]:
        conn = self._factory.connect(self._config)
        try:
            yield conn
        finally:
            try:
                conn.close()
            except self._factory.error_types as exc:
                log.warning(
                    f"Closing connection failed: {exc}",
                    extra={"entity": self._entity_type.__name__},
                )

    def _statement_failure(self, sql: str, exc: BaseException) -> StatementFailure:
        diag = self._factory.diagnostics(exc)
        log.error(
            f"Statement failed: {diag.message}",
            extra={"sql": sql, "sqlstate": diag.sqlstate, "code": diag.code},
        )
        return StatementFailure(sql, diag.message, code=diag.code, sqlstate=diag.sqlstate)

    def execute(self, sql: str, params: Params = None) -> int:
        """
        Run a statement that returns no rows (INSERT, UPDATE, DELETE, DDL).

        Returns
        -------
        int
            Number of rows affected, as reported by the driver.

        Raises
        ------
        ConnectionFailure
            If no connection could be opened.
        StatementFailure
            If the engine rejected the statement.
        """
        log.debug("execute", extra={"sql": sql})
        with self._connection() as conn:
            try:
                with closing(conn.cursor()) as cur:
                    cur.execute(sql, params)
                    affected = cur.rowcount
                conn.commit()
            except self._factory.error_types as exc:
                raise self._statement_failure(sql, exc) from exc
        return affected

    def query(self, sql: str, params: Params = None) -> List[Row]:
        """
        Run a query and return its rows as string cells, in result-column order.

        An empty result set is an empty list.

        Raises
        ------
        ConnectionFailure
            If no connection could be opened.
        StatementFailure
            If the engine rejected the query.
        """
        log.debug("query", extra={"sql": sql})
        with self._connection() as conn:
            try:
                with closing(conn.cursor()) as cur:
                    cur.execute(sql, params)
                    fetched = cur.fetchall()
            except self._factory.error_types as exc:
                raise self._statement_failure(sql, exc) from exc
        return [[render_cell(value) for value in record] for record in fetched]

    def select_statement(self) -> str:
        """SELECT used by `get_by_id`, with the id as a placeholder."""
        columns = ", ".join(self._entity_type.columns_for_select())
        return f"SELECT {columns} FROM {self._entity_type.table_name()} WHERE {ID_COLUMN} = %s;"

    def get_by_id(self, entity_id: int) -> Optional[E]:
        """
        Fetch one entity by identity.

        Only the first returned row is used; uniqueness of `id` is the
        schema's job.

        Returns
        -------
        E | None
            The hydrated entity, or None when no row matches.

        Raises
        ------
        ConnectionFailure, StatementFailure
            As for `query`.
        HydrationFailure
            If the row does not fit the entity's select columns.
        """
        rows = self.query(self.select_statement(), (int(entity_id),))
        if not rows:
            log.debug(
                "Entity not found",
                extra={"entity": self._entity_type.__name__, "id": entity_id},
            )
            return None
        entity = self._entity_type()
        entity.hydrate(rows[0])
        return entity

    def insert_statement(self) -> str:
        """INSERT for the entity's insert columns, with one placeholder per value."""
        columns = self._entity_type.columns_for_insert()
        placeholders = ", ".join(["%s"] * len(columns))
        return (
            f"INSERT INTO {self._entity_type.table_name()} ({', '.join(columns)}) "
            f"VALUES ({placeholders}){self._factory.insert_suffix()};"
        )

    def insert(self, entity: E) -> int:
        """
        Persist a new entity and assign it the identity generated by the store.

        Returns
        -------
        int
            The new identity.

        Raises
        ------
        ValueError
            If the entity already has an identity.
        ConnectionFailure, StatementFailure
            As for `execute`.
        """
        if entity.id:
            raise ValueError(f"{type(entity).__name__} {entity.id} is already persisted")
        sql = self.insert_statement()
        log.debug("insert", extra={"sql": sql})
        with self._connection() as conn:
            try:
                with closing(conn.cursor()) as cur:
                    cur.execute(sql, tuple(entity.values_for_insert()))
                    new_id = self._factory.inserted_id(cur)
                conn.commit()
            except self._factory.error_types as exc:
                raise self._statement_failure(sql, exc) from exc
        entity.id = new_id
        return new_id


__all__ = ["Repository", "render_cell"]
