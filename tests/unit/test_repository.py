from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

import pytest

from datamapper.config import DatabaseConfig
from datamapper.domain.models import Product, User
from datamapper.errors import ConnectionFailure, HydrationFailure, StatementFailure
from datamapper.infrastructure.db_factory import ConnectionFactory, Diagnostics, MySQLConnectionFactory
from datamapper.repository import Repository, render_cell

NEW_PRODUCT_ID = 101
AFFECTED_ROWS = 3


class _FakeDriverError(Exception):
    def __init__(self, message: str, code: int, sqlstate: str) -> None:
        super().__init__(message)
        self.code = code
        self.sqlstate = sqlstate


class _FakeCursor:
    def __init__(self, conn: _FakeConnection) -> None:
        self._conn = conn
        self.rowcount = -1
        self.lastrowid: int | None = None
        self.closed = False

    def execute(self, sql: str, params: Any = None) -> None:
        self._conn.executed.append((sql, params))
        if self._conn.fail_with is not None:
            raise self._conn.fail_with
        self.rowcount = self._conn.rowcount
        self.lastrowid = self._conn.lastrowid

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._conn.rows)

    def close(self) -> None:
        self.closed = True


class _FakeConnection:
    def __init__(
        self,
        rows: list[tuple[Any, ...]] | None = None,
        rowcount: int = 0,
        lastrowid: int | None = None,
        fail_with: Exception | None = None,
        fail_on_close: bool = False,
    ) -> None:
        self.rows = rows or []
        self.fail_on_close = fail_on_close
        self.rowcount = rowcount
        self.lastrowid = lastrowid
        self.fail_with = fail_with
        self.executed: list[tuple[str, Any]] = []
        self.cursors: list[_FakeCursor] = []
        self.commits = 0
        self.closed = False

    def cursor(self) -> _FakeCursor:
        cur = _FakeCursor(self)
        self.cursors.append(cur)
        return cur

    def commit(self) -> None:
        self.commits += 1

    def close(self) -> None:
        self.closed = True
        if self.fail_on_close:
            raise _FakeDriverError("Lost connection to server during close", 2013, "HY000")


class _FakeFactory(ConnectionFactory):
    name = "fake"
    error_types = (_FakeDriverError,)

    def __init__(self, conn: _FakeConnection | None = None, refuse: bool = False) -> None:
        super().__init__()
        self.conn = conn or _FakeConnection()
        self.refuse = refuse
        self.connects = 0

    def _open(self, config: DatabaseConfig) -> _FakeConnection:
        self.connects += 1
        if self.refuse:
            raise _FakeDriverError("Can't connect to server on 'db1'", 2003, "HY000")
        return self.conn

    def diagnostics(self, exc: BaseException) -> Diagnostics:
        return Diagnostics(sqlstate=exc.sqlstate, code=exc.code, message=str(exc))


def _repo(db_config: DatabaseConfig, factory: _FakeFactory, entity_type=Product) -> Repository:
    return Repository(entity_type, db_config, connection_factory=factory)


def test_default_factory_follows_configured_driver(db_config):
    repo = Repository(Product, db_config)
    assert isinstance(repo._factory, MySQLConnectionFactory)
    assert repo.entity_type is Product


def test_select_statement_is_built_from_metadata(db_config):
    repo = _repo(db_config, _FakeFactory())
    assert repo.select_statement() == (
        "SELECT id, name, price, created_at, updated_at FROM products WHERE id = %s;"
    )


def test_get_by_id_hydrates_first_row(db_config):
    conn = _FakeConnection(rows=[("42", "Widget", "19.99", "...", "...")])
    factory = _FakeFactory(conn)

    product = _repo(db_config, factory).get_by_id(42)

    assert isinstance(product, Product)
    assert product.id == 42
    assert product.name == "Widget"
    assert product.price == pytest.approx(19.99)
    assert conn.executed == [
        ("SELECT id, name, price, created_at, updated_at FROM products WHERE id = %s;", (42,))
    ]
    assert conn.closed is True


def test_get_by_id_renders_driver_values_before_hydrating(db_config):
    stamp = datetime(2024, 5, 1, 10, 30)
    conn = _FakeConnection(rows=[(7, "johndoe", "john@example.com", stamp, stamp)])

    user = _repo(db_config, _FakeFactory(conn), User).get_by_id(7)

    assert user.id == 7
    assert user.email == "john@example.com"
    assert user.created_at.year == 2024


def test_get_by_id_returns_none_when_no_rows(db_config):
    factory = _FakeFactory(_FakeConnection(rows=[]))
    assert _repo(db_config, factory).get_by_id(404) is None


def test_get_by_id_uses_only_first_of_many_rows(db_config):
    conn = _FakeConnection(
        rows=[(5, "First", 1.0, None, None), (5, "Second", 2.0, None, None)]
    )
    product = _repo(db_config, _FakeFactory(conn)).get_by_id(5)
    assert product.name == "First"


def test_get_by_id_short_row_raises_hydration_failure(db_config):
    conn = _FakeConnection(rows=[(5, "Widget")])
    with pytest.raises(HydrationFailure, match="Product"):
        _repo(db_config, _FakeFactory(conn)).get_by_id(5)
    assert conn.closed is True


def test_query_returns_string_cells_in_column_order(db_config):
    conn = _FakeConnection(rows=[(1, None, Decimal("2.50"), b"raw"), (2, "x", 3.5, True)])

    rows = _repo(db_config, _FakeFactory(conn)).query("SELECT a, b, c, d FROM t")

    assert rows == [["1", "", "2.50", "raw"], ["2", "x", "3.5", "True"]]
    assert conn.executed == [("SELECT a, b, c, d FROM t", None)]
    assert conn.commits == 0


def test_query_empty_result_is_success(db_config):
    assert _repo(db_config, _FakeFactory()).query("SELECT 1 FROM t WHERE 0") == []


def test_execute_returns_affected_rows_and_commits(db_config):
    conn = _FakeConnection(rowcount=AFFECTED_ROWS)

    affected = _repo(db_config, _FakeFactory(conn)).execute(
        "UPDATE products SET price = %s WHERE price < %s", (1.0, 0.5)
    )

    assert affected == AFFECTED_ROWS
    assert conn.commits == 1
    assert conn.closed is True
    assert all(cur.closed for cur in conn.cursors)


def test_statement_failure_keeps_engine_diagnostics(db_config):
    conn = _FakeConnection(
        fail_with=_FakeDriverError("Table 'shop.nope' doesn't exist", 1146, "42S02")
    )

    with pytest.raises(StatementFailure) as info:
        _repo(db_config, _FakeFactory(conn)).execute("DELETE FROM nope")

    assert info.value.code == 1146
    assert info.value.sqlstate == "42S02"
    assert info.value.sql == "DELETE FROM nope"
    assert "doesn't exist" in info.value.message
    assert conn.commits == 0
    assert conn.closed is True


def test_query_statement_failure_releases_connection(db_config):
    conn = _FakeConnection(fail_with=_FakeDriverError("syntax error", 1064, "42000"))
    with pytest.raises(StatementFailure):
        _repo(db_config, _FakeFactory(conn)).query("SELEC 1")
    assert conn.closed is True


@pytest.mark.parametrize(
    "operation",
    [
        lambda repo: repo.execute("DELETE FROM products"),
        lambda repo: repo.query("SELECT 1"),
        lambda repo: repo.get_by_id(1),
        lambda repo: repo.insert(Product(name="Widget", price=1.0)),
    ],
)
def test_connection_failure_is_distinguished(db_config, operation):
    factory = _FakeFactory(refuse=True)
    with pytest.raises(ConnectionFailure) as info:
        operation(_repo(db_config, factory))
    assert info.value.code == 2003
    assert info.value.sqlstate == "HY000"
    assert not isinstance(info.value, StatementFailure)


def test_each_operation_opens_its_own_connection(db_config):
    factory = _FakeFactory(_FakeConnection(rows=[(1, "Widget", 1.0, None, None)]))
    repo = _repo(db_config, factory)

    repo.query("SELECT 1")
    repo.get_by_id(1)
    repo.execute("DELETE FROM products WHERE id = 0")

    assert factory.connects == 3


def test_insert_binds_values_and_assigns_identity(db_config):
    conn = _FakeConnection(rowcount=1, lastrowid=NEW_PRODUCT_ID)
    product = Product(name="Robert'); DROP TABLE products;--", price=9.5)

    new_id = _repo(db_config, _FakeFactory(conn)).insert(product)

    assert new_id == NEW_PRODUCT_ID
    assert product.id == NEW_PRODUCT_ID
    assert conn.executed == [
        (
            "INSERT INTO products (name, price) VALUES (%s, %s);",
            ("Robert'); DROP TABLE products;--", 9.5),
        )
    ]
    assert conn.commits == 1


def test_insert_rejects_persisted_entity(db_config):
    factory = _FakeFactory()
    with pytest.raises(ValueError, match="already persisted"):
        _repo(db_config, factory).insert(Product(id=3, name="Widget"))
    assert factory.connects == 0


def test_render_cell():
    assert render_cell(None) == ""
    assert render_cell(datetime(2024, 5, 1, 10, 30)) == "2024-05-01 10:30:00"
    assert render_cell(bytearray(b"abc")) == "abc"
    assert render_cell(19.99) == "19.99"


def test_close_failure_does_not_mask_statement_failure(db_config, caplog):
    caplog.set_level("WARNING")
    conn = _FakeConnection(
        fail_with=_FakeDriverError("Table 'shop.nope' doesn't exist", 1146, "42S02"),
        fail_on_close=True,
    )

    with pytest.raises(StatementFailure) as info:
        _repo(db_config, _FakeFactory(conn)).execute("DELETE FROM nope")

    assert info.value.code == 1146
    assert "Closing connection failed" in caplog.text


def test_close_failure_after_success_keeps_result(db_config):
    conn = _FakeConnection(rowcount=AFFECTED_ROWS, fail_on_close=True)

    affected = _repo(db_config, _FakeFactory(conn)).execute("DELETE FROM products")

    assert affected == AFFECTED_ROWS
    assert conn.closed is True
