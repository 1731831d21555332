"""
Sample data loader for datamapper.

Creates the sample tables from `db/init.sql` (optional) and inserts the
sample products and users through `Repository.insert`.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import List

import typer

from datamapper.config import DatabaseConfig, load_database_config
from datamapper.domain.models import Product, User
from datamapper.errors import DataMapperError
from datamapper.repository import Repository

app = typer.Typer(help="Load sample products and users through the repository.")

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "db" / "init.sql"

SAMPLE_PRODUCTS = [
    ("Smart TV 4K", 2500.99),
    ("Headphones", 150.00),
    ("Webcam Full HD", 80.00),
]
SAMPLE_USERS = [
    ("johndoe", "john.doe@example.com"),
    ("maryjane", "mary.jane@example.com"),
]


def _schema_statements(path: Path) -> List[str]:
    """Split a schema file into statements, dropping `--` comment lines."""
    lines = [
        line for line in path.read_text(encoding="utf-8").splitlines()
        if not line.strip().startswith("--")
    ]
    return [stmt.strip() for stmt in "\n".join(lines).split(";") if stmt.strip()]


def _apply_schema(config: DatabaseConfig, path: Path = SCHEMA_PATH) -> int:
    repo = Repository(Product, config)
    statements = _schema_statements(path)
    for statement in statements:
        repo.execute(statement)
    return len(statements)


def _seed(config: DatabaseConfig) -> tuple[list[Product], list[User]]:
    products = Repository(Product, config)
    users = Repository(User, config)

    created_products = [Product(name=name, price=price) for name, price in SAMPLE_PRODUCTS]
    for product in created_products:
        products.insert(product)

    created_users = [User(username=username, email=email) for username, email in SAMPLE_USERS]
    for user in created_users:
        users.insert(user)

    return created_products, created_users


@app.command()
def main(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Connection settings file (default from DB_CONFIG_FILE).",
    ),
    init_schema: bool = typer.Option(
        False,
        "--init-schema",
        help="Create the sample tables from db/init.sql first.",
    ),
) -> None:
    """
    Insert the sample entities and report their assigned ids.
    """
    start = time.perf_counter()
    try:
        db_config = load_database_config(config)
        if init_schema:
            count = _apply_schema(db_config)
            typer.echo(f"Applied {count} schema statement(s) from {SCHEMA_PATH}.")
        products, users = _seed(db_config)
    except DataMapperError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    for product in products:
        typer.echo(f"product {product.id}: {product.name}")
    for user in users:
        typer.echo(f"user {user.id}: {user.username}")
    typer.echo(f"Seeded {len(products) + len(users)} entities in {time.perf_counter() - start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
