from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console

from datamapper.config import get_settings, load_database_config
from datamapper.domain.entity import Entity
from datamapper.domain.models import ENTITY_TYPES, Product, User
from datamapper.errors import DataMapperError
from datamapper.reporter import print_entity, print_rows
from datamapper.repository import Repository
from datamapper.utils.logging import configure_logging

app = typer.Typer(help="Generic entity repository CLI.")

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Connection settings file (default from DB_CONFIG_FILE, else db_config.ini).",
)
EntityOption = typer.Option(
    "product",
    "--entity",
    "-e",
    help=(
        f"Entity type whose repository runs the statement ({', '.join(ENTITY_TYPES)}). "
        "The SQL is sent as written; the entity only picks the repository."
    ),
)


def _entity_type(name: str) -> type[Entity]:
    try:
        return ENTITY_TYPES[name.lower()]
    except KeyError:
        raise typer.BadParameter(
            f"Unknown entity '{name}'. Available: {', '.join(ENTITY_TYPES)}"
        ) from None


def _repository(entity: str, config: Optional[Path]) -> Repository:
    return Repository(_entity_type(entity), load_database_config(config))


def _fail(exc: DataMapperError) -> NoReturn:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info(config: Optional[Path] = ConfigOption) -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"env={settings.app_env} | log_level={settings.log_level} | "
        f"connect_attempts={settings.db_connect_attempts}"
    )
    try:
        db_config = load_database_config(config)
    except DataMapperError as exc:
        _fail(exc)
    typer.echo(f"DB={db_config.safe_summary()}")


@app.command()
def query(
    sql: str = typer.Argument(..., help="SQL query returning rows."),
    entity: str = EntityOption,
    config: Optional[Path] = ConfigOption,
) -> None:
    """
    Run a query and print its rows.
    """
    try:
        rows = _repository(entity, config).query(sql)
    except DataMapperError as exc:
        _fail(exc)
    print_rows(rows)


@app.command()
def execute(
    sql: str = typer.Argument(..., help="SQL statement (INSERT, UPDATE, DELETE, ...)."),
    entity: str = EntityOption,
    config: Optional[Path] = ConfigOption,
) -> None:
    """
    Run a statement and print the affected-row count.
    """
    try:
        affected = _repository(entity, config).execute(sql)
    except DataMapperError as exc:
        _fail(exc)
    typer.echo(f"{affected} row(s) affected.")


@app.command()
def get(
    entity: str = typer.Argument(..., help=f"Entity type ({', '.join(ENTITY_TYPES)})."),
    entity_id: int = typer.Argument(..., help="Identity to look up."),
    config: Optional[Path] = ConfigOption,
) -> None:
    """
    Fetch one entity by id.
    """
    try:
        found = _repository(entity, config).get_by_id(entity_id)
    except DataMapperError as exc:
        _fail(exc)
    if found is None:
        typer.secho(f"{entity} {entity_id} not found.", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    print_entity(found)


@app.command()
def demo() -> None:
    """
    Walk through the entity contract without a database.
    """
    console = Console()

    p1 = Product(name="Smart TV 4K", price=2500.99)
    u1 = User(username="johndoe", email="john.doe@example.com")
    print_entity(p1, console)
    print_entity(u1, console)

    console.rule("Modifying entities")
    p1.price = 2350.00
    u1.username = "johndoe_new"
    print_entity(p1, console)
    print_entity(u1, console)

    console.rule("Comparing entities")
    p2 = Product(name="Headphones", price=150.00)
    if p1 == p2:
        console.print("p1 and p2 compare equal (same id; both unsaved entities have id 0).")
    else:
        console.print("p1 and p2 are different entities.")
    p2.id = 2
    if p1 != p2:
        console.print("After p2 gets id 2, p1 and p2 are different entities.")

    console.rule("Polymorphism")
    entities: list[Entity] = [
        Product(name="Webcam Full HD", price=80.00),
        User(username="maryjane", email="mary.jane@example.com"),
    ]
    for item in entities:
        print_entity(item, console)
        console.print(
            f"[dim]{item.table_name()}: insert ({', '.join(item.columns_for_insert())}) "
            f"select ({', '.join(item.columns_for_select())})[/dim]"
        )


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
