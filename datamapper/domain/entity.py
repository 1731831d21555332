"""
Entity contract for records persisted through `Repository`.

Concrete record types subclass `Entity`, declare their fields as regular
Pydantic fields and attach an `EntityMeta` descriptor as the class attribute
`__entity_meta__`. The repository reads table and column metadata from the
descriptor, so no throwaway instance is needed to learn the mapping.

Example
-------
    class Product(Entity):
        __entity_meta__: ClassVar[EntityMeta] = EntityMeta(
            table_name="products",
            insert_columns=("name", "price"),
            select_columns=("id", "name", "price", "created_at", "updated_at"),
        )

        name: str = ""
        price: float = 0.0
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from datamapper.errors import HydrationFailure
from datamapper.utils.logging import get_logger

log = get_logger(__name__)

ID_COLUMN = "id"
TIMESTAMP_COLUMNS = frozenset({"created_at", "updated_at"})
MANAGED_COLUMNS = TIMESTAMP_COLUMNS | {ID_COLUMN}

Row = List[str]

_timestamp_adapter: TypeAdapter[datetime] = TypeAdapter(datetime)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EntityMeta:
    """
    Static mapping of an entity type onto a table.

    Attributes
    ----------
    table_name : str
        Table the entity is stored in.
    insert_columns : tuple[str, ...]
        Columns written on INSERT, in order. Excludes the id and timestamp
        columns, which the store manages.
    select_columns : tuple[str, ...]
        Columns read by `Repository.get_by_id`, in the positional order
        `Entity.hydrate` expects. Must include the id column.
    """

    table_name: str
    insert_columns: Tuple[str, ...]
    select_columns: Tuple[str, ...]

    def validate_for(self, model: type) -> None:
        name = model.__name__
        if not self.table_name:
            raise TypeError(f"{name}: table_name must not be empty")
        if ID_COLUMN not in self.select_columns:
            raise TypeError(f"{name}: select_columns must include '{ID_COLUMN}'")
        managed = MANAGED_COLUMNS.intersection(self.insert_columns)
        if managed:
            raise TypeError(f"{name}: insert_columns must not include {sorted(managed)}")
        fields = model.model_fields
        unknown = [c for c in (*self.insert_columns, *self.select_columns) if c not in fields]
        if unknown:
            raise TypeError(f"{name}: columns without a matching field: {unknown}")
        required = [field for field, info in fields.items() if info.is_required()]
        if required:
            raise TypeError(
                f"{name}: fields without a default cannot be hydrated from a bare instance: {required}"
            )


def _parse_timestamp(cell: str) -> Optional[datetime]:
    """Parse a timestamp cell; naive values are taken as UTC. None if unparseable."""
    text = (cell or "").strip()
    if not text:
        return None
    # MySQL renders DATETIME with a space between date and time.
    if len(text) > 10 and text[10] == " ":
        text = f"{text[:10]}T{text[11:]}"
    try:
        parsed = _timestamp_adapter.validate_python(text)
    except ValidationError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')} (got {error.get('input')!r})")
    return "; ".join(parts)


class Entity(BaseModel, abc.ABC):
    """
    Base class for every persistable record.

    Identity is 0 until the store assigns one; after that it cannot change.
    Both timestamps are set at construction, and assigning any other field
    refreshes `updated_at`.

    Two entities compare equal when their ids match, whatever their other
    fields (or types) hold. Unsaved entities all have id 0, so any two of
    them compare equal.
    """

    __entity_meta__: ClassVar[Optional[EntityMeta]] = None

    id: int = Field(0, ge=0, description="Store-assigned identity; 0 until persisted.")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {
        "validate_assignment": True,
        "arbitrary_types_allowed": False,
    }

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        if "updated_at" not in data:
            # Same instant for both stamps on a fresh entity.
            self.__dict__["updated_at"] = self.created_at

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        meta = cls.__dict__.get("__entity_meta__")
        if meta is not None:
            meta.validate_for(cls)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == ID_COLUMN:
            current = self.__dict__.get(ID_COLUMN, 0)
            try:
                candidate = int(value)
            except (TypeError, ValueError):
                candidate = value  # left for pydantic to reject
            if current and candidate != current:
                raise ValueError(
                    f"{type(self).__name__} identity already assigned ({current}); "
                    f"refusing to change it to {value}"
                )
        super().__setattr__(name, value)
        if name not in MANAGED_COLUMNS and name in type(self).model_fields:
            super().__setattr__("updated_at", _utcnow())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return self.id == other.id

    # --- Static contract -------------------------------------------------

    @classmethod
    def meta(cls) -> EntityMeta:
        meta = cls.__entity_meta__
        if meta is None:
            raise TypeError(f"{cls.__name__} does not declare __entity_meta__")
        return meta

    @classmethod
    def table_name(cls) -> str:
        return cls.meta().table_name

    @classmethod
    def columns_for_insert(cls) -> List[str]:
        return list(cls.meta().insert_columns)

    @classmethod
    def columns_for_select(cls) -> List[str]:
        return list(cls.meta().select_columns)

    # --- Instance contract -----------------------------------------------

    def values_for_insert(self) -> List[Any]:
        """Values for `columns_for_insert()`, positionally, ready for parameter binding."""
        return [getattr(self, column) for column in self.columns_for_insert()]

    def update_pairs(self) -> List[Tuple[str, Any]]:
        """Ordered `(column, value)` pairs for an UPDATE ... SET clause."""
        return list(zip(self.columns_for_insert(), self.values_for_insert()))

    def update_assignments(self) -> Tuple[str, Tuple[Any, ...]]:
        """
        Render `update_pairs()` as a SET clause body with placeholders.

        Returns
        -------
        tuple[str, tuple]
            `("name = %s, price = %s", ("Widget", 19.99))`
        """
        pairs = self.update_pairs()
        clause = ", ".join(f"{column} = %s" for column, _ in pairs)
        return clause, tuple(value for _, value in pairs)

    def hydrate(self, row: Sequence[str]) -> None:
        """
        Fill this entity from a row of string cells ordered as `columns_for_select()`.

        Every cell is parsed before anything is assigned, so a failure leaves
        the entity untouched. Hydration does not refresh `updated_at`.
        Timestamp cells that do not hold a datetime keep the current value.

        Raises
        ------
        HydrationFailure
            If the row is shorter than the select columns or a cell cannot be
            parsed into its field type.
        """
        entity_type = type(self).__name__
        columns = self.columns_for_select()
        if len(row) < len(columns):
            raise HydrationFailure(
                entity_type,
                f"row has {len(row)} cells but {len(columns)} are required ({', '.join(columns)})",
            )

        payload: Dict[str, Any] = {}
        for column, cell in zip(columns, row):
            if column in TIMESTAMP_COLUMNS:
                stamp = _parse_timestamp(cell)
                if stamp is None:
                    log.debug(
                        "Timestamp cell not parsed",
                        extra={"entity": entity_type, "column": column, "cell": cell},
                    )
                    continue
                payload[column] = stamp
            else:
                payload[column] = cell

        try:
            parsed = type(self).model_validate(payload)
        except ValidationError as exc:
            raise HydrationFailure(entity_type, _summarize(exc)) from exc

        current = self.__dict__.get(ID_COLUMN, 0)
        if ID_COLUMN in payload and current and parsed.id != current:
            raise HydrationFailure(
                entity_type, f"row id {parsed.id} does not match identity {current}"
            )

        for name in payload:
            self.__dict__[name] = getattr(parsed, name)

    @abc.abstractmethod
    def describe(self) -> Dict[str, str]:
        """Label/value pairs for display."""
        raise NotImplementedError

    def _base_description(self) -> Dict[str, str]:
        return {
            "ID": str(self.id),
            "Created at": self.created_at.isoformat(sep=" ", timespec="seconds"),
            "Updated at": self.updated_at.isoformat(sep=" ", timespec="seconds"),
        }


__all__ = ["Entity", "EntityMeta", "Row", "ID_COLUMN", "TIMESTAMP_COLUMNS"]
