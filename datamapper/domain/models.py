"""
Sample entities mapped onto the `products` and `users` tables in `db/init.sql`.

They back the CLI `get`/`demo` commands, the seed script and the tests.
"""
from __future__ import annotations

from typing import ClassVar, Dict

from pydantic import Field

from datamapper.domain.entity import Entity, EntityMeta


class Product(Entity):
    """
    Representation of a single row in the `products` table.
    """

    __entity_meta__: ClassVar[EntityMeta] = EntityMeta(
        table_name="products",
        insert_columns=("name", "price"),
        select_columns=("id", "name", "price", "created_at", "updated_at"),
    )

    name: str = Field("", description="Product display name.")
    price: float = Field(0.0, description="Unit price.")

    def describe(self) -> Dict[str, str]:
        info = self._base_description()
        info["Name"] = self.name
        info["Price"] = f"{self.price:.2f}"
        return info


class User(Entity):
    """
    Representation of a single row in the `users` table.
    """

    __entity_meta__: ClassVar[EntityMeta] = EntityMeta(
        table_name="users",
        insert_columns=("username", "email"),
        select_columns=("id", "username", "email", "created_at", "updated_at"),
    )

    username: str = Field("", description="Login name.")
    email: str = Field("", description="Contact e-mail address.")

    def describe(self) -> Dict[str, str]:
        info = self._base_description()
        info["Username"] = self.username
        info["Email"] = self.email
        return info


ENTITY_TYPES: Dict[str, type[Entity]] = {
    "product": Product,
    "user": User,
}


__all__ = ["Product", "User", "ENTITY_TYPES"]
