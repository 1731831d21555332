"""
Domain package for datamapper.

Exports the entity contract and the sample record types built on it.
Keep this package focused on data definitions and row mapping, free of I/O.
"""

from datamapper.domain.entity import Entity, EntityMeta, Row
from datamapper.domain.models import ENTITY_TYPES, Product, User

__all__ = [
    "Entity",
    "EntityMeta",
    "Row",
    "ENTITY_TYPES",
    "Product",
    "User",
]
