"""
Failure taxonomy for the data-mapping layer.

Repository operations raise subclasses of `RepositoryError`; a missing row is
not an error and is reported by `Repository.get_by_id` returning None.
Connection and statement failures keep the engine's diagnostics (error code,
SQLSTATE, message) so callers and logs can report them verbatim.
"""

from __future__ import annotations

from typing import Optional


class DataMapperError(Exception):
    """Base class for every error raised by datamapper."""


class ConfigurationInvalid(DataMapperError):
    """Connection settings are missing, unreadable or incomplete."""


class RepositoryError(DataMapperError):
    """Base class for failures surfaced by repository operations."""


class ConnectionFailure(RepositoryError):
    """
    A connection could not be established or authenticated.

    Attributes
    ----------
    code : int | None
        Driver/engine error number, when the driver exposes one.
    sqlstate : str | None
        Five-character SQLSTATE, when available.
    message : str
        Human-readable reason reported by the driver.
    """

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        sqlstate: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.sqlstate = sqlstate
        super().__init__(self._render())

    def _render(self) -> str:
        return f"could not connect: {self.message} (code={self.code}, sqlstate={self.sqlstate})"


class StatementFailure(RepositoryError):
    """The engine rejected a statement executed on a live connection."""

    def __init__(
        self,
        sql: str,
        message: str,
        code: Optional[int] = None,
        sqlstate: Optional[str] = None,
    ) -> None:
        self.sql = sql
        self.message = message
        self.code = code
        self.sqlstate = sqlstate
        super().__init__(
            f"statement failed: {message} (code={code}, sqlstate={sqlstate}) sql={sql!r}"
        )


class HydrationFailure(RepositoryError):
    """A row did not match the shape or cell types an entity expects."""

    def __init__(self, entity_type: str, reason: str) -> None:
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"cannot hydrate {entity_type}: {reason}")


__all__ = [
    "DataMapperError",
    "ConfigurationInvalid",
    "RepositoryError",
    "ConnectionFailure",
    "StatementFailure",
    "HydrationFailure",
]
