"""Remote entity store interface.

The store is the engine's only collaborator with side effects.  It speaks
plain JSON dicts keyed by ``EntityKind``; parsing into canonical models is the
reconcilers' job.  Implementations raise ``RemoteStoreError`` for any
non-success response, with ``status_code == 404`` reserved for not-found so
the drift reporter can tell it apart from other failures.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from zenstate.engine.models.enums import EntityKind


class Page(BaseModel):
    """One page of a ``list`` call."""

    index: int = 1
    max_size: int = 100
    total_pages: int = 1
    total: int = 0
    items: list[dict[str, Any]] = Field(default_factory=list)


@runtime_checkable
class EntityStore(Protocol):
    """Async CRUD over remote entity collections."""

    async def create(self, kind: EntityKind, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an entity and return its canonical representation (with ``id``)."""
        ...

    async def get(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        """Fetch one entity.  Raises ``RemoteStoreError(404, ...)`` if missing."""
        ...

    async def update(self, kind: EntityKind, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update.  Map and set fields in *payload* replace the stored value."""
        ...

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Delete an entity.  No-op if not found."""
        ...

    async def list(
        self,
        kind: EntityKind,
        filters: dict[str, Any] | None = None,
        *,
        page: int = 1,
        size: int | None = None,
    ) -> Page:
        """List entities matching *filters* (exact-match query parameters)."""
        ...

    async def add_team_member(self, team_id: str, user_id: str) -> None: ...

    async def remove_team_member(self, team_id: str, user_id: str) -> None: ...

    async def verify_connector(self, payload: dict[str, Any]) -> str | None:
        """Ask the server to check a connector configuration.

        Returns ``None`` on success or the server's error message.
        """
        ...

    async def server_info(self) -> dict[str, Any]: ...
