"""In-process registry of in-flight reconciliation passes.

Enforces at most one pass per ``(kind, id)`` at a time.  Ephemeral: empty on
process restart.  The remote server stays the authority on entity state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from loguru import logger

from zenstate.engine.errors import ConcurrentReconcileError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from zenstate.engine.models.enums import EntityKind


class InflightRegistry:
    """Tracks which entity ids currently have a pass running.

    Claims are not queued: a second claim for a busy id fails immediately
    with ``ConcurrentReconcileError`` and the caller decides whether to wait.
    All callers share one event loop, so no lock is needed around the set.
    """

    def __init__(self) -> None:
        self._inflight: set[tuple[EntityKind, str]] = set()

    # -- Mutation --------------------------------------------------------------

    @asynccontextmanager
    async def claim(self, kind: EntityKind, entity_id: str | None) -> AsyncIterator[None]:
        """Hold *entity_id* for the duration of the block.

        ``None`` ids (creates, where the id is not yet known) are never
        contended and pass straight through.  Log records emitted inside the
        block carry ``extra["entity"]``.
        """
        if entity_id is None:
            yield
            return

        key = (kind, entity_id)
        if key in self._inflight:
            msg = "a reconciliation pass is already in flight for this entity"
            raise ConcurrentReconcileError(msg, kind=kind, entity_id=entity_id)

        self._inflight.add(key)
        with logger.contextualize(entity=f"{kind}/{entity_id}"):
            logger.debug("Registry: claim {} '{}'", kind, entity_id)
            try:
                yield
            finally:
                self._inflight.discard(key)
                logger.debug("Registry: release {} '{}'", kind, entity_id)

    # -- Query -----------------------------------------------------------------

    def is_inflight(self, kind: EntityKind, entity_id: str) -> bool:
        return (kind, entity_id) in self._inflight

    @property
    def active_count(self) -> int:
        return len(self._inflight)
