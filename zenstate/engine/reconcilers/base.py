"""Generic reconciler: converges one remote entity to a desired state.

A pass moves through ``PLANNED -> CREATED | READ -> DIFFED -> UPDATED`` with
``DELETED`` and ``MISSING`` as terminal states.  Within a pass the steps are
strictly sequential, and side effects are bounded: at most one create, one
update and one delete call, plus the reads around them.  Nothing is retried.

Subclasses bind the entity types and override the small hooks below
(payload shaping, reference resolution, extra writes) rather than the state
machine itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

import anyio
from loguru import logger
from pydantic import BaseModel

from zenstate.engine.diff import ChangeSet, DiffSpec, compute_diff, to_payload
from zenstate.engine.drift import classify, drifted_fields, surface
from zenstate.engine.errors import (
    ImmutableFieldError,
    RemoteStoreError,
    UnresolvedReferenceError,
    ValidationError,
)
from zenstate.engine.models.entities import RemoteEntity
from zenstate.engine.models.enums import EntityKind, FailureKind, ReconcileState
from zenstate.engine.rules import validate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from zenstate.engine.context import ReconcileContext

SpecT = TypeVar("SpecT", bound=BaseModel)
EntityT = TypeVar("EntityT", bound=RemoteEntity)
R = TypeVar("R")


@dataclass
class Outcome(Generic[EntityT]):
    """Result of one reconciliation step.

    ``entity`` is ``None`` for ``DELETED`` and ``MISSING``.  When ``forget``
    is true the caller must drop the identifier it holds and re-plan.
    """

    state: ReconcileState
    entity: EntityT | None = None
    entity_id: str | None = None
    changes: ChangeSet = field(default_factory=ChangeSet)

    @property
    def forget(self) -> bool:
        return self.state == ReconcileState.MISSING


def _is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, RemoteStoreError) and classify(exc) == FailureKind.NOT_FOUND


class Reconciler(Generic[SpecT, EntityT]):
    """State machine for one entity type.

    Every public operation claims the entity id in the context's in-flight
    registry, so two passes over the same id can never interleave.
    """

    kind: ClassVar[EntityKind]
    spec_model: ClassVar[type[BaseModel]]
    entity_model: ClassVar[type[RemoteEntity]]
    diff_spec: ClassVar[DiffSpec]

    local_fields: ClassVar[frozenset[str]] = frozenset()
    """Spec fields that steer the engine and are never sent to the server."""

    def __init__(self, context: ReconcileContext) -> None:
        self.context = context
        self.store = context.store

    # -- Remote calls ------------------------------------------------------------

    async def _call(
        self,
        fn: Callable[..., Awaitable[R]],
        *args: Any,
        entity_id: str | None = None,
    ) -> R:
        """Run one store call under the context deadline.

        Not-found responses propagate unchanged as ``RemoteStoreError`` so the
        caller can route them to ``MISSING``; everything else is surfaced as
        ``TransientFailure`` or ``PermanentFailure``.
        """
        try:
            with anyio.fail_after(self.context.deadline):
                return await fn(*args)
        except Exception as exc:
            if _is_not_found(exc):
                raise
            raise surface(exc, self.kind, entity_id) from exc

    def parse(self, data: dict[str, Any]) -> EntityT:
        return self.entity_model.model_validate(data)  # type: ignore[return-value]

    async def _read(self, entity_id: str) -> EntityT | None:
        """Fetch the canonical record, or ``None`` if the server no longer has it."""
        try:
            data = await self._call(self.store.get, self.kind, entity_id, entity_id=entity_id)
        except RemoteStoreError as exc:
            if _is_not_found(exc):
                logger.info("{} '{}' not found remotely; caller should forget it", self.kind, entity_id)
                return None
            raise
        return self.parse(data)

    async def _require(
        self,
        ref_kind: EntityKind,
        ref_id: str,
        field_name: str,
        *,
        entity_id: str | None = None,
    ) -> dict[str, Any]:
        """Resolve a referenced entity or raise ``UnresolvedReferenceError``."""
        try:
            return await self._call(self.store.get, ref_kind, ref_id, entity_id=entity_id)
        except RemoteStoreError as exc:
            if _is_not_found(exc):
                raise UnresolvedReferenceError(field_name, ref_id, kind=self.kind, entity_id=entity_id) from exc
            raise

    # -- Hooks -------------------------------------------------------------------

    def _validate(self, spec: SpecT, entity_id: str | None = None) -> None:
        try:
            validate(self.kind, spec)
        except ValidationError as exc:
            exc.entity_id = entity_id
            raise

    async def resolve_references(self, spec: SpecT, entity_id: str | None = None) -> None:
        """Check that every entity *spec* refers to exists.  Default: nothing to check."""

    async def before_write(self, spec: SpecT, entity_id: str | None = None) -> None:
        """Runs after reference resolution, right before the create or update call."""

    def create_payload(self, spec: SpecT) -> dict[str, Any]:
        return to_payload(spec.model_dump(exclude=set(self.local_fields), exclude_none=True))

    def update_payload(self, changes: ChangeSet, spec: SpecT) -> dict[str, Any]:
        return changes.payload()

    async def sync_extras(self, entity_id: str, spec: SpecT, current: EntityT | None) -> None:
        """Writes that live outside the entity's own update call (e.g. team membership)."""

    def finalize(self, entity: EntityT, *, spec: SpecT | None = None, prior: EntityT | None = None) -> EntityT:
        """Attach engine-side state to a freshly read record."""
        return entity

    # -- Operations --------------------------------------------------------------

    async def create(self, spec: SpecT) -> Outcome[EntityT]:
        """``PLANNED -> CREATED``.  Validation failures never reach the server."""
        self._validate(spec)
        await self.resolve_references(spec)
        await self.before_write(spec)

        logger.info("Creating {} '{}'", self.kind, getattr(spec, "name", ""))
        created = await self._call(self.store.create, self.kind, self.create_payload(spec))
        entity_id = created["id"]

        async with self.context.registry.claim(self.kind, entity_id):
            await self.sync_extras(entity_id, spec, None)
            entity = await self._read(entity_id)
        if entity is None:
            return Outcome(ReconcileState.MISSING, entity_id=entity_id)
        return Outcome(ReconcileState.CREATED, self.finalize(entity, spec=spec), entity_id)

    async def read(self, entity_id: str, prior: EntityT | None = None) -> Outcome[EntityT]:
        """Refresh.  A remote not-found yields ``MISSING`` rather than an error."""
        async with self.context.registry.claim(self.kind, entity_id):
            entity = await self._read(entity_id)
        if entity is None:
            return Outcome(ReconcileState.MISSING, entity_id=entity_id)
        if prior is not None:
            drifted_fields(self.diff_spec, prior, entity)
        return Outcome(ReconcileState.READ, self.finalize(entity, prior=prior), entity_id)

    async def update(self, entity_id: str, spec: SpecT, prior: EntityT | None = None) -> Outcome[EntityT]:
        """``READ -> DIFFED -> UPDATED``.

        An empty change set makes no write call and returns the current state
        as ``DIFFED``.  Raises ``ImmutableFieldError`` when the desired state
        can only be reached by replacing the resource.
        """
        self._validate(spec, entity_id)
        async with self.context.registry.claim(self.kind, entity_id):
            current = await self._read(entity_id)
            if current is None:
                return Outcome(ReconcileState.MISSING, entity_id=entity_id)
            if prior is not None:
                drifted_fields(self.diff_spec, prior, current)

            changes = compute_diff(
                self.diff_spec,
                current,
                spec,
                prior_digest=getattr(prior, "secrets_digest", None),
            )
            if changes.replace:
                raise ImmutableFieldError(changes.replace, kind=self.kind, entity_id=entity_id)
            if not changes:
                logger.debug("{} '{}' is up to date", self.kind, entity_id)
                return Outcome(ReconcileState.DIFFED, self.finalize(current, prior=prior), entity_id, changes)

            await self.resolve_references(spec, entity_id)
            await self.before_write(spec, entity_id)

            payload = self.update_payload(changes, spec)
            logger.info("Updating {} '{}': {}", self.kind, entity_id, ", ".join(changes.fields))
            if payload:
                try:
                    await self._call(self.store.update, self.kind, entity_id, payload, entity_id=entity_id)
                except RemoteStoreError as exc:
                    if _is_not_found(exc):
                        return Outcome(ReconcileState.MISSING, entity_id=entity_id)
                    raise
            await self.sync_extras(entity_id, spec, current)

            entity = await self._read(entity_id)
        if entity is None:
            return Outcome(ReconcileState.MISSING, entity_id=entity_id)
        return Outcome(ReconcileState.UPDATED, self.finalize(entity, spec=spec), entity_id, changes)

    async def delete(self, entity_id: str) -> Outcome[EntityT]:
        """Idempotent: deleting an entity that is already gone succeeds."""
        async with self.context.registry.claim(self.kind, entity_id):
            logger.info("Deleting {} '{}'", self.kind, entity_id)
            try:
                await self._call(self.store.delete, self.kind, entity_id, entity_id=entity_id)
            except RemoteStoreError as exc:
                if not _is_not_found(exc):
                    raise
        return Outcome(ReconcileState.DELETED, entity_id=entity_id)

    async def import_(self, entity_id: str) -> Outcome[EntityT]:
        """Adopt an existing entity by id: ``PLANNED -> READ`` without creating."""
        async with self.context.registry.claim(self.kind, entity_id):
            entity = await self._read(entity_id)
        if entity is None:
            raise UnresolvedReferenceError(
                "id", entity_id, kind=self.kind, entity_id=entity_id, reason="does not exist on the server"
            )
        logger.info("Imported {} '{}'", self.kind, entity_id)
        return Outcome(ReconcileState.READ, self.finalize(entity), entity_id)

    async def apply(
        self,
        spec: SpecT,
        entity_id: str | None = None,
        prior: EntityT | None = None,
    ) -> Outcome[EntityT]:
        """One full pass: create when no id is known, otherwise update."""
        if entity_id is None:
            return await self.create(spec)
        return await self.update(entity_id, spec, prior)

    # -- Lookup ------------------------------------------------------------------

    async def find(self, filters: dict[str, Any]) -> list[EntityT]:
        """All entities matching *filters*, across every page."""
        entities: list[EntityT] = []
        page = 1
        while True:
            result = await self._call(partial(self.store.list, self.kind, filters, page=page))
            entities.extend(self.parse(item) for item in result.items)
            if page >= result.total_pages:
                return entities
            page += 1

    async def lookup(self, name: str, workspace_id: str | None = None) -> EntityT | None:
        """Find an entity by exact name, optionally scoped to a workspace."""
        matches = await self.find({"name": name, "workspace": workspace_id})
        for entity in matches:
            if getattr(entity, "name", None) != name:
                continue
            if workspace_id is not None and getattr(entity, "workspace_id", workspace_id) != workspace_id:
                continue
            return entity
        return None
