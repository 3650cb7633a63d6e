"""Exception hierarchy for the reconciliation engine.

Reconcilers raise these domain exceptions and never format user-facing
output themselves -- rendering is the CLI's responsibility.  Every error
carries the entity kind and, when known, the entity id so a caller can point
at the exact declaration that failed.

``NotFound`` is deliberately absent: a remote 404 during a read is a state
transition (``ReconcileState.MISSING``), not an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from zenstate.engine.models.enums import EntityKind

if TYPE_CHECKING:
    from collections.abc import Iterable


class ReconcileError(Exception):
    """Base class for every error surfaced by the engine."""

    def __init__(self, message: str, *, kind: EntityKind | None = None, entity_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self) -> str:
        where = ""
        if self.kind is not None:
            where = f"{self.kind}"
            if self.entity_id:
                where += f" '{self.entity_id}'"
            where += ": "
        return f"{where}{self.message}"


# -- Local, pre-network ------------------------------------------------------


class ValidationError(ReconcileError, ValueError):
    """A proposed entity violates a local domain rule.  Never retried."""

    def __init__(
        self,
        field: str,
        reason: str,
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
    ) -> None:
        super().__init__(f"{field}: {reason}", kind=kind, entity_id=entity_id)
        self.field = field
        self.reason = reason


class MutualExclusionError(ValidationError):
    """Exactly one of two fields must be set; both or neither were."""

    def __init__(
        self,
        fields: tuple[str, str],
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
    ) -> None:
        first, second = fields
        super().__init__(
            f"{first}/{second}",
            f"exactly one of '{first}' or '{second}' must be set",
            kind=kind,
            entity_id=entity_id,
        )
        self.fields = fields


class ImmutableFieldError(ReconcileError):
    """Desired state changes a field that cannot be updated in place."""

    def __init__(self, fields: Iterable[str], *, kind: EntityKind | None = None, entity_id: str | None = None) -> None:
        self.fields = tuple(sorted(fields))
        names = ", ".join(self.fields)
        super().__init__(
            f"immutable field(s) changed ({names}); the resource must be replaced",
            kind=kind,
            entity_id=entity_id,
        )


class UnresolvedReferenceError(ReconcileError, LookupError):
    """A referenced entity id cannot currently be resolved by the store."""

    def __init__(
        self,
        field: str,
        ref_id: str,
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        detail = reason or "does not resolve to an existing entity"
        super().__init__(f"{field} '{ref_id}' {detail}", kind=kind, entity_id=entity_id)
        self.field = field
        self.ref_id = ref_id


class ConcurrentReconcileError(ReconcileError, RuntimeError):
    """A second reconciliation pass was started for an id already in flight."""


# -- Remote ------------------------------------------------------------------


class RemoteStoreError(Exception):
    """Raised by store implementations for any non-success remote response.

    ``status_code`` is ``None`` when no response was received.
    """

    def __init__(self, status_code: int | None, detail: str) -> None:
        super().__init__(f"remote store error ({status_code}): {detail}" if status_code else detail)
        self.status_code = status_code
        self.detail = detail


class TransientFailure(ReconcileError):
    """Timeouts and 5xx-class responses.  The caller decides whether to retry."""

    def __init__(
        self,
        message: str,
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, kind=kind, entity_id=entity_id)
        self.status_code = status_code


class PermanentFailure(ReconcileError):
    """4xx-class responses other than not-found (conflict, duplicate name, ...)."""

    def __init__(
        self,
        message: str,
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, kind=kind, entity_id=entity_id)
        self.status_code = status_code


class TeamMembershipError(ReconcileError):
    """Some membership calls failed after others succeeded.

    The team is left partially converged; ``failures`` lists every
    ``(operation, user_id, error)`` that did not go through and ``entity``
    holds the team as last read.
    """

    def __init__(
        self,
        failures: list[tuple[str, str, Exception]],
        *,
        entity_id: str | None = None,
        entity: object | None = None,
    ) -> None:
        listing = ", ".join(f"{op} {user_id} ({exc})" for op, user_id, exc in failures)
        super().__init__(
            f"{len(failures)} membership change(s) failed: {listing}",
            kind=EntityKind.TEAM,
            entity_id=entity_id,
        )
        self.failures = failures
        self.entity = entity
