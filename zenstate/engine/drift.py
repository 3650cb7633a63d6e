"""Drift reporter: classify remote failures and detect out-of-band changes.

A remote not-found is drift, not an error: the reconciler turns it into the
``MISSING`` state and tells the caller to forget the identifier.  Every other
failure is surfaced as ``TransientFailure`` or ``PermanentFailure`` so that an
outer orchestration layer can decide whether the whole pass is worth retrying.
This module never retries anything itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger

from zenstate.engine.diff import normalize
from zenstate.engine.errors import PermanentFailure, RemoteStoreError, TransientFailure
from zenstate.engine.models.enums import FailureKind

if TYPE_CHECKING:
    from pydantic import BaseModel

    from zenstate.engine.diff import DiffSpec
    from zenstate.engine.models.enums import EntityKind

# Request timeout and rate limiting are worth another attempt; other 4xx are not.
_TRANSIENT_STATUS = frozenset({408, 429})


def classify(exc: BaseException) -> FailureKind:
    """Map a failed remote call to ``NOT_FOUND``, ``TRANSIENT`` or ``PERMANENT``."""
    if isinstance(exc, RemoteStoreError):
        status = exc.status_code
        if status == 404:
            return FailureKind.NOT_FOUND
        if status is None or status in _TRANSIENT_STATUS or status >= 500:
            return FailureKind.TRANSIENT
        return FailureKind.PERMANENT
    if isinstance(exc, (TimeoutError, httpx.TimeoutException, httpx.TransportError)):
        return FailureKind.TRANSIENT
    return FailureKind.PERMANENT


def surface(
    exc: BaseException,
    kind: EntityKind,
    entity_id: str | None = None,
) -> TransientFailure | PermanentFailure:
    """Wrap a non-not-found failure in the matching caller-visible error.

    Chain the result with ``raise ... from exc`` to keep the cause.
    """
    status = exc.status_code if isinstance(exc, RemoteStoreError) else None
    if isinstance(exc, TimeoutError):
        message = "remote call exceeded its deadline"
    else:
        message = str(exc) or type(exc).__name__

    if classify(exc) == FailureKind.TRANSIENT:
        return TransientFailure(message, kind=kind, entity_id=entity_id, status_code=status)
    return PermanentFailure(message, kind=kind, entity_id=entity_id, status_code=status)


def drifted_fields(spec: DiffSpec, prior: BaseModel, current: BaseModel) -> list[str]:
    """Fields whose remote value changed since *prior* was read.

    Write-only fields are excluded; the server never returns them.
    """
    drifted = [
        name
        for name in spec.compared
        if normalize(getattr(prior, name, None)) != normalize(getattr(current, name, None))
    ]
    if drifted:
        logger.info("Drift on {} '{}': {}", spec.kind, getattr(current, "id", "?"), ", ".join(drifted))
    return sorted(drifted)
