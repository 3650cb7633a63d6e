"""Typed context shared by every reconciler call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from zenstate.engine.registry import InflightRegistry

if TYPE_CHECKING:
    from zenstate.engine.settings import ZenStateSettings
    from zenstate.engine.store.base import EntityStore


@dataclass
class ReconcileContext:
    """Collaborators and limits for reconciliation passes.

    One context is typically shared by all reconcilers of a run, so that the
    in-flight registry sees every pass.
    """

    store: EntityStore

    deadline: float | None = 30.0
    """Seconds allowed for each remote call.  ``None`` disables the bound."""

    registry: InflightRegistry = field(default_factory=InflightRegistry)

    @classmethod
    def from_settings(cls, store: EntityStore, settings: ZenStateSettings) -> ReconcileContext:
        return cls(store=store, deadline=settings.request_timeout)
