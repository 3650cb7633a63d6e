"""Per-entity reconcilers and the registry that maps entity kinds to them."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Outcome, Reconciler
from zenstate.engine.reconcilers.components import ComponentReconciler
from zenstate.engine.reconcilers.connectors import ConnectorReconciler
from zenstate.engine.reconcilers.projects import ProjectReconciler
from zenstate.engine.reconcilers.role_assignments import RoleAssignmentReconciler
from zenstate.engine.reconcilers.stacks import StackReconciler
from zenstate.engine.reconcilers.teams import TeamReconciler
from zenstate.engine.reconcilers.workspaces import WorkspaceReconciler

if TYPE_CHECKING:
    from zenstate.engine.context import ReconcileContext

RECONCILERS: MappingProxyType[EntityKind, type[Reconciler[Any, Any]]] = MappingProxyType({
    EntityKind.WORKSPACE: WorkspaceReconciler,
    EntityKind.PROJECT: ProjectReconciler,
    EntityKind.COMPONENT: ComponentReconciler,
    EntityKind.SERVICE_CONNECTOR: ConnectorReconciler,
    EntityKind.STACK: StackReconciler,
    EntityKind.TEAM: TeamReconciler,
    EntityKind.ROLE_ASSIGNMENT: RoleAssignmentReconciler,
})


def reconciler_for(kind: EntityKind, context: ReconcileContext) -> Reconciler[Any, Any]:
    """Instantiate the reconciler registered for *kind*."""
    try:
        cls = RECONCILERS[kind]
    except KeyError:
        msg = f"Entity kind '{kind}' cannot be reconciled"
        raise ValueError(msg) from None
    return cls(context)


__all__ = [
    "RECONCILERS",
    "ComponentReconciler",
    "ConnectorReconciler",
    "Outcome",
    "ProjectReconciler",
    "Reconciler",
    "RoleAssignmentReconciler",
    "StackReconciler",
    "TeamReconciler",
    "WorkspaceReconciler",
    "reconciler_for",
]
