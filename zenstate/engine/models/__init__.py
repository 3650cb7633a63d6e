"""Data models for the reconciliation engine."""

from zenstate.engine.models.entities import (
    Project,
    ProjectSpec,
    RemoteEntity,
    RoleAssignment,
    RoleAssignmentSpec,
    ServerInfo,
    ServiceConnector,
    ServiceConnectorSpec,
    Stack,
    StackComponent,
    StackComponentSpec,
    StackSpec,
    Team,
    TeamSpec,
    User,
    Workspace,
    WorkspaceSpec,
)
from zenstate.engine.models.enums import (
    ComponentType,
    ConnectorType,
    EntityKind,
    FailureKind,
    ReconcileState,
    RoleResourceType,
    SubjectKind,
    WorkspaceStatus,
)

__all__ = [
    # Enums
    "ComponentType",
    "ConnectorType",
    "EntityKind",
    "FailureKind",
    # Entities
    "Project",
    "ProjectSpec",
    "ReconcileState",
    "RemoteEntity",
    "RoleAssignment",
    "RoleAssignmentSpec",
    "RoleResourceType",
    "ServerInfo",
    "ServiceConnector",
    "ServiceConnectorSpec",
    "Stack",
    "StackComponent",
    "StackComponentSpec",
    "StackSpec",
    "SubjectKind",
    "Team",
    "TeamSpec",
    "User",
    "Workspace",
    "WorkspaceSpec",
    "WorkspaceStatus",
]
