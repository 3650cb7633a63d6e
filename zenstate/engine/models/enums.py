"""Shared enumerations used across the reconciliation engine."""

from __future__ import annotations

from enum import StrEnum

# -- Entities ----------------------------------------------------------------


class EntityKind(StrEnum):
    """Remote entity collections the engine knows how to address."""

    WORKSPACE = "workspace"
    PROJECT = "project"
    STACK = "stack"
    COMPONENT = "component"
    SERVICE_CONNECTOR = "service_connector"
    TEAM = "team"
    ROLE_ASSIGNMENT = "role_assignment"
    USER = "user"


class WorkspaceStatus(StrEnum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    AVAILABLE = "available"
    FAILED = "failed"
    DELETING = "deleting"


# -- Stack components --------------------------------------------------------


class ComponentType(StrEnum):
    """Stack component categories; a stack holds at most one per type."""

    ALERTER = "alerter"
    ANNOTATOR = "annotator"
    ARTIFACT_STORE = "artifact_store"
    CONTAINER_REGISTRY = "container_registry"
    DATA_VALIDATOR = "data_validator"
    EXPERIMENT_TRACKER = "experiment_tracker"
    FEATURE_STORE = "feature_store"
    IMAGE_BUILDER = "image_builder"
    MODEL_DEPLOYER = "model_deployer"
    ORCHESTRATOR = "orchestrator"
    STEP_OPERATOR = "step_operator"
    MODEL_REGISTRY = "model_registry"
    DEPLOYER = "deployer"


# -- Service connectors ------------------------------------------------------


class ConnectorType(StrEnum):
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    KUBERNETES = "kubernetes"
    DOCKER = "docker"
    HYPERAI = "hyperai"


# -- Role assignments --------------------------------------------------------


class RoleResourceType(StrEnum):
    """Resources a role can be bound to."""

    PROJECT = "project"
    STACK = "stack"
    WORKSPACE = "workspace"


class SubjectKind(StrEnum):
    USER = "user"
    TEAM = "team"


# -- Reconciliation ----------------------------------------------------------


class ReconcileState(StrEnum):
    """Where a single reconciliation pass ended up.

    ``DELETED`` and ``MISSING`` are terminal; ``MISSING`` tells the caller to
    forget the identifier it holds.
    """

    PLANNED = "planned"
    CREATED = "created"
    READ = "read"
    DIFFED = "diffed"
    UPDATED = "updated"
    DELETED = "deleted"
    MISSING = "missing"


class FailureKind(StrEnum):
    """Classification of a failed remote call."""

    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
