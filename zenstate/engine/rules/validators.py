"""Local, pre-network validation of desired entity state.

Validators are pure functions over a spec: they consult the compatibility
tables in ``tables.py`` and raise a ``ValidationError`` naming the offending
field.  ``check()`` is the non-raising form, returning the failure instead.

Service connector ``configuration`` and ``secrets`` contents are not checked
here: valid values can depend on resources that only exist at apply time, and
the server validates them authoritatively.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from zenstate.engine.errors import MutualExclusionError, ValidationError
from zenstate.engine.models.entities import (
    ProjectSpec,
    RoleAssignmentSpec,
    ServiceConnectorSpec,
    StackComponentSpec,
    StackSpec,
    TeamSpec,
    WorkspaceSpec,
)
from zenstate.engine.models.enums import EntityKind, RoleResourceType
from zenstate.engine.rules.tables import (
    COMPONENT_FLAVORS,
    CONNECTOR_AUTH_METHODS,
    CONNECTOR_RESOURCE_TYPES,
)

MAX_NAME_LENGTH = 255


def _options(values: frozenset[str] | Mapping[str, Any]) -> str:
    return ", ".join(sorted(values))


def require_exactly_one(
    record: BaseModel,
    first: str,
    second: str,
    *,
    kind: EntityKind | None = None,
) -> None:
    """Raise ``MutualExclusionError`` unless exactly one of two fields is set.

    Empty strings count as unset.
    """
    has_first = bool(getattr(record, first))
    has_second = bool(getattr(record, second))
    if has_first == has_second:
        raise MutualExclusionError((first, second), kind=kind)


# -- Per-entity validators ---------------------------------------------------


def validate_workspace(spec: WorkspaceSpec) -> None:
    if len(spec.name) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"must be at most {MAX_NAME_LENGTH} characters", kind=EntityKind.WORKSPACE)


def validate_project(spec: ProjectSpec) -> None:
    if len(spec.name) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"must be at most {MAX_NAME_LENGTH} characters", kind=EntityKind.PROJECT)


def validate_component(spec: StackComponentSpec) -> None:
    """Check type, the (type, flavor) pair, and configuration keys.

    Unknown configuration keys are an error rather than being dropped, so a
    misspelt key fails here instead of being ignored by the server.
    """
    kind = EntityKind.COMPONENT
    flavors = COMPONENT_FLAVORS.get(spec.type)
    if flavors is None:
        reason = f"unknown component type '{spec.type}'; valid types are: {_options(COMPONENT_FLAVORS)}"
        raise ValidationError("type", reason, kind=kind)

    allowed_keys = flavors.get(spec.flavor)
    if allowed_keys is None:
        reason = (
            f"flavor '{spec.flavor}' is not valid for component type '{spec.type}'; "
            f"valid flavors are: {_options(flavors)}"
        )
        raise ValidationError("flavor", reason, kind=kind)

    unknown = sorted(set(spec.configuration) - allowed_keys)
    if unknown:
        accepted = _options(allowed_keys) or "none"
        reason = (
            f"unknown key(s) {', '.join(unknown)} for {spec.type} flavor '{spec.flavor}'; accepted keys: {accepted}"
        )
        raise ValidationError("configuration", reason, kind=kind)

    if spec.connector_resource_id and not spec.connector:
        raise ValidationError("connector_resource_id", "requires 'connector' to be set", kind=kind)


def validate_connector(spec: ServiceConnectorSpec) -> None:
    kind = EntityKind.SERVICE_CONNECTOR
    if not 1 <= len(spec.name) <= MAX_NAME_LENGTH:
        raise ValidationError("name", f"must be between 1 and {MAX_NAME_LENGTH} characters", kind=kind)

    auth_methods = CONNECTOR_AUTH_METHODS.get(spec.type)
    if auth_methods is None:
        reason = f"unknown connector type '{spec.type}'; valid types are: {_options(CONNECTOR_AUTH_METHODS)}"
        raise ValidationError("type", reason, kind=kind)

    if spec.auth_method not in auth_methods:
        reason = (
            f"auth_method '{spec.auth_method}' is not valid for connector type '{spec.type}'; "
            f"valid methods are: {_options(auth_methods)}"
        )
        raise ValidationError("auth_method", reason, kind=kind)

    resource_types = CONNECTOR_RESOURCE_TYPES.get(spec.type, frozenset())
    invalid = sorted(spec.resource_types - resource_types)
    if invalid:
        reason = (
            f"resource type(s) {', '.join(invalid)} not valid for connector type '{spec.type}'; "
            f"valid types are: {_options(resource_types)}"
        )
        raise ValidationError("resource_types", reason, kind=kind)


def validate_stack(spec: StackSpec) -> None:
    """Check the component map shape.  Reference resolution happens later, online."""
    kind = EntityKind.STACK
    for component_type, component_id in spec.components.items():
        if component_type not in COMPONENT_FLAVORS:
            reason = f"unknown component type '{component_type}'; valid types are: {_options(COMPONENT_FLAVORS)}"
            raise ValidationError(f"components.{component_type}", reason, kind=kind)
        if not component_id:
            raise ValidationError(f"components.{component_type}", "component id must not be empty", kind=kind)


def validate_team(spec: TeamSpec) -> None:
    if any(not member for member in spec.members):
        raise ValidationError("members", "user ids must not be empty", kind=EntityKind.TEAM)


def validate_role_assignment(spec: RoleAssignmentSpec) -> None:
    kind = EntityKind.ROLE_ASSIGNMENT
    require_exactly_one(spec, "user_id", "team_id", kind=kind)
    if spec.resource_type not in set(RoleResourceType):
        reason = f"unknown resource type '{spec.resource_type}'; valid types are: {_options(set(RoleResourceType))}"
        raise ValidationError("resource_type", reason, kind=kind)


# -- Dispatch ----------------------------------------------------------------

VALIDATORS: Mapping[EntityKind, Callable[[Any], None]] = MappingProxyType({
    EntityKind.WORKSPACE: validate_workspace,
    EntityKind.PROJECT: validate_project,
    EntityKind.COMPONENT: validate_component,
    EntityKind.SERVICE_CONNECTOR: validate_connector,
    EntityKind.STACK: validate_stack,
    EntityKind.TEAM: validate_team,
    EntityKind.ROLE_ASSIGNMENT: validate_role_assignment,
})


def validate(kind: EntityKind, spec: BaseModel) -> None:
    """Run the validator registered for *kind*.  Raises ``ValidationError``."""
    validator = VALIDATORS.get(kind)
    if validator is None:
        msg = f"No validator registered for entity kind '{kind}'"
        raise KeyError(msg)
    validator(spec)


def check(kind: EntityKind, spec: BaseModel) -> ValidationError | None:
    """Non-raising form of ``validate``: return the failure, or ``None``."""
    try:
        validate(kind, spec)
    except ValidationError as exc:
        return exc
    return None
