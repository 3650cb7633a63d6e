"""Unit tests for the local validation rules.

No server required.
"""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from zenstate.engine.errors import MutualExclusionError, ValidationError
from zenstate.engine.models.entities import (
    RoleAssignmentSpec,
    ServiceConnectorSpec,
    StackComponentSpec,
    StackSpec,
    TeamSpec,
)
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.rules import COMPONENT_FLAVORS, CONNECTOR_AUTH_METHODS, check, validate
from zenstate.engine.rules.validators import require_exactly_one


def _component(**overrides: object) -> StackComponentSpec:
    fields = {"name": "test-store", "type": "artifact_store", "flavor": "local", "configuration": {"path": "/tmp"}}
    fields.update(overrides)
    return StackComponentSpec(**fields)


def _connector(**overrides: object) -> ServiceConnectorSpec:
    fields = {"name": "aws-conn", "type": "aws", "auth_method": "secret-key", "resource_types": {"s3-bucket"}}
    fields.update(overrides)
    return ServiceConnectorSpec(**fields)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def test_local_artifact_store_is_valid() -> None:
    assert check(EntityKind.COMPONENT, _component()) is None


@pytest.mark.parametrize(
    ("component_type", "flavor"),
    [(t, f) for t, flavors in COMPONENT_FLAVORS.items() for f in flavors],
)
def test_every_table_pair_is_accepted(component_type: str, flavor: str) -> None:
    spec = _component(type=component_type, flavor=flavor, configuration={})
    validate(EntityKind.COMPONENT, spec)


@pytest.mark.parametrize(
    ("component_type", "flavor"),
    [("artifact_store", "kubernetes"), ("orchestrator", "s3"), ("alerter", "local"), ("deployer", "mlflow")],
)
def test_pairs_outside_table_are_rejected(component_type: str, flavor: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.COMPONENT, _component(type=component_type, flavor=flavor, configuration={}))
    assert exc_info.value.field == "flavor"
    assert flavor in str(exc_info.value)


def test_unknown_component_type() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.COMPONENT, _component(type="quantum_store"))
    assert exc_info.value.field == "type"
    assert exc_info.value.kind == EntityKind.COMPONENT


def test_unknown_configuration_keys_are_listed_sorted() -> None:
    spec = _component(configuration={"path": "/tmp", "zeta": 1, "alpha": 2})
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.COMPONENT, spec)
    assert exc_info.value.field == "configuration"
    assert "alpha, zeta" in exc_info.value.reason


def test_connector_resource_id_requires_connector() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.COMPONENT, _component(connector_resource_id="bucket-1"))
    assert exc_info.value.field == "connector_resource_id"


def test_validation_error_is_a_value_error() -> None:
    error = check(EntityKind.COMPONENT, _component(type="nope"))
    assert isinstance(error, ValueError)


# ---------------------------------------------------------------------------
# Connectors
# ---------------------------------------------------------------------------


def test_aws_secret_key_connector_is_valid() -> None:
    validate(EntityKind.SERVICE_CONNECTOR, _connector())


def test_password_auth_is_rejected_for_aws() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.SERVICE_CONNECTOR, _connector(auth_method="password"))
    assert exc_info.value.field == "auth_method"
    assert "password" in str(exc_info.value)
    assert "aws" in str(exc_info.value)


@pytest.mark.parametrize(
    ("connector_type", "auth_method"),
    [(t, m) for t, methods in CONNECTOR_AUTH_METHODS.items() for m in methods],
)
def test_every_listed_auth_method_passes(connector_type: str, auth_method: str) -> None:
    spec = _connector(type=connector_type, auth_method=auth_method, resource_types=set())
    assert check(EntityKind.SERVICE_CONNECTOR, spec) is None


def test_unknown_connector_type() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.SERVICE_CONNECTOR, _connector(type="openstack"))
    assert exc_info.value.field == "type"


def test_resource_type_not_supported_by_connector_type() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.SERVICE_CONNECTOR, _connector(resource_types={"s3-bucket", "gcs-bucket"}))
    assert exc_info.value.field == "resource_types"
    assert "gcs-bucket" in exc_info.value.reason


def test_connector_name_length() -> None:
    assert check(EntityKind.SERVICE_CONNECTOR, _connector(name="")) is not None
    assert check(EntityKind.SERVICE_CONNECTOR, _connector(name="x" * 256)) is not None
    assert check(EntityKind.SERVICE_CONNECTOR, _connector(name="x" * 255)) is None


def test_connector_configuration_is_not_checked_locally() -> None:
    spec = _connector(configuration={"anything": "goes"}, secrets={"aws_secret_access_key": "s"})
    assert check(EntityKind.SERVICE_CONNECTOR, spec) is None


# ---------------------------------------------------------------------------
# Role assignments
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(("user_id", "team_id"), [("u1", None), (None, "t1")])
def test_exactly_one_subject_is_valid(user_id: str | None, team_id: str | None) -> None:
    spec = RoleAssignmentSpec(
        resource_id="stack-1", resource_type="stack", user_id=user_id, team_id=team_id, role="admin"
    )
    validate(EntityKind.ROLE_ASSIGNMENT, spec)


@pytest.mark.parametrize(("user_id", "team_id"), [("u1", "t1"), (None, None), ("", "")])
def test_both_or_neither_subject_is_rejected(user_id: str | None, team_id: str | None) -> None:
    spec = RoleAssignmentSpec(
        resource_id="stack-1", resource_type="stack", user_id=user_id, team_id=team_id, role="admin"
    )
    with pytest.raises(MutualExclusionError) as exc_info:
        validate(EntityKind.ROLE_ASSIGNMENT, spec)
    assert exc_info.value.fields == ("user_id", "team_id")
    assert "user_id" in str(exc_info.value)
    assert "team_id" in str(exc_info.value)


def test_role_assignment_unknown_resource_type() -> None:
    spec = RoleAssignmentSpec(resource_id="c1", resource_type="component", user_id="u1", role="admin")
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.ROLE_ASSIGNMENT, spec)
    assert exc_info.value.field == "resource_type"


def test_require_exactly_one_is_generic() -> None:
    class Subject(BaseModel):
        left: str | None = None
        right: str | None = None

    require_exactly_one(Subject(left="a"), "left", "right")
    with pytest.raises(MutualExclusionError) as exc_info:
        require_exactly_one(Subject(), "left", "right")
    assert exc_info.value.field == "left/right"


# ---------------------------------------------------------------------------
# Stacks and teams
# ---------------------------------------------------------------------------


def test_stack_component_keys_must_be_component_types() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate(EntityKind.STACK, StackSpec(name="s", components={"bogus": "c1"}))
    assert exc_info.value.field == "components.bogus"


def test_stack_component_ids_must_be_non_empty() -> None:
    assert check(EntityKind.STACK, StackSpec(name="s", components={"orchestrator": ""})) is not None
    assert check(EntityKind.STACK, StackSpec(name="s", components={"orchestrator": "c1"})) is None


def test_team_members_must_be_non_empty() -> None:
    assert check(EntityKind.TEAM, TeamSpec(name="t", members={""})) is not None
