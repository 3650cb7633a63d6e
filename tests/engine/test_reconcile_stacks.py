"""Integration tests for stack reconciliation."""

from __future__ import annotations

import pytest

from zenstate.engine.context import ReconcileContext
from zenstate.engine.errors import UnresolvedReferenceError, ValidationError
from zenstate.engine.models.entities import StackSpec
from zenstate.engine.models.enums import ReconcileState
from zenstate.engine.reconcilers import StackReconciler

pytestmark = pytest.mark.integration


@pytest.fixture
def stacks(context: ReconcileContext) -> StackReconciler:
    return StackReconciler(context)


@pytest.fixture
def component_ids(fake_server) -> dict[str, str]:
    return {
        "orchestrator": fake_server.seed("components", {"name": "orch", "type": "orchestrator", "flavor": "local"}),
        "artifact_store": fake_server.seed(
            "components", {"name": "store", "type": "artifact_store", "flavor": "local", "configuration": {}}
        ),
    }


async def test_nonexistent_component_is_unresolved(stacks: StackReconciler, fake_server) -> None:
    with pytest.raises(UnresolvedReferenceError) as exc_info:
        await stacks.create(StackSpec(name="prod", components={"artifact_store": "nonexistent-id"}))
    assert exc_info.value.field == "components.artifact_store"
    assert exc_info.value.ref_id == "nonexistent-id"
    assert fake_server.writes() == []


async def test_component_type_must_match_key(stacks: StackReconciler, component_ids, fake_server) -> None:
    spec = StackSpec(name="prod", components={"artifact_store": component_ids["orchestrator"]})
    with pytest.raises(ValidationError) as exc_info:
        await stacks.create(spec)
    assert "orchestrator" in exc_info.value.reason
    assert fake_server.writes() == []


async def test_create_and_noop_update(stacks: StackReconciler, component_ids, fake_server) -> None:
    spec = StackSpec(name="prod", components=component_ids, labels={"env": "prod"})
    created = await stacks.create(spec)

    assert created.state == ReconcileState.CREATED
    assert created.entity.components == component_ids
    stored = fake_server.entities["stacks"][created.entity_id]
    assert stored["components"] == {key: [value] for key, value in component_ids.items()}

    fake_server.reset_requests()
    again = await stacks.apply(spec, created.entity_id, prior=created.entity)
    assert again.state == ReconcileState.DIFFED
    assert fake_server.writes() == []


async def test_swap_component(stacks: StackReconciler, component_ids, fake_server) -> None:
    created = await stacks.create(StackSpec(name="prod", components=component_ids))
    other = fake_server.seed("components", {"name": "orch-2", "type": "orchestrator", "flavor": "local_docker"})

    desired = StackSpec(name="prod", components={**component_ids, "orchestrator": other})
    outcome = await stacks.update(created.entity_id, desired)
    assert outcome.state == ReconcileState.UPDATED
    assert outcome.changes.fields == ["components"]
    assert outcome.entity.components["orchestrator"] == other
    assert fake_server.entities["stacks"][created.entity_id]["components"]["orchestrator"] == [other]


async def test_component_objects_are_reduced_to_ids(stacks: StackReconciler, fake_server) -> None:
    stack_id = fake_server.seed(
        "stacks",
        {"name": "legacy", "components": {"orchestrator": [{"id": "c-1", "name": "orch"}, {"id": "c-2"}]}},
    )
    imported = await stacks.import_(stack_id)
    assert imported.entity.components == {"orchestrator": "c-1"}
