"""Stack component reconciler."""

from __future__ import annotations

from zenstate.engine.diff import COMPONENT_DIFF
from zenstate.engine.models.entities import StackComponent, StackComponentSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


class ComponentReconciler(Reconciler[StackComponentSpec, StackComponent]):
    """Components are updated in place; only ``type`` and the workspace are fixed."""

    kind = EntityKind.COMPONENT
    spec_model = StackComponentSpec
    entity_model = StackComponent
    diff_spec = COMPONENT_DIFF

    async def resolve_references(self, spec: StackComponentSpec, entity_id: str | None = None) -> None:
        if spec.workspace_id:
            await self._require(EntityKind.WORKSPACE, spec.workspace_id, "workspace_id", entity_id=entity_id)
        if spec.connector:
            await self._require(EntityKind.SERVICE_CONNECTOR, spec.connector, "connector", entity_id=entity_id)
