"""Stack reconciler.

A stack holds at most one component per type, as a ``{type: component_id}``
map.  The server stores lists per type, so payloads wrap each id in a list.
Every referenced component must already exist with the matching type; the
reconciler never creates components itself.
"""

from __future__ import annotations

from typing import Any

from zenstate.engine.diff import STACK_DIFF, ChangeSet
from zenstate.engine.errors import ValidationError
from zenstate.engine.models.entities import Stack, StackComponent, StackSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


def _wire_components(components: dict[str, str]) -> dict[str, list[str]]:
    return {component_type: [component_id] for component_type, component_id in components.items()}


class StackReconciler(Reconciler[StackSpec, Stack]):
    kind = EntityKind.STACK
    spec_model = StackSpec
    entity_model = Stack
    diff_spec = STACK_DIFF

    async def resolve_references(self, spec: StackSpec, entity_id: str | None = None) -> None:
        if spec.workspace_id:
            await self._require(EntityKind.WORKSPACE, spec.workspace_id, "workspace_id", entity_id=entity_id)
        for component_type, component_id in sorted(spec.components.items()):
            field_name = f"components.{component_type}"
            data = await self._require(EntityKind.COMPONENT, component_id, field_name, entity_id=entity_id)
            component = StackComponent.model_validate(data)
            if component.type != component_type:
                reason = f"component '{component_id}' has type '{component.type}', not '{component_type}'"
                raise ValidationError(field_name, reason, kind=self.kind, entity_id=entity_id)

    def create_payload(self, spec: StackSpec) -> dict[str, Any]:
        payload = super().create_payload(spec)
        payload["components"] = _wire_components(spec.components)
        return payload

    def update_payload(self, changes: ChangeSet, spec: StackSpec) -> dict[str, Any]:
        payload = changes.payload()
        if "components" in payload:
            payload["components"] = _wire_components(spec.components)
        return payload
