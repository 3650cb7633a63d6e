"""Role assignment reconciler.

Every field of a role assignment is fixed at creation, so any difference is
reported as ``ImmutableFieldError`` and an update call is never made.
"""

from __future__ import annotations

from types import MappingProxyType

from zenstate.engine.diff import ROLE_ASSIGNMENT_DIFF
from zenstate.engine.models.entities import RoleAssignment, RoleAssignmentSpec
from zenstate.engine.models.enums import EntityKind, RoleResourceType, SubjectKind
from zenstate.engine.reconcilers.base import Reconciler

RESOURCE_KINDS = MappingProxyType({
    RoleResourceType.PROJECT: EntityKind.PROJECT,
    RoleResourceType.STACK: EntityKind.STACK,
    RoleResourceType.WORKSPACE: EntityKind.WORKSPACE,
})

SUBJECT_KINDS = MappingProxyType({
    SubjectKind.USER: EntityKind.USER,
    SubjectKind.TEAM: EntityKind.TEAM,
})


class RoleAssignmentReconciler(Reconciler[RoleAssignmentSpec, RoleAssignment]):
    kind = EntityKind.ROLE_ASSIGNMENT
    spec_model = RoleAssignmentSpec
    entity_model = RoleAssignment
    diff_spec = ROLE_ASSIGNMENT_DIFF

    async def resolve_references(self, spec: RoleAssignmentSpec, entity_id: str | None = None) -> None:
        resource_kind = RESOURCE_KINDS[RoleResourceType(spec.resource_type)]
        await self._require(resource_kind, spec.resource_id, "resource_id", entity_id=entity_id)
        subject = spec.subject_kind
        if subject is not None:
            field_name = f"{subject}_id"
            await self._require(SUBJECT_KINDS[subject], getattr(spec, field_name), field_name, entity_id=entity_id)

    async def lookup(self, name: str, workspace_id: str | None = None) -> RoleAssignment | None:
        msg = "Role assignments have no name; use find() with resource_id/user/team filters"
        raise TypeError(msg)
