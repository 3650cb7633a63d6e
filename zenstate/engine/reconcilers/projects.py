"""Project reconciler."""

from __future__ import annotations

from zenstate.engine.diff import PROJECT_DIFF
from zenstate.engine.models.entities import Project, ProjectSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


class ProjectReconciler(Reconciler[ProjectSpec, Project]):
    kind = EntityKind.PROJECT
    spec_model = ProjectSpec
    entity_model = Project
    diff_spec = PROJECT_DIFF

    async def resolve_references(self, spec: ProjectSpec, entity_id: str | None = None) -> None:
        if spec.workspace_id:
            await self._require(EntityKind.WORKSPACE, spec.workspace_id, "workspace_id", entity_id=entity_id)
