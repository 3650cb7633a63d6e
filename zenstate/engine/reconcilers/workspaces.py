"""Workspace reconciler."""

from __future__ import annotations

from zenstate.engine.diff import WORKSPACE_DIFF
from zenstate.engine.models.entities import Workspace, WorkspaceSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


class WorkspaceReconciler(Reconciler[WorkspaceSpec, Workspace]):
    """Workspaces are top-level and reference nothing.

    ``is_managed`` is fixed at creation.  ``server_url`` stays empty until the
    server reports the workspace as available.
    """

    kind = EntityKind.WORKSPACE
    spec_model = WorkspaceSpec
    entity_model = Workspace
    diff_spec = WORKSPACE_DIFF
