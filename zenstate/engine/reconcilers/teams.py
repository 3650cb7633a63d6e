"""Team reconciler.

Membership is not part of the team's own update call: each added or removed
user is a separate membership call.  Those calls are best effort.  Every one
is attempted, failures are collected, and a ``TeamMembershipError`` lists them
all once the rest have gone through.  No rollback is attempted; the next pass
computes the remaining difference and converges.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from zenstate.engine.diff import TEAM_DIFF, ChangeSet
from zenstate.engine.errors import ReconcileError, RemoteStoreError, TeamMembershipError
from zenstate.engine.models.entities import Team, TeamSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


class TeamReconciler(Reconciler[TeamSpec, Team]):
    kind = EntityKind.TEAM
    spec_model = TeamSpec
    entity_model = Team
    diff_spec = TEAM_DIFF

    async def resolve_references(self, spec: TeamSpec, entity_id: str | None = None) -> None:
        for user_id in sorted(spec.members):
            await self._require(EntityKind.USER, user_id, "members", entity_id=entity_id)

    def create_payload(self, spec: TeamSpec) -> dict[str, Any]:
        payload = super().create_payload(spec)
        payload.pop("members", None)
        return payload

    def update_payload(self, changes: ChangeSet, spec: TeamSpec) -> dict[str, Any]:
        payload = changes.payload()
        payload.pop("members", None)
        return payload

    async def sync_extras(self, entity_id: str, spec: TeamSpec, current: Team | None) -> None:
        existing = current.members if current is not None else frozenset()
        to_add = sorted(spec.members - existing)
        to_remove = sorted(existing - spec.members)
        if not to_add and not to_remove:
            return

        logger.info("Team '{}': adding {} member(s), removing {}", entity_id, len(to_add), len(to_remove))
        failures: list[tuple[str, str, Exception]] = []
        for op, user_ids, call in (
            ("add", to_add, self.store.add_team_member),
            ("remove", to_remove, self.store.remove_team_member),
        ):
            for user_id in user_ids:
                try:
                    await self._call(call, entity_id, user_id, entity_id=entity_id)
                except (ReconcileError, RemoteStoreError) as exc:
                    logger.warning("Team '{}': {} member {} failed: {}", entity_id, op, user_id, exc)
                    failures.append((op, user_id, exc))

        if failures:
            entity = await self._read(entity_id)
            raise TeamMembershipError(failures, entity_id=entity_id, entity=entity)
