"""Service connector reconciler.

Secrets are write-only.  The server never returns them, so the engine keeps
a SHA-256 digest of what it last sent (``ServiceConnector.secrets_digest``)
and compares desired secrets against that digest.  Plaintext values only
exist in the outgoing payload and are never logged.
"""

from __future__ import annotations

from loguru import logger

from zenstate.engine.diff import CONNECTOR_DIFF, secrets_digest
from zenstate.engine.errors import PermanentFailure
from zenstate.engine.models.entities import ServiceConnector, ServiceConnectorSpec
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers.base import Reconciler


class ConnectorReconciler(Reconciler[ServiceConnectorSpec, ServiceConnector]):
    kind = EntityKind.SERVICE_CONNECTOR
    spec_model = ServiceConnectorSpec
    entity_model = ServiceConnector
    diff_spec = CONNECTOR_DIFF
    local_fields = frozenset({"verify"})

    async def resolve_references(self, spec: ServiceConnectorSpec, entity_id: str | None = None) -> None:
        if spec.workspace_id:
            await self._require(EntityKind.WORKSPACE, spec.workspace_id, "workspace_id", entity_id=entity_id)

    async def before_write(self, spec: ServiceConnectorSpec, entity_id: str | None = None) -> None:
        """With ``verify`` set, ask the server to check the configuration once.

        A rejected configuration is a permanent failure; there is no retry.
        """
        if not spec.verify:
            return
        logger.info("Verifying {} '{}' (auth_method={})", self.kind, spec.name, spec.auth_method)
        error = await self._call(self.store.verify_connector, self.create_payload(spec), entity_id=entity_id)
        if error:
            msg = f"connector verification failed: {error}"
            raise PermanentFailure(msg, kind=self.kind, entity_id=entity_id)

    def finalize(
        self,
        entity: ServiceConnector,
        *,
        spec: ServiceConnectorSpec | None = None,
        prior: ServiceConnector | None = None,
    ) -> ServiceConnector:
        if spec is not None:
            entity.secrets_digest = secrets_digest(spec.secrets)
        elif prior is not None:
            entity.secrets_digest = prior.secrets_digest
        return entity
