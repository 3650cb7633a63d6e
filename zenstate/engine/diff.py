"""Diff engine: last-known remote state versus desired state.

Each entity type declares a ``DiffSpec`` listing which fields are compared
and how.  ``compute_diff`` yields a ``ChangeSet``: the fields an update call
must send, plus the immutable fields that differ (which can only be fixed by
replacing the resource, so they never reach ``changes``).

Map and set fields compare as whole values.  The update call always sends
them in full and the server replaces them atomically.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, SecretStr

from zenstate.engine.models.enums import EntityKind


@dataclass(frozen=True)
class DiffSpec:
    """Field classification for one entity type.

    ``defaulted`` fields are filled in by the server when left unset, so an
    unset desired value never counts as a difference.  ``write_only`` fields
    are never returned by the server and compare by digest.
    """

    kind: EntityKind
    mutable: tuple[str, ...] = ()
    immutable: tuple[str, ...] = ()
    write_only: tuple[str, ...] = ()
    defaulted: frozenset[str] = frozenset()

    @property
    def compared(self) -> tuple[str, ...]:
        return self.mutable + self.immutable


@dataclass(frozen=True)
class ChangeSet:
    """Minimal set of field differences.  Falsy when nothing is to be sent."""

    changes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    replace: frozenset[str] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.changes)

    @property
    def fields(self) -> list[str]:
        return sorted(self.changes)

    def payload(self) -> dict[str, Any]:
        return to_payload(self.changes)


# -- Per-entity field classification ----------------------------------------

WORKSPACE_DIFF = DiffSpec(
    EntityKind.WORKSPACE,
    mutable=("name", "display_name", "description", "tags", "metadata"),
    immutable=("is_managed",),
    defaulted=frozenset({"display_name"}),
)

PROJECT_DIFF = DiffSpec(
    EntityKind.PROJECT,
    mutable=("name", "display_name", "description", "tags", "metadata"),
    immutable=("workspace_id",),
    defaulted=frozenset({"workspace_id", "display_name"}),
)

COMPONENT_DIFF = DiffSpec(
    EntityKind.COMPONENT,
    mutable=("name", "flavor", "configuration", "connector", "connector_resource_id", "labels"),
    immutable=("type", "workspace_id"),
    defaulted=frozenset({"workspace_id"}),
)

STACK_DIFF = DiffSpec(
    EntityKind.STACK,
    mutable=("name", "components", "labels"),
    immutable=("workspace_id",),
    defaulted=frozenset({"workspace_id"}),
)

CONNECTOR_DIFF = DiffSpec(
    EntityKind.SERVICE_CONNECTOR,
    mutable=("name", "resource_types", "configuration", "labels", "expires_at"),
    immutable=("type", "auth_method", "resource_id", "workspace_id"),
    write_only=("secrets",),
    defaulted=frozenset({"workspace_id", "resource_id", "expires_at"}),
)

TEAM_DIFF = DiffSpec(
    EntityKind.TEAM,
    mutable=("name", "description", "members"),
)

ROLE_ASSIGNMENT_DIFF = DiffSpec(
    EntityKind.ROLE_ASSIGNMENT,
    immutable=("resource_id", "resource_type", "user_id", "team_id", "role"),
)

DIFF_SPECS: Mapping[EntityKind, DiffSpec] = MappingProxyType({
    spec.kind: spec
    for spec in (
        WORKSPACE_DIFF,
        PROJECT_DIFF,
        COMPONENT_DIFF,
        STACK_DIFF,
        CONNECTOR_DIFF,
        TEAM_DIFF,
        ROLE_ASSIGNMENT_DIFF,
    )
})


# -- Comparison --------------------------------------------------------------


def normalize(value: Any) -> Any:
    """Canonical form for comparison: empty collections and ``""`` equal ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, (set, frozenset, list, tuple)):
        return frozenset(value) or None
    if isinstance(value, Mapping):
        return dict(value) or None
    return value


def secrets_digest(secrets: Mapping[str, SecretStr | str] | None) -> str | None:
    """SHA-256 over the sorted secret items, or ``None`` when there are none.

    The digest is the only trace of a secret the engine keeps after sending it.
    """
    if not secrets:
        return None
    plain = {key: _plain(value) for key, value in secrets.items()}
    encoded = json.dumps(plain, sort_keys=True, separators=(",", ":")).encode()
    return hashlib.sha256(encoded).hexdigest()


def _current_digest(current: BaseModel, prior_digest: str | None) -> str | None:
    if prior_digest is not None:
        return prior_digest
    # Comparing two desired states: digest the other side's plaintext.
    secrets = getattr(current, "secrets", None)
    if isinstance(secrets, Mapping):
        return secrets_digest(secrets)
    return getattr(current, "secrets_digest", None)


def compute_diff(
    spec: DiffSpec,
    current: BaseModel,
    desired: BaseModel,
    *,
    prior_digest: str | None = None,
) -> ChangeSet:
    """Compare *desired* against *current*, field by field.

    *current* is normally a canonical record but may be another desired
    state.  ``compute_diff(spec, s, s)`` is always empty.
    """
    changes: dict[str, Any] = {}
    replace: set[str] = set()

    for name in spec.compared:
        wanted = getattr(desired, name, None)
        if wanted is None and name in spec.defaulted:
            continue
        if normalize(getattr(current, name, None)) == normalize(wanted):
            continue
        if name in spec.immutable:
            replace.add(name)
        else:
            changes[name] = wanted

    for name in spec.write_only:
        wanted = getattr(desired, name, None)
        if secrets_digest(wanted) != _current_digest(current, prior_digest):
            changes[name] = wanted or {}

    return ChangeSet(changes=MappingProxyType(changes), replace=frozenset(replace))


# -- Wire rendering ----------------------------------------------------------


def _plain(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def to_payload(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Render a change map as JSON-ready data.

    Sets become sorted lists and secrets are unwrapped, so call this only at
    send time and never log the result.
    """
    return {name: _plain(value) for name, value in changes.items()}
