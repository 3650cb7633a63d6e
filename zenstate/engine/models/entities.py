"""Entity data models.

Every entity type has two models:

- a **spec** (``WorkspaceSpec``, ``StackSpec``, ...) holding the desired state
  an operator declares.  Specs forbid unknown fields so a typo in a
  declaration never silently reaches the server.
- a **canonical** record (``Workspace``, ``Stack``, ...) parsed from the
  server's response.  The server wraps most fields in a ``body`` / ``metadata``
  envelope and embeds referenced entities as objects; canonical models accept
  both that shape and a flat one, and reduce references to ids.

Shared field names between a spec and its canonical record are what the diff
engine compares, so keep them aligned.
"""

from __future__ import annotations

from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
    field_validator,
    model_validator,
)

from zenstate.engine.models.enums import SubjectKind, WorkspaceStatus

# Embedded objects the server returns where the engine only needs the id.
_REFERENCE_KEYS = ("workspace", "connector", "user", "team", "project")


def _ref_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("id")
    return value


def _tag_names(value: Any) -> Any:
    # Tags come back either as plain names or as tag objects.
    if value is None:
        return frozenset()
    if isinstance(value, list):
        return [t.get("name") if isinstance(t, dict) else t for t in value]
    return value


class RemoteEntity(BaseModel):
    """Base for canonical records read back from the server."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str

    @model_validator(mode="before")
    @classmethod
    def _flatten_envelope(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        flat = dict(data)
        # The envelope form always carries ``body``; a flat payload may own a
        # user-level ``metadata`` map (projects) that must not be unpacked.
        if isinstance(flat.get("body"), dict):
            body = flat.pop("body")
            envelope_meta = flat.pop("metadata", None) or {}
            for section in (body, envelope_meta):
                for key, value in section.items():
                    flat.setdefault(key, value)
        for key in _REFERENCE_KEYS:
            if key in flat:
                flat[key] = _ref_id(flat[key])
        return flat


class _Spec(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceSpec(_Spec):
    """Desired state of a workspace."""

    name: str = Field(min_length=1)
    display_name: str | None = None
    description: str | None = None
    is_managed: bool = True
    tags: frozenset[str] = frozenset()
    metadata: dict[str, str] = Field(default_factory=dict)


class Workspace(RemoteEntity):
    """Workspace as stored by the server.

    ``server_url`` is only meaningful once the underlying service has been
    provisioned; it is cleared for any other status.
    """

    name: str
    display_name: str | None = None
    description: str | None = None
    is_managed: bool = True
    tags: frozenset[str] = frozenset()
    metadata: dict[str, str] = Field(default_factory=dict)
    status: str = WorkspaceStatus.PENDING
    server_url: str | None = Field(default=None, validation_alias=AliasChoices("server_url", "url"))

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _tag_names(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @model_validator(mode="after")
    def _derive_server_url(self) -> Workspace:
        if self.status != WorkspaceStatus.AVAILABLE:
            self.server_url = None
        return self


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class ProjectSpec(_Spec):
    name: str = Field(min_length=1)
    workspace_id: str | None = None
    display_name: str | None = None
    description: str | None = None
    tags: frozenset[str] = frozenset()
    metadata: dict[str, str] = Field(default_factory=dict)


class Project(RemoteEntity):
    name: str
    workspace_id: str | None = Field(default=None, validation_alias=AliasChoices("workspace_id", "workspace"))
    display_name: str | None = None
    description: str | None = None
    tags: frozenset[str] = frozenset()
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _tag_names(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Stack component
# ---------------------------------------------------------------------------


class StackComponentSpec(_Spec):
    """Desired state of a stack component.

    ``type`` and ``flavor`` are plain strings here; their validity is decided
    by the rule tables, not by the model, so that a bad value surfaces as a
    structured ``ValidationError`` naming the field.
    """

    name: str = Field(min_length=1)
    workspace_id: str | None = None
    type: str
    flavor: str
    configuration: dict[str, Any] = Field(default_factory=dict)
    connector: str | None = None
    connector_resource_id: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class StackComponent(RemoteEntity):
    name: str
    workspace_id: str | None = Field(default=None, validation_alias=AliasChoices("workspace_id", "workspace"))
    type: str
    flavor: str
    configuration: dict[str, Any] = Field(default_factory=dict)
    connector: str | None = None
    connector_resource_id: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("configuration", "labels", mode="before")
    @classmethod
    def _null_map(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Stack
# ---------------------------------------------------------------------------


class StackSpec(_Spec):
    """Desired state of a stack.

    ``components`` maps a component type to the id of the single component of
    that type in the stack.
    """

    name: str = Field(min_length=1)
    workspace_id: str | None = None
    components: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)


class Stack(RemoteEntity):
    name: str
    workspace_id: str | None = Field(default=None, validation_alias=AliasChoices("workspace_id", "workspace"))
    components: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("components", mode="before")
    @classmethod
    def _first_component_per_type(cls, value: Any) -> Any:
        # Wire shape is ``{type: [id | component, ...]}``; the operator-facing
        # view keeps the first entry of each type.
        if not isinstance(value, dict):
            return value
        result: dict[str, str] = {}
        for component_type, entries in value.items():
            if isinstance(entries, list):
                if entries:
                    result[component_type] = _ref_id(entries[0])
            elif entries:
                result[component_type] = _ref_id(entries)
        return result

    @field_validator("labels", mode="before")
    @classmethod
    def _null_labels(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Service connector
# ---------------------------------------------------------------------------


class ServiceConnectorSpec(_Spec):
    """Desired state of a service connector.

    ``secrets`` are write-only: they are sent to the server, never read back,
    and never logged.  ``verify`` asks the server to check the configuration
    before it is saved.
    """

    name: str
    workspace_id: str | None = None
    type: str
    auth_method: str
    resource_types: frozenset[str] = frozenset()
    resource_id: str | None = None
    configuration: dict[str, Any] = Field(default_factory=dict)
    secrets: dict[str, SecretStr] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    expires_at: str | None = None
    verify: bool = False


class ServiceConnector(RemoteEntity):
    name: str
    workspace_id: str | None = Field(default=None, validation_alias=AliasChoices("workspace_id", "workspace"))
    type: str = Field(validation_alias=AliasChoices("type", "connector_type"))
    auth_method: str
    resource_types: frozenset[str] = frozenset()
    resource_id: str | None = None
    configuration: dict[str, Any] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    secret_id: str | None = None
    expires_at: str | None = None
    secrets_digest: str | None = None
    """Digest of the secrets last sent by this engine; never populated by the server."""

    @field_validator("type", mode="before")
    @classmethod
    def _connector_type_name(cls, value: Any) -> Any:
        # Older servers embed the full connector type model.
        if isinstance(value, dict):
            return value.get("connector_type")
        return value

    @field_validator("configuration", "labels", mode="before")
    @classmethod
    def _null_map(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Team
# ---------------------------------------------------------------------------


class TeamSpec(_Spec):
    name: str = Field(min_length=1)
    description: str | None = None
    members: frozenset[str] = Field(default_factory=frozenset, description="User ids")


class Team(RemoteEntity):
    name: str
    description: str | None = None
    members: frozenset[str] = frozenset()

    @field_validator("members", mode="before")
    @classmethod
    def _member_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_ref_id(m) for m in value]
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def member_count(self) -> int:
        return len(self.members)


# ---------------------------------------------------------------------------
# Role assignment
# ---------------------------------------------------------------------------


def _subject_kind(user_id: str | None, team_id: str | None) -> SubjectKind | None:
    if user_id and not team_id:
        return SubjectKind.USER
    if team_id and not user_id:
        return SubjectKind.TEAM
    return None


class RoleAssignmentSpec(_Spec):
    """Binds one subject (a user *or* a team) to a role on one resource."""

    resource_id: str = Field(min_length=1)
    resource_type: str
    user_id: str | None = None
    team_id: str | None = None
    role: str = Field(min_length=1)

    @property
    def subject_kind(self) -> SubjectKind | None:
        """Which of ``user_id`` / ``team_id`` is set; ``None`` unless exactly one is."""
        return _subject_kind(self.user_id, self.team_id)


class RoleAssignment(RemoteEntity):
    resource_id: str
    resource_type: str
    user_id: str | None = Field(default=None, validation_alias=AliasChoices("user_id", "user"))
    team_id: str | None = Field(default=None, validation_alias=AliasChoices("team_id", "team"))
    role: str

    @property
    def subject_kind(self) -> SubjectKind | None:
        return _subject_kind(self.user_id, self.team_id)

    @field_validator("role", mode="before")
    @classmethod
    def _role_name(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("name") or value.get("id")
        return value


# ---------------------------------------------------------------------------
# Read-only
# ---------------------------------------------------------------------------


class User(RemoteEntity):
    name: str
    active: bool = True


class ServerInfo(BaseModel):
    """Global server information."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str | None = None
    version: str
    deployment_type: str | None = None
    auth_scheme: str | None = None
    server_url: str | None = None
    dashboard_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
