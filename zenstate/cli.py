import asyncio
import json
from pathlib import Path

import click
import httpx
import pydantic

from zenstate.engine.models.enums import EntityKind
from zenstate.engine.reconcilers import RECONCILERS

KIND_CHOICE = click.Choice(sorted(kind.value for kind in RECONCILERS), case_sensitive=False)


@click.group()
@click.option("--log-level", default=None, help="Log level (default: from ZENML_LOG_LEVEL or INFO).")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """zenstate - converge ZenML server entities to a declared state."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(ctx: click.Context):
    from zenstate.engine.log import setup_logging
    from zenstate.engine.settings import get_settings

    try:
        settings = get_settings()
    except pydantic.ValidationError as exc:
        msg = f"Invalid configuration: {exc}"
        raise click.ClickException(msg) from None
    setup_logging(ctx.obj.get("log_level") or settings.log_level, serialize=settings.log_json)
    return settings


def _make_store(settings):
    """Build the remote store.  Replaced in tests to route to an in-process server."""
    from zenstate.engine.store import HttpEntityStore

    return HttpEntityStore.from_settings(settings)


def _load_spec(kind: EntityKind, path: Path):
    spec_model = RECONCILERS[kind].spec_model
    try:
        return spec_model.model_validate_json(path.read_text())
    except pydantic.ValidationError as exc:
        msg = f"{path}: {exc}"
        raise click.ClickException(msg) from None


def _load_prior(kind: EntityKind, path: Path):
    """Parse the entity out of a previous command's JSON output.

    Accepts the outcome printed by ``apply``/``import`` or a bare entity.
    """
    entity_model = RECONCILERS[kind].entity_model
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        msg = f"{path}: not valid JSON ({exc})"
        raise click.ClickException(msg) from None
    if isinstance(data, dict) and "state" in data:
        data = data.get("entity")
    if data is None:
        msg = f"{path}: the previous outcome holds no entity"
        raise click.ClickException(msg)
    try:
        return entity_model.model_validate(data)
    except pydantic.ValidationError as exc:
        msg = f"{path}: {exc}"
        raise click.ClickException(msg) from None


def _echo_outcome(outcome) -> None:
    click.echo(
        json.dumps(
            {
                "state": outcome.state,
                "id": outcome.entity_id,
                "forget": outcome.forget,
                "changes": outcome.changes.fields,
                "entity": outcome.entity.model_dump(mode="json") if outcome.entity is not None else None,
            },
            indent=2,
        )
    )


def _run(ctx: click.Context, operation):
    """Run ``operation(context)`` against the configured server and return its result."""
    from zenstate.engine.context import ReconcileContext
    from zenstate.engine.errors import ReconcileError, RemoteStoreError

    settings = _load_settings(ctx)

    async def _main():
        async with _make_store(settings) as store:
            context = ReconcileContext.from_settings(store, settings)
            return await operation(context)

    try:
        return asyncio.run(_main())
    except (ReconcileError, RemoteStoreError) as exc:
        raise click.ClickException(str(exc)) from None
    except httpx.HTTPError as exc:
        msg = f"Cannot reach {settings.server_url}: {exc}"
        raise click.ClickException(msg) from None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(kind: str, file: Path) -> None:
    """Validate a desired-state JSON file locally, without contacting the server."""
    from zenstate.engine.errors import ValidationError
    from zenstate.engine.rules import validate

    spec = _load_spec(EntityKind(kind), file)
    try:
        validate(EntityKind(kind), spec)
    except ValidationError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(json.dumps({"valid": True, "kind": kind}))


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--id", "entity_id", default=None, help="Known id of the entity; omit to create it.")
@click.option(
    "--prior",
    "prior_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Output of the previous apply/import for this entity; supplies the id and the last-sent secrets digest.",
)
@click.pass_context
def apply(ctx: click.Context, kind: str, file: Path, entity_id: str | None, prior_file: Path | None) -> None:
    """Run one reconciliation pass for the entity declared in FILE."""
    from zenstate.engine.reconcilers import reconciler_for

    spec = _load_spec(EntityKind(kind), file)
    prior = _load_prior(EntityKind(kind), prior_file) if prior_file is not None else None
    if entity_id is None and prior is not None:
        entity_id = prior.id

    async def _apply(context):
        return await reconciler_for(EntityKind(kind), context).apply(spec, entity_id, prior)

    _echo_outcome(_run(ctx, _apply))


@main.command("import")
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@click.pass_context
def import_(ctx: click.Context, kind: str, entity_id: str) -> None:
    """Adopt an existing entity by id."""
    from zenstate.engine.reconcilers import reconciler_for

    async def _import(context):
        return await reconciler_for(EntityKind(kind), context).import_(entity_id)

    _echo_outcome(_run(ctx, _import))


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("entity_id")
@click.pass_context
def delete(ctx: click.Context, kind: str, entity_id: str) -> None:
    """Delete an entity.  Succeeds if it is already gone."""
    from zenstate.engine.reconcilers import reconciler_for

    async def _delete(context):
        return await reconciler_for(EntityKind(kind), context).delete(entity_id)

    _echo_outcome(_run(ctx, _delete))


@main.command()
@click.argument("kind", type=KIND_CHOICE)
@click.argument("name")
@click.option("--workspace", "workspace_id", default=None, help="Restrict the lookup to one workspace.")
@click.pass_context
def lookup(ctx: click.Context, kind: str, name: str, workspace_id: str | None) -> None:
    """Find an entity by name."""
    from zenstate.engine.reconcilers import reconciler_for

    async def _lookup(context):
        return await reconciler_for(EntityKind(kind), context).lookup(name, workspace_id)

    try:
        entity = _run(ctx, _lookup)
    except TypeError as exc:
        raise click.ClickException(str(exc)) from None
    if entity is None:
        msg = f"No {kind} named '{name}'"
        raise click.ClickException(msg)
    click.echo(json.dumps(entity.model_dump(mode="json"), indent=2))


@main.command()
@click.pass_context
def server(ctx: click.Context) -> None:
    """Show information about the configured server."""
    from zenstate.engine.models.entities import ServerInfo

    async def _info(context):
        return ServerInfo.model_validate(await context.store.server_info())

    info = _run(ctx, _info)
    click.echo(json.dumps(info.model_dump(mode="json"), indent=2))
