"""Provisioner CLI.

Converges Azure resources to YAML documents and keeps their state locally.

Usage:
    provisioner plan storage.yaml             # Show what apply would do
    provisioner apply storage.yaml            # Create or update the resource
    provisioner refresh storage.yaml          # Re-read Azure and report drift
    provisioner destroy storage.yaml          # Delete the resource
    provisioner import StorageAccount /subscriptions/.../storageAccounts/name
    provisioner show storage.yaml             # Print the saved state
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
import yaml
from azure.core.exceptions import AzureError

from .config import VALID_LOG_LEVELS, Config, ConfigurationError
from .errors import PartialApplyError, ProvisioningError
from .main import build_reconciler, setup_logging
from .models import SPEC_CLASSES, ResourceSpec
from .reconciler import PlanAction, ResourceReconciler
from .security import SecretlessViolationError, redact_secrets
from .spec_loader import SpecLoadError, load_resource_spec
from .state import StateStore

SPEC_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn lifecycle failures into CLI errors with a non-zero exit code."""
    try:
        yield
    except PartialApplyError as e:
        raise click.ClickException(
            f"{e} (state saved with groups: {', '.join(e.applied_groups) or 'none'})"
        ) from e
    except (
        ProvisioningError,
        SpecLoadError,
        ConfigurationError,
        SecretlessViolationError,
        AzureError,
    ) as e:
        raise click.ClickException(str(e)) from e


def load_config(log_level: str | None) -> Config:
    """Load configuration from the environment and set up logging.

    Raises:
        click.ClickException: If the configuration is invalid.
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(f"Configuration error: {e}") from e

    setup_logging(getattr(logging, log_level) if log_level else config.log_level_number)
    return config


def make_reconciler(kind: str, config: Config, store: StateStore) -> ResourceReconciler:
    return build_reconciler(kind, config, state_writer=store.save)


def refreshed_prior(
    reconciler: ResourceReconciler, store: StateStore, desired: ResourceSpec
) -> ResourceSpec | None:
    """Load the saved document for ``desired`` and re-read it from Azure."""
    prior = store.load(desired.KIND, desired.resource_group_name, desired.name)
    if prior is None:
        return None
    return reconciler.read(prior)


def describe(document: ResourceSpec, show_secrets: bool = False) -> str:
    """Render a document as YAML, redacting secrets unless asked not to."""
    data = document.model_dump(mode="json")
    if not show_secrets:
        data = redact_secrets(data, document.SECRET_FIELDS)
    return yaml.safe_dump({"kind": document.KIND, **data}, sort_keys=False)


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="provisioner")
@click.option(
    "--log-level",
    type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Azure resource provisioner.

    Reads AZURE_SUBSCRIPTION_ID and the other settings from the environment.
    """
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level.upper() if log_level else None


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
@click.pass_context
def plan(ctx: click.Context, spec_file: Path) -> None:
    """Show what apply would do."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        desired = load_resource_spec(spec_file)
        reconciler = make_reconciler(desired.KIND, config, store)

        result = reconciler.plan(refreshed_prior(reconciler, store, desired), desired)

    click.echo(f"{desired.KIND} '{desired.name}': {result.action.value}")
    if result.groups:
        click.echo(f"  update groups: {', '.join(result.groups)}")
    if result.replace_fields:
        click.echo(f"  forces replacement: {', '.join(result.replace_fields)}")


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
@click.option("--allow-replace", is_flag=True, help="Destroy and recreate when required")
@click.pass_context
def apply(ctx: click.Context, spec_file: Path, allow_replace: bool) -> None:
    """Create or update the resource described by SPEC_FILE."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        desired = load_resource_spec(spec_file)
        reconciler = make_reconciler(desired.KIND, config, store)

        prior = refreshed_prior(reconciler, store, desired)
        planned = reconciler.plan(prior, desired)
        result = reconciler.apply(prior, desired, allow_replace=allow_replace)
        store.save(result)

    if planned.action == PlanAction.NOOP:
        click.echo(f"{desired.KIND} '{desired.name}' is up to date")
    else:
        click.secho(f"✓ {planned.action.value} complete: {result.id}", fg="green")


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
@click.pass_context
def refresh(ctx: click.Context, spec_file: Path) -> None:
    """Re-read the resource from Azure and report drift."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        desired = load_resource_spec(spec_file)
        reconciler = make_reconciler(desired.KIND, config, store)

        current = refreshed_prior(reconciler, store, desired)
        if current is None:
            raise click.ClickException(f"No saved state for {desired.KIND} '{desired.name}'")
        drift = reconciler.plan(current, desired)

    if current.id is None:
        click.secho(f"{desired.KIND} '{desired.name}' no longer exists in Azure", fg="yellow")
    elif drift.has_changes:
        detail = ", ".join(drift.groups or drift.replace_fields)
        click.secho(f"Drift detected ({drift.action.value}): {detail}", fg="yellow")
    else:
        click.echo(f"{desired.KIND} '{desired.name}' matches its document")


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
@click.pass_context
def destroy(ctx: click.Context, spec_file: Path) -> None:
    """Delete the resource described by SPEC_FILE."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        desired = load_resource_spec(spec_file)
        reconciler = make_reconciler(desired.KIND, config, store)

        prior = store.load(desired.KIND, desired.resource_group_name, desired.name)
        if prior is None or not prior.id:
            click.echo(f"{desired.KIND} '{desired.name}' is not managed, nothing to do")
            return
        reconciler.delete(prior)
        store.remove(desired.KIND, desired.resource_group_name, desired.name)

    click.secho(f"✓ Deleted {prior.id}", fg="green")


@cli.command("import")
@click.argument("kind", type=click.Choice(list(SPEC_CLASSES)))
@click.argument("resource_id")
@click.pass_context
def import_(ctx: click.Context, kind: str, resource_id: str) -> None:
    """Adopt an existing resource into the saved state."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        reconciler = make_reconciler(kind, config, store)

        imported = reconciler.import_resource(resource_id)
        path = store.save(imported)

    click.secho(f"✓ Imported {imported.id} into {path}", fg="green")


@cli.command()
@click.argument("spec_file", type=SPEC_FILE)
@click.option("--show-secrets", is_flag=True, help="Print access keys and connection strings")
@click.pass_context
def show(ctx: click.Context, spec_file: Path, show_secrets: bool) -> None:
    """Print the saved state of the resource described by SPEC_FILE."""
    with handle_errors():
        config = load_config(ctx.obj["log_level"])
        store = StateStore(config.state_dir)
        desired = load_resource_spec(spec_file)
        saved = store.load(desired.KIND, desired.resource_group_name, desired.name)

    if saved is None:
        raise click.ClickException(f"No saved state for {desired.KIND} '{desired.name}'")
    click.echo(describe(saved, show_secrets=show_secrets), nl=False)


def main() -> None:
    """Entry point for the ``provisioner`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
