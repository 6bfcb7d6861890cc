"""Confluent Cloud provider CLI (ccloud).

Drives single resources through the reconcilers without a planner or state
store: each command imports or declares one object, runs one lifecycle
operation and prints the resulting state as YAML.

Usage:
    ccloud login                                      # Check credentials
    ccloud environments                               # List environments
    ccloud create connector -f connector.yaml         # Create from a declaration
    ccloud show connector env-1/lkc-1/my-connector    # Import + read
    ccloud diff connector env-1/lkc-1/my-connector -f connector.yaml
    ccloud apply connector env-1/lkc-1/my-connector -f connector.yaml
    ccloud delete connector env-1/lkc-1/my-connector
    ccloud lookup environment prod                    # Data source by name
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
import yaml

from .config import ConfigurationError, ProviderConfig
from .errors import CCloudError, NotFoundError
from .logging_setup import setup_logging
from .provider import DATA_SOURCES, RESOURCES, Provider
from .reconciler import ResourceData

ENV_LOG_LEVEL = "CCLOUD_LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

ProviderFactory = Callable[[], Provider]


def default_provider_factory() -> Provider:
    return Provider(ProviderConfig.from_env())


@contextmanager
def provider_from(ctx: click.Context) -> Iterator[Provider]:
    """Build the provider for a command and map failures to click errors."""
    factory: ProviderFactory = ctx.obj.get("provider_factory", default_provider_factory)
    try:
        with factory() as provider:
            yield provider
    except NotFoundError as e:
        raise click.ClickException(f"Not found: {e}") from e
    except (CCloudError, ConfigurationError, ValueError) as e:
        raise click.ClickException(str(e)) from e


def load_declaration(path: Path) -> dict[str, Any]:
    """Load a YAML resource declaration.

    Raises:
        click.ClickException: If the file is not a YAML mapping.
    """
    try:
        content = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(content, dict):
        raise click.ClickException(f"{path} must contain a mapping of resource fields")
    return content


def echo_state(data: ResourceData) -> None:
    click.echo(yaml.safe_dump(data.to_dict(), sort_keys=False), nl=False)


declaration_option = click.option(
    "--file",
    "-f",
    "declaration_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with the declared resource fields",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="ccloud")
@click.option(
    "--log-level",
    envvar=ENV_LOG_LEVEL,
    default="INFO",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level",
)
@click.option("--json-logs/--no-json-logs", default=False, help="Emit JSON log lines")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """Confluent Cloud provider CLI (ccloud).

    Credentials come from CONFLUENT_CLOUD_USERNAME / CONFLUENT_CLOUD_PASSWORD
    and CONFLUENT_CLOUD_API_KEY / CONFLUENT_CLOUD_API_SECRET.

    \b
    Resource kinds:
        environment, connector, kafka_cluster, api_key,
        schema_registry, service_account
    """
    setup_logging(log_level, json_output=json_logs)
    ctx.ensure_object(dict)


# =============================================================================
# Session
# =============================================================================


@cli.command()
@click.pass_context
def login(ctx: click.Context) -> None:
    """Log in and print the organization ID."""
    with provider_from(ctx) as provider:
        me = provider.configure().client.me()
    click.echo(f"Logged in as {me.email or me.user_id} (organization {me.organization_id})")


@cli.command()
@click.pass_context
def environments(ctx: click.Context) -> None:
    """List environments."""
    with provider_from(ctx) as provider:
        envs = provider.configure().client.list_environments()
    for env in envs:
        click.echo(f"{env.id}\t{env.name}")


# =============================================================================
# Lifecycle Commands
# =============================================================================


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCES)))
@declaration_option
@click.pass_context
def create(ctx: click.Context, kind: str, declaration_file: Path) -> None:
    """Create a resource from a declaration."""
    declared = load_declaration(declaration_file)
    with provider_from(ctx) as provider:
        data = ResourceData(values=dict(declared))
        provider.resource(kind).create(data)
    echo_state(data)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCES)))
@click.argument("import_key")
@click.pass_context
def show(ctx: click.Context, kind: str, import_key: str) -> None:
    """Import a resource by key and print its current state."""
    with provider_from(ctx) as provider:
        reconciler = provider.resource(kind)
        data = reconciler.import_state(import_key)
        reconciler.read(data)
    echo_state(data)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCES)))
@click.argument("import_key")
@declaration_option
@click.pass_context
def diff(ctx: click.Context, kind: str, import_key: str, declaration_file: Path) -> None:
    """Show significant differences between a resource and its declaration."""
    declared = load_declaration(declaration_file)
    with provider_from(ctx) as provider:
        reconciler = provider.resource(kind)
        data = reconciler.import_state(import_key)
        reconciler.read(data)
        differences = reconciler.diff(data, declared)
        replace = reconciler.requires_replacement(differences)

    if not differences:
        click.echo("No changes")
        return
    for d in differences:
        click.echo(f"~ {d.key}: {d.old!r} -> {d.new!r}")
    if replace:
        click.echo("Changes require replacement")


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCES)))
@click.argument("import_key")
@declaration_option
@click.pass_context
def apply(ctx: click.Context, kind: str, import_key: str, declaration_file: Path) -> None:
    """Update a resource in place when it has drifted from its declaration."""
    declared = load_declaration(declaration_file)
    with provider_from(ctx) as provider:
        reconciler = provider.resource(kind)
        data = reconciler.import_state(import_key)
        reconciler.read(data)
        differences = reconciler.diff(data, declared)
        if not differences:
            click.echo("No changes")
            return
        if reconciler.requires_replacement(differences):
            changed = ", ".join(d.key for d in differences)
            raise click.ClickException(
                f"Changes require replacement ({changed}); delete and create instead"
            )
        data.values.update(declared)
        reconciler.update(data)
    echo_state(data)


@cli.command()
@click.argument("kind", type=click.Choice(sorted(RESOURCES)))
@click.argument("import_key")
@click.pass_context
def delete(ctx: click.Context, kind: str, import_key: str) -> None:
    """Delete a resource identified by its import key."""
    with provider_from(ctx) as provider:
        reconciler = provider.resource(kind)
        reconciler.delete(reconciler.import_state(import_key))
    click.echo(f"Deleted {kind} {import_key}")


@cli.command()
@click.argument("kind", type=click.Choice(sorted(DATA_SOURCES)))
@click.argument("name")
@click.pass_context
def lookup(ctx: click.Context, kind: str, name: str) -> None:
    """Look up an existing object by name."""
    with provider_from(ctx) as provider:
        data = provider.data_source(kind).read(name)
    echo_state(data)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
