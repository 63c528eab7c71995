"""
Command-line interface for the Bitbucket dependency bumper.
"""

import click
import json
import logging
import sys
from typing import Optional, Dict, Any
from pathlib import Path

import yaml
from dotenv import load_dotenv, find_dotenv

from . import __version__
from .config import ConfigManager, AppConfig, CredentialStore
from .error_handling import DependencyBumperError
from .logging import setup_logging, LoggerConfig
from .models import BatchReport, RepositoryOutcome
from .orchestrator import RunContext, UpdateOrchestrator
from .resolvers import ArgumentParameterResolver, PromptParameterResolver

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = {'secret', 'password', 'app_password'}


@click.group()
@click.version_option(version=__version__, prog_name="bb-ndu")
@click.option(
    '--config', '-c',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to YAML configuration file'
)
@click.option(
    '--verbose', '-v',
    count=True,
    help='Increase verbosity (use -v for debug output)'
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], verbose: int) -> None:
    """
    bb-ndu - bump a dependency version across Bitbucket repositories.

    Finds every repository that has a given branch, updates one dependency
    in its package.json and pushes the change back to that branch.
    """
    ctx.ensure_object(dict)

    # Values already in the environment take precedence over .env
    load_dotenv(find_dotenv(usecwd=True))

    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose


@cli.command()
@click.option('--branch', '-b', help='Branch name to check')
@click.option('--newversion', '-v', 'version', help='Version to update to')
@click.option('--library', '-l', help='Library to update')
@click.option(
    '--no-input',
    is_flag=True,
    default=False,
    help='Fail instead of prompting for missing options'
)
@click.option(
    '--dry-run',
    is_flag=True,
    default=False,
    help='Patch working copies without committing or pushing'
)
@click.pass_context
def update(
    ctx: click.Context,
    branch: Optional[str],
    version: Optional[str],
    library: Optional[str],
    no_input: bool,
    dry_run: bool
) -> None:
    """
    Update a dependency version in every repository that has BRANCH.

    Missing options are asked for interactively unless --no-input is given.

    Examples:

        # Bump libX to 2.0.0 on every repository with a release branch
        bb-ndu update -b release -l libX -v 2.0.0

        # Show what would change without pushing anything
        bb-ndu update -b release -l libX -v 2.0.0 --dry-run
    """
    try:
        config = load_app_config(ctx)

        if no_input:
            resolver = ArgumentParameterResolver(branch=branch, library=library, version=version)
        else:
            resolver = PromptParameterResolver(branch=branch, library=library, version=version)

        context = RunContext.create(config)
        report = UpdateOrchestrator(context).run(resolver, dry_run=dry_run)

    except DependencyBumperError as e:
        click.echo(f"Error: {e.message}", err=True)
        if ctx.obj.get('verbose', 0) > 0:
            click.echo(str(e), err=True)
        sys.exit(1)

    display_results(report)
    sys.exit(1 if report.has_failures else 0)


@cli.command('set-identity')
@click.argument('identity')
@click.pass_context
def set_identity(ctx: click.Context, identity: str) -> None:
    """Set your Bitbucket username."""
    store_credential(ctx, identity=identity)
    click.echo(f"Identity set to: {identity}")


@cli.command('set-secret')
@click.argument('secret')
@click.pass_context
def set_secret(ctx: click.Context, secret: str) -> None:
    """Set your Bitbucket app password."""
    store_credential(ctx, secret=secret)
    click.echo("Secret set.")


@cli.command('set-username', hidden=True)
@click.argument('username')
@click.pass_context
def set_username(ctx: click.Context, username: str) -> None:
    """Alias of set-identity."""
    ctx.invoke(set_identity, identity=username)


@cli.command('set-password', hidden=True)
@click.argument('app_password')
@click.pass_context
def set_password(ctx: click.Context, app_password: str) -> None:
    """Alias of set-secret."""
    ctx.invoke(set_secret, secret=app_password)


@cli.command()
@click.option(
    '--format', '-f',
    type=click.Choice(['table', 'json', 'yaml'], case_sensitive=False),
    default='table',
    help='Output format for configuration display'
)
@click.pass_context
def config(ctx: click.Context, format: str) -> None:
    """
    Display current configuration settings.

    Shows defaults merged with the configuration file and environment
    variables, plus which credentials are stored. Secrets are masked.
    """
    try:
        app_config = load_app_config(ctx)
    except DependencyBumperError as e:
        click.echo(f"Error displaying configuration: {e}", err=True)
        sys.exit(1)

    config_dict = app_config.to_dict()
    credentials = CredentialStore(app_config.credentials.file).load()
    config_dict['credentials'].update({
        'identity': credentials.identity,
        'secret': credentials.secret
    })
    config_dict = mask_sensitive(config_dict)

    if format.lower() == 'json':
        click.echo(json.dumps(config_dict, indent=2, default=str))
    elif format.lower() == 'yaml':
        click.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False))
    else:
        display_config_table(config_dict)


def load_app_config(ctx: click.Context) -> AppConfig:
    """Load configuration for this invocation and set up logging from it."""
    verbose = ctx.obj.get('verbose', 0)
    manager = ConfigManager(ctx.obj.get('config_file'))
    app_config = manager.load_config({
        'logging.level': 'DEBUG' if verbose > 0 else None
    })

    setup_logging(LoggerConfig.from_app_config(app_config.logging))
    return app_config


def store_credential(ctx: click.Context, identity: Optional[str] = None, secret: Optional[str] = None) -> None:
    """Read-modify-write one credential field in the configured credential store."""
    try:
        app_config = load_app_config(ctx)
    except DependencyBumperError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    store = CredentialStore(app_config.credentials.file)
    try:
        store.update(identity=identity, secret=secret)
    except OSError as e:
        click.echo(f"Error: failed to write {store.file_path}: {e}", err=True)
        sys.exit(1)


def mask_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace secret values with a fixed mask."""
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_sensitive(value)
        elif key in SENSITIVE_KEYS and value:
            masked[key] = '*' * 8
        else:
            masked[key] = value
    return masked


def display_results(report: BatchReport) -> None:
    """Display the per-repository results of an update run."""
    params = report.parameters
    click.echo("\n" + "=" * 60)
    click.echo("DEPENDENCY UPDATE RESULTS" + (" (DRY RUN)" if report.dry_run else ""))
    click.echo("=" * 60)
    click.echo(f"Library: {params.library}  Version: {params.version}  Branch: {params.branch}")
    click.echo(f"Repositories processed: {len(report.reports)}")

    labels = {
        RepositoryOutcome.UPDATED: "Updated",
        RepositoryOutcome.NOT_APPLICABLE: "Not applicable",
        RepositoryOutcome.SKIPPED: "Skipped (branch absent)",
        RepositoryOutcome.FAILED: "Failed",
    }
    for outcome, label in labels.items():
        click.echo(f"  {label}: {len(report.by_outcome(outcome))}")

    updated = report.by_outcome(RepositoryOutcome.UPDATED)
    if updated:
        click.echo("\nUpdated repositories:")
        for item in updated:
            click.echo(f"  ✅ {item.repository.full_name} ({item.message})")

    failed = report.by_outcome(RepositoryOutcome.FAILED)
    if failed:
        click.echo("\nFailed repositories:")
        for item in failed:
            click.echo(f"  ❌ {item.repository.full_name}: {item.error}")

    click.echo("=" * 60)


def display_config_table(config_dict: Dict[str, Any]) -> None:
    """Display configuration in table format."""
    click.echo("\nCurrent Configuration:")
    click.echo("-" * 50)

    for section_name, section in config_dict.items():
        click.echo(f"\n[{section_name}]")
        for key, value in section.items():
            click.echo(f"  {key}: {value}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
