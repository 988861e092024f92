"""Main CLI entry point for the repository migration tool."""

import sys
import asyncio
from typing import Optional
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from .. import __version__
from ..api.client import HostClientFactory
from ..config.config import Config, create_config_template
from ..exceptions import MigrationError
from ..migration.orchestrator import MigrationOrchestrator
from ..models.migration import MigrationRecord, MigrationStatus
from ..models.repository import parse_target_location
from ..security.credentials import CredentialUnwrapper
from ..storage import InMemoryMigrationStore, JsonFileMigrationStore, MigrationStore
from ..utils.logging import setup_logging

console = Console()

STATUS_STYLES = {
    MigrationStatus.PENDING: 'yellow',
    MigrationStatus.IN_PROGRESS: 'blue',
    MigrationStatus.COMPLETED: 'green',
    MigrationStatus.FAILED: 'red',
    MigrationStatus.CANCELLED: 'magenta',
}

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.repo-migrate.yaml']


@click.group()
@click.version_option(version=__version__, prog_name='repo-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Repository Migration Tool - mirror Azure DevOps repositories to GitHub."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Repository Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        create_config_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(
        f'[yellow]Please edit {output} with your Azure DevOps and GitHub details[/yellow]'
    )


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the source and target host tokens."""
    console.print(
        Panel.fit(
            '[bold cyan]Repository Migration Tool[/bold cyan]\nValidating tokens...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        with HostClientFactory.create_source_client(config.source) as source:
            source_ok = source.validate_token()
        _print_check(source_ok, f'Azure DevOps organization {config.source.organization}')

        with HostClientFactory.create_target_client(config.target) as target:
            user = target.get_user()
        _print_check(True, f'GitHub user {user.login}')

    except (MigrationError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    if not source_ok:
        sys.exit(1)


@cli.command()
@click.option('--project', '-p', default=None, help='Only list this project')
@click.pass_context
def repositories(ctx: click.Context, project: Optional[str]) -> None:
    """List source repositories."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        with HostClientFactory.create_source_client(config.source) as client:
            items = client.list_repositories(project)

    except (MigrationError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]✗[/red] Failed to list repositories: {e}')
        sys.exit(1)

    table = Table(title=f'Azure DevOps repositories ({config.source.organization})')
    table.add_column('ID', style='cyan')
    table.add_column('Project', style='blue')
    table.add_column('Name', style='green')
    table.add_column('Size', justify='right')

    for repository in items:
        table.add_row(
            repository.id,
            repository.project.name if repository.project else '',
            repository.name,
            str(repository.size or 0),
        )

    console.print(table)


@cli.command()
@click.pass_context
def organizations(ctx: click.Context) -> None:
    """List target organizations of the authenticated GitHub user."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        with HostClientFactory.create_target_client(config.target) as client:
            user = client.get_user()
            items = client.list_organizations()

    except (MigrationError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]✗[/red] Failed to list organizations: {e}')
        sys.exit(1)

    table = Table(title=f'GitHub namespaces for {user.login}')
    table.add_column('Login', style='cyan')
    table.add_column('Description', style='green')

    table.add_row(user.login, '(personal account)')
    for organization in items:
        table.add_row(organization.login, organization.description or '')

    console.print(table)


@cli.command()
@click.option('--repository-id', default=None, help='Source repository ID')
@click.option('--source-url', default=None, help='Source repository clone URL')
@click.option(
    '--target', '-t', required=True, help='Target owner, or owner/name'
)
@click.option(
    '--private/--public',
    default=None,
    help='Target repository visibility (defaults to configuration)',
)
@click.option(
    '--poll-interval',
    default=0.5,
    type=float,
    show_default=True,
    help='Seconds between status polls',
)
@click.pass_context
def migrate(
    ctx: click.Context,
    repository_id: Optional[str],
    source_url: Optional[str],
    target: str,
    private: Optional[bool],
    poll_interval: float,
) -> None:
    """Mirror one repository to GitHub."""
    if bool(repository_id) == bool(source_url):
        raise click.UsageError('Give exactly one of --repository-id or --source-url')

    console.print(
        Panel.fit(
            '[bold blue]Repository Migration Tool[/bold blue]\n'
            'Starting migration...',
            border_style='blue',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        record = asyncio.run(
            _run_migration(
                config, repository_id, source_url, target, private, poll_interval
            )
        )

    except (MigrationError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    _display_record(record)

    if record.status != MigrationStatus.COMPLETED:
        sys.exit(1)


@cli.command()
@click.argument('migration_id', type=int, required=False)
@click.pass_context
def status(ctx: click.Context, migration_id: Optional[int]) -> None:
    """Show recorded migrations."""
    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        store = _create_store(config)
        if migration_id is not None:
            record = asyncio.run(store.get(migration_id))
            if record is None:
                console.print(f'[red]✗[/red] Migration not found: {migration_id}')
                sys.exit(1)
            _display_record(record)
            return

        records = asyncio.run(store.list())

    except (MigrationError, FileNotFoundError, ValueError) as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        sys.exit(1)

    if not records:
        console.print('[yellow]No migrations recorded[/yellow]')
        if config.storage.backend == 'memory':
            console.print(
                '[yellow]The memory store does not keep records between runs; '
                'configure the json storage backend[/yellow]'
            )
        return

    table = Table(title='Migrations')
    table.add_column('ID', style='cyan', justify='right')
    table.add_column('Source', style='blue')
    table.add_column('Target', style='green')
    table.add_column('Status')
    table.add_column('Progress', justify='right')
    table.add_column('Error', style='red')

    for record in records:
        style = STATUS_STYLES[record.status]
        table.add_row(
            str(record.id),
            record.source_location,
            record.target_location,
            f'[{style}]{record.status.value}[/{style}]',
            f'{record.progress}%',
            record.error or '',
        )

    console.print(table)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    try:
        return Config.from_env()
    except ValueError:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"repo-migrate init" to create one.'
        ) from None


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    log_level = 'DEBUG' if ctx.obj.get('verbose') else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _create_store(config: Config) -> MigrationStore:
    if config.storage.backend == 'json':
        return JsonFileMigrationStore(config.storage.path)
    return InMemoryMigrationStore()


def _create_unwrapper(config: Config) -> CredentialUnwrapper:
    key = config.security.encryption_key
    if not key:
        logger.warning(
            'No encryption key configured; using a key that lives only for this run'
        )
        key = CredentialUnwrapper.generate_key()
    return CredentialUnwrapper(key)


async def _run_migration(
    config: Config,
    repository_id: Optional[str],
    source_url: Optional[str],
    target: str,
    private: Optional[bool],
    poll_interval: float,
) -> MigrationRecord:
    """Submit one migration and poll its record until it is terminal."""
    orchestrator = MigrationOrchestrator(
        config, store=_create_store(config), unwrapper=_create_unwrapper(config)
    )

    try:
        owner, name = parse_target_location(target)

        if repository_id:
            with HostClientFactory.create_source_client(config.source) as client:
                repository = client.get_repository(repository_id)

        if repository_id and name is None:
            record = await orchestrator.submit_source_repository(
                repository, owner, private=private
            )
        else:
            record = await orchestrator.submit(
                orchestrator.build_request(
                    repository.remote_url if repository_id else source_url,
                    target,
                    config.source.token,
                    config.target.token,
                    private=private,
                )
            )

        console.print(
            f'[blue]Migration {record.id}:[/blue] '
            f'{record.source_location} -> {record.target_location}'
        )

        with Progress(
            SpinnerColumn(),
            TextColumn('[progress.description]{task.description}'),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(f'Migration {record.id} pending', total=100)

            while True:
                record = await orchestrator.wait(record.id, timeout=poll_interval)
                style = STATUS_STYLES[record.status]
                progress.update(
                    task,
                    completed=record.progress,
                    description=f'[{style}]Migration {record.id} {record.status.value}',
                )
                if record.is_terminal or not orchestrator.is_running(record.id):
                    break

        return record

    finally:
        await orchestrator.shutdown()


def _display_record(record: MigrationRecord) -> None:
    """Display one migration record."""
    table = Table(title=f'Migration {record.id}')
    table.add_column('Field', style='cyan')
    table.add_column('Value', style='green')

    for key, value in record.to_public_dict().items():
        table.add_row(key, '' if value is None else str(value))

    console.print(table)

    if record.status == MigrationStatus.COMPLETED:
        console.print('[green]✓[/green] Migration completed successfully')
    elif record.status == MigrationStatus.FAILED:
        console.print(f'[red]✗[/red] Migration failed: {record.error}')
    elif record.status == MigrationStatus.CANCELLED:
        console.print('[magenta]Migration cancelled[/magenta]')


def _print_check(ok: bool, label: str) -> None:
    if ok:
        console.print(f'[green]✓[/green] {label}')
    else:
        console.print(f'[red]✗[/red] {label}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
