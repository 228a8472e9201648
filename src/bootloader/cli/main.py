"""Main CLI entry point."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
from google.cloud import compute_v1
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from bootloader.commands import SSH, CreateLBs, DeleteLBs, FileIO, LBConfig, LBs, RandomPort, SSHCmd, SSHKeyGetter, UpdateLBs
from bootloader.config.models import Settings
from bootloader.config.parser import DEFAULT_CONFIG_FILE, Config, ConfigValidationError
from bootloader.environment import DirectorCloudConfigManager, EnvironmentValidator
from bootloader.leftovers import CleanupLogger, Firewalls, Leftovers, SecurityGroups
from bootloader.orchestrator import LBWorkflow, WorkflowResult
from bootloader.providers import get_provider
from bootloader.state import State, StateStore
from bootloader.terraform import TerraformExecutor, TerraformManager
from bootloader.utils.aws_client import AWSClientManager
from bootloader.utils.errors import BootloaderError, ConfigurationError, error_handler
from bootloader.utils.logging import LogContext, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--state-dir', help='Directory holding bootloader-state.json')
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_FILE, show_default=True, help='Settings file')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']), help='Console log level')
@click.pass_context
def cli(ctx, state_dir, config_path, log_level):
    """Attach, update and remove load balancers of a platform environment."""
    ctx.ensure_object(dict)
    settings = load_settings(config_path, {'state_dir': state_dir, 'log_level': log_level})
    ctx.obj['settings'] = settings

    # Setup logging
    setup_logging(settings.log_level, log_dir=Path(settings.state_dir) / '.bootloader' / 'logs')


def load_settings(config_path: str, overrides: Dict[str, Any]) -> Settings:
    """Load and validate settings, exiting on invalid configuration."""
    try:
        return Config(config_path).load(overrides)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(escape(str(e)))
        sys.exit(1)


def build_executor(settings: Settings) -> TerraformExecutor:
    """Create a terraform executor working under the state directory."""
    return TerraformExecutor(
        binary=settings.terraform.binary,
        template_dir=settings.terraform.template_dir,
        work_dir=str(Path(settings.state_dir) / '.bootloader' / 'terraform'),
        debug=settings.terraform.debug,
    )


def build_workflow(settings: Settings, state: State, store: StateStore) -> LBWorkflow:
    """Create the reconciliation workflow with all dependencies."""
    iaas = state.iaas or settings.iaas
    if not iaas:
        raise ConfigurationError(
            "No IaaS recorded in state or settings",
            suggestions=["Set iaas in bootloader.yaml or BOOTLOADER_IAAS"],
        )

    provider = get_provider(iaas, settings)
    executor = build_executor(settings)
    return LBWorkflow(
        terraform_manager=TerraformManager(executor, provider, settings.terraform.minimum_version),
        cloud_config_manager=DirectorCloudConfigManager(executor.outputs),
        state_store=store,
        environment_validator=EnvironmentValidator(),
        provider=provider,
    )


def build_ssh() -> SSH:
    """Create the ssh command with its system collaborators."""
    return SSH(SSHCmd(), SSHKeyGetter(), FileIO(), RandomPort())


def build_leftovers(settings: Settings, state: Optional[State], cleanup_logger: CleanupLogger) -> Leftovers:
    """Create the cleanup for the environment's IaaS."""
    iaas = (state.iaas if state else "") or settings.iaas

    if iaas == 'gcp':
        project = (state.provider.project_id if state else "") or settings.gcp.project_id
        if not project:
            raise ConfigurationError("No GCP project id; set gcp.project_id in bootloader.yaml")
        if settings.gcp.credentials_file:
            client = compute_v1.FirewallsClient.from_service_account_file(settings.gcp.credentials_file)
        else:
            client = compute_v1.FirewallsClient()
        return Leftovers([Firewalls(client, cleanup_logger, project)])

    if iaas == 'aws':
        region = state.provider.region if state else None
        client_manager = AWSClientManager(profile=settings.aws.profile, region=region or None)
        return Leftovers([SecurityGroups(client_manager.get_client('ec2'), cleanup_logger)])

    raise ConfigurationError(f"leftovers does not support IaaS {iaas!r}")


def report_error(error: BootloaderError) -> None:
    """Print an error; the message is printed exactly as raised."""
    logger.debug(f"Error details: {error.to_dict()}")
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    if error.status is not None:
        console.print(f"[dim]Status: {error.status.value}[/dim]")
    if error.suggestions:
        console.print("\n[yellow]Suggested fixes:[/yellow]")
        for i, suggestion in enumerate(error.suggestions, 1):
            console.print(f"  {i}. {escape(suggestion)}")


def run_locked(settings: Settings, action: Callable[[LBWorkflow, State], WorkflowResult]) -> WorkflowResult:
    """Load state under the state lock and run a workflow action against it."""
    store = StateStore(settings.state_dir)
    try:
        with store:
            state = store.load()
            workflow = build_workflow(settings, state, store)
            return action(workflow, state)
    except BootloaderError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        report_error(error_handler.handle_exception(e))
        sys.exit(1)


def print_result(title: str, result: WorkflowResult) -> None:
    state = result.state
    lines = [
        f"[bold]{escape(title)}[/bold]",
        f"Environment: {escape(state.env_id or '(unnamed)')}",
        f"IaaS: {state.iaas}",
    ]
    if state.lb is not None:
        lines.append(f"Load balancer: {state.lb.type}")
        if state.lb.domain:
            lines.append(f"Domain: {escape(state.lb.domain)}")
    lines.append(f"Status: {result.status.value}")
    console.print(Panel.fit("\n".join(lines), title="Load Balancers", border_style="green"))


@cli.command('create-lbs')
@click.option('--type', 'lb_type', required=True, help='Load balancer type (cf or concourse)')
@click.option('--cert', 'cert_path', default='', help='Path to the SSL certificate')
@click.option('--key', 'key_path', default='', help='Path to the SSL certificate private key')
@click.option('--domain', default='', help='System domain (cf only)')
@click.pass_context
def create_lbs(ctx, lb_type, cert_path, key_path, domain):
    """Attach a load balancer to the environment."""
    config = LBConfig(lb_type=lb_type, cert_path=cert_path, key_path=key_path, domain=domain)

    def action(workflow: LBWorkflow, state: State) -> WorkflowResult:
        command = CreateLBs(workflow)
        with LogContext(operation='create-lbs'):
            command.check_fast_fails(config, state)
            return command.execute(config, state)

    result = run_locked(ctx.obj['settings'], action)
    print_result(f"Load balancer {lb_type} attached", result)


@cli.command('update-lbs')
@click.option('--type', 'lb_type', default='', help='Load balancer type; must match the existing one')
@click.option('--cert', 'cert_path', default='', help='Path to the new SSL certificate')
@click.option('--key', 'key_path', default='', help='Path to the new SSL certificate private key')
@click.option('--domain', default='', help='New system domain')
@click.pass_context
def update_lbs(ctx, lb_type, cert_path, key_path, domain):
    """Replace the certificate, key or domain of the load balancer."""
    config = LBConfig(lb_type=lb_type, cert_path=cert_path, key_path=key_path, domain=domain)

    def action(workflow: LBWorkflow, state: State) -> WorkflowResult:
        command = UpdateLBs(workflow)
        with LogContext(operation='update-lbs'):
            command.check_fast_fails(config, state)
            return command.execute(config, state)

    result = run_locked(ctx.obj['settings'], action)
    print_result("Load balancer updated", result)


@cli.command('delete-lbs')
@click.pass_context
def delete_lbs(ctx):
    """Remove the load balancer from the environment."""

    def action(workflow: LBWorkflow, state: State) -> WorkflowResult:
        with LogContext(operation='delete-lbs'):
            return DeleteLBs(workflow).execute(state)

    result = run_locked(ctx.obj['settings'], action)
    print_result("Load balancer removed", result)


@cli.command('lbs')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table', help='Output format')
@click.pass_context
def lbs(ctx, output_format):
    """Show the load balancer of the environment."""
    settings = ctx.obj['settings']
    try:
        state = StateStore(settings.state_dir).load()
        details = LBs(build_executor(settings).outputs).execute(state)
    except BootloaderError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error reading load balancer")
        report_error(error_handler.handle_exception(e))
        sys.exit(1)

    if output_format == 'json':
        click.echo(json.dumps(details, indent=2, sort_keys=True))
        return

    table = Table(title=f"{details['type']} load balancer")
    table.add_column("Name", style="cyan")
    table.add_column("Value")
    if details['domain']:
        table.add_row("domain", details['domain'])
    for name, value in details['outputs'].items():
        table.add_row(name, value if isinstance(value, str) else json.dumps(value))
    console.print(table)


@cli.command()
@click.option('--jumpbox', is_flag=True, help='Open a session on the jumpbox')
@click.option('--director', is_flag=True, help='Open a session on the director through the jumpbox')
@click.pass_context
def ssh(ctx, jumpbox, director):
    """Open an SSH session to the jumpbox or the director."""
    settings = ctx.obj['settings']
    try:
        state = StateStore(settings.state_dir).load()
        command = build_ssh()
        command.check_fast_fails(state)
        command.execute(state, director=director, jumpbox=jumpbox)
    except BootloaderError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error during ssh")
        report_error(error_handler.handle_exception(e))
        sys.exit(1)


@cli.command()
@click.option('--filter', 'name_filter', required=True, help='Only resources whose names contain this')
@click.option('--no-confirm', is_flag=True, help='Delete without prompting')
@click.pass_context
def leftovers(ctx, name_filter, no_confirm):
    """Delete cloud resources left behind by an environment."""
    settings = ctx.obj['settings']
    store = StateStore(settings.state_dir)
    try:
        state = store.load() if store.exists() else None
        cleanup = build_leftovers(settings, state, CleanupLogger(console, no_confirm=no_confirm))
        with LogContext(operation='leftovers'):
            count = cleanup.delete(name_filter)
    except BootloaderError as e:
        report_error(e)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error during cleanup")
        report_error(error_handler.handle_exception(e))
        sys.exit(1)

    console.print(f"[green]Processed {count} resource(s) matching '{escape(name_filter)}'[/green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
