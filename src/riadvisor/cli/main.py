import click
import yaml
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler
from pathlib import Path

from .. import __version__
from ..core.config import get_settings, reload_settings
from ..core.logging import setup_logging
from .commands import jobs, report

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name='riadvisor')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Path to configuration file')
@click.pass_context
def cli(ctx, debug, config):
    """
    riadvisor - Reserved instance and utilization reports for AWS accounts

    Finds unused EC2 and RDS resources, forecasts expiring reservations and
    suggests on-demand usage worth reserving.
    """
    ctx.ensure_object(dict)

    try:
        settings = reload_settings(Path(config)) if config else get_settings()
    except (PydanticValidationError, yaml.YAMLError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    log_config = settings.logging
    setup_logging(
        level="DEBUG" if debug or settings.debug else log_config.level,
        log_file=log_config.file,
        structured=log_config.structured,
        console=log_config.console,
        fmt="%(message)s",
        max_bytes=log_config.max_bytes,
        backup_count=log_config.backup_count,
        console_handler=RichHandler(console=console, rich_tracebacks=True),
    )

    ctx.obj['settings'] = settings
    ctx.obj['console'] = console


# Register commands
cli.add_command(report.report)
cli.add_command(jobs.jobs)


@cli.command()
@click.pass_context
def version(ctx):
    """Show version information"""
    console.print(f"[bold blue]riadvisor[/bold blue] version [green]{__version__}[/green]")
    console.print("Reservation utilization and cost optimization reports")


if __name__ == '__main__':
    cli()
