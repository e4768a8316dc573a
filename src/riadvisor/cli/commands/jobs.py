import click
from rich.table import Table

from ...core.exceptions import RiAdvisorError
from ...core.orchestrator.scheduler import JOB_DESCRIPTIONS, IntervalScheduler, build_jobs, job_intervals
from ...reporting.generator import ReportGenerator
from .report import build_sources, resolve_accounts


def _build_scheduler(ctx, snapshot) -> IntervalScheduler:
    settings = ctx.obj['settings']
    sources = build_sources(settings, snapshot)
    accounts = resolve_accounts(settings, sources)
    generator = ReportGenerator.from_settings(settings, sources)
    return IntervalScheduler(build_jobs(generator, accounts, settings.scheduler),
                             tick=settings.scheduler.tick_seconds)


@click.group()
def jobs():
    """Periodic report jobs"""
    pass


@jobs.command('list')
@click.pass_context
def list_jobs(ctx):
    """List the periodic jobs and their intervals"""
    console = ctx.obj['console']
    config = ctx.obj['settings'].scheduler

    table = Table(title="Jobs", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Every", justify="right")
    table.add_column("Description")

    intervals = job_intervals(config)
    for name, description in JOB_DESCRIPTIONS.items():
        table.add_row(name, f"{intervals[name] / 3600:g}h", description)

    console.print(table)


@jobs.command('run')
@click.argument('name', type=click.Choice(list(JOB_DESCRIPTIONS)))
@click.option('--snapshot', '-s', type=click.Path(exists=True, dir_okay=False),
              help='Analytics snapshot (YAML/JSON) to read instead of AWS')
@click.pass_context
def run_job(ctx, name, snapshot):
    """Run one job immediately"""
    console = ctx.obj['console']

    try:
        job = _build_scheduler(ctx, snapshot).get(name)
    except RiAdvisorError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    with console.status(f"[bold green]Running {name}..."):
        job.run()

    if job.last_error:
        console.print(f"[red]✗ {name} failed: {job.last_error}[/red]")
        ctx.exit(1)
    console.print(f"✓ [green]{name}[/green] completed")


@jobs.command('schedule')
@click.option('--snapshot', '-s', type=click.Path(exists=True, dir_okay=False),
              help='Analytics snapshot (YAML/JSON) to read instead of AWS')
@click.pass_context
def schedule(ctx, snapshot):
    """Run every job on its interval until interrupted"""
    console = ctx.obj['console']

    try:
        scheduler = _build_scheduler(ctx, snapshot)
    except RiAdvisorError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    console.print(f"[bold]Scheduler started[/bold] ({len(scheduler.jobs)} jobs, tick {scheduler.tick:g}s)")
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        console.print("\n[yellow]Scheduler stopped[/yellow]")
