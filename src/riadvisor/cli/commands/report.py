import click
from dataclasses import replace
from rich.table import Table
from pathlib import Path
from typing import List, Optional, Union

from ...core.base.account import AwsAccount
from ...core.config import Settings
from ...core.exceptions import ConfigurationError, RiAdvisorError
from ...core.period import window_for
from ...core.validation import ReportRequest
from ...providers.snapshot import SnapshotSource
from ...reporting.generator import ReportGenerator, ReportSources
from ...reporting.summary import ReportSummary


def build_sources(settings: Settings, snapshot: Optional[Union[str, Path]] = None) -> ReportSources:
    """Snapshot-backed sources when a snapshot is given, AWS otherwise"""
    if snapshot:
        return ReportSources.single(SnapshotSource.from_file(snapshot))

    # boto3 is only needed for live reports
    from ...providers.aws import (
        AWSClient, AwsPricingSource, AwsReservedInstanceSource, AwsTagCostSource, AwsUsageSource
    )

    # utilization and S3 figures only come from analytics snapshots
    client = AWSClient(profile=settings.aws.profile, region=settings.aws.default_region)
    return ReportSources(
        inventory=AwsReservedInstanceSource(client),
        usage=AwsUsageSource(client),
        pricing=AwsPricingSource(client, settings.aws.pricing_region),
        tags=AwsTagCostSource(client),
    )


def resolve_accounts(settings: Settings, sources: ReportSources,
                     account_id: Optional[str] = None, regions: tuple = ()) -> List[AwsAccount]:
    """Accounts to report on: the one asked for, the configured ones, or the snapshot's"""
    if account_id:
        configured = settings.get_account(account_id)
        account = AwsAccount.from_config(configured) if configured else AwsAccount(account_id=account_id)
        if regions:
            account = replace(account, regions=list(regions))
        return [account.with_defaults(settings.aws)]

    if settings.accounts:
        return [AwsAccount.from_config(a).with_defaults(settings.aws) for a in settings.accounts]

    if isinstance(sources.inventory, SnapshotSource):
        return [AwsAccount(account_id=a) for a in sources.inventory.account_ids()]

    raise ConfigurationError("No account given and none configured")


@click.command()
@click.option('--account', '-a', 'account_id', help='AWS account id (default: every configured account)')
@click.option('--snapshot', '-s', type=click.Path(exists=True, dir_okay=False),
              help='Analytics snapshot (YAML/JSON) to read instead of AWS')
@click.option('--cadence', '-c', type=click.Choice(['weekly', 'monthly']), help='Report window')
@click.option('--as-of', type=click.DateTime(formats=['%Y-%m-%d']),
              help='Report on the last complete window before this date')
@click.option('--format', '-f', 'formats', multiple=True, type=click.Choice(['json', 'csv']),
              help='Export formats (can specify multiple)')
@click.option('--output-dir', '-o', type=click.Path(file_okay=False), help='Directory for exported reports')
@click.option('--region', '-r', 'regions', multiple=True, help='Regions to scan (can specify multiple)')
@click.pass_context
def report(ctx, account_id, snapshot, cadence, as_of, formats, output_dir, regions):
    """
    Generate reservation and utilization reports

    Examples:
        riadvisor report --snapshot snapshot.yaml --cadence monthly
        riadvisor report -a 123456789012 -f json -f csv -o ./reports
    """
    console = ctx.obj['console']
    settings: Settings = ctx.obj['settings']

    try:
        request = ReportRequest(
            account_id=account_id,
            cadence=cadence or settings.report.cadence,
            as_of=as_of.date() if as_of else None,
            regions=list(regions),
            formats=list(formats) or list(settings.reporting.formats),
            output_dir=Path(output_dir) if output_dir else settings.reporting.output_dir,
            snapshot=Path(snapshot) if snapshot else None,
        )
        sources = build_sources(settings, request.snapshot)
        accounts = resolve_accounts(settings, sources, request.account_id, tuple(request.regions))

        window = window_for(request.cadence, request.as_of)
        generator = ReportGenerator.from_settings(settings, sources, request.formats, request.output_dir)

        console.print(f"\n[bold]Reservation & Utilization Report[/bold]")
        console.print(f"Window: [cyan]{window.start.date()} → {window.end.date()}[/cyan] ({request.cadence.value})")
        console.print(f"Accounts: [cyan]{', '.join(a.account_id for a in accounts)}[/cyan]\n")

        for account in accounts:
            with console.status(f"[bold green]Building report for {account.display_name}..."):
                summary = generator.generate(account, window, deliver=False)
                files = generator.deliver(summary)

            display_summary(console, summary)
            for path in files:
                console.print(f"✓ Saved [green]{path}[/green]")

    except RiAdvisorError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)


def display_summary(console, summary: ReportSummary):
    """Print the headline figures and tables of a report"""
    policy = summary.policy
    totals = summary.product_totals()

    console.print(f"[bold]{summary.account_name}[/bold] ({summary.account_id})")
    console.print(f"  EC2: [green]{totals['ec2']['instances']}[/green] instances, "
                  f"[yellow]${totals['ec2']['cost']:,.2f}[/yellow]")
    console.print(f"  RDS: [green]{totals['rds']['instances']}[/green] instances, "
                  f"[yellow]${totals['rds']['cost']:,.2f}[/yellow]")
    console.print(f"  S3: [green]{totals['s3']['buckets']}[/green] buckets, "
                  f"[yellow]${totals['s3']['cost']:,.2f}[/yellow]")
    console.print(f"  Reserved instances: [green]{summary.reservations.instance_count}[/green], "
                  f"invested [yellow]${summary.reservations.invested_cost:,.2f}[/yellow]")
    console.print(f"  On-demand share of usage: "
                  f"[cyan]{summary.usage_proportion.on_demand_percentage:.1f}%[/cyan]")

    if summary.unavailable_sections:
        console.print(f"  [yellow]Unavailable sections: {', '.join(summary.unavailable_sections)}[/yellow]")
    if summary.failed_regions:
        console.print(f"  [yellow]Failed regions: {', '.join(summary.failed_regions)}[/yellow]")

    if summary.conversion.no_viable_conversion:
        console.print("  No viable on-demand to reserved conversion")
    else:
        table = Table(title="Reservation Suggestions", show_header=True, header_style="bold cyan")
        table.add_column("Instance Type", style="cyan")
        table.add_column("Machines", justify="right")
        table.add_column("On-Demand", justify="right", style="yellow")
        table.add_column("Reserved", justify="right", style="green")
        table.add_column("Delta", justify="right", style="bold green")
        for s in summary.conversion.top(policy.top_suggestions):
            table.add_row(s.instance_type, str(s.machines), f"${s.on_demand_cost:,.2f}",
                          f"${s.reserved_cost:,.2f}", f"{s.percent_delta:.1f}%")
        console.print(table)

    for low_used in (summary.ec2, summary.rds):
        if not low_used.groups:
            continue
        table = Table(title=f"Low-used {low_used.kind.value.upper()} ({low_used.low_used_count})",
                      show_header=True, header_style="bold cyan")
        table.add_column("Type", style="cyan")
        table.add_column("Count", justify="right")
        table.add_column("Cost", justify="right", style="yellow")
        table.add_column("Names")
        for group in low_used.top(policy.top_low_used):
            table.add_row(group.instance_type, str(group.count), f"${group.cost:,.2f}", ", ".join(group.names))
        console.print(table)

    if summary.applications.top:
        table = Table(title="Most Expensive Applications (EC2)", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Application", style="cyan")
        table.add_column("Owner")
        table.add_column("EC2 Cost", justify="right", style="yellow")
        for i, app in enumerate(summary.applications.top, 1):
            table.add_row(str(i), app.application or "-", app.owner or "-", f"${app.ec2_cost:,.2f}")
        console.print(table)

    expiration = summary.expiration
    if expiration.by_type:
        table = Table(title=f"Expiring before {expiration.horizon_date}", show_header=True,
                      header_style="bold cyan")
        table.add_column("Type", style="cyan")
        table.add_column("Instances", justify="right")
        table.add_column("Dates")
        for e in expiration.by_type:
            table.add_row(e.instance_type, str(e.instance_count),
                          ", ".join(f"{d.date} ({d.instance_count})" for d in e.dates))
        console.print(table)
    else:
        console.print(f"  Expiring reservations: [cyan]{expiration.status.value}[/cyan]")
    console.print()
