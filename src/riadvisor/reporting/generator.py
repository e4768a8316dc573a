"""
Report generation entry point.

Fetches every input of a report through the source interfaces, applies the
fetch-error policy, assembles the summary and hands it to the telemetry and
presentation sinks. Accounts are independent and may be processed
concurrently; a single report is built on one thread.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, TypeVar, Union

from ..core.base.account import AwsAccount
from ..core.base.resource import ResourceKind
from ..core.base.source import (
    FetchContext, InventorySource, PricingSource, StorageSource, TagCostSource, UsageSource,
    UtilizationSource
)
from ..core.config import PricingProfileConfig, Settings
from ..core.exceptions import (
    ConfigurationError, DataCollectionError, FetchCancelledError, ReportDataError, RiAdvisorError
)
from ..core.logging import account_context, get_performance_logger
from ..core.monitoring import PerformanceTracker, get_performance_tracker
from ..core.period import Cadence, ReportWindow, window_for
from .export import PresentationSink, build_presentation_sinks
from .summary import ReportAssembler, ReportInputs, ReportPolicy, ReportSummary
from .telemetry import TelemetrySink, build_telemetry_sink, emit_report_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchErrorPolicy(str, Enum):
    """What to do when a data section cannot be fetched"""
    ABORT = "abort"  # fail the report with ReportDataError
    EMPTY = "empty"  # build the report without the section


@dataclass
class ReportSources:
    """The collaborators a report reads from; a missing one leaves its section unavailable"""
    inventory: Optional[InventorySource] = None
    usage: Optional[UsageSource] = None
    utilization: Optional[UtilizationSource] = None
    pricing: Optional[PricingSource] = None
    storage: Optional[StorageSource] = None
    tags: Optional[TagCostSource] = None

    @classmethod
    def single(cls, source) -> "ReportSources":
        """Use one object implementing every source interface"""
        return cls(inventory=source, usage=source, utilization=source, pricing=source,
                   storage=source, tags=source)


@dataclass
class GenerationResult:
    """Outcome of a multi-account run"""
    summaries: Dict[str, ReportSummary] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


class ReportGenerator:
    """Builds reports for accounts from a set of sources"""

    def __init__(self,
                 sources: ReportSources,
                 policy: Optional[ReportPolicy] = None,
                 pricing_profile: Optional[PricingProfileConfig] = None,
                 telemetry: Optional[TelemetrySink] = None,
                 sinks: Optional[List[PresentationSink]] = None,
                 on_fetch_error: Union[FetchErrorPolicy, str] = FetchErrorPolicy.ABORT,
                 strict_regions: bool = False,
                 region_workers: int = 8,
                 fetch_timeout: Optional[float] = None,
                 account_workers: int = 4,
                 tracker: Optional[PerformanceTracker] = None):
        self.sources = sources
        self.assembler = ReportAssembler(policy)
        self.pricing_profile = pricing_profile or PricingProfileConfig()
        self.telemetry = telemetry
        self.sinks = list(sinks or [])
        self.on_fetch_error = FetchErrorPolicy(on_fetch_error)
        self.strict_regions = strict_regions
        self.region_workers = region_workers
        self.fetch_timeout = fetch_timeout
        self.account_workers = account_workers
        self.tracker = tracker or get_performance_tracker()
        self._prices: Optional[Dict[str, float]] = None
        self._prices_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, sources: ReportSources,
                      formats: Optional[List[str]] = None,
                      output_dir: Optional[Path] = None) -> "ReportGenerator":
        """Wire a generator from the application settings"""
        return cls(
            sources=sources,
            policy=ReportPolicy.from_config(settings.report),
            pricing_profile=settings.pricing,
            telemetry=build_telemetry_sink(settings.monitoring),
            sinks=build_presentation_sinks(
                formats if formats is not None else settings.reporting.formats,
                output_dir or settings.reporting.output_dir,
            ),
            on_fetch_error=settings.report.on_fetch_error,
            strict_regions=settings.aws.strict_regions,
            region_workers=settings.aws.max_workers,
            fetch_timeout=settings.aws.timeout,
            account_workers=settings.scheduler.max_account_workers,
        )

    @property
    def policy(self) -> ReportPolicy:
        return self.assembler.policy

    def new_context(self) -> FetchContext:
        return FetchContext(timeout=self.fetch_timeout)

    def refresh_prices(self, ctx: Optional[FetchContext] = None) -> Dict[str, float]:
        """Fetch the reserved unit price table and keep it for later reports"""
        if self.sources.pricing is None:
            raise ConfigurationError("No pricing source configured")
        prices = self.sources.pricing.fetch_reserved_unit_prices(
            self.pricing_profile, ctx or self.new_context()
        )
        with self._prices_lock:
            self._prices = dict(prices)
        logger.info(f"Cached {len(prices)} reserved unit prices")
        return prices

    def _cached_prices(self, ctx: FetchContext) -> Dict[str, float]:
        with self._prices_lock:
            cached = self._prices
        if cached is not None:
            return dict(cached)
        return self.refresh_prices(ctx)

    def _fetch(self, section: str, source, fetch: Callable[[], T], default: T,
               inputs: ReportInputs) -> T:
        if source is None:
            logger.info(f"No source for section {section}")
            inputs.unavailable_sections.append(section)
            return default

        try:
            return fetch()
        except (DataCollectionError, FetchCancelledError) as e:
            if self.on_fetch_error == FetchErrorPolicy.ABORT:
                logger.error(f"Section {section} unavailable, aborting report: {e}")
                raise ReportDataError(section, e) from e
            logger.warning(f"Section {section} unavailable, continuing without it: {e}")
            inputs.unavailable_sections.append(section)
            return default

    def fetch_inputs(self, account: AwsAccount, window: ReportWindow,
                     ctx: Optional[FetchContext] = None) -> ReportInputs:
        """
        Fetch every section of a report.

        Args:
            account: Account to report on
            window: Report window
            ctx: Fetch deadline and cancellation, a fresh one by default

        Returns:
            ReportInputs; failed sections (``empty`` policy) and sections without a
            source are empty and listed as unavailable

        Raises:
            ReportDataError: a section failed under the ``abort`` policy
        """
        ctx = ctx or self.new_context()
        inputs = ReportInputs()
        sources = self.sources

        inventory = self._fetch(
            "reservations", sources.inventory,
            lambda: sources.inventory.fetch_inventory(
                account, ctx, max_workers=self.region_workers, strict=self.strict_regions
            ),
            None, inputs,
        )
        if inventory is not None:
            inputs.reservations = list(inventory.records)
            inputs.failed_regions = inventory.failed_regions

        inputs.usage = self._fetch(
            "usage", sources.usage,
            lambda: sources.usage.query_usage(account, window, ResourceKind.EC2, ctx),
            [], inputs,
        )
        for kind in (ResourceKind.EC2, ResourceKind.RDS):
            inputs.utilization.extend(self._fetch(
                f"utilization_{kind.value}", sources.utilization,
                lambda kind=kind: sources.utilization.query_utilization(account, window, kind, ctx),
                [], inputs,
            ))
        inputs.prices = self._fetch(
            "pricing", sources.pricing, lambda: self._cached_prices(ctx), {}, inputs
        )
        inputs.buckets = self._fetch(
            "storage", sources.storage,
            lambda: sources.storage.query_buckets(account, window, ctx),
            [], inputs,
        )
        inputs.tag_costs = self._fetch(
            "applications", sources.tags,
            lambda: sources.tags.query_tag_costs(account, window, ctx),
            [], inputs,
        )
        return inputs

    def deliver(self, summary: ReportSummary) -> List[Path]:
        """Hand a summary to every presentation sink"""
        written: List[Path] = []
        for sink in self.sinks:
            written.extend(sink.deliver(summary))
        return written

    def generate(self, account: AwsAccount, window: Optional[ReportWindow] = None,
                 cadence: Union[Cadence, str] = Cadence.WEEKLY,
                 deliver: bool = True) -> ReportSummary:
        """
        Build one account's report.

        Args:
            account: Account to report on
            window: Report window, the last complete one of ``cadence`` by default
            cadence: Cadence used when no window is given
            deliver: Send the summary to the presentation sinks

        Returns:
            ReportSummary
        """
        window = window or window_for(cadence)

        with account_context(account_id=account.account_id, report_window=window.label):
            with self.tracker.track("report", cadence=window.cadence.value):
                logger.info(f"Generating {window.cadence.value} report for {account.display_name}")
                with get_performance_logger().timer("fetch_inputs"):
                    inputs = self.fetch_inputs(account, window)
                summary = self.assembler.assemble(account, window, inputs)

                if self.telemetry is not None:
                    emit_report_metrics(summary, self.telemetry)

                if deliver:
                    self.deliver(summary)

        return summary

    def generate_many(self, accounts: List[AwsAccount], window: Optional[ReportWindow] = None,
                      cadence: Union[Cadence, str] = Cadence.WEEKLY) -> GenerationResult:
        """
        Build reports for several accounts concurrently.

        Args:
            accounts: Accounts to report on
            window: Shared report window, the last complete one of ``cadence`` by default
            cadence: Cadence used when no window is given

        Returns:
            GenerationResult with a summary or an error per account
        """
        window = window or window_for(cadence)
        result = GenerationResult()
        if not accounts:
            return result

        with ThreadPoolExecutor(max_workers=max(1, min(self.account_workers, len(accounts)))) as executor:
            futures = {
                executor.submit(self.generate, account, window): account.account_id
                for account in accounts
            }

            for future in as_completed(futures):
                account_id = futures[future]
                try:
                    result.summaries[account_id] = future.result()
                except RiAdvisorError as e:
                    logger.error(f"Report for {account_id} failed: {e}")
                    result.errors[account_id] = str(e)
                except Exception as e:
                    logger.error(f"Unexpected error in report for {account_id}: {e}", exc_info=True)
                    result.errors[account_id] = f"{type(e).__name__}: {e}"

        logger.info(
            f"Generated {len(result.summaries)} reports, {len(result.errors)} failed"
        )
        return result
