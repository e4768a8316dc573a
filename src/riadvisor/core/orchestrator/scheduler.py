"""Named periodic jobs and a minimal interval scheduler"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import ConfigurationError, ReportGenerationError
from ..logging import account_context
from ..period import Cadence, window_for

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """A named entry point run every ``interval`` seconds"""
    name: str
    func: Callable[[], Any]
    interval: float
    description: str = ""
    next_run: float = 0.0
    run_count: int = 0
    failure_count: int = 0
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None

    def run(self) -> Any:
        """Run the job once; failures are logged and recorded, not raised"""
        self.last_run = datetime.now(timezone.utc)
        self.run_count += 1
        with account_context(job=self.name):
            logger.info(f"Running job {self.name}")
            try:
                result = self.func()
            except Exception as e:
                self.failure_count += 1
                self.last_error = str(e)
                logger.error(f"Job {self.name} failed: {e}", exc_info=True)
                return None
        self.last_error = None
        logger.info(f"Job {self.name} completed")
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "interval": self.interval,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
        }


class IntervalScheduler:
    """Runs due jobs on every tick until stopped; jobs are first due immediately"""

    def __init__(self, jobs: List[Job], tick: float = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        names = [job.name for job in jobs]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate job names: {names}")
        self.jobs = list(jobs)
        self.tick = tick
        self.clock = clock
        self._stop = threading.Event()

    def get(self, name: str) -> Job:
        for job in self.jobs:
            if job.name == name:
                return job
        raise ConfigurationError(f"Unknown job: {name}")

    def due_jobs(self, now: Optional[float] = None) -> List[Job]:
        now = self.clock() if now is None else now
        return [job for job in self.jobs if job.next_run <= now]

    def run_pending(self, now: Optional[float] = None) -> List[str]:
        """Run every due job once and reschedule it; returns the names that ran"""
        now = self.clock() if now is None else now
        ran = []
        for job in self.due_jobs(now):
            job.run()
            job.next_run = now + job.interval
            ran.append(job.name)
        return ran

    def run_forever(self):
        """Loop until ``stop`` is called"""
        logger.info(f"Scheduler started with jobs: {', '.join(j.name for j in self.jobs)}")
        while not self._stop.is_set():
            self.run_pending()
            self._stop.wait(self.tick)
        logger.info("Scheduler stopped")

    def stop(self):
        self._stop.set()


JOB_DESCRIPTIONS = {
    "weekly-report": "Report on the last complete week for every account",
    "monthly-report": "Report on the last complete month for every account",
    "refresh-pricing": "Reload the reserved unit price table",
}


def job_intervals(config) -> Dict[str, float]:
    """Interval in seconds of every job, from a ``SchedulerConfig`` section"""
    return {
        "weekly-report": config.weekly_report_interval,
        "monthly-report": config.monthly_report_interval,
        "refresh-pricing": config.refresh_pricing_interval,
    }


def _windowed_report(generator, accounts, cadence: Cadence) -> Callable[[], Any]:
    """Report job that reports on each account once per completed window, however often it fires

    Accounts that failed are retried on the next run; those already reported are skipped.
    """
    state = {"window": None, "done": set()}

    def run():
        window = window_for(cadence)
        if state["window"] != window.label:
            state["window"], state["done"] = window.label, set()

        pending = [a for a in accounts if a.account_id not in state["done"]]
        if not pending:
            logger.info(f"{cadence.value} report for {window.label} already produced")
            return None

        result = generator.generate_many(pending, window)
        state["done"].update(result.summaries)
        if result.errors:
            raise ReportGenerationError(
                f"{cadence.value} report for {window.label} failed for {', '.join(sorted(result.errors))}"
            )
        return result

    return run


def build_jobs(generator, accounts, config) -> List[Job]:
    """
    The periodic jobs of the service.

    Args:
        generator: ReportGenerator used by the report jobs
        accounts: Accounts reported on
        config: SchedulerConfig section (intervals in seconds)

    Returns:
        weekly-report, monthly-report and refresh-pricing jobs
    """
    intervals = job_intervals(config)
    return [
        Job(
            name="weekly-report",
            func=_windowed_report(generator, accounts, Cadence.WEEKLY),
            interval=intervals["weekly-report"],
            description=JOB_DESCRIPTIONS["weekly-report"],
        ),
        Job(
            name="monthly-report",
            func=_windowed_report(generator, accounts, Cadence.MONTHLY),
            interval=intervals["monthly-report"],
            description=JOB_DESCRIPTIONS["monthly-report"],
        ),
        Job(
            name="refresh-pricing",
            func=generator.refresh_prices,
            interval=intervals["refresh-pricing"],
            description=JOB_DESCRIPTIONS["refresh-pricing"],
        ),
    ]
