"""Presentation sinks: JSON document and CSV tables"""

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd

from ..core.exceptions import ReportGenerationError
from .summary import ReportSummary

logger = logging.getLogger(__name__)


def report_basename(summary: ReportSummary) -> str:
    """File-name friendly ``<account>_<cadence>_<window start>``"""
    start = summary.window.start.strftime("%Y%m%d")
    name = f"{summary.account_id}_{summary.window.cadence.value}_{start}"
    return re.sub(r"[^A-Za-z0-9_.-]", "_", name)


class PresentationSink(ABC):
    """Delivers a finished report somewhere a human will read it"""

    @abstractmethod
    def deliver(self, summary: ReportSummary) -> List[Path]:
        """Deliver the report, returning the files written"""
        pass


class JsonFileSink(PresentationSink):
    """One JSON document per report"""

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    def deliver(self, summary: ReportSummary) -> List[Path]:
        path = self.output_dir / f"{report_basename(summary)}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                json.dump(summary.to_dict(), f, indent=2, default=str)
        except OSError as e:
            raise ReportGenerationError(f"Cannot write {path}: {e}") from e

        logger.info(f"Report saved to {path}")
        return [path]


class CsvTablesSink(PresentationSink):
    """The tabular sections of a report, one CSV file per table"""

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    @staticmethod
    def tables(summary: ReportSummary) -> Dict[str, pd.DataFrame]:
        """The report's tables as DataFrames, keyed by table name"""
        policy = summary.policy

        suggestions = pd.DataFrame(
            [s.to_dict() for s in summary.conversion.top(policy.top_suggestions)],
            columns=["instance_type", "family", "machines", "on_demand_cost",
                     "reserved_cost", "savings", "percent_delta"],
        )

        low_used_rows = []
        for report in (summary.ec2, summary.rds):
            for group in report.top(policy.top_low_used):
                row = group.to_dict()
                row["kind"] = report.kind.value
                row["names"] = ", ".join(group.names)
                low_used_rows.append(row)
        low_used = pd.DataFrame(
            low_used_rows,
            columns=["kind", "instance_type", "family", "count", "computational_power", "cost", "names"],
        )

        expiring = pd.DataFrame(
            [
                {"instance_type": e.instance_type, "family": e.family, "date": d.date,
                 "instance_count": d.instance_count}
                for e in summary.expiration.by_type for d in e.dates
            ],
            columns=["instance_type", "family", "date", "instance_count"],
        )

        buckets = pd.DataFrame(
            [b.to_dict() for b in summary.storage.top_buckets],
            columns=["bucket", "total_cost", "storage_gb_month", "cost_per_gb"],
        )

        families = pd.DataFrame(
            [{"family": s.family, "computational_power": s.computational_power,
              "percentage": round(s.percentage, 2)} for s in summary.family_distribution],
            columns=["family", "computational_power", "percentage"],
        )

        applications = pd.DataFrame(
            [a.to_dict() for a in summary.applications.top],
            columns=["application", "owner", "ec2_cost", "rds_cost"],
        )

        return {
            "suggestions": suggestions,
            "low_used": low_used,
            "expiring": expiring,
            "buckets": buckets,
            "families": families,
            "applications": applications,
        }

    def deliver(self, summary: ReportSummary) -> List[Path]:
        base = report_basename(summary)
        written = []
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            for name, frame in self.tables(summary).items():
                path = self.output_dir / f"{base}_{name}.csv"
                frame.to_csv(path, index=False)
                written.append(path)
        except OSError as e:
            raise ReportGenerationError(f"Cannot write CSV tables to {self.output_dir}: {e}") from e

        logger.info(f"Wrote {len(written)} CSV tables to {self.output_dir}")
        return written


def build_presentation_sinks(formats: List[str], output_dir: Union[str, Path]) -> List[PresentationSink]:
    """Sinks for the requested formats (``json``, ``csv``)"""
    factories = {"json": JsonFileSink, "csv": CsvTablesSink}
    sinks = []
    for fmt in formats:
        if fmt not in factories:
            raise ReportGenerationError(f"Unsupported report format: {fmt}")
        sinks.append(factories[fmt](output_dir))
    return sinks
