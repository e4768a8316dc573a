"""Tests for presentation sinks"""

import json
import pytest
import pandas as pd

from riadvisor.core.exceptions import ReportGenerationError
from riadvisor.reporting.export import (
    CsvTablesSink, JsonFileSink, build_presentation_sinks, report_basename
)
from riadvisor.reporting.summary import ReportAssembler, ReportInputs, ReportPolicy


@pytest.fixture
def summary(account, monthly_window, report_inputs):
    return ReportAssembler(ReportPolicy(top_suggestions=1)).assemble(account, monthly_window, report_inputs)


class TestExport:
    """Test JSON and CSV export"""

    def test_basename(self, summary):
        assert report_basename(summary) == "123456789012_monthly_20240301"

    def test_json(self, summary, tmp_path):
        paths = JsonFileSink(tmp_path / "reports").deliver(summary)

        assert paths == [tmp_path / "reports" / "123456789012_monthly_20240301.json"]
        with open(paths[0]) as f:
            data = json.load(f)
        assert data["reservations"]["instance_count"] == 7
        assert data["conversion"]["accepted"] == 2
        assert len(data["conversion"]["suggestions"]) == 1

    def test_csv_tables(self, summary, tmp_path):
        paths = CsvTablesSink(tmp_path).deliver(summary)

        assert sorted(p.name for p in paths) == [
            "123456789012_monthly_20240301_applications.csv",
            "123456789012_monthly_20240301_buckets.csv",
            "123456789012_monthly_20240301_expiring.csv",
            "123456789012_monthly_20240301_families.csv",
            "123456789012_monthly_20240301_low_used.csv",
            "123456789012_monthly_20240301_suggestions.csv",
        ]

        suggestions = pd.read_csv(tmp_path / "123456789012_monthly_20240301_suggestions.csv")
        assert list(suggestions["instance_type"]) == ["m5.xlarge"]

        low_used = pd.read_csv(tmp_path / "123456789012_monthly_20240301_low_used.csv")
        assert set(low_used["kind"]) == {"ec2", "rds"}

        applications = pd.read_csv(tmp_path / "123456789012_monthly_20240301_applications.csv")
        assert list(applications["application"])[:2] == ["checkout", "web"]
        assert list(applications["ec2_cost"])[:2] == [420.0, 200.0]

    def test_tables_with_empty_sections(self, account, monthly_window):
        summary = ReportAssembler().assemble(account, monthly_window, ReportInputs())

        tables = CsvTablesSink.tables(summary)

        assert all(frame.empty for frame in tables.values())
        assert list(tables["expiring"].columns) == ["instance_type", "family", "date", "instance_count"]

    def test_unwritable_directory(self, summary, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        with pytest.raises(ReportGenerationError):
            JsonFileSink(blocker / "reports").deliver(summary)

    def test_build_sinks(self, tmp_path):
        sinks = build_presentation_sinks(["json", "csv"], tmp_path)
        assert [type(s) for s in sinks] == [JsonFileSink, CsvTablesSink]

        with pytest.raises(ReportGenerationError):
            build_presentation_sinks(["pdf"], tmp_path)
