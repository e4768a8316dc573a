"""Tests for the on-demand to reserved conversion advisor"""

import pytest

from riadvisor.analysis.conversion import ConversionAdvisor, RankBy, SkipReason
from riadvisor.core.base.resource import UsageRecord, UsageType


@pytest.fixture
def advisor():
    return ConversionAdvisor()


class TestEvaluate:
    """Test a single usage bucket"""

    def test_reference_bucket(self, advisor):
        """Test m5 factor 8, 17520 normalized hours over 730 hours at 0.10/h"""
        usage = UsageRecord(UsageType.USAGE, "m5", 8, 17520.0, 500.0)
        suggestion, reason = advisor.evaluate(usage, {"m5.xlarge": 0.10}, 730)

        assert reason is None
        assert suggestion.instance_type == "m5.xlarge"
        assert suggestion.machines == 3
        assert suggestion.reserved_cost == pytest.approx(219.0)
        assert suggestion.savings == pytest.approx(281.0)
        assert suggestion.percent_delta == pytest.approx(56.2, abs=0.05)

    def test_machines_round_up(self, advisor):
        usage = UsageRecord(UsageType.USAGE, "c5", 4, 4 * 731, 100.0)
        suggestion, _ = advisor.evaluate(usage, {"c5.large": 0.01}, 730)
        assert suggestion.machines == 2

    def test_no_savings(self, advisor):
        usage = UsageRecord(UsageType.USAGE, "m5", 8, 17520.0, 219.0)
        assert advisor.evaluate(usage, {"m5.xlarge": 0.10}, 730) == (None, SkipReason.NO_SAVINGS)

    def test_zero_cost(self, advisor):
        usage = UsageRecord(UsageType.USAGE, "m5", 8, 0.0, 0.0)
        assert advisor.evaluate(usage, {"m5.xlarge": 0.10}, 730) == (None, SkipReason.NO_SAVINGS)

    @pytest.mark.parametrize("usage,prices,hours,reason", [
        (UsageRecord(UsageType.USAGE, "", 8, 10.0, 5.0), {"m5.xlarge": 0.1}, 730, SkipReason.NO_FAMILY),
        (UsageRecord(UsageType.USAGE, "m5", 3, 10.0, 5.0), {"m5.xlarge": 0.1}, 730, SkipReason.UNKNOWN_SIZE),
        (UsageRecord(UsageType.USAGE, "m5", 0, 10.0, 5.0), {"m5.xlarge": 0.1}, 730, SkipReason.UNKNOWN_SIZE),
        (UsageRecord(UsageType.USAGE, "m5", 8, 10.0, 5.0), {}, 730, SkipReason.NO_PRICE),
        (UsageRecord(UsageType.USAGE, "m5", 8, 10.0, 5.0), {"m5.xlarge": 0.0}, 730, SkipReason.NO_PRICE),
        (UsageRecord(UsageType.USAGE, "m5", 8, 10.0, 5.0), {"m5.xlarge": 0.1}, 0, SkipReason.EMPTY_WINDOW),
    ])
    def test_skipped(self, advisor, usage, prices, hours, reason):
        assert advisor.evaluate(usage, prices, hours) == (None, reason)


class TestAdvise:
    """Test advice over a whole window"""

    def test_only_on_demand_buckets(self, advisor, usage_records, prices, hours_730_window):
        advice = advisor.advise(usage_records, prices, hours_730_window.start, hours_730_window.end)

        assert [s.instance_type for s in advice.suggestions] == ["m5.xlarge", "c5.large"]
        assert advice.skipped == 1
        assert advice.skip_reasons == {"no_family": 1}
        assert not advice.no_viable_conversion

        c5 = advice.suggestions[1]
        assert c5.machines == 1
        assert c5.reserved_cost == pytest.approx(36.5)

    def test_no_viable_conversion(self, advisor, hours_730_window):
        usages = [UsageRecord(UsageType.USAGE, "m5", 8, 17520.0, 100.0)]
        advice = advisor.advise(usages, {"m5.xlarge": 0.10}, hours_730_window.start, hours_730_window.end)

        assert advice.no_viable_conversion
        assert advice.to_dict()["no_viable_conversion"] is True
        assert advice.total_savings == 0

    def test_ranking(self, advisor, hours_730_window):
        usages = [
            UsageRecord(UsageType.USAGE, "m5", 8, 17520.0, 500.0),
            UsageRecord(UsageType.USAGE, "c5", 4, 2920.0, 400.0),
        ]
        prices = {"m5.xlarge": 0.10, "c5.large": 0.05}
        advice = advisor.advise(usages, prices, hours_730_window.start, hours_730_window.end)

        assert [s.instance_type for s in advice.ranked(RankBy.PERCENT_DELTA)] == ["c5.large", "m5.xlarge"]
        assert [s.instance_type for s in advice.ranked(RankBy.ON_DEMAND_COST)] == ["m5.xlarge", "c5.large"]
        assert len(advice.top(1)) == 1
        assert len(advice.to_dict(top_n=1)["suggestions"]) == 1
        assert advice.to_dict(top_n=1)["accepted"] == 2
