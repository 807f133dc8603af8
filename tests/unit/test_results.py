"""Tests for result metrics."""

import pytest

from stakesplit.optimizer.payouts import build_payout_table
from stakesplit.optimizer.ratio import ExactRatio
from stakesplit.optimizer.results import build_result


def _tables(budget: int) -> list[list[int]]:
    return [
        build_payout_table(ExactRatio(2, 1), budget),
        build_payout_table(ExactRatio(3, 1), budget),
    ]


class TestBuildResult:
    def test_metrics(self):
        result = build_result(["A", "B"], [0.5, 0.5], _tables(10), (4, 6), 10)
        m = result.metrics
        assert m["G"] == 8
        assert m["EV"] == pytest.approx(13.0)
        assert m["EP"] == pytest.approx(3.0)
        assert m["P_loss"] == pytest.approx(0.5)  # A pays 8 < 10
        assert m["Var"] == pytest.approx(25.0)
        assert "P_ge_T" not in m

    def test_target_probability(self):
        result = build_result(["A", "B"], [0.5, 0.5], _tables(10), (4, 6), 10, target=15)
        assert result.metrics["P_ge_T"] == pytest.approx(0.5)

    def test_payouts_per_outcome(self):
        result = build_result(["A", "B"], [0.5, 0.5], _tables(10), (4, 6), 10)
        assert result.allocation == [{"name": "A", "s": 4}, {"name": "B", "s": 6}]
        assert result.payout_by_outcome == [{"name": "A", "payout": 8}, {"name": "B", "payout": 18}]

    def test_to_dict_keys(self):
        body = build_result(["A", "B"], [0.5, 0.5], _tables(10), (5, 5), 10).to_dict()
        assert set(body) == {"allocation", "payoutByOutcome", "metrics"}

    def test_no_loss_when_every_outcome_breaks_even(self):
        result = build_result(["A", "B"], [0.5, 0.5], _tables(10), (5, 5), 10)
        assert result.metrics["P_loss"] == 0
        assert result.metrics["G"] == 10
