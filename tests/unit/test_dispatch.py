"""Tests for mode dispatch, fallback and response assembly."""

import pytest

from stakesplit.optimizer import ValidationError, optimize
from stakesplit.optimizer.dispatch import (
    STATUS_INFEASIBLE,
    STATUS_OK,
    OptimizeOutcome,
    build_problem,
)
from stakesplit.optimizer.requests import MODES, Limits, parse_request

LIMITS = Limits()

ALL_PARAMS = {
    "maxLossPct": 0.5,
    "maxLossPercent": 0.5,
    "lossProbCap": 1.0,
    "targetT": 0,
    "kSparse": 2,
    "shortfallPenalty": 0.5,
}


def _request(candidates: list[tuple[str, float, str]], budget: int, mode: str, params: dict | None = None) -> dict:
    return {
        "budget": budget,
        "candidates": [{"name": name, "p": p, "m": m} for name, p, m in candidates],
        "rounding": "floor",
        "mode": mode,
        "params": params or {},
    }


def _stakes(body: dict) -> list[int]:
    return [entry["s"] for entry in body["allocation"]]


class TestOptimize:
    def test_maximin_even_split(self, sample_request):
        body = optimize(sample_request, LIMITS)
        assert body["status"] == STATUS_OK
        assert body["solver"] == "all_weather_maximin"
        assert body["allocation"] == [{"name": "A", "s": 50}, {"name": "B", "s": 50}]
        assert body["payoutByOutcome"] == [{"name": "A", "payout": 100}, {"name": "B", "payout": 100}]
        assert body["metrics"]["G"] == 100
        assert body["metrics"]["EV"] == pytest.approx(100.0)
        assert "notes" not in body

    def test_five_candidates(self, five_runner_request):
        body = optimize(five_runner_request, LIMITS)
        assert sum(_stakes(body)) == 399
        assert body["metrics"]["G"] == 406

    @pytest.mark.parametrize("mode", MODES)
    def test_every_mode_spends_budget(self, sample_request, mode):
        sample_request["mode"] = mode
        sample_request["params"] = dict(ALL_PARAMS)
        body = optimize(sample_request, LIMITS)
        assert body["status"] == STATUS_OK
        assert sum(_stakes(body)) == 100

    def test_validation_error_propagates(self, sample_request):
        sample_request["budget"] = 0
        with pytest.raises(ValidationError):
            optimize(sample_request, LIMITS)

    def test_request_notes_carried(self):
        body = optimize(_request([("A", 50, "2"), ("B", 50, "2")], 10, "all_weather_maximin"), LIMITS)
        assert body["notes"] == ["Probabilities interpreted as percent inputs."]


class TestHedgeFallback:
    def test_breakeven_when_possible(self):
        body = optimize(_request([("A", 0.5, "2"), ("B", 0.5, "2")], 10, "hedge_breakeven_then_ev"), LIMITS)
        assert body["status"] == STATUS_OK
        assert body["solver"] == "ev_with_min_payout"
        assert _stakes(body) == [5, 5]

    def test_falls_back_to_maximin(self):
        body = optimize(_request([("A", 0.5, "0.5"), ("B", 0.5, "0.8")], 10, "hedge_breakeven_then_ev"), LIMITS)
        assert body["status"] == STATUS_INFEASIBLE
        assert body["solver"] == "all_weather_maximin"
        assert "No solution satisfies G >= B. Returning all-weather fallback." in body["notes"]
        assert sum(_stakes(body)) == 10


class TestInfeasible:
    def test_max_loss(self):
        body = optimize(
            _request([("A", 0.5, "0.5"), ("B", 0.5, "0.5")], 10, "beast_ev_under_maxloss", {"maxLossPct": 0.1}),
            LIMITS,
        )
        assert body["status"] == STATUS_INFEASIBLE
        assert body["solver"] == "ev_with_min_payout"
        assert body["notes"] == ["No allocation satisfies the max loss constraint."]
        assert "allocation" not in body

    def test_loss_probability_cap(self):
        body = optimize(
            _request([("A", 0.5, "0.5"), ("B", 0.5, "0.5")], 10, "ev_under_lossprob_cap", {"lossProbCap": 0}),
            LIMITS,
        )
        assert body["notes"] == ["No allocation satisfies the loss probability cap."]

    def test_sparsity(self):
        body = optimize(
            _request(
                [("A", 0.5, "2"), ("B", 0.5, "2")], 10, "sparse_k_focus", {"kSparse": 1, "maxStake": 5}
            ),
            LIMITS,
        )
        assert body["notes"] == ["No allocation satisfies the sparsity constraint."]

    def test_solver_reason_used_without_mode_note(self):
        body = optimize(
            _request([("A", 0.5, "2"), ("B", 0.5, "2")], 10, "all_weather_maximin", {"maxStake": 3}),
            LIMITS,
        )
        assert body["status"] == STATUS_INFEASIBLE
        assert body["notes"] == ["No allocation spends the whole budget under the constraints."]


class TestModeSemantics:
    def test_max_loss_floor(self):
        body = optimize(
            _request([("A", 0.5, "2"), ("B", 0.5, "2")], 100, "beast_ev_under_maxloss", {"maxLossPct": 0.5}),
            LIMITS,
        )
        assert body["metrics"]["G"] >= 50

    def test_loss_limit_matches_beast(self):
        candidates = [("A", 0.6, "1.7"), ("B", 0.3, "3.1"), ("C", 0.1, "9")]
        beast = optimize(_request(candidates, 50, "beast_ev_under_maxloss", {"maxLossPct": 0.4}), LIMITS)
        limit = optimize(_request(candidates, 50, "loss_limit", {"maxLossPercent": 0.4}), LIMITS)
        assert beast["allocation"] == limit["allocation"]

    def test_target_metric_reported(self):
        body = optimize(
            _request([("A", 0.5, "2"), ("B", 0.3, "2"), ("C", 0.2, "2")], 10, "maximize_prob_ge_target", {"targetT": 10}),
            LIMITS,
        )
        assert _stakes(body) == [5, 5, 0]
        assert body["metrics"]["P_ge_T"] == pytest.approx(0.8)

    def test_max_prob_focus(self):
        body = optimize(_request([("A", 0.3, "4"), ("B", 0.7, "1.3")], 20, "max_prob_focus"), LIMITS)
        assert _stakes(body) == [0, 20]
        assert body["solver"] == "max_prob_focus"


class TestOutcome:
    def test_minimal_dict(self):
        assert OptimizeOutcome(status=STATUS_INFEASIBLE).to_dict() == {"status": "infeasible"}

    def test_build_problem_tables(self, sample_request):
        problem = build_problem(parse_request(sample_request, LIMITS))
        assert problem.size == 2
        assert all(len(table) == 101 for table in problem.payouts)
        assert problem.payouts[0][50] == 100
