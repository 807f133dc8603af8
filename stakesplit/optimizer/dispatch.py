"""Route validated requests to solvers and assemble responses.

Fallback is explicit: only modes listed in ``FALLBACKS`` retry with another
solver, the retry is recorded in the notes, and the response names the
solver that actually produced the allocation.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from stakesplit.optimizer import requests as rq
from stakesplit.optimizer.payouts import build_payout_table
from stakesplit.optimizer.requests import Limits, OptimizeRequest, parse_request
from stakesplit.optimizer.results import AllocationResult, build_result
from stakesplit.optimizer.solvers import (
    Infeasible,
    Problem,
    SolveResult,
    all_weather_maximin,
    ev_under_loss_cap,
    ev_with_min_payout,
    expected_utility,
    log_utility,
    max_prob_focus,
    maximize_prob_target,
    shortfall_utility,
    sparse_k_focus,
)

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_INFEASIBLE = "infeasible"
STATUS_ERROR = "error"


def _max_loss_floor(budget: int, max_loss: float) -> int:
    return math.floor(budget * (1 - max_loss))


HANDLERS: dict[str, Callable[[Problem, Any], SolveResult]] = {
    rq.ALL_WEATHER_MAXIMIN: lambda problem, params: all_weather_maximin(problem),
    rq.HEDGE_BREAKEVEN_THEN_EV: lambda problem, params: ev_with_min_payout(problem, problem.budget),
    rq.BEAST_EV_UNDER_MAXLOSS: lambda problem, params: ev_with_min_payout(
        problem, _max_loss_floor(problem.budget, params.max_loss)
    ),
    rq.LOSS_LIMIT: lambda problem, params: ev_with_min_payout(
        problem, _max_loss_floor(problem.budget, params.max_loss)
    ),
    rq.EV_UNDER_LOSSPROB_CAP: lambda problem, params: ev_under_loss_cap(problem, params.cap),
    rq.MAXIMIZE_PROB_GE_TARGET: lambda problem, params: maximize_prob_target(problem, params.target),
    rq.SPARSE_K_FOCUS: lambda problem, params: sparse_k_focus(problem, params.k),
    rq.EV_WITH_SHORTFALL_PENALTY: lambda problem, params: expected_utility(
        problem, shortfall_utility(problem.budget, params.penalty)
    ),
    rq.MAXIMIZE_EV: lambda problem, params: ev_with_min_payout(problem, None),
    rq.BALANCED_PROFIT: lambda problem, params: expected_utility(problem, log_utility),
    rq.MAX_PROB_FOCUS: lambda problem, params: max_prob_focus(problem),
}

# mode -> (note, fallback solver)
FALLBACKS: dict[str, tuple[str, Callable[[Problem], SolveResult]]] = {
    rq.HEDGE_BREAKEVEN_THEN_EV: (
        "No solution satisfies G >= B. Returning all-weather fallback.",
        all_weather_maximin,
    ),
}

INFEASIBLE_NOTES = {
    rq.BEAST_EV_UNDER_MAXLOSS: "No allocation satisfies the max loss constraint.",
    rq.LOSS_LIMIT: "No allocation satisfies the max loss constraint.",
    rq.EV_UNDER_LOSSPROB_CAP: "No allocation satisfies the loss probability cap.",
    rq.SPARSE_K_FOCUS: "No allocation satisfies the sparsity constraint.",
}


@dataclass
class OptimizeOutcome:
    """Response of one optimization call."""

    status: str
    solver: Optional[str] = None
    result: Optional[AllocationResult] = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"status": self.status}
        if self.solver:
            body["solver"] = self.solver
        if self.result is not None:
            body.update(self.result.to_dict())
        if self.notes:
            body["notes"] = self.notes
        return body


def build_problem(request: OptimizeRequest) -> Problem:
    """Payout tables for every candidate plus the solver inputs."""
    return Problem(
        payouts=[build_payout_table(c.multiplier, request.budget) for c in request.candidates],
        probabilities=request.probabilities,
        budget=request.budget,
        stake_filter=request.stake_filter,
        multipliers=[c.multiplier for c in request.candidates],
    )


def solve(request: OptimizeRequest) -> OptimizeOutcome:
    """Run the solver for ``request.mode`` and build the response."""
    logger.info(f"Optimizing {request.mode}: n={len(request.candidates)}, budget={request.budget}")
    notes = list(request.notes)
    problem = build_problem(request)

    result = HANDLERS[request.mode](problem, request.params)
    status = STATUS_OK

    if isinstance(result, Infeasible):
        status = STATUS_INFEASIBLE
        logger.info(f"{request.mode} infeasible: {result.reason}")
        fallback = FALLBACKS.get(request.mode)
        if fallback is None:
            notes.append(INFEASIBLE_NOTES.get(request.mode, result.reason))
            return OptimizeOutcome(status=status, solver=result.solver, notes=notes)

        note, fallback_solver = fallback
        notes.append(note)
        result = fallback_solver(problem)
        logger.info(f"{request.mode} fell back to {result.solver}")
        if isinstance(result, Infeasible):
            notes.append(result.reason)
            return OptimizeOutcome(status=status, solver=result.solver, notes=notes)

    target = request.params.target if isinstance(request.params, rq.TargetParams) else None
    built = build_result(
        request.names, request.probabilities, problem.payouts, result.allocation, request.budget, target
    )
    return OptimizeOutcome(status=status, solver=result.solver, result=built, notes=notes)


def optimize(payload: Any, limits: Optional[Limits] = None) -> dict:
    """Validate, solve and serialise one request body.

    Raises:
        ValidationError: for malformed input (including unsupported modes).
    """
    request = parse_request(payload, limits)
    return solve(request).to_dict()
