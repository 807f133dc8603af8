"""Dynamic-programming allocation solvers.

Every solver splits an integer budget across candidates, one candidate at a
time, keeping a table over the budget spent so far (optionally crossed with
an auxiliary state: which candidates lose, which hit a target, how many
candidates got a stake). The stake enumeration for a budget slot is
vectorised with numpy; slots only read the previous candidate's layer.

Ties: for each cell the admissible stakes are narrowed key by key to those
within ``EPS`` of the best value, and the smallest surviving stake wins. A
later stake therefore only displaces an earlier one when it is better by
more than ``EPS``.

Solvers return ``Solved`` or ``Infeasible``; only malformed input raises.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional, Union

import numpy as np

from stakesplit.optimizer.payouts import first_stake_reaching, mask_probabilities, payout_array
from stakesplit.optimizer.ratio import ExactRatio

logger = logging.getLogger(__name__)

EPS = 1e-9
NEG = -np.inf

# Solver identifiers (reported back to callers)
ALL_WEATHER_MAXIMIN = "all_weather_maximin"
EV_WITH_MIN_PAYOUT = "ev_with_min_payout"
EXPECTED_UTILITY = "expected_utility"
EV_UNDER_LOSS_CAP = "ev_under_loss_cap"
MAXIMIZE_PROB_TARGET = "maximize_prob_target"
SPARSE_K_FOCUS = "sparse_k_focus"
MAX_PROB_FOCUS = "max_prob_focus"

# Objective accumulation
SUM = "sum"
MIN = "min"


# ──────────────────────────────────────────────
# Problem and result types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class StakeFilter:
    """Which stakes a candidate may receive: zero, or ``[min_stake, max_stake]``."""

    min_stake: int = 0
    max_stake: Optional[int] = None

    def allows(self, stake: int) -> bool:
        if stake == 0:
            return True
        if stake < self.min_stake:
            return False
        return self.max_stake is None or stake <= self.max_stake

    def admitted(self, budget: int) -> np.ndarray:
        """Boolean mask over stakes ``0..budget``."""
        stakes = np.arange(budget + 1)
        ok = stakes >= max(self.min_stake, 1)
        if self.max_stake is not None:
            ok &= stakes <= self.max_stake
        ok[0] = True
        return ok


@dataclass
class Problem:
    """Per-solve inputs shared by every solver."""

    payouts: list[list[int]]
    probabilities: list[float]
    budget: int
    stake_filter: StakeFilter = field(default_factory=StakeFilter)
    multipliers: list[ExactRatio] = field(default_factory=list)

    payout_floats: list[np.ndarray] = field(init=False, repr=False)
    admitted: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        if self.budget <= 0:
            raise ValueError(f"budget must be positive, got {self.budget}")
        if not self.payouts:
            raise ValueError("at least one candidate is required")
        if len(self.payouts) != len(self.probabilities):
            raise ValueError("payouts and probabilities differ in length")
        for table in self.payouts:
            if len(table) != self.budget + 1:
                raise ValueError(f"payout table must have {self.budget + 1} entries")
        if self.multipliers and len(self.multipliers) != len(self.payouts):
            raise ValueError("multipliers and payouts differ in length")
        self.payout_floats = [payout_array(table) for table in self.payouts]
        self.admitted = self.stake_filter.admitted(self.budget)

    @property
    def size(self) -> int:
        return len(self.payouts)

    def weighted_payouts(self) -> list[np.ndarray]:
        """``p_i * payout_i[s]`` per candidate, the EV contribution of each stake."""
        return [p * arr for p, arr in zip(self.probabilities, self.payout_floats)]


@dataclass(frozen=True)
class Solved:
    """A feasible allocation and the solver that produced it."""

    solver: str
    allocation: tuple[int, ...]

    feasible: ClassVar[bool] = True


@dataclass(frozen=True)
class Infeasible:
    """No allocation satisfies the solver's hard constraints."""

    solver: str
    reason: str

    feasible: ClassVar[bool] = False


SolveResult = Union[Solved, Infeasible]


# ──────────────────────────────────────────────
# DP engine
# ──────────────────────────────────────────────

@dataclass
class _Objective:
    """One lexicographic key of a DP cell, accumulated per candidate."""

    kind: str  # SUM or MIN
    gains: list[np.ndarray]  # per candidate, indexed by stake

    @property
    def start(self) -> float:
        return np.inf if self.kind == MIN else 0.0


class _BudgetOnly:
    """No auxiliary state: one column."""

    size = 1

    def __init__(self, budget: int):
        self._flags = np.zeros(budget + 1, dtype=bool)
        self._sources = (np.array([0]), np.array([-1]))

    def width(self, i: int) -> int:
        return 1

    def flags(self, i: int) -> np.ndarray:
        return self._flags

    def sources(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        return self._sources

    def release(self, aux: int, i: int, stake: int) -> int:
        return aux


class _Bitmask:
    """Aux state is a subset of candidates; candidate ``i`` owns bit ``i``.

    ``flags[i][s]`` says whether staking ``s`` on candidate ``i`` sets its bit.
    Before step ``i`` no bit ``>= i`` can be set, so only ``2**(i+1)`` columns
    are live at step ``i``.
    """

    def __init__(self, flags: list[np.ndarray]):
        self.size = 1 << len(flags)
        self._flags = flags

    def width(self, i: int) -> int:
        return 1 << (i + 1)

    def flags(self, i: int) -> np.ndarray:
        return self._flags[i]

    def sources(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        masks = np.arange(self.width(i))
        bit = 1 << i
        owned = (masks & bit) != 0
        return np.where(owned, -1, masks), np.where(owned, masks ^ bit, -1)

    def release(self, aux: int, i: int, stake: int) -> int:
        return aux & ~(1 << i)


class _NonzeroCount:
    """Aux state counts candidates holding a nonzero stake, capped at ``limit``."""

    def __init__(self, budget: int, limit: int):
        self.size = limit + 1
        self._limit = limit
        self._flags = np.arange(budget + 1) > 0

    def width(self, i: int) -> int:
        return min(i + 1, self._limit) + 1

    def flags(self, i: int) -> np.ndarray:
        return self._flags

    def sources(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        counts = np.arange(self.width(i))
        return counts, counts - 1

    def release(self, aux: int, i: int, stake: int) -> int:
        return aux - 1 if stake > 0 else aux


def _pick(keys: list[np.ndarray], valid: np.ndarray):
    """Earliest row per column whose keys tie the lexicographic best within EPS.

    Columns without a valid row get -1.
    """
    survivors = valid.copy()
    for key in keys:
        best = np.where(survivors, key, NEG).max(axis=0)
        survivors &= key >= best - EPS
    return np.where(survivors.any(axis=0), survivors.argmax(axis=0), -1)


def _forward(problem: Problem, objectives: list[_Objective], layout, allowed: list[np.ndarray]):
    """Run the DP over all candidates.

    Returns ``(choices, values, reach)``: the chosen stake per layer and cell,
    plus the final layer's objective values and reachability.
    """
    budget = problem.budget
    stakes = np.arange(budget + 1)

    values = [np.full((budget + 1, layout.size), NEG) for _ in objectives]
    for value, objective in zip(values, objectives):
        value[0, 0] = objective.start
    reach = np.zeros((budget + 1, layout.size), dtype=bool)
    reach[0, 0] = True

    choices = []
    for i in range(problem.size):
        width = layout.width(i)
        still, moved = layout.sources(i)
        still_ok, moved_ok = still >= 0, moved >= 0
        still_cols = np.where(still_ok, still, 0)
        moved_cols = np.where(moved_ok, moved, 0)
        flag = layout.flags(i)
        gains = [objective.gains[i] for objective in objectives]

        choice = np.full((budget + 1, width), -1, dtype=np.int32)
        next_values = [np.full_like(value, NEG) for value in values]
        next_reach = np.zeros_like(reach)

        for b in range(budget + 1):
            rows = (b - stakes[: b + 1])[:, None]
            moves = flag[: b + 1, None]
            cols = np.where(moves, moved_cols, still_cols)
            linked = np.where(moves, moved_ok, still_ok)
            valid = linked & allowed[i][: b + 1, None] & reach[rows, cols]
            if not valid.any():
                continue

            candidates = []
            for objective, value, gain in zip(objectives, values, gains):
                prev = value[rows, cols]
                step = gain[: b + 1, None]
                candidates.append(np.minimum(prev, step) if objective.kind == MIN else prev + step)

            picked = _pick(candidates, valid)
            live = np.nonzero(picked >= 0)[0]
            chosen = picked[live]
            choice[b, live] = chosen
            next_reach[b, live] = True
            for next_value, candidate in zip(next_values, candidates):
                next_value[b, live] = candidate[chosen, live]

        choices.append(choice)
        values, reach = next_values, next_reach

    return choices, values, reach


def _backtrack(choices: list[np.ndarray], budget: int, aux: int, layout) -> Optional[tuple[int, ...]]:
    """Walk the layers in reverse from ``(budget, aux)``; None if a cell is unset."""
    allocation = [0] * len(choices)
    remaining = budget
    for i in range(len(choices) - 1, -1, -1):
        stake = int(choices[i][remaining, aux])
        if stake < 0:
            return None
        allocation[i] = stake
        remaining -= stake
        aux = layout.release(aux, i, stake)
    if remaining != 0:
        return None
    return tuple(allocation)


def _finish(solver: str, choices, budget: int, aux: int, layout) -> SolveResult:
    allocation = _backtrack(choices, budget, aux, layout)
    if allocation is None:
        return Infeasible(solver, "Backtracking reached an unreachable state.")
    return Solved(solver, allocation)


def _budget_only(problem: Problem, solver: str, objectives: list[_Objective],
                 allowed: Optional[list[np.ndarray]] = None) -> SolveResult:
    layout = _BudgetOnly(problem.budget)
    if allowed is None:
        allowed = [problem.admitted] * problem.size
    choices, _, reach = _forward(problem, objectives, layout, allowed)
    if not reach[problem.budget, 0]:
        return Infeasible(solver, "No allocation spends the whole budget under the constraints.")
    return _finish(solver, choices, problem.budget, 0, layout)


# ──────────────────────────────────────────────
# Solvers
# ──────────────────────────────────────────────

def all_weather_maximin(problem: Problem) -> SolveResult:
    """Maximise the worst-case payout across outcomes; ties go to higher EV."""
    logger.debug(f"maximin: n={problem.size}, budget={problem.budget}")
    objectives = [
        _Objective(MIN, problem.payout_floats),
        _Objective(SUM, problem.weighted_payouts()),
    ]
    return _budget_only(problem, ALL_WEATHER_MAXIMIN, objectives)


def ev_with_min_payout(problem: Problem, min_payout: Optional[int] = None) -> SolveResult:
    """Maximise EV; with ``min_payout`` every outcome must pay at least that much.

    A stake whose payout is below the floor is never admitted, including a
    zero stake, so every candidate must be covered.
    """
    allowed = [problem.admitted] * problem.size
    if min_payout is not None:
        stakes = np.arange(problem.budget + 1)
        allowed = [
            problem.admitted & (stakes >= first_stake_reaching(table, min_payout))
            for table in problem.payouts
        ]
    logger.debug(f"ev: n={problem.size}, budget={problem.budget}, floor={min_payout}")
    result = _budget_only(problem, EV_WITH_MIN_PAYOUT, [_Objective(SUM, problem.weighted_payouts())], allowed)
    if isinstance(result, Infeasible) and min_payout is not None:
        return Infeasible(EV_WITH_MIN_PAYOUT, f"No allocation pays at least {min_payout} on every outcome.")
    return result


def expected_utility(problem: Problem, utility: Callable[[np.ndarray], np.ndarray]) -> SolveResult:
    """Maximise expected ``utility(payout)``; ties go to higher raw EV.

    ``utility`` maps an array of payouts to an array of utilities.
    """
    utilities = [
        p * np.asarray(utility(arr), dtype=np.float64)
        for p, arr in zip(problem.probabilities, problem.payout_floats)
    ]
    objectives = [
        _Objective(SUM, utilities),
        _Objective(SUM, problem.weighted_payouts()),
    ]
    return _budget_only(problem, EXPECTED_UTILITY, objectives)


def ev_under_loss_cap(problem: Problem, loss_cap: float) -> SolveResult:
    """Maximise EV while the probability of an outcome paying < budget stays <= cap.

    Losing outcomes are tracked as a bitmask; among final masks within the
    cap the highest EV wins, then the lower loss probability.
    """
    budget = problem.budget
    flags = [np.array([x < budget for x in table]) for table in problem.payouts]
    layout = _Bitmask(flags)
    logger.debug(f"loss cap: n={problem.size}, budget={budget}, masks={layout.size}")

    choices, values, reach = _forward(
        problem, [_Objective(SUM, problem.weighted_payouts())], layout, [problem.admitted] * problem.size
    )

    mask_loss = mask_probabilities(problem.probabilities)
    eligible = reach[budget] & (mask_loss <= loss_cap + EPS)
    best = int(_pick([values[0][budget], -mask_loss], eligible))
    if best < 0:
        return Infeasible(EV_UNDER_LOSS_CAP, f"No allocation keeps loss probability within {loss_cap:g}.")
    return _finish(EV_UNDER_LOSS_CAP, choices, budget, best, layout)


def maximize_prob_target(problem: Problem, target: int) -> SolveResult:
    """Maximise the probability that the winning outcome pays at least ``target``.

    Hit outcomes are tracked as a bitmask. Within a cell ties go to higher EV
    then higher worst case; across final masks the order is hit probability,
    EV, worst case.
    """
    budget = problem.budget
    flags = [np.array([x >= target for x in table]) for table in problem.payouts]
    layout = _Bitmask(flags)
    logger.debug(f"target: n={problem.size}, budget={budget}, target={target}")

    objectives = [
        _Objective(SUM, problem.weighted_payouts()),
        _Objective(MIN, problem.payout_floats),
    ]
    choices, values, reach = _forward(problem, objectives, layout, [problem.admitted] * problem.size)

    mask_hits = mask_probabilities(problem.probabilities)
    best = int(_pick([mask_hits, values[0][budget], values[1][budget]], reach[budget]))
    if best < 0:
        return Infeasible(MAXIMIZE_PROB_TARGET, "No allocation spends the whole budget under the constraints.")
    return _finish(MAXIMIZE_PROB_TARGET, choices, budget, best, layout)


def sparse_k_focus(problem: Problem, max_k: int) -> SolveResult:
    """Maximise EV with at most ``max_k`` candidates receiving a nonzero stake."""
    limit = max(1, min(max_k, problem.size))
    budget = problem.budget
    layout = _NonzeroCount(budget, limit)
    logger.debug(f"sparse: n={problem.size}, budget={budget}, k={limit}")

    choices, values, reach = _forward(
        problem, [_Objective(SUM, problem.weighted_payouts())], layout, [problem.admitted] * problem.size
    )

    best = int(_pick([values[0][budget]], reach[budget]))
    if best < 0:
        return Infeasible(SPARSE_K_FOCUS, f"No allocation uses at most {limit} candidates.")
    return _finish(SPARSE_K_FOCUS, choices, budget, best, layout)


def max_prob_focus(problem: Problem) -> SolveResult:
    """All-in on the most likely candidate; ties go to the higher multiplier.

    Multipliers are compared exactly; remaining ties keep the earliest candidate.
    """
    if len(problem.multipliers) != problem.size:
        raise ValueError("max_prob_focus needs a multiplier per candidate")

    best = 0
    for i in range(1, problem.size):
        p, best_p = problem.probabilities[i], problem.probabilities[best]
        if p > best_p + EPS or (abs(p - best_p) <= EPS and problem.multipliers[i] > problem.multipliers[best]):
            best = i

    if not problem.stake_filter.allows(problem.budget):
        return Infeasible(MAX_PROB_FOCUS, f"A single stake of {problem.budget} is outside the stake limits.")
    allocation = [0] * problem.size
    allocation[best] = problem.budget
    return Solved(MAX_PROB_FOCUS, tuple(allocation))


# ──────────────────────────────────────────────
# Utilities for expected_utility
# ──────────────────────────────────────────────

def shortfall_utility(budget: int, penalty: float) -> Callable[[np.ndarray], np.ndarray]:
    """Payout minus ``penalty`` per unit the payout falls short of the budget."""

    def utility(payouts: np.ndarray) -> np.ndarray:
        return payouts - penalty * np.maximum(0.0, budget - payouts)

    return utility


def log_utility(payouts: np.ndarray) -> np.ndarray:
    """``log(1 + payout)``: spreads stakes roughly in proportion to probability."""
    return np.log1p(payouts)
