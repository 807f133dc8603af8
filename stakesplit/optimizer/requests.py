"""Optimization request validation.

Turns a raw request body (already JSON-decoded) into an ``OptimizeRequest``
with typed candidates, normalised probabilities and one parameter object
per mode. Every rejection is a ``ValidationError`` carrying field-level
notes; informational messages (percent detection, duplicate names) are
collected on the request instead.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from stakesplit.config import settings
from stakesplit.optimizer.ratio import ExactRatio, ParseError
from stakesplit.optimizer.solvers import StakeFilter

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────
# Modes
# ──────────────────────────────────────────────

ALL_WEATHER_MAXIMIN = "all_weather_maximin"
HEDGE_BREAKEVEN_THEN_EV = "hedge_breakeven_then_ev"
BEAST_EV_UNDER_MAXLOSS = "beast_ev_under_maxloss"
LOSS_LIMIT = "loss_limit"
EV_UNDER_LOSSPROB_CAP = "ev_under_lossprob_cap"
MAXIMIZE_PROB_GE_TARGET = "maximize_prob_ge_target"
SPARSE_K_FOCUS = "sparse_k_focus"
EV_WITH_SHORTFALL_PENALTY = "ev_with_shortfall_penalty"
MAXIMIZE_EV = "maximize_ev"
BALANCED_PROFIT = "balanced_profit"
MAX_PROB_FOCUS = "max_prob_focus"
FRONTIER_GENERATE = "frontier_generate"

MODES = (
    ALL_WEATHER_MAXIMIN,
    HEDGE_BREAKEVEN_THEN_EV,
    BEAST_EV_UNDER_MAXLOSS,
    LOSS_LIMIT,
    EV_UNDER_LOSSPROB_CAP,
    MAXIMIZE_PROB_GE_TARGET,
    SPARSE_K_FOCUS,
    EV_WITH_SHORTFALL_PENALTY,
    MAXIMIZE_EV,
    BALANCED_PROFIT,
    MAX_PROB_FOCUS,
)

# Modes whose DP carries a 2**n subset dimension
MASK_MODES = frozenset({EV_UNDER_LOSSPROB_CAP, MAXIMIZE_PROB_GE_TARGET})

# Known to the front-end but not solvable here
UNSUPPORTED_MODES = frozenset({FRONTIER_GENERATE})

# Probability sums in this range are read as percentages
PERCENT_SUM_RANGE = (1.5, 100.5)
SUM_TOLERANCE = 0.01


class ValidationError(ValueError):
    """Malformed or out-of-range request input."""

    def __init__(self, *notes: str):
        self.notes = list(notes)
        super().__init__(" ".join(notes))


class UnsupportedMode(ValidationError):
    """The requested mode does not match a solver."""

    pass


# ──────────────────────────────────────────────
# Typed request
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Candidate:
    """One mutually-exclusive outcome."""

    name: str
    p: float
    multiplier: ExactRatio


@dataclass(frozen=True)
class NoParams:
    pass


@dataclass(frozen=True)
class MaxLossParams:
    max_loss: float  # fraction of the budget that may be lost on any outcome


@dataclass(frozen=True)
class LossProbCapParams:
    cap: float


@dataclass(frozen=True)
class TargetParams:
    target: int


@dataclass(frozen=True)
class SparseParams:
    k: int


@dataclass(frozen=True)
class ShortfallParams:
    penalty: float


ModeParams = Union[NoParams, MaxLossParams, LossProbCapParams, TargetParams, SparseParams, ShortfallParams]


@dataclass(frozen=True)
class Limits:
    """Size guards applied before any solve."""

    max_budget: int = 10_000
    max_candidates: int = 64
    max_dp_work: int = 1_000_000_000
    max_mask_candidates: int = 16
    max_mask_work: int = 268_435_456
    min_stake: int = 0
    max_stake: Optional[int] = None

    @classmethod
    def from_settings(cls) -> "Limits":
        return cls(
            max_budget=settings.max_budget,
            max_candidates=settings.max_candidates,
            max_dp_work=settings.max_dp_work,
            max_mask_candidates=settings.max_mask_candidates,
            max_mask_work=settings.max_mask_work,
            min_stake=settings.min_stake,
            max_stake=settings.max_stake,
        )


@dataclass
class OptimizeRequest:
    """A validated request, ready to dispatch."""

    budget: int
    candidates: list[Candidate]
    mode: str
    params: ModeParams
    stake_filter: StakeFilter = field(default_factory=StakeFilter)
    notes: list[str] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.candidates]

    @property
    def probabilities(self) -> list[float]:
        return [c.p for c in self.candidates]


# ──────────────────────────────────────────────
# Field helpers
# ──────────────────────────────────────────────

def _as_number(raw: Any) -> Optional[float]:
    """Finite float from a JSON number or numeric string; None otherwise."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _fraction(params: dict, keys: tuple[str, ...], notes: list[str]) -> float:
    """A probability-like parameter given as a fraction or a percentage."""
    key = next((k for k in keys if params.get(k) is not None), keys[0])
    value = _as_number(params.get(key))
    if value is None:
        raise ValidationError(f"{key} is required.")
    if 1 < value <= 100:
        value /= 100
        notes.append(f"{key} interpreted as percent.")
    if value < 0 or value > 1:
        raise ValidationError(f"{key} must be between 0 and 1.")
    return value


def _integer(params: dict, key: str, minimum: int, message: str) -> int:
    value = _as_number(params.get(key))
    if value is None:
        raise ValidationError(f"{key} is required.")
    if not value.is_integer() or value < minimum:
        raise ValidationError(message)
    return int(value)


def _parse_mode_params(mode: str, params: dict, notes: list[str]) -> ModeParams:
    if mode in (BEAST_EV_UNDER_MAXLOSS, LOSS_LIMIT):
        return MaxLossParams(_fraction(params, ("maxLossPct", "maxLossPercent"), notes))
    if mode == EV_UNDER_LOSSPROB_CAP:
        return LossProbCapParams(_fraction(params, ("lossProbCap",), notes))
    if mode == MAXIMIZE_PROB_GE_TARGET:
        return TargetParams(_integer(params, "targetT", 0, "targetT must be a non-negative integer."))
    if mode == SPARSE_K_FOCUS:
        return SparseParams(_integer(params, "kSparse", 1, "kSparse must be an integer >= 1."))
    if mode == EV_WITH_SHORTFALL_PENALTY:
        return ShortfallParams(_fraction(params, ("shortfallPenalty",), notes))
    return NoParams()


def _parse_stake_filter(params: dict, limits: Limits) -> StakeFilter:
    min_stake = limits.min_stake
    max_stake = limits.max_stake
    if params.get("minStake") is not None:
        min_stake = _integer(params, "minStake", 1, "minStake must be an integer >= 1.")
    if params.get("maxStake") is not None:
        max_stake = _integer(params, "maxStake", 1, "maxStake must be an integer >= 1.")
    if max_stake is not None and max_stake < min_stake:
        raise ValidationError("maxStake must be at least minStake.")
    return StakeFilter(min_stake=min_stake, max_stake=max_stake)


def _parse_candidate(raw: Any, seen: set[str], notes: list[str]) -> Candidate:
    if not isinstance(raw, dict):
        raise ValidationError("Candidate entries must be objects.")

    name = raw.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Candidate name is required.")
    if name in seen:
        notes.append(f"Duplicate candidate name detected: {name}.")
    seen.add(name)

    p = raw.get("p")
    if isinstance(p, bool) or not isinstance(p, (int, float)) or not math.isfinite(p) or p < 0:
        raise ValidationError(f"Invalid probability for {name}.")

    try:
        multiplier = ExactRatio.parse(raw.get("m"))
    except ParseError as e:
        raise ValidationError(f"Invalid multiplier for {name}.") from e

    return Candidate(name=name, p=float(p), multiplier=multiplier)


def _check_size(mode: str, params: ModeParams, n: int, budget: int, limits: Limits) -> None:
    slots = budget + 1
    if mode in MASK_MODES:
        if n > limits.max_mask_candidates:
            raise ValidationError(f"{mode} supports at most {limits.max_mask_candidates} candidates.")
        if slots * slots * (1 << n) > limits.max_mask_work:
            raise ValidationError(f"Budget {budget} with {n} candidates is too large for {mode}.")
        return
    if mode == MAX_PROB_FOCUS:
        return
    aux = min(params.k, n) + 1 if isinstance(params, SparseParams) else 1
    if n * slots * slots * aux > limits.max_dp_work:
        raise ValidationError(f"Budget {budget} with {n} candidates is too large for {mode}.")


# ──────────────────────────────────────────────
# Entry points
# ──────────────────────────────────────────────

def normalize_probabilities(probabilities: list[float], normalize: bool) -> tuple[list[float], list[str]]:
    """Apply the probability normalisation policy.

    With ``normalize`` and a positive sum, scale to sum to 1. Otherwise a sum
    in (1.5, 100.5] is read as percentages. Values are never rejected; a sum
    far from 1 only produces a note.
    """
    notes = []
    total = sum(probabilities)
    if normalize:
        if total > 0:
            probabilities = [p / total for p in probabilities]
            notes.append("Probabilities normalized to sum to 1.")
            total = 1.0
    elif PERCENT_SUM_RANGE[0] < total <= PERCENT_SUM_RANGE[1]:
        probabilities = [p / 100 for p in probabilities]
        notes.append("Probabilities interpreted as percent inputs.")
        total = sum(probabilities)

    if abs(total - 1) > SUM_TOLERANCE:
        notes.append(f"Probabilities sum to {total:.4f}. Using values as-is.")
    return probabilities, notes


def parse_request(payload: Any, limits: Optional[Limits] = None) -> OptimizeRequest:
    """Validate a decoded request body.

    Raises:
        ValidationError: on the first malformed field.
        UnsupportedMode: when ``mode`` names no solver.
    """
    limits = limits or Limits.from_settings()
    if not isinstance(payload, dict):
        raise ValidationError("Invalid request payload.")

    budget = payload.get("budget")
    if isinstance(budget, float) and budget.is_integer():
        budget = int(budget)
    if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
        raise ValidationError("Budget must be a positive integer.")
    if budget > limits.max_budget:
        raise ValidationError(f"Budget must not exceed {limits.max_budget}.")

    raw_candidates = payload.get("candidates")
    if not isinstance(raw_candidates, list) or not raw_candidates:
        raise ValidationError("At least one candidate is required.")
    if len(raw_candidates) > limits.max_candidates:
        raise ValidationError(f"At most {limits.max_candidates} candidates are supported.")

    if payload.get("rounding") != "floor":
        raise ValidationError("Only floor rounding is supported.")

    params = payload.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ValidationError("params must be an object.")

    notes: list[str] = []
    seen: set[str] = set()
    candidates = [_parse_candidate(raw, seen, notes) for raw in raw_candidates]

    probabilities, prob_notes = normalize_probabilities(
        [c.p for c in candidates], params.get("normalizeProb") is True
    )
    notes.extend(prob_notes)
    candidates = [
        Candidate(name=c.name, p=p, multiplier=c.multiplier) for c, p in zip(candidates, probabilities)
    ]

    mode = payload.get("mode")
    if isinstance(mode, str) and mode in UNSUPPORTED_MODES:
        raise UnsupportedMode(f"{mode} is not supported in the bundled backend.")
    if not isinstance(mode, str) or mode not in MODES:
        raise UnsupportedMode(f"Unknown mode: {mode}")

    mode_params = _parse_mode_params(mode, params, notes)
    stake_filter = _parse_stake_filter(params, limits)
    _check_size(mode, mode_params, len(candidates), budget, limits)

    logger.debug(f"Validated {mode} request: n={len(candidates)}, budget={budget}")
    return OptimizeRequest(
        budget=budget,
        candidates=candidates,
        mode=mode,
        params=mode_params,
        stake_filter=stake_filter,
        notes=notes,
    )

