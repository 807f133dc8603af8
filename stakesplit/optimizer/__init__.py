"""Integer budget allocation across mutually-exclusive outcomes."""

from stakesplit.optimizer.dispatch import OptimizeOutcome, optimize, solve
from stakesplit.optimizer.ratio import ExactRatio, ParseError
from stakesplit.optimizer.requests import Limits, UnsupportedMode, ValidationError, parse_request
from stakesplit.optimizer.solvers import Infeasible, Problem, Solved, StakeFilter

__all__ = [
    "ExactRatio",
    "Infeasible",
    "Limits",
    "OptimizeOutcome",
    "ParseError",
    "Problem",
    "Solved",
    "StakeFilter",
    "UnsupportedMode",
    "ValidationError",
    "optimize",
    "parse_request",
    "solve",
]
