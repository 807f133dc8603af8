"""Result metrics for a chosen allocation."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AllocationResult:
    """Allocation, per-outcome payouts and summary metrics."""

    allocation: list[dict]
    payout_by_outcome: list[dict]
    metrics: dict

    def to_dict(self) -> dict:
        return {
            "allocation": self.allocation,
            "payoutByOutcome": self.payout_by_outcome,
            "metrics": self.metrics,
        }


def build_result(
    names: list[str],
    probabilities: list[float],
    payouts: list[list[int]],
    allocation: tuple[int, ...],
    budget: int,
    target: Optional[int] = None,
) -> AllocationResult:
    """Recompute payouts for ``allocation`` and derive metrics.

    Metrics:
        G: worst-case payout (payout if the worst outcome wins)
        EV: sum of p_i * payout_i
        EP: EV - budget
        P_loss: probability mass of outcomes paying less than the budget
        Var: sum of p_i * (payout_i - EV)^2
        P_ge_T: probability mass of outcomes paying at least ``target``
            (only when a target is given)
    """
    outcome_payouts = [payouts[i][stake] for i, stake in enumerate(allocation)]

    ev = 0.0
    p_loss = 0.0
    p_hit = 0.0
    for p, payout in zip(probabilities, outcome_payouts):
        ev += p * payout
        if payout < budget:
            p_loss += p
        if target is not None and payout >= target:
            p_hit += p

    metrics = {
        "G": min(outcome_payouts) if outcome_payouts else 0,
        "EV": ev,
        "EP": ev - budget,
        "P_loss": p_loss,
        "Var": sum(p * (payout - ev) ** 2 for p, payout in zip(probabilities, outcome_payouts)),
    }
    if target is not None:
        metrics["P_ge_T"] = p_hit

    return AllocationResult(
        allocation=[{"name": name, "s": stake} for name, stake in zip(names, allocation)],
        payout_by_outcome=[{"name": name, "payout": payout} for name, payout in zip(names, outcome_payouts)],
        metrics=metrics,
    )
