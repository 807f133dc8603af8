"""Strategy catalogue shown by clients.

Static presentation data: titles, descriptions and parameter widgets for
each mode. Solvers never read it; ``GET /api/strategies`` serves it so
front-ends can build their mode pickers.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

from stakesplit.optimizer import requests as rq


@dataclass(frozen=True)
class StrategyParam:
    key: str
    label: str
    type: str  # slider | number
    default: float
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    suffix: Optional[str] = None
    unit: Optional[str] = None  # percent | integer | number


@dataclass(frozen=True)
class StrategyDef:
    id: str
    title: str
    description: str
    tip: str
    recommend_priority: int
    params: list[StrategyParam] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["recommendPriority"] = data.pop("recommend_priority")
        data["params"] = [{k: v for k, v in p.items() if v is not None} for p in data["params"]]
        return data


STRATEGIES: list[StrategyDef] = [
    StrategyDef(
        id=rq.LOSS_LIMIT,
        title="Loss limit",
        description="Set how much you can afford to lose, then earn as much as possible within it.",
        tip="Say 'I can lose up to 30%': whichever candidate wins, the loss stays within 30% "
            "and the expected return is maximised inside that limit.",
        recommend_priority=1,
        params=[
            StrategyParam(
                key="maxLossPercent", label="Maximum loss allowed", type="slider",
                default=30, min=0, max=100, step=5, suffix="%", unit="percent",
            ),
        ],
    ),
    StrategyDef(
        id=rq.BALANCED_PROFIT,
        title="Balanced profit",
        description="Spread the budget across high-value candidates for steadier returns.",
        tip="Only one candidate wins. Spreading across the better-value ones narrows the loss.",
        recommend_priority=2,
    ),
    StrategyDef(
        id=rq.ALL_WEATHER_MAXIMIN,
        title="All weather",
        description="Make the worst outcome as good as possible.",
        tip="Equalises payouts so no single winner leaves you far behind.",
        recommend_priority=3,
    ),
    StrategyDef(
        id=rq.HEDGE_BREAKEVEN_THEN_EV,
        title="Breakeven hedge",
        description="Get the budget back whoever wins, then maximise expected value.",
        tip="Falls back to all weather when breakeven on every outcome is impossible.",
        recommend_priority=4,
    ),
    StrategyDef(
        id=rq.MAXIMIZE_EV,
        title="Maximum expected value",
        description="Chase the highest expected return with no protection.",
        tip="Usually puts everything on the best-value candidate.",
        recommend_priority=5,
    ),
    StrategyDef(
        id=rq.EV_UNDER_LOSSPROB_CAP,
        title="Loss probability cap",
        description="Maximise expected value while capping the chance of losing money.",
        tip="A 20% cap means outcomes paying less than the budget may carry at most 20% probability.",
        recommend_priority=6,
        params=[
            StrategyParam(
                key="lossProbCap", label="Loss probability cap", type="slider",
                default=20, min=0, max=100, step=5, suffix="%", unit="percent",
            ),
        ],
    ),
    StrategyDef(
        id=rq.MAXIMIZE_PROB_GE_TARGET,
        title="Hit a target",
        description="Maximise the chance of collecting at least a target amount.",
        tip="Ties between equally likely plans go to expected value, then the worst case.",
        recommend_priority=7,
        params=[
            StrategyParam(key="targetT", label="Target payout", type="number", default=0, min=0, unit="integer"),
        ],
    ),
    StrategyDef(
        id=rq.SPARSE_K_FOCUS,
        title="Focus on K",
        description="Maximise expected value using at most K candidates.",
        tip="Fewer tickets, concentrated where the value is.",
        recommend_priority=8,
        params=[
            StrategyParam(key="kSparse", label="Candidates to back", type="number", default=2, min=1, unit="integer"),
        ],
    ),
    StrategyDef(
        id=rq.EV_WITH_SHORTFALL_PENALTY,
        title="Shortfall penalty",
        description="Maximise expected value, charging a penalty for every unit below breakeven.",
        tip="Higher penalties push the plan towards covering every outcome.",
        recommend_priority=9,
        params=[
            StrategyParam(
                key="shortfallPenalty", label="Shortfall penalty", type="slider",
                default=50, min=0, max=100, step=5, suffix="%", unit="percent",
            ),
        ],
    ),
    StrategyDef(
        id=rq.MAX_PROB_FOCUS,
        title="Favourite only",
        description="Put the whole budget on the most likely candidate.",
        tip="Ties in probability go to the higher multiplier.",
        recommend_priority=10,
    ),
]


def get_strategy(mode: str) -> Optional[StrategyDef]:
    return next((s for s in STRATEGIES if s.id == mode), None)
