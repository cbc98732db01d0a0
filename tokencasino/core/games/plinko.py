"""
Plinko - a ball drops through 16 rows of pegs into one of 17 buckets.

The landing bucket is sampled first from the risk tier's distribution; the
bounce path is then solved backwards from that bucket, so the animation can
never disagree with the payout.
"""

from enum import Enum
from typing import Dict, List

from tokencasino.core.models import GameType
from tokencasino.core.rng import RandomSource
from tokencasino.core.rounds import GameRound

ROWS = 16


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


MULTIPLIERS: Dict[RiskLevel, List[float]] = {
    RiskLevel.LOW: [5.6, 2.3, 1.6, 1.4, 1.3, 1.1, 1.0, 0.5, 0.3, 0.5, 1.0, 1.1, 1.3, 1.4, 1.6, 2.3, 5.6],
    RiskLevel.MEDIUM: [11.2, 3.4, 2.1, 1.6, 1.3, 1.1, 0.9, 0.4, 0.2, 0.4, 0.9, 1.1, 1.3, 1.6, 2.1, 3.4, 11.2],
    RiskLevel.HIGH: [22.4, 4.5, 2.6, 1.8, 1.3, 1.0, 0.7, 0.3, 0.1, 0.3, 0.7, 1.0, 1.3, 1.8, 2.6, 4.5, 22.4],
}

# Cumulative upper bounds, outermost bucket pair first. Interval i covers
# bucket i (lower half) and its mirror 16 - i (upper half).
CUMULATIVE: Dict[RiskLevel, List[float]] = {
    RiskLevel.LOW: [0.05, 0.15, 0.30, 0.45, 0.60, 0.75, 0.90, 1.0],
    RiskLevel.MEDIUM: [0.03, 0.10, 0.25, 0.40, 0.60, 0.80, 0.95, 1.0],
    RiskLevel.HIGH: [0.02, 0.07, 0.20, 0.35, 0.55, 0.75, 0.90, 1.0],
}

BUCKETS = ROWS + 1
CENTER_BUCKET = BUCKETS // 2


def pick_bucket(risk: RiskLevel, draw: float) -> int:
    """Map one uniform draw to a bucket index through the tier's distribution."""
    lower = 0.0
    for index, upper in enumerate(CUMULATIVE[risk]):
        if lower <= draw < upper:
            midpoint = (lower + upper) / 2
            return index if draw < midpoint else BUCKETS - 1 - index
        lower = upper
    return CENTER_BUCKET


def path_to_bucket(bucket: int, rows: int = ROWS) -> List[str]:
    """
    Bounce path ending in `bucket`: exactly `bucket` right bounces,
    spread evenly over the rows.
    """
    if not 0 <= bucket <= rows:
        raise ValueError(f"Bucket {bucket} unreachable with {rows} rows")
    path = []
    rights = 0
    for row in range(1, rows + 1):
        target = round(bucket * row / rows)
        if target > rights:
            path.append("R")
            rights += 1
        else:
            path.append("L")
    return path


def drop(source: RandomSource, risk: RiskLevel) -> Dict:
    bucket = pick_bucket(risk, source.next())
    return {
        "bucket": bucket,
        "multiplier": MULTIPLIERS[risk][bucket],
        "path": path_to_bucket(bucket),
    }


class PlinkoRound(GameRound):
    game_type = GameType.PLINKO

    def __init__(self, *args, risk: RiskLevel = RiskLevel.MEDIUM, **kwargs):
        super().__init__(*args, **kwargs)
        self.risk = RiskLevel(risk)
        self.result: Dict = {}

    async def on_start(self):
        self.result = drop(self.source, self.risk)
        multiplier = self.result["multiplier"]
        await self.settle(multiplier, "win" if multiplier > 1 else "lose")

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["risk"] = self.risk.value
        data.update(self.result)
        return data
