"""
Dice - roll a number in [0, 100) and win if it is at or under the target.
Win probability equals the target percent; payout is 99 / target (1% edge).
"""

from typing import Dict

from tokencasino.core.exceptions import InvalidBet
from tokencasino.core.models import GameType
from tokencasino.core.money import round_multiplier
from tokencasino.core.rng import RandomSource
from tokencasino.core.rounds import GameRound

MIN_TARGET = 1.0
MAX_TARGET = 98.0
RETURN_TO_PLAYER = 99


def payout_multiplier(target: float) -> float:
    """Multiplier for a winning roll, rounded to 4 decimals."""
    return round_multiplier(RETURN_TO_PLAYER / target, 4)


def roll(source: RandomSource) -> float:
    return source.next() * 100


def is_win(rolled: float, target: float) -> bool:
    return rolled <= target


class DiceRound(GameRound):
    game_type = GameType.DICE

    def __init__(self, *args, target: float = 50.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.target = float(target)
        self.rolled = None

    def validate(self):
        if not MIN_TARGET <= self.target <= MAX_TARGET:
            raise InvalidBet(f"Target must be between {MIN_TARGET:g} and {MAX_TARGET:g}")

    @property
    def multiplier(self) -> float:
        return payout_multiplier(self.target)

    async def on_start(self):
        self.rolled = roll(self.source)
        if is_win(self.rolled, self.target):
            await self.settle(self.multiplier, "win")
        else:
            await self.settle(0, "lose")

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update(
            {
                "target": self.target,
                "payout_multiplier": self.multiplier,
                "rolled": round(self.rolled, 2) if self.rolled is not None else None,
            }
        )
        return data
