"""
Mining - a bonus game. Each dig costs energy; it succeeds with the tier's
success rate and then pays a multiplier drawn uniformly from the tier's
reward range.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from tokencasino.config import settings
from tokencasino.core.exceptions import InvalidBet
from tokencasino.core.models import GameType
from tokencasino.core.rng import RandomSource, uniform
from tokencasino.core.rounds import GameRound


@dataclass(frozen=True)
class MiningTier:
    success_rate: float
    min_reward: float
    max_reward: float
    energy_cost: int


DIFFICULTY_SETTINGS: Dict[str, MiningTier] = {
    "easy": MiningTier(success_rate=0.8, min_reward=0.5, max_reward=2.0, energy_cost=10),
    "medium": MiningTier(success_rate=0.6, min_reward=1.0, max_reward=4.0, energy_cost=20),
    "hard": MiningTier(success_rate=0.4, min_reward=2.0, max_reward=8.0, energy_cost=30),
}


def dig(source: RandomSource, tier: MiningTier) -> Optional[float]:
    """Reward multiplier on success, None on failure."""
    if source.next() >= tier.success_rate:
        return None
    return uniform(source, tier.min_reward, tier.max_reward)


class EnergyMeter:
    """
    Per-account mining energy. Regenerates `regen` points every
    `regen_seconds`, capped at `maximum`; computed lazily on access.
    """

    def __init__(
        self,
        maximum: int = None,
        regen: int = None,
        regen_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        config = settings.games.mining
        self.maximum = maximum if maximum is not None else config.energy_max
        self.regen = regen if regen is not None else config.energy_regen
        self.regen_seconds = regen_seconds if regen_seconds is not None else config.energy_regen_seconds
        self._clock = clock
        self._state: Dict[str, Tuple[int, float]] = {}

    def level(self, account_id: str) -> int:
        now = self._clock()
        energy, since = self._state.get(account_id, (self.maximum, now))
        steps = int((now - since) // self.regen_seconds)
        if steps:
            energy = min(self.maximum, energy + steps * self.regen)
            since += steps * self.regen_seconds
        if energy >= self.maximum:
            since = now
        self._state[account_id] = (energy, since)
        return energy

    def consume(self, account_id: str, cost: int):
        energy = self.level(account_id)
        if energy < cost:
            raise InvalidBet("Not enough energy!")
        _, since = self._state[account_id]
        self._state[account_id] = (energy - cost, since)

    def refund(self, account_id: str, amount: int):
        energy = self.level(account_id)
        _, since = self._state[account_id]
        self._state[account_id] = (min(self.maximum, energy + amount), since)


class MiningRound(GameRound):
    game_type = GameType.MINING

    def __init__(self, *args, difficulty: str = "medium", energy: EnergyMeter = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.difficulty = difficulty
        self.energy = energy or EnergyMeter()
        self.reward_multiplier: Optional[float] = None

    @property
    def tier(self) -> MiningTier:
        return DIFFICULTY_SETTINGS[self.difficulty]

    def validate(self):
        if self.difficulty not in DIFFICULTY_SETTINGS:
            raise InvalidBet(f"Unknown difficulty: {self.difficulty}")

    def reserve(self):
        # Checked and deducted with no await in between
        self.energy.consume(self.account_id, self.tier.energy_cost)

    def release(self):
        self.energy.refund(self.account_id, self.tier.energy_cost)

    async def on_start(self):
        self.reward_multiplier = dig(self.source, self.tier)
        if self.reward_multiplier is None:
            await self.settle(0, "failed")
        else:
            await self.settle(self.reward_multiplier, "found_gems")

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update(
            {
                "difficulty": self.difficulty,
                "success_rate": self.tier.success_rate if self.difficulty in DIFFICULTY_SETTINGS else None,
                "energy": self.energy.level(self.account_id),
            }
        )
        return data
