"""
Crash ("Aviator") - a multiplier climbs every tick until it crashes.

The crash point is fixed when the round starts. The multiplier grows as
base_multiplier ** ticks; the player must cash out before it reaches the
crash point. Once a cash-out is requested the multiplier is frozen and no
further tick applies.
"""

import asyncio
import math
from typing import Awaitable, Callable, Dict, Optional

from tokencasino.core.exceptions import InvalidBet, RoundStateError
from tokencasino.core.logger import get_logger
from tokencasino.core.models import GameType
from tokencasino.core.money import round_multiplier
from tokencasino.core.rng import RandomSource
from tokencasino.core.rounds import GameRound

logger = get_logger("crash")

E = 2**32
HOUSE_EDGE = 0.99
BASE_MULTIPLIER = 1.0024
TICK_MS = 50


def crash_point(source: RandomSource, house_edge: float = HOUSE_EDGE) -> float:
    h = math.floor(source.next() * E)
    if h == 0:
        return 1.00
    return max(1.00, (100 * E - h) / (E - h)) * house_edge


def multiplier_at(ticks: int, base: float = BASE_MULTIPLIER) -> float:
    return base**ticks


TickListener = Callable[["CrashRound"], Awaitable[None]]


class CrashRound(GameRound):
    game_type = GameType.CRASH

    def __init__(self, *args, auto_cashout_at: Optional[float] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.auto_cashout_at = auto_cashout_at
        self.crash_point: Optional[float] = None
        self.ticks = 0
        self.current_multiplier = 1.0
        self.cashed_out = False
        self.crashed = False

    def validate(self):
        if self.auto_cashout_at is not None and self.auto_cashout_at <= 1.0:
            raise InvalidBet("Auto cash-out must be above 1.00x")

    async def on_start(self):
        self.crash_point = crash_point(self.source, self.config.house_edge)

    async def tick(self) -> bool:
        """Advance one tick. Returns False once the round stops flying."""
        if not self.is_active or self.cashed_out:
            return False

        next_multiplier = multiplier_at(self.ticks + 1, self.config.base_multiplier)
        if next_multiplier >= self.crash_point:
            self.crashed = True
            await self.settle(0, "crashed")
            return False

        self.ticks += 1
        self.current_multiplier = next_multiplier

        if self.auto_cashout_at is not None and self.current_multiplier >= self.auto_cashout_at:
            await self.cash_out(outcome="auto_cashout")
            return False
        return True

    async def cash_out(self, outcome: str = "cashout"):
        self._require_active()
        if self.cashed_out:
            raise RoundStateError("Already cashed out")
        # Checked by tick() before it applies, which freezes the multiplier here
        self.cashed_out = True
        return await self.settle(self.current_multiplier, outcome)

    async def run(self, on_tick: TickListener = None, tick_seconds: float = None):
        """Drive the round on a fixed timer until it crashes or cashes out."""
        if tick_seconds is None:
            tick_seconds = self.config.tick_ms / 1000
        while await self.tick():
            if on_tick is not None:
                await on_tick(self)
            await asyncio.sleep(tick_seconds)
        if on_tick is not None:
            await on_tick(self)
        logger.debug(
            "Crash round finished",
            extra={"round_id": self.id, "ticks": self.ticks, "outcome": self.outcome},
        )

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update(
            {
                "current_multiplier": round_multiplier(self.current_multiplier, 2),
                "ticks": self.ticks,
                "cashed_out": self.cashed_out,
                "crashed": self.crashed,
                "auto_cashout_at": self.auto_cashout_at,
            }
        )
        # Never leak the crash point of a live round
        if self.is_settled:
            data["crash_point"] = round_multiplier(self.crash_point, 2)
        return data
