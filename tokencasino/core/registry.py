"""
In-process store of live game rounds.

Rounds are kept only while a player can still act on them: settled rounds
are dropped, and rounds still Idle past the timeout (their start never
completed) are abandoned.
"""

import time
from typing import Callable, Dict, List

from tokencasino.config import settings
from tokencasino.core.exceptions import RoundNotFound, RoundStateError
from tokencasino.core.logger import get_logger
from tokencasino.core.rounds import GameRound

logger = get_logger("registry")


class RoundRegistry:
    def __init__(self, idle_timeout: float = None, clock: Callable[[], float] = time.time):
        self.idle_timeout = (
            idle_timeout if idle_timeout is not None else settings.games.round_idle_timeout
        )
        self._clock = clock
        self._rounds: Dict[str, GameRound] = {}

    def __len__(self):
        return len(self._rounds)

    def __contains__(self, round_id: str):
        return round_id in self._rounds

    def add(self, game_round: GameRound) -> GameRound:
        if not game_round.is_settled:
            self._rounds[game_round.id] = game_round
        return game_round

    def get(self, round_id: str, account_id: str) -> GameRound:
        """Look up a live round owned by `account_id`."""
        game_round = self._rounds.get(round_id)
        if game_round is None:
            raise RoundNotFound()
        if game_round.account_id != account_id:
            raise RoundStateError("This is not your game")
        return game_round

    def remove(self, game_round: GameRound):
        self._rounds.pop(game_round.id, None)

    def discard(self, game_round: GameRound):
        """Drop the round once it has settled."""
        if game_round.is_settled:
            self._rounds.pop(game_round.id, None)

    def sweep(self) -> List[str]:
        """Remove settled rounds and Idle rounds older than the timeout."""
        now = self._clock()
        removed = []
        for round_id, game_round in list(self._rounds.items()):
            if game_round.is_settled:
                removed.append(round_id)
            elif not game_round.is_active and now - game_round.created_at > self.idle_timeout:
                logger.info(
                    "Abandoned idle round removed",
                    extra={"round_id": round_id, "account_id": game_round.account_id},
                )
                removed.append(round_id)
        for round_id in removed:
            del self._rounds[round_id]
        return removed
