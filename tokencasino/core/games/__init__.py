"""Game modules for the token casino."""

from typing import Dict, Type

from tokencasino.core.models import GameType
from tokencasino.core.rounds import GameRound

from .blackjack import BlackjackRound
from .crash import CrashRound
from .dice import DiceRound
from .mines import MinesRound
from .mining import EnergyMeter, MiningRound
from .plinko import PlinkoRound, RiskLevel

GAME_ROUNDS: Dict[GameType, Type[GameRound]] = {
    GameType.CRASH: CrashRound,
    GameType.DICE: DiceRound,
    GameType.MINES: MinesRound,
    GameType.PLINKO: PlinkoRound,
    GameType.BLACKJACK: BlackjackRound,
    GameType.MINING: MiningRound,
}

__all__ = [
    "GAME_ROUNDS",
    "BlackjackRound",
    "CrashRound",
    "DiceRound",
    "MinesRound",
    "MiningRound",
    "EnergyMeter",
    "PlinkoRound",
    "RiskLevel",
]
