"""
Generic round lifecycle shared by every game.

    Idle --start()--> Active --settle()--> Settled

`start()` spends the bet through the ledger before any game state is
revealed. `settle()` runs exactly once per round and credits the payout
under the round id, so a retried credit can never pay twice. A bet of 0 is
a practice round and never touches the ledger.
"""

import time
import uuid
from decimal import Decimal
from typing import Dict, Optional

from tokencasino.config import GameConfig, settings
from tokencasino.core.exceptions import (
    InvalidBet,
    LedgerWriteFailure,
    RoundStateError,
    SettlementFailure,
)
from tokencasino.core.ledger import LedgerService, PendingSettlement
from tokencasino.core.logger import get_logger
from tokencasino.core.models import GameType, RoundStatus
from tokencasino.core.money import Number, ZERO, payout, round_money
from tokencasino.core.rng import RandomSource, rng

logger = get_logger("rounds")


class GameRound:
    game_type: GameType = None

    def __init__(
        self,
        account_id: str,
        bet: Number,
        ledger: LedgerService,
        source: RandomSource = None,
        config: GameConfig = None,
    ):
        self.id = uuid.uuid4().hex
        self.account_id = account_id
        self.bet = round_money(bet)
        self.ledger = ledger
        self.source = source or rng
        self.config = config or getattr(settings.games, self.game_type.value)

        self.status = RoundStatus.IDLE
        self.created_at = time.time()
        self.settled_at: Optional[float] = None
        self.outcome: Optional[str] = None
        self.final_multiplier: Optional[float] = None
        self.payout: Optional[Decimal] = None
        self.balance: Optional[Decimal] = None
        self.settlement_pending = False

    @property
    def is_practice(self) -> bool:
        return self.bet == ZERO

    @property
    def is_active(self) -> bool:
        return self.status == RoundStatus.ACTIVE

    @property
    def is_settled(self) -> bool:
        return self.status == RoundStatus.SETTLED

    # ==================== Hooks ====================

    def validate(self):
        """Game-specific capacity checks; raise InvalidBet."""

    def reserve(self):
        """Claim per-round resources before the bet is spent. Must not await."""

    def release(self):
        """Give back what `reserve` claimed when the bet could not be spent."""

    async def on_start(self):
        """Runs once the bet is confirmed. Rounds that resolve instantly settle here."""

    # ==================== Lifecycle ====================

    def _validate_bet(self):
        if not self.config.enabled:
            raise InvalidBet(f"{self.game_type.value} is currently disabled")
        if self.bet < ZERO:
            raise InvalidBet("Bet amount cannot be negative")
        if not self.is_practice:
            min_bet = round_money(self.config.min_bet)
            max_bet = round_money(self.config.max_bet)
            if self.bet < min_bet or self.bet > max_bet:
                raise InvalidBet(f"Bet must be between {min_bet} and {max_bet}")

    async def start(self) -> "GameRound":
        if self.status != RoundStatus.IDLE:
            raise RoundStateError("Round has already started")

        self._validate_bet()
        self.validate()
        self.reserve()

        if not self.is_practice:
            try:
                self.balance = await self.ledger.spend(
                    self.account_id, self.bet, self.game_type, reference=self.id
                )
            except Exception:
                # The round stays Idle
                self.release()
                raise

        self.status = RoundStatus.ACTIVE
        logger.info(
            f"{self.game_type.value} round started",
            extra={"round_id": self.id, "account_id": self.account_id, "bet": str(self.bet)},
        )
        await self.on_start()
        return self

    def _require_active(self):
        if self.status != RoundStatus.ACTIVE:
            raise RoundStateError("Game already completed" if self.is_settled else "Game has not started")

    async def settle(self, multiplier: Number, outcome: str) -> Decimal:
        """
        Move the round to Settled and credit `bet × multiplier`.

        A second call is rejected with RoundStateError and has no effect.
        """
        if self.status == RoundStatus.SETTLED:
            raise RoundStateError("Round already settled")
        self._require_active()

        # Flip the state before awaiting so a concurrent settle is rejected
        self.status = RoundStatus.SETTLED
        self.settled_at = time.time()
        self.outcome = outcome
        self.final_multiplier = float(multiplier)
        self.payout = payout(self.bet, multiplier) if multiplier > 0 else ZERO

        logger.info(
            f"{self.game_type.value} round settled: {outcome}",
            extra={
                "round_id": self.id,
                "account_id": self.account_id,
                "multiplier": self.final_multiplier,
                "payout": str(self.payout),
            },
        )

        if self.payout > ZERO and not self.is_practice:
            await self._credit()
        return self.payout

    async def _credit(self):
        try:
            self.balance = await self.ledger.credit(
                self.account_id,
                self.payout,
                game_type=self.game_type,
                idempotency_key=self.id,
            )
            self.settlement_pending = False
        except LedgerWriteFailure as e:
            if not self.settlement_pending:
                self.settlement_pending = True
                self.ledger.queue_settlement(
                    PendingSettlement(
                        account_id=self.account_id,
                        amount=self.payout,
                        game_type=self.game_type,
                        key=self.id,
                    )
                )
            raise SettlementFailure(self.id) from e

    async def retry_settlement(self) -> Decimal:
        """Re-issue a failed credit under the same round id."""
        if not self.settlement_pending:
            raise RoundStateError("No settlement is pending for this round")
        await self._credit()
        return self.payout

    # ==================== Serialization ====================

    def to_dict(self) -> Dict:
        data = {
            "round_id": self.id,
            "game": self.game_type.value,
            "status": self.status.value,
            "bet": float(self.bet),
            "practice": self.is_practice,
            "created_at": self.created_at,
        }
        if self.is_settled:
            data.update(
                {
                    "outcome": self.outcome,
                    "multiplier": self.final_multiplier,
                    "payout": float(self.payout),
                    "net": float(self.payout - self.bet),
                    "settlement_pending": self.settlement_pending,
                }
            )
        if self.balance is not None:
            data["balance"] = float(self.balance)
        return data
