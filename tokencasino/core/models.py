"""Plain data shared by the ledger, the transaction log and the games."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


class GameType(str, Enum):
    CRASH = "crash"
    DICE = "dice"
    MINES = "mines"
    PLINKO = "plinko"
    BLACKJACK = "blackjack"
    MINING = "mining"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    GAME_SPEND = "game_spend"
    GAME_WIN = "game_win"


class RoundStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SETTLED = "settled"


@dataclass(frozen=True)
class TransactionRecord:
    """One balance mutation. Immutable once written."""

    account_id: str
    type: TransactionType
    amount: Decimal
    balance_after: Decimal
    game_type: Optional[GameType] = None
    reference: Optional[str] = None  # round id or deposit id
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type.value,
            "game_type": self.game_type.value if self.game_type else None,
            "amount": float(self.amount),
            "balance_after": float(self.balance_after),
            "reference": self.reference,
            "timestamp": self.timestamp.isoformat(),
        }
