"""
Ledger service: the only code allowed to change a token balance.

Every mutation re-reads the authoritative balance under a per-account lock,
writes the new balance and appends exactly one TransactionRecord.
"""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set

from tokencasino.config import settings
from tokencasino.core.exceptions import (
    CasinoError,
    InsufficientBalance,
    InvalidBet,
    LedgerWriteFailure,
)
from tokencasino.core.logger import get_logger
from tokencasino.core.models import GameType, TransactionRecord, TransactionType
from tokencasino.core.money import Number, ZERO, round_money, to_decimal
from tokencasino.core.repositories import (
    AccountNotFound,
    AccountRepository,
    SettlementKeyRepository,
)
from tokencasino.core.transactions import TransactionLog

logger = get_logger("ledger")


@dataclass
class CachedBalance:
    value: Decimal
    expires_at: float


class BalanceCache:
    """
    Short-lived read-through cache for displaying balances.
    Never consulted when authorizing a spend.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CachedBalance] = {}

    def get(self, account_id: str) -> Optional[Decimal]:
        entry = self._entries.get(account_id)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.value

    def put(self, account_id: str, value: Decimal):
        self._entries[account_id] = CachedBalance(value, self._clock() + self.ttl)

    def invalidate(self, account_id: str):
        self._entries.pop(account_id, None)


@dataclass
class PendingSettlement:
    """A credit that failed after its round's outcome was fixed."""

    account_id: str
    amount: Decimal
    game_type: Optional[GameType]
    key: str
    attempts: int = 0


class LedgerService:
    def __init__(
        self,
        accounts: AccountRepository,
        transactions: TransactionLog,
        settlement_keys: SettlementKeyRepository,
        cache: BalanceCache = None,
        starting_balance: Number = None,
    ):
        self.accounts = accounts
        self.transactions = transactions
        self.settlement_keys = settlement_keys
        self.cache = cache or BalanceCache(settings.economy.balance_cache_ttl)
        if starting_balance is None:
            starting_balance = settings.economy.starting_balance
        self.starting_balance = round_money(starting_balance)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: List[PendingSettlement] = []
        # Keys still claimed in the store although their credit was never applied
        self._stranded_keys: Set[str] = set()

    # ==================== Reads ====================

    async def open_account(self, account_id: str) -> Decimal:
        """Create the account with the starting balance if it is new."""
        async with self._locks[account_id]:
            try:
                await self.accounts.create_account(account_id, self.starting_balance)
                balance = await self.accounts.get_balance(account_id)
            except CasinoError:
                raise
            except Exception as e:
                raise LedgerWriteFailure(f"Could not open account {account_id}") from e
        self.cache.put(account_id, balance)
        return balance

    async def get_balance(self, account_id: str) -> Decimal:
        """Read the authoritative balance."""
        balance = await self._read(account_id)
        self.cache.put(account_id, balance)
        return balance

    async def get_display_balance(self, account_id: str) -> Decimal:
        """Balance for display; may be up to `cache.ttl` seconds old."""
        cached = self.cache.get(account_id)
        if cached is not None:
            return cached
        return await self.get_balance(account_id)

    # ==================== Mutations ====================

    async def spend(
        self,
        account_id: str,
        amount: Number,
        game_type: GameType = None,
        reference: str = None,
    ) -> Decimal:
        """Deduct `amount`; raises InsufficientBalance if it exceeds the balance."""
        amount = round_money(amount)
        if amount <= ZERO:
            raise InvalidBet("Bet amount must be greater than zero")

        async with self._locks[account_id]:
            return await self._apply(
                account_id, -amount, TransactionType.GAME_SPEND, game_type, reference
            )

    async def credit(
        self,
        account_id: str,
        amount: Number,
        game_type: GameType = None,
        tx_type: TransactionType = TransactionType.GAME_WIN,
        idempotency_key: str = None,
    ) -> Decimal:
        """
        Add `amount` to the balance.

        With an `idempotency_key`, a credit already applied under that key is
        a no-op that returns the current balance, so retries cannot pay twice.
        """
        amount = round_money(amount)
        if amount < ZERO:
            raise InvalidBet("Credit amount cannot be negative")
        if tx_type == TransactionType.GAME_SPEND:
            raise ValueError("credit cannot record a game_spend")

        async with self._locks[account_id]:
            if idempotency_key is not None:
                try:
                    claimed = await self.settlement_keys.claim(idempotency_key)
                except Exception as e:
                    raise LedgerWriteFailure("Could not record settlement key") from e
                if not claimed and idempotency_key in self._stranded_keys:
                    claimed = True
                if not claimed:
                    logger.warning(
                        "Duplicate credit ignored",
                        extra={"account_id": account_id, "reference": idempotency_key},
                    )
                    return await self._read(account_id)

            try:
                balance = await self._apply(
                    account_id, amount, tx_type, game_type, idempotency_key
                )
            except CasinoError:
                if idempotency_key is not None:
                    await self._release_key(idempotency_key, account_id)
                raise
            self._stranded_keys.discard(idempotency_key)
            return balance

    async def _release_key(self, key: str, account_id: str):
        try:
            await self.settlement_keys.release(key)
            self._stranded_keys.discard(key)
        except Exception:
            self._stranded_keys.add(key)
            logger.critical(
                "Failed to release settlement key after a failed credit",
                extra={"account_id": account_id, "reference": key},
                exc_info=True,
            )

    async def deposit(self, account_id: str, tokens: Number, reference: str = None) -> Decimal:
        """Credit purchased tokens."""
        tokens = round_money(tokens)
        if tokens <= ZERO:
            raise InvalidBet("Please enter a valid amount")
        return await self.credit(
            account_id,
            tokens,
            tx_type=TransactionType.PURCHASE,
            idempotency_key=reference,
        )

    async def _read(self, account_id: str) -> Decimal:
        try:
            return await self.accounts.get_balance(account_id)
        except AccountNotFound:
            raise LedgerWriteFailure(f"Account {account_id} does not exist") from None
        except Exception as e:
            raise LedgerWriteFailure("Failed to get current balance") from e

    async def _apply(
        self,
        account_id: str,
        delta: Decimal,
        tx_type: TransactionType,
        game_type: Optional[GameType],
        reference: Optional[str],
    ) -> Decimal:
        # Caller holds the account lock
        current = await self._read(account_id)
        new_balance = round_money(current + delta)

        if new_balance < ZERO:
            logger.warning(
                "Spend rejected: insufficient balance",
                extra={
                    "account_id": account_id,
                    "amount": str(-delta),
                    "balance": str(current),
                },
            )
            raise InsufficientBalance()

        try:
            stored = await self.accounts.set_balance(account_id, new_balance)
        except Exception as e:
            self.cache.invalidate(account_id)
            raise LedgerWriteFailure("Failed to update token balance") from e

        record = TransactionRecord(
            account_id=account_id,
            type=tx_type,
            amount=abs(delta),
            balance_after=stored,
            game_type=game_type,
            reference=reference,
        )
        try:
            await self.transactions.append(record)
        except Exception as e:
            # A balance change without its record must not survive
            try:
                await self.accounts.set_balance(account_id, current)
            except Exception:
                logger.critical(
                    "Failed to restore balance after transaction write failure",
                    extra={"account_id": account_id, "balance": str(current)},
                    exc_info=True,
                )
            self.cache.invalidate(account_id)
            raise LedgerWriteFailure("Failed to record transaction") from e

        self.cache.put(account_id, stored)
        logger.info(
            f"{tx_type.value} applied",
            extra={
                "account_id": account_id,
                "amount": str(abs(delta)),
                "balance_after": str(stored),
                "game": game_type.value if game_type else None,
                "reference": reference,
            },
        )
        return stored

    # ==================== Settlement retries ====================

    @property
    def pending_settlements(self) -> List[PendingSettlement]:
        return list(self._pending)

    def queue_settlement(self, pending: PendingSettlement):
        logger.error(
            "Settlement queued for retry",
            extra={
                "account_id": pending.account_id,
                "amount": str(pending.amount),
                "reference": pending.key,
            },
        )
        self._pending.append(pending)

    async def retry_pending_settlements(self) -> int:
        """Retry queued credits; returns how many went through."""
        if not self._pending:
            return 0

        queue, self._pending = self._pending, []
        settled = 0
        for pending in queue:
            pending.attempts += 1
            try:
                await self.credit(
                    pending.account_id,
                    pending.amount,
                    game_type=pending.game_type,
                    idempotency_key=pending.key,
                )
                settled += 1
            except Exception as e:
                logger.warning(
                    f"Settlement retry failed: {e}",
                    extra={"reference": pending.key, "attempts": pending.attempts},
                    exc_info=not isinstance(e, CasinoError),
                )
                self._pending.append(pending)
        return settled
