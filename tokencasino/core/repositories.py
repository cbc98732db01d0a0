from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Protocol, Set

from tokencasino.core.models import TransactionRecord


class AccountNotFound(LookupError):
    pass


class AccountRepository(Protocol):
    """
    Persistence abstraction for token balances.

    The balance returned here is authoritative; callers must re-read it
    before every mutation rather than trusting an earlier value.
    """

    async def get_balance(self, account_id: str) -> Decimal:
        """Return the stored balance or raise AccountNotFound."""

        ...

    async def set_balance(self, account_id: str, balance: Decimal) -> Decimal:
        """Persist `balance` and return the value actually stored."""

        ...

    async def create_account(self, account_id: str, balance: Decimal) -> None:
        """Create the account if it does not exist yet."""

        ...


class TransactionRepository(Protocol):
    """Append-only store of TransactionRecords."""

    async def insert(self, record: TransactionRecord) -> None:
        ...

    async def list_recent(self, account_id: str, n: int) -> List[TransactionRecord]:
        """Return up to `n` records for the account, newest first."""

        ...


class SettlementKeyRepository(Protocol):
    """Remembers which settlements have already been credited."""

    async def claim(self, key: str) -> bool:
        """Record `key`; return False if it was already recorded."""

        ...

    async def release(self, key: str) -> None:
        """Forget a key whose credit did not go through."""

        ...


class InMemoryAccountRepository(AccountRepository):
    def __init__(self, balances: Dict[str, Decimal] = None):
        self.balances: Dict[str, Decimal] = dict(balances or {})

    async def get_balance(self, account_id: str) -> Decimal:
        try:
            return self.balances[account_id]
        except KeyError:
            raise AccountNotFound(account_id) from None

    async def set_balance(self, account_id: str, balance: Decimal) -> Decimal:
        if account_id not in self.balances:
            raise AccountNotFound(account_id)
        self.balances[account_id] = balance
        return balance

    async def create_account(self, account_id: str, balance: Decimal) -> None:
        self.balances.setdefault(account_id, balance)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.records: List[TransactionRecord] = []

    async def insert(self, record: TransactionRecord) -> None:
        self.records.append(record)

    async def list_recent(self, account_id: str, n: int) -> List[TransactionRecord]:
        mine = [r for r in self.records if r.account_id == account_id]
        return list(reversed(mine))[:n]


class InMemorySettlementKeyRepository(SettlementKeyRepository):
    def __init__(self):
        self.keys: Set[str] = set()

    async def claim(self, key: str) -> bool:
        if key in self.keys:
            return False
        self.keys.add(key)
        return True

    async def release(self, key: str) -> None:
        self.keys.discard(key)
