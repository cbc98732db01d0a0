"""Test doubles shared across the suite."""

import asyncio
from decimal import Decimal

from tokencasino.core.ledger import BalanceCache, LedgerService
from tokencasino.core.repositories import (
    InMemoryAccountRepository,
    InMemorySettlementKeyRepository,
    InMemoryTransactionRepository,
)
from tokencasino.core.transactions import TransactionLog


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FlakyAccountRepository(InMemoryAccountRepository):
    """In-memory accounts whose writes can be switched off. Every call yields to the loop."""

    def __init__(self, balances=None):
        super().__init__(balances)
        self.fail_writes = False

    async def get_balance(self, account_id):
        await asyncio.sleep(0)
        return await super().get_balance(account_id)

    async def set_balance(self, account_id, balance):
        await asyncio.sleep(0)
        if self.fail_writes:
            raise ConnectionError("ledger offline")
        return await super().set_balance(account_id, balance)


class StuckSettlementKeyRepository(InMemorySettlementKeyRepository):
    """Claims work; releases fail while `fail_releases` is set."""

    def __init__(self):
        super().__init__()
        self.fail_releases = True

    async def release(self, key):
        if self.fail_releases:
            raise ConnectionError("key store offline")
        await super().release(key)


class FailingTransactionRepository(InMemoryTransactionRepository):
    async def insert(self, record):
        raise ConnectionError("log offline")


def balances(**amounts):
    return {account: Decimal(str(amount)) for account, amount in amounts.items()}


def make_ledger(accounts=None, transactions=None, cache=None, settlement_keys=None):
    """LedgerService over in-memory repositories; returns (ledger, accounts, transactions)."""
    accounts = accounts if accounts is not None else InMemoryAccountRepository()
    transactions = transactions if transactions is not None else InMemoryTransactionRepository()
    ledger = LedgerService(
        accounts,
        TransactionLog(transactions),
        settlement_keys if settlement_keys is not None else InMemorySettlementKeyRepository(),
        cache=cache or BalanceCache(ttl=5.0),
        starting_balance=0,
    )
    return ledger, accounts, transactions
