import pytest

from tokencasino.core.repositories import InMemoryAccountRepository

from tests.helpers import FakeClock, balances, make_ledger


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def accounts():
    """`alice` starts with 100 tokens."""
    return InMemoryAccountRepository(balances(alice="100.00"))


@pytest.fixture
def ledger_parts(accounts):
    return make_ledger(accounts)


@pytest.fixture
def ledger(ledger_parts):
    return ledger_parts[0]


@pytest.fixture
def records(ledger_parts):
    return ledger_parts[2].records
