"""
Token purchases.

A purchase is authorized by an external payment gateway first; only then
are `exchange_rate × amount` tokens credited through the ledger.
"""

import uuid
from decimal import Decimal
from typing import Protocol

from tokencasino.config import settings
from tokencasino.core.exceptions import DepositRejected, InvalidBet
from tokencasino.core.ledger import LedgerService
from tokencasino.core.logger import get_logger
from tokencasino.core.money import Number, ZERO, round_money, to_decimal

logger = get_logger("deposits")


class DepositGateway(Protocol):
    async def purchase(self, amount: Decimal) -> bool:
        """Authorize an external payment; False when refused."""

        ...


class SimulatedDepositGateway:
    """Accepts every payment. Used by the development server."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.payments = []

    async def purchase(self, amount: Decimal) -> bool:
        self.payments.append(amount)
        return self.accept


class DepositService:
    def __init__(self, ledger: LedgerService, gateway: DepositGateway, exchange_rate: Number = None):
        self.ledger = ledger
        self.gateway = gateway
        if exchange_rate is None:
            exchange_rate = settings.economy.exchange_rate
        self.exchange_rate = to_decimal(exchange_rate)

    def quote(self, amount: Number) -> Decimal:
        """Tokens received for `amount` of external currency."""
        return round_money(to_decimal(amount) * self.exchange_rate)

    async def buy_tokens(self, account_id: str, amount: Number) -> Decimal:
        amount = to_decimal(amount)
        if amount <= ZERO:
            raise InvalidBet("Please enter a valid amount")

        tokens = self.quote(amount)
        if tokens <= ZERO:
            raise InvalidBet("Please enter a valid amount")

        if not await self.gateway.purchase(amount):
            logger.warning(
                "Token purchase rejected by gateway",
                extra={"account_id": account_id, "amount": str(amount)},
            )
            raise DepositRejected()

        reference = f"purchase-{uuid.uuid4().hex}"
        balance = await self.ledger.deposit(account_id, tokens, reference=reference)
        logger.info(
            f"Purchased {tokens} tokens",
            extra={"account_id": account_id, "amount": str(amount), "reference": reference},
        )
        return balance
