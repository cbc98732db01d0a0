"""Append-only transaction log keyed by account."""

from typing import List

from tokencasino.core.logger import get_logger
from tokencasino.core.models import TransactionRecord
from tokencasino.core.repositories import TransactionRepository

logger = get_logger("transactions")


class TransactionLog:
    """
    Records every balance-affecting event. Records are never updated or
    deleted once appended.
    """

    MAX_LIMIT = 200

    def __init__(self, repository: TransactionRepository):
        self._repository = repository

    async def append(self, record: TransactionRecord) -> TransactionRecord:
        await self._repository.insert(record)
        logger.debug(
            "Transaction appended",
            extra={
                "account_id": record.account_id,
                "tx_type": record.type.value,
                "amount": str(record.amount),
                "reference": record.reference,
            },
        )
        return record

    async def list_recent(self, account_id: str, limit: int = 50) -> List[TransactionRecord]:
        limit = max(0, min(limit, self.MAX_LIMIT))
        return await self._repository.list_recent(account_id, limit)
