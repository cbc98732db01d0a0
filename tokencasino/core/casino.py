"""
Wires the ledger, transaction log, round registry and deposits into one
object the API layer talks to.
"""

from typing import Optional

from tokencasino.config import settings
from tokencasino.core.database import (
    Database,
    SqliteAccountRepository,
    SqliteSettlementKeyRepository,
    SqliteTransactionRepository,
)
from tokencasino.core.deposits import DepositGateway, DepositService, SimulatedDepositGateway
from tokencasino.core.exceptions import RoundNotFound
from tokencasino.core.games import GAME_ROUNDS, EnergyMeter
from tokencasino.core.ledger import BalanceCache, LedgerService
from tokencasino.core.models import GameType
from tokencasino.core.registry import RoundRegistry
from tokencasino.core.repositories import (
    AccountRepository,
    InMemoryAccountRepository,
    InMemorySettlementKeyRepository,
    InMemoryTransactionRepository,
    SettlementKeyRepository,
    TransactionRepository,
)
from tokencasino.core.rng import RandomSource, rng
from tokencasino.core.rounds import GameRound
from tokencasino.core.transactions import TransactionLog


class Casino:
    def __init__(
        self,
        accounts: AccountRepository,
        transactions: TransactionRepository,
        settlement_keys: SettlementKeyRepository,
        gateway: DepositGateway = None,
        source: RandomSource = None,
        cache: BalanceCache = None,
        starting_balance=None,
    ):
        self.transaction_log = TransactionLog(transactions)
        self.ledger = LedgerService(
            accounts,
            self.transaction_log,
            settlement_keys,
            cache=cache,
            starting_balance=starting_balance,
        )
        self.deposits = DepositService(self.ledger, gateway or SimulatedDepositGateway())
        self.registry = RoundRegistry()
        self.energy = EnergyMeter()
        self.source = source or rng

    @classmethod
    def in_memory(cls, **kwargs) -> "Casino":
        return cls(
            InMemoryAccountRepository(),
            InMemoryTransactionRepository(),
            InMemorySettlementKeyRepository(),
            **kwargs,
        )

    @classmethod
    def from_database(cls, database: Optional[Database] = None, **kwargs) -> "Casino":
        database = database or Database(settings.paths.get_db_path())
        return cls(
            SqliteAccountRepository(database),
            SqliteTransactionRepository(database),
            SqliteSettlementKeyRepository(database),
            **kwargs,
        )

    def new_round(self, game_type: GameType, account_id: str, bet, **params) -> GameRound:
        """Create an Idle round of `game_type`; call `start()` to play it."""
        round_class = GAME_ROUNDS[GameType(game_type)]
        if round_class.game_type == GameType.MINING:
            params.setdefault("energy", self.energy)
        return round_class(account_id, bet, self.ledger, source=self.source, **params)

    async def play(self, game_type: GameType, account_id: str, bet, **params) -> GameRound:
        """
        Start a round and keep it in the registry while it can still be acted on.

        The round is registered while Idle, so one whose start never completes
        is swept after the idle timeout.
        """
        game_round = self.new_round(game_type, account_id, bet, **params)
        self.registry.add(game_round)
        try:
            await game_round.start()
        except Exception:
            self.registry.remove(game_round)
            raise
        if game_round.is_settled:
            self.registry.discard(game_round)
        else:
            self.registry.add(game_round)
        return game_round

    def get_round(self, round_id: str, account_id: str, game_type: GameType = None) -> GameRound:
        game_round = self.registry.get(round_id, account_id)
        if game_type is not None and game_round.game_type != game_type:
            raise RoundNotFound()
        return game_round

    def finish(self, game_round: GameRound):
        self.registry.discard(game_round)
