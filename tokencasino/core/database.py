"""
Database module for persistent storage.
Uses SQLite for token balances, the transaction log and settlement keys.
Blocking sqlite3 calls are moved off the event loop with asyncio.to_thread.
"""

import asyncio
import sqlite3
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from tokencasino.core.logger import get_logger
from tokencasino.core.models import GameType, TransactionRecord, TransactionType
from tokencasino.core.repositories import (
    AccountNotFound,
    AccountRepository,
    SettlementKeyRepository,
    TransactionRepository,
)

# Get logger for this module
logger = get_logger("database")


class Database:
    """Thread-safe SQLite database wrapper."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initializing database at {self.db_path}")
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    def _init_db(self):
        conn = self._get_connection()
        cursor = conn.cursor()

        # Amounts are stored as decimal strings to avoid float drift
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                balance TEXT NOT NULL DEFAULT '0.00',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                account_id TEXT NOT NULL,
                type TEXT NOT NULL CHECK (type IN ('purchase', 'game_spend', 'game_win')),
                game_type TEXT,
                amount TEXT NOT NULL,
                balance_after TEXT NOT NULL,
                reference TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id)
            )
        """
        )

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions (account_id, seq)"
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlement_keys (
                key TEXT PRIMARY KEY,
                claimed_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        # Append-only: refuse edits of written records at the storage level too
        cursor.execute(
            """
            CREATE TRIGGER IF NOT EXISTS transactions_no_update
            BEFORE UPDATE ON transactions
            BEGIN
                SELECT RAISE(ABORT, 'transactions are append-only');
            END
        """
        )
        cursor.execute(
            """
            CREATE TRIGGER IF NOT EXISTS transactions_no_delete
            BEFORE DELETE ON transactions
            BEGIN
                SELECT RAISE(ABORT, 'transactions are append-only');
            END
        """
        )

        conn.commit()

    # ==================== Balance Operations ====================

    def get_balance(self, account_id: str) -> Optional[Decimal]:
        """Get an account's current balance."""
        cursor = self._get_connection().cursor()
        cursor.execute("SELECT balance FROM accounts WHERE id = ?", (account_id,))
        row = cursor.fetchone()
        return Decimal(row["balance"]) if row else None

    def set_balance(self, account_id: str, balance: Decimal) -> Optional[Decimal]:
        """Set an account's balance and return the stored value."""
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "UPDATE accounts SET balance = ?, updated_at = ? WHERE id = ?",
            (str(balance), datetime.now().isoformat(), account_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            return None
        return self.get_balance(account_id)

    def create_account(self, account_id: str, balance: Decimal):
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            "INSERT OR IGNORE INTO accounts (id, balance) VALUES (?, ?)",
            (account_id, str(balance)),
        )
        conn.commit()
        if cursor.rowcount:
            logger.info(f"Created account {account_id}")

    # ==================== Transactions ====================

    def log_transaction(self, record: TransactionRecord):
        """Append a transaction record."""
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute(
            """
            INSERT INTO transactions
                (id, account_id, type, game_type, amount, balance_after, reference, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                record.id,
                record.account_id,
                record.type.value,
                record.game_type.value if record.game_type else None,
                str(record.amount),
                str(record.balance_after),
                record.reference,
                record.timestamp.isoformat(),
            ),
        )
        conn.commit()

    def get_transactions(self, account_id: str, limit: int = 50) -> List[TransactionRecord]:
        """Get recent transactions, newest first."""
        cursor = self._get_connection().cursor()
        cursor.execute(
            """
            SELECT * FROM transactions WHERE account_id = ?
            ORDER BY seq DESC LIMIT ?
        """,
            (account_id, limit),
        )
        return [self._row_to_record(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> TransactionRecord:
        return TransactionRecord(
            id=row["id"],
            account_id=row["account_id"],
            type=TransactionType(row["type"]),
            game_type=GameType(row["game_type"]) if row["game_type"] else None,
            amount=Decimal(row["amount"]),
            balance_after=Decimal(row["balance_after"]),
            reference=row["reference"],
            timestamp=datetime.fromisoformat(row["created_at"]),
        )

    # ==================== Settlement Keys ====================

    def claim_key(self, key: str) -> bool:
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("INSERT OR IGNORE INTO settlement_keys (key) VALUES (?)", (key,))
        conn.commit()
        return cursor.rowcount == 1

    def release_key(self, key: str):
        conn = self._get_connection()
        conn.execute("DELETE FROM settlement_keys WHERE key = ?", (key,))
        conn.commit()


class SqliteAccountRepository(AccountRepository):
    def __init__(self, database: Database):
        self.database = database

    async def get_balance(self, account_id: str) -> Decimal:
        balance = await asyncio.to_thread(self.database.get_balance, account_id)
        if balance is None:
            raise AccountNotFound(account_id)
        return balance

    async def set_balance(self, account_id: str, balance: Decimal) -> Decimal:
        stored = await asyncio.to_thread(self.database.set_balance, account_id, balance)
        if stored is None:
            raise AccountNotFound(account_id)
        return stored

    async def create_account(self, account_id: str, balance: Decimal) -> None:
        await asyncio.to_thread(self.database.create_account, account_id, balance)


class SqliteTransactionRepository(TransactionRepository):
    def __init__(self, database: Database):
        self.database = database

    async def insert(self, record: TransactionRecord) -> None:
        await asyncio.to_thread(self.database.log_transaction, record)

    async def list_recent(self, account_id: str, n: int) -> List[TransactionRecord]:
        return await asyncio.to_thread(self.database.get_transactions, account_id, n)


class SqliteSettlementKeyRepository(SettlementKeyRepository):
    def __init__(self, database: Database):
        self.database = database

    async def claim(self, key: str) -> bool:
        return await asyncio.to_thread(self.database.claim_key, key)

    async def release(self, key: str) -> None:
        await asyncio.to_thread(self.database.release_key, key)
