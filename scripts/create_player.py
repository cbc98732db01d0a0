"""
Create a player account in the local ledger and print a session cookie for it.

    python scripts/create_player.py alice --tokens 100
"""

import argparse
import asyncio
import os
import sys

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, project_root)

from tokencasino.core.auth import SESSION_COOKIE, sign_session
from tokencasino.core.casino import Casino


async def create_player(user_id: str, amount: float):
    casino = Casino.from_database()
    balance = await casino.ledger.open_account(user_id)

    if amount > 0:
        balance = await casino.deposits.buy_tokens(user_id, amount)

    print(f"Account '{user_id}' balance: {balance} tokens")
    print(f"{SESSION_COOKIE}={sign_session(user_id)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local player account")
    parser.add_argument("user_id")
    parser.add_argument("--tokens", type=float, default=0, help="external currency to convert into tokens")
    args = parser.parse_args()
    asyncio.run(create_player(args.user_id, args.tokens))
