"""
Start a crash round against a running server and print its live feed.

    python scripts/watch_crash.py alice --bet 1 --cashout-at 1.5
"""

import argparse
import asyncio
import os
import sys

import httpx
import orjson
import websockets

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, project_root)

from tokencasino.core.auth import SESSION_COOKIE, sign_session


async def main(user_id: str, bet: float, cashout_at: float, host: str):
    cookie = sign_session(user_id)

    async with httpx.AsyncClient(base_url=f"http://{host}", cookies={SESSION_COOKIE: cookie}) as client:
        response = await client.post(
            "/api/games/crash/start", json={"bet": bet, "auto_cashout_at": cashout_at}
        )
        if response.status_code != 200:
            print(f"Could not start round: {response.status_code} {response.text}")
            return
        round_id = response.json()["round_id"]

    uri = f"ws://{host}/ws/crash/{round_id}"
    async with websockets.connect(uri, additional_headers={"Cookie": f"{SESSION_COOKIE}={cookie}"}) as websocket:
        print(f"Connected to {uri}")
        async for message in websocket:
            frame = orjson.loads(message)
            print(f"< {frame}")
            if frame["type"] != "tick":
                break


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch a live crash round")
    parser.add_argument("user_id")
    parser.add_argument("--bet", type=float, default=0)
    parser.add_argument("--cashout-at", type=float, default=2.0)
    parser.add_argument("--host", default="127.0.0.1:8000")
    args = parser.parse_args()
    asyncio.run(main(args.user_id, args.bet, args.cashout_at, args.host))
