"""
WebSocket manager for live crash rounds.
Each crash round has its own set of watchers receiving tick frames.
"""

import asyncio
from typing import Dict, Optional, Set

import orjson
from fastapi import WebSocket

from tokencasino.core.exceptions import CasinoError
from tokencasino.core.games.crash import CrashRound
from tokencasino.core.logger import get_logger

logger = get_logger("websocket")


def crash_frame(game_round: CrashRound) -> dict:
    """The frame describing a crash round's current state."""
    if game_round.crashed:
        return {
            "type": "crashed",
            "round_id": game_round.id,
            "crash_point": round(game_round.crash_point, 2),
        }
    if game_round.cashed_out:
        return {
            "type": "cashed_out",
            "round_id": game_round.id,
            "multiplier": round(game_round.current_multiplier, 2),
            "payout": float(game_round.payout) if game_round.payout is not None else None,
        }
    return {
        "type": "tick",
        "round_id": game_round.id,
        "multiplier": round(game_round.current_multiplier, 2),
    }


class ConnectionManager:
    """Tracks websocket watchers per crash round."""

    def __init__(self):
        self.watchers: Dict[str, Set[WebSocket]] = {}

    async def _send_json(self, websocket: WebSocket, data: dict):
        # orjson.dumps returns bytes, so send_bytes avoids a decode
        await websocket.send_bytes(orjson.dumps(data))

    async def connect(self, websocket: WebSocket, round_id: str):
        await websocket.accept()
        self.watchers.setdefault(round_id, set()).add(websocket)
        logger.info(f"WebSocket watching round {round_id}: total={self.get_connection_count()}")

    def disconnect(self, websocket: WebSocket, round_id: str):
        watchers = self.watchers.get(round_id)
        if watchers is None:
            return
        watchers.discard(websocket)
        if not watchers:
            del self.watchers[round_id]
        logger.info(f"WebSocket disconnected: total={self.get_connection_count()}")

    async def send(self, websocket: WebSocket, message: dict):
        await self._send_json(websocket, message)

    async def broadcast(self, round_id: str, message: dict):
        """Send a frame to every watcher of a round, dropping dead sockets."""
        watchers = list(self.watchers.get(round_id, ()))
        if not watchers:
            return

        results = await asyncio.gather(
            *(self._send_json(ws, message) for ws in watchers), return_exceptions=True
        )
        for ws, result in zip(watchers, results):
            if isinstance(result, Exception):
                logger.debug(f"Dropping watcher of round {round_id}: {result}")
                self.disconnect(ws, round_id)

    async def on_crash_tick(self, game_round: CrashRound):
        await self.broadcast(game_round.id, crash_frame(game_round))

    def get_connection_count(self) -> int:
        return sum(len(watchers) for watchers in self.watchers.values())


# Global WebSocket manager instance
ws_manager = ConnectionManager()


class CrashRunner:
    """Runs each live crash round as an asyncio task, streaming its ticks."""

    def __init__(self, manager: ConnectionManager = None):
        self.manager = manager or ws_manager
        self.tasks: Dict[str, asyncio.Task] = {}
        self.rounds: Dict[str, CrashRound] = {}

    def launch(self, game_round: CrashRound) -> Optional[asyncio.Task]:
        if not game_round.is_active or game_round.id in self.tasks:
            return None
        task = asyncio.create_task(game_round.run(on_tick=self.manager.on_crash_tick))
        self.tasks[game_round.id] = task
        self.rounds[game_round.id] = game_round
        task.add_done_callback(lambda t: self._finished(game_round.id, t))
        return task

    def _finished(self, round_id: str, task: asyncio.Task):
        self.tasks.pop(round_id, None)
        self.rounds.pop(round_id, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Crash round {round_id} stopped with error: {error}")

    async def shutdown(self):
        """Cash out every round still flying at its current multiplier, then stop the tasks."""
        for game_round in list(self.rounds.values()):
            if not game_round.is_active or game_round.cashed_out:
                continue
            try:
                await game_round.cash_out(outcome="shutdown")
            except CasinoError as e:
                logger.error(
                    f"Crash round {game_round.id} could not be settled on shutdown: {e.message}",
                    extra={"round_id": game_round.id, "account_id": game_round.account_id},
                )
            else:
                logger.info(
                    "Crash round settled on shutdown",
                    extra={"round_id": game_round.id, "multiplier": game_round.final_multiplier},
                )

        tasks = list(self.tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
