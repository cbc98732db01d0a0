import asyncio

import orjson

from tokencasino.core.games.crash import CrashRound
from tokencasino.core.models import TransactionType
from tokencasino.core.rng import SequenceRandomSource
from tokencasino.core.websocket import ConnectionManager, CrashRunner, crash_frame


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_bytes(self, data):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(orjson.loads(data))


async def test_broadcast_drops_dead_watchers():
    manager = ConnectionManager()
    good, dead = FakeSocket(), FakeSocket(broken=True)
    await manager.connect(good, "r1")
    await manager.connect(dead, "r1")
    assert manager.get_connection_count() == 2

    await manager.broadcast("r1", {"type": "tick", "multiplier": 1.0})

    assert good.sent == [{"type": "tick", "multiplier": 1.0}]
    assert manager.get_connection_count() == 1
    manager.disconnect(good, "r1")
    assert manager.watchers == {}


async def test_frames_follow_the_round(ledger):
    game = CrashRound("alice", 10, ledger, source=SequenceRandomSource([0.0]))
    await game.start()
    assert crash_frame(game)["type"] == "tick"
    await game.tick()
    frame = crash_frame(game)
    assert frame == {"type": "crashed", "round_id": game.id, "crash_point": 1.0}


async def test_runner_streams_until_cash_out(ledger):
    manager = ConnectionManager()
    watcher = FakeSocket()
    game = CrashRound("alice", 10, ledger, source=SequenceRandomSource([0.5]), auto_cashout_at=1.01)
    await game.start()
    await manager.connect(watcher, game.id)

    task = CrashRunner(manager).launch(game)
    await task

    types = [frame["type"] for frame in watcher.sent]
    assert types[-1] == "cashed_out"
    assert set(types[:-1]) == {"tick"}
    assert watcher.sent[-1]["payout"] == float(game.payout)


async def test_shutdown_settles_rounds_still_flying(ledger, records):
    game = CrashRound("alice", 10, ledger, source=SequenceRandomSource([0.5]))
    await game.start()
    runner = CrashRunner(ConnectionManager())
    runner.launch(game)
    await asyncio.sleep(0)

    await runner.shutdown()

    assert game.is_settled
    assert game.cashed_out
    assert game.outcome == "shutdown"
    assert game.payout >= game.bet
    assert [record.type for record in records] == [
        TransactionType.GAME_SPEND,
        TransactionType.GAME_WIN,
    ]
    assert runner.tasks == {}
