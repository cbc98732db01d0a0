from decimal import Decimal

import pytest

from tokencasino.core.games.plinko import (
    BUCKETS,
    CENTER_BUCKET,
    CUMULATIVE,
    MULTIPLIERS,
    PlinkoRound,
    RiskLevel,
    path_to_bucket,
    pick_bucket,
)
from tokencasino.core.rng import SequenceRandomSource


@pytest.mark.parametrize("risk", list(RiskLevel))
def test_tables_are_symmetric_and_complete(risk):
    table = MULTIPLIERS[risk]
    assert len(table) == BUCKETS == 17
    assert table == table[::-1]
    assert len(CUMULATIVE[risk]) == 8
    assert CUMULATIVE[risk][-1] == 1.0


@pytest.mark.parametrize(
    "draw, bucket",
    [(0.01, 0), (0.02, 16), (0.5, 12), (0.45, 4), (0.97, 7), (0.99, 9)],
)
def test_pick_bucket_medium(draw, bucket):
    assert pick_bucket(RiskLevel.MEDIUM, draw) == bucket


def test_centre_bucket_is_only_a_fallback():
    assert pick_bucket(RiskLevel.LOW, 1.0) == CENTER_BUCKET


@pytest.mark.parametrize("bucket", range(17))
def test_path_lands_in_bucket(bucket):
    path = path_to_bucket(bucket)
    assert len(path) == 16
    assert path.count("R") == bucket


def test_path_rejects_unreachable_bucket():
    with pytest.raises(ValueError):
        path_to_bucket(17)


async def test_edge_bucket_pays_top_multiplier(ledger):
    game = PlinkoRound("alice", 10, ledger, source=SequenceRandomSource([0.01]), risk="Medium")
    await game.start()

    assert game.result["bucket"] == 0
    assert game.final_multiplier == 11.2
    assert game.outcome == "win"
    assert game.payout == Decimal("112.00")


async def test_middle_bucket_returns_part_of_bet(ledger):
    game = PlinkoRound("alice", 10, ledger, source=SequenceRandomSource([0.92]), risk=RiskLevel.HIGH)
    await game.start()

    assert game.result["bucket"] == 7
    assert game.outcome == "lose"
    assert game.payout == Decimal("3.00")
    assert await ledger.get_balance("alice") == Decimal("93.00")
