from decimal import Decimal

import pytest

from tokencasino.core.exceptions import InvalidBet
from tokencasino.core.games.dice import DiceRound, is_win, payout_multiplier, roll
from tokencasino.core.models import RoundStatus, TransactionType
from tokencasino.core.rng import SequenceRandomSource


def test_payout_multiplier():
    assert payout_multiplier(50) == 1.98
    assert payout_multiplier(1) == 99.0
    assert payout_multiplier(98) == 1.0102


def test_roll_and_win_boundary():
    assert roll(SequenceRandomSource([0.3])) == pytest.approx(30.0)
    assert is_win(50.0, 50)
    assert not is_win(50.01, 50)


async def test_winning_roll_pays_bet_times_multiplier(ledger, records):
    game = DiceRound("alice", 20, ledger, source=SequenceRandomSource([0.30]), target=50)
    await game.start()

    assert game.status == RoundStatus.SETTLED
    assert game.outcome == "win"
    assert game.payout == Decimal("39.60")
    assert await ledger.get_balance("alice") == Decimal("119.60")
    assert [r.type for r in records] == [TransactionType.GAME_SPEND, TransactionType.GAME_WIN]
    assert records[1].reference == game.id


async def test_losing_roll_only_spends(ledger, records):
    game = DiceRound("alice", 20, ledger, source=SequenceRandomSource([0.75]), target=50)
    await game.start()

    assert game.outcome == "lose"
    assert game.payout == Decimal("0.00")
    assert await ledger.get_balance("alice") == Decimal("80.00")
    assert len(records) == 1


@pytest.mark.parametrize("target", [0.5, 98.5, 99, 100])
async def test_target_out_of_range_is_rejected_before_spending(ledger, records, target):
    game = DiceRound("alice", 10, ledger, source=SequenceRandomSource([0.1]), target=target)
    with pytest.raises(InvalidBet):
        await game.start()
    assert game.status == RoundStatus.IDLE
    assert records == []
    assert await ledger.get_balance("alice") == Decimal("100.00")


async def test_to_dict_reports_roll(ledger):
    game = DiceRound("alice", 10, ledger, source=SequenceRandomSource([0.123]), target=25)
    await game.start()
    data = game.to_dict()
    assert data["rolled"] == 12.3
    assert data["payout_multiplier"] == 3.96
    assert data["status"] == "settled"
