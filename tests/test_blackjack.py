from decimal import Decimal

import pytest

from tokencasino.core.exceptions import RoundStateError
from tokencasino.core.games import blackjack
from tokencasino.core.games.blackjack import BlackjackHand, BlackjackRound, Card, resolve
from tokencasino.core.rng import SeededRandomSource


def hand(*ranks):
    return BlackjackHand([Card(rank, "♠") for rank in ranks])


def stacked(monkeypatch, player, dealer, draws=()):
    """Deal `player` and `dealer` cards, then `draws` in order."""
    p1, p2 = player
    d1, d2 = dealer
    top = [Card(r, "♥") for r in reversed(draws)] + [
        Card(d2, "♥"),
        Card(p2, "♠"),
        Card(d1, "♥"),
        Card(p1, "♠"),
    ]
    filler = [Card("2", "♣")] * 10
    monkeypatch.setattr(blackjack, "shuffled_deck", lambda source: filler + top)


def test_hand_values_soften_aces():
    assert hand("A", "K").value == 21
    assert hand("A", "K").is_blackjack
    assert hand("A", "A", "9").value == 21
    assert not hand("7", "7", "7").is_blackjack
    assert hand("K", "Q", "5").is_bust


def test_deck_is_52_unique_cards():
    deck = blackjack.shuffled_deck(SeededRandomSource(1))
    assert len(deck) == 52
    assert len(set(deck)) == 52


@pytest.mark.parametrize(
    "player, dealer, outcome, multiplier",
    [
        (("A", "K"), ("9", "7"), "blackjack", 2.5),
        (("A", "K"), ("A", "Q"), "push", 1.0),
        (("10", "9"), ("A", "Q"), "dealer_blackjack", 0),
        (("10", "9", "5"), ("K", "6", "9"), "bust", 0),
        (("10", "9"), ("K", "6", "9"), "dealer_bust", 2.0),
        (("10", "9"), ("K", "8"), "win", 2.0),
        (("10", "7"), ("K", "8"), "lose", 0),
        (("10", "8"), ("K", "8"), "push", 1.0),
    ],
)
def test_resolve(player, dealer, outcome, multiplier):
    assert resolve(hand(*player), hand(*dealer)) == (outcome, multiplier)


async def test_natural_pays_two_and_a_half(monkeypatch, ledger):
    stacked(monkeypatch, ("A", "K"), ("9", "7"))
    game = BlackjackRound("alice", 10, ledger)
    await game.start()

    assert game.is_settled
    assert game.outcome == "blackjack"
    assert game.payout == Decimal("25.00")
    assert await ledger.get_balance("alice") == Decimal("115.00")


async def test_hit_to_21_stands_automatically(monkeypatch, ledger):
    stacked(monkeypatch, ("10", "6"), ("10", "7"), draws=["5"])
    game = BlackjackRound("alice", 10, ledger)
    await game.start()
    assert game.is_active

    card = await game.hit()
    assert card.rank == "5"
    assert game.outcome == "win"
    assert game.payout == Decimal("20.00")


async def test_hit_past_21_busts(monkeypatch, ledger, records):
    stacked(monkeypatch, ("10", "6"), ("10", "7"), draws=["K"])
    game = BlackjackRound("alice", 10, ledger)
    await game.start()
    await game.hit()

    assert game.outcome == "bust"
    assert game.payout == Decimal("0.00")
    assert len(records) == 1
    with pytest.raises(RoundStateError):
        await game.stand()


async def test_dealer_draws_below_17(monkeypatch, ledger):
    stacked(monkeypatch, ("10", "8"), ("10", "6"), draws=["9"])
    game = BlackjackRound("alice", 10, ledger)
    await game.start()
    await game.stand()

    assert game.dealer_hand.value == 25
    assert game.outcome == "dealer_bust"
    assert game.payout == Decimal("20.00")


async def test_tie_returns_the_bet(monkeypatch, ledger, records):
    stacked(monkeypatch, ("10", "7"), ("10", "7"))
    game = BlackjackRound("alice", 10, ledger)
    await game.start()
    await game.stand()

    assert game.outcome == "push"
    assert await ledger.get_balance("alice") == Decimal("100.00")
    assert len(records) == 2


async def test_hole_card_hidden_while_playing(monkeypatch, ledger):
    stacked(monkeypatch, ("10", "6"), ("9", "7"))
    game = BlackjackRound("alice", 10, ledger)
    await game.start()

    data = game.to_dict()
    assert data["dealer_hidden"] is True
    assert data["dealer_up_card"]["rank"] == "9"
    assert "dealer_hand" not in data
