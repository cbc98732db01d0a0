from typing import Dict, List, Tuple

from tokencasino.core.exceptions import RoundStateError
from tokencasino.core.models import GameType
from tokencasino.core.rng import RandomSource, shuffle
from tokencasino.core.rounds import GameRound

BLACKJACK_MULTIPLIER = 2.5  # 3:2 on top of the returned bet
WIN_MULTIPLIER = 2.0
PUSH_MULTIPLIER = 1.0
DEALER_STANDS_ON = 17


class Card:
    """Represents a playing card."""

    SUITS = ["♠", "♥", "♦", "♣"]
    RANKS = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]

    def __init__(self, rank: str, suit: str):
        self.rank = rank
        self.suit = suit

    @property
    def value(self) -> int:
        """Get the blackjack value of the card."""
        if self.rank in ["J", "Q", "K"]:
            return 10
        elif self.rank == "A":
            return 11  # Ace is 11 by default, adjusted in hand calculation
        else:
            return int(self.rank)

    def to_dict(self) -> Dict:
        return {"rank": self.rank, "suit": self.suit, "display": f"{self.rank}{self.suit}"}

    def __eq__(self, other):
        return isinstance(other, Card) and (self.rank, self.suit) == (other.rank, other.suit)

    def __hash__(self):
        return hash((self.rank, self.suit))

    def __repr__(self):
        return f"{self.rank}{self.suit}"


class BlackjackHand:
    """Represents a blackjack hand."""

    def __init__(self, cards: List[Card] = None):
        self.cards: List[Card] = list(cards or [])

    def add_card(self, card: Card):
        self.cards.append(card)

    @property
    def value(self) -> int:
        """Calculate the best hand value, adjusting aces as needed."""
        total = sum(card.value for card in self.cards)
        aces = sum(1 for card in self.cards if card.rank == "A")

        # Adjust aces from 11 to 1 if busting
        while total > 21 and aces > 0:
            total -= 10
            aces -= 1

        return total

    @property
    def is_bust(self) -> bool:
        return self.value > 21

    @property
    def is_blackjack(self) -> bool:
        return len(self.cards) == 2 and self.value == 21

    def to_list(self) -> List[Dict]:
        return [card.to_dict() for card in self.cards]


def new_deck() -> List[Card]:
    return [Card(rank, suit) for suit in Card.SUITS for rank in Card.RANKS]


def shuffled_deck(source: RandomSource) -> List[Card]:
    """Create and shuffle a standard 52-card deck."""
    return shuffle(source, new_deck())


def resolve(player: BlackjackHand, dealer: BlackjackHand) -> Tuple[str, float]:
    """Outcome and payout multiplier. Player bust is checked before dealer bust."""
    if player.is_bust:
        return "bust", 0
    if dealer.is_bust:
        return "dealer_bust", BLACKJACK_MULTIPLIER if player.is_blackjack else WIN_MULTIPLIER
    if player.is_blackjack and dealer.is_blackjack:
        return "push", PUSH_MULTIPLIER
    if player.is_blackjack:
        return "blackjack", BLACKJACK_MULTIPLIER
    if dealer.is_blackjack:
        return "dealer_blackjack", 0

    if player.value > dealer.value:
        return "win", WIN_MULTIPLIER
    if player.value < dealer.value:
        return "lose", 0
    return "push", PUSH_MULTIPLIER


class BlackjackRound(GameRound):
    """
    Standard Blackjack round.
    Supports deal (start), hit, and stand actions.
    """

    game_type = GameType.BLACKJACK

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.deck: List[Card] = []
        self.player_hand = BlackjackHand()
        self.dealer_hand = BlackjackHand()

    async def on_start(self):
        self.deck = shuffled_deck(self.source)

        # Deal alternating cards
        self.player_hand.add_card(self.deck.pop())
        self.dealer_hand.add_card(self.deck.pop())
        self.player_hand.add_card(self.deck.pop())
        self.dealer_hand.add_card(self.deck.pop())

        # Naturals end the round before the player acts
        if self.player_hand.is_blackjack or self.dealer_hand.is_blackjack:
            await self._finish()

    def _draw(self) -> Card:
        # Cannot happen with a fresh 52-card deck, kept as a guard
        if not self.deck:
            raise RoundStateError("No cards remaining")
        return self.deck.pop()

    async def hit(self) -> Card:
        """Draw another card for the player."""
        self._require_active()
        card = self._draw()
        self.player_hand.add_card(card)

        if self.player_hand.is_bust:
            await self._finish()
        elif self.player_hand.value == 21:
            # Auto-stand on 21
            await self.stand()
        return card

    async def stand(self):
        """Player stands. Dealer plays out their hand."""
        self._require_active()
        while self.dealer_hand.value < DEALER_STANDS_ON:
            self.dealer_hand.add_card(self._draw())
        await self._finish()

    async def _finish(self):
        outcome, multiplier = resolve(self.player_hand, self.dealer_hand)
        await self.settle(multiplier, outcome)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data.update(
            {
                "player_hand": self.player_hand.to_list(),
                "player_value": self.player_hand.value,
                "player_blackjack": self.player_hand.is_blackjack,
            }
        )
        if self.is_settled:
            data["dealer_hand"] = self.dealer_hand.to_list()
            data["dealer_value"] = self.dealer_hand.value
            data["dealer_hidden"] = False
        elif self.dealer_hand.cards:
            data["dealer_up_card"] = self.dealer_hand.cards[0].to_dict()
            data["dealer_hidden"] = True
        return data
