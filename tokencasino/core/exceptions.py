"""
Error kinds raised by the casino core.

Every error carries a user-facing `category` and the HTTP status the API
layer answers with, so routers never have to translate messages by hand.
"""


class CasinoError(Exception):
    category = "internal"
    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__ or self.category
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.category, "detail": self.message}


class InvalidBet(CasinoError):
    """Bet amount or game parameters are not acceptable."""

    category = "invalid_bet"
    status_code = 400


class Unauthenticated(CasinoError):
    """Please sign in to play."""

    category = "not_signed_in"
    status_code = 401


class InsufficientBalance(CasinoError):
    """Insufficient token balance."""

    category = "insufficient_funds"
    status_code = 402


class LedgerWriteFailure(CasinoError):
    """The ledger could not be updated. Please try again."""

    category = "network"
    status_code = 503


class SettlementFailure(LedgerWriteFailure):
    """The round finished but its winnings could not be credited yet."""

    def __init__(self, round_id: str, message: str = None):
        self.round_id = round_id
        super().__init__(message)


class DepositRejected(CasinoError):
    """Transaction was rejected by the wallet."""

    category = "rejected_by_signer"
    status_code = 402


class RoundStateError(CasinoError):
    """That action is not available in the current round."""

    category = "invalid_action"
    status_code = 409


class RoundNotFound(RoundStateError):
    """Game not found or expired."""

    status_code = 404
