from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from tokencasino.config import settings
from tokencasino.core.auth import SESSION_COOKIE, CookieAuthContext, require_user
from tokencasino.core.casino import Casino
from tokencasino.core.games import RiskLevel
from tokencasino.core.logger import get_logger
from tokencasino.core.models import GameType

limiter = Limiter(key_func=get_remote_address)

logger = get_logger("api")

router = APIRouter()

# ==================== Request Models ====================


class BetRequest(BaseModel):
    bet: float = 0


class DepositRequest(BaseModel):
    amount: float


class DiceRequest(BetRequest):
    target: float = 50.0


class PlinkoRequest(BetRequest):
    risk: RiskLevel = RiskLevel.MEDIUM


class MiningRequest(BetRequest):
    difficulty: str = "medium"


class CrashRequest(BetRequest):
    auto_cashout_at: Optional[float] = None


class MinesRequest(BetRequest):
    mines: int = 10
    gems: int = 15
    auto_cashout_at: Optional[float] = None


class RevealRequest(BaseModel):
    row: int
    col: int


# ==================== Helpers ====================


def get_casino(request: Request) -> Casino:
    return request.app.state.casino


async def current_user(request: Request, casino: Casino = Depends(get_casino)) -> str:
    """Resolve the signed-in account from the session cookie; 401 otherwise."""
    ctx = await CookieAuthContext.from_cookie(request.cookies.get(SESSION_COOKIE))
    user_id = require_user(ctx)
    await casino.ledger.open_account(user_id)
    return user_id


def get_rate_limit():
    """Get rate limit string from config."""
    return settings.rate_limit.game_requests if settings.rate_limit.enabled else "1000/minute"


def get_api_rate_limit():
    return settings.rate_limit.api_requests if settings.rate_limit.enabled else "1000/minute"


async def _respond(casino: Casino, game_round, **extra) -> dict:
    if game_round.is_settled:
        casino.finish(game_round)
    result = game_round.to_dict()
    result.update(extra)
    result["balance"] = float(await casino.ledger.get_display_balance(game_round.account_id))
    return result


# ==================== Account Endpoints ====================


@router.get("/balance")
@limiter.limit(get_api_rate_limit)
async def get_balance(
    request: Request,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    balance = await casino.ledger.get_display_balance(user_id)
    return {"account_id": user_id, "balance": float(balance)}


@router.get("/transactions")
@limiter.limit(get_api_rate_limit)
async def get_transactions(
    request: Request,
    limit: int = Query(50, ge=1),
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    records = await casino.transaction_log.list_recent(user_id, limit)
    return {"transactions": [record.to_dict() for record in records]}


@router.post("/deposit")
@limiter.limit(get_rate_limit)
async def deposit(
    request: Request,
    data: DepositRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    balance = await casino.deposits.buy_tokens(user_id, data.amount)
    return {
        "success": True,
        "tokens": float(casino.deposits.quote(data.amount)),
        "balance": float(balance),
    }


# ==================== Instant Games ====================


@router.post("/games/dice/roll")
@limiter.limit(get_rate_limit)
async def dice_roll(
    request: Request,
    data: DiceRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(GameType.DICE, user_id, data.bet, target=data.target)
    return await _respond(casino, game_round)


@router.post("/games/plinko/drop")
@limiter.limit(get_rate_limit)
async def plinko_drop(
    request: Request,
    data: PlinkoRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(GameType.PLINKO, user_id, data.bet, risk=data.risk)
    return await _respond(casino, game_round)


@router.post("/games/mining/dig")
@limiter.limit(get_rate_limit)
async def mining_dig(
    request: Request,
    data: MiningRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(
        GameType.MINING, user_id, data.bet, difficulty=data.difficulty
    )
    return await _respond(casino, game_round)


# ==================== Crash ====================


@router.post("/games/crash/start")
@limiter.limit(get_rate_limit)
async def crash_start(
    request: Request,
    data: CrashRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(
        GameType.CRASH, user_id, data.bet, auto_cashout_at=data.auto_cashout_at
    )
    request.app.state.crash_runner.launch(game_round)
    return await _respond(casino, game_round)


@router.post("/games/crash/{round_id}/cashout")
@limiter.limit(get_rate_limit)
async def crash_cashout(
    request: Request,
    round_id: str,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = casino.get_round(round_id, user_id, GameType.CRASH)
    await game_round.cash_out()
    return await _respond(casino, game_round)


# ==================== Mines ====================


@router.post("/games/mines/start")
@limiter.limit(get_rate_limit)
async def mines_start(
    request: Request,
    data: MinesRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(
        GameType.MINES,
        user_id,
        data.bet,
        mine_count=data.mines,
        gem_count=data.gems,
        auto_cashout_at=data.auto_cashout_at,
    )
    return await _respond(casino, game_round)


@router.post("/games/mines/{round_id}/reveal")
@limiter.limit(get_rate_limit)
async def mines_reveal(
    request: Request,
    round_id: str,
    data: RevealRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = casino.get_round(round_id, user_id, GameType.MINES)
    cell = await game_round.reveal(data.row, data.col)
    return await _respond(casino, game_round, cell=cell)


@router.post("/games/mines/{round_id}/cashout")
@limiter.limit(get_rate_limit)
async def mines_cashout(
    request: Request,
    round_id: str,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = casino.get_round(round_id, user_id, GameType.MINES)
    await game_round.cash_out()
    return await _respond(casino, game_round)


# ==================== Blackjack ====================


@router.post("/games/blackjack/deal")
@limiter.limit(get_rate_limit)
async def blackjack_deal(
    request: Request,
    data: BetRequest,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = await casino.play(GameType.BLACKJACK, user_id, data.bet)
    return await _respond(casino, game_round)


@router.post("/games/blackjack/{round_id}/hit")
@limiter.limit(get_rate_limit)
async def blackjack_hit(
    request: Request,
    round_id: str,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = casino.get_round(round_id, user_id, GameType.BLACKJACK)
    await game_round.hit()
    return await _respond(casino, game_round)


@router.post("/games/blackjack/{round_id}/stand")
@limiter.limit(get_rate_limit)
async def blackjack_stand(
    request: Request,
    round_id: str,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    game_round = casino.get_round(round_id, user_id, GameType.BLACKJACK)
    await game_round.stand()
    return await _respond(casino, game_round)


# ==================== Round Lookup ====================


@router.get("/games/{round_id}")
async def get_round(
    round_id: str,
    user_id: str = Depends(current_user),
    casino: Casino = Depends(get_casino),
):
    return casino.get_round(round_id, user_id).to_dict()
