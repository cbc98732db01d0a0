"""
Who is playing.

The core only asks an AuthContext for the current user id. Over HTTP the id
comes from a `session` cookie signed with itsdangerous.
"""

import asyncio
import json
from datetime import timedelta
from typing import Optional, Protocol

from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from tokencasino.config import settings
from tokencasino.core.exceptions import Unauthenticated
from tokencasino.core.logger import get_logger

logger = get_logger("auth")

SESSION_COOKIE = "session"


class AuthContext(Protocol):
    def current_user_id(self) -> Optional[str]:
        """The signed-in user's id, or None."""

        ...


class StaticAuthContext:
    """A fixed identity; None means signed out."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id


def require_user(ctx: AuthContext) -> str:
    user_id = ctx.current_user_id()
    if not user_id:
        raise Unauthenticated()
    return user_id


def _signer(secret_key: str = None) -> TimestampSigner:
    return TimestampSigner(secret_key or settings.security.secret_key)


def sign_session(user_id: str, secret_key: str = None) -> str:
    """Issue a signed session cookie value for `user_id`."""
    session_data = {"user_id": user_id}
    return _signer(secret_key).sign(json.dumps(session_data).encode("utf-8")).decode("utf-8")


def read_session(session_cookie: Optional[str], secret_key: str = None, max_age: int = None) -> Optional[str]:
    """Verify a session cookie and return its user id, or None if invalid or expired."""
    if not session_cookie:
        return None
    if max_age is None:
        max_age = int(timedelta(days=settings.security.session_max_age_days).total_seconds())

    try:
        data = _signer(secret_key).unsign(session_cookie.encode("utf-8"), max_age=max_age)
        session_data = json.loads(data.decode("utf-8"))
    except SignatureExpired:
        logger.info("Expired session cookie rejected")
        return None
    except (BadSignature, ValueError):
        logger.warning("Invalid session cookie rejected")
        return None

    user_id = session_data.get("user_id") if isinstance(session_data, dict) else None
    return str(user_id) if user_id else None


class CookieAuthContext:
    """AuthContext resolved from a request's session cookie."""

    def __init__(self, user_id: Optional[str]):
        self.user_id = user_id

    @classmethod
    async def from_cookie(cls, session_cookie: Optional[str]) -> "CookieAuthContext":
        # Signature checks are CPU-bound; keep them off the event loop
        user_id = await asyncio.to_thread(read_session, session_cookie)
        return cls(user_id)

    def current_user_id(self) -> Optional[str]:
        return self.user_id
