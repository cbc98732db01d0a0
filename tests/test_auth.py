import unittest

from tokencasino.core.auth import (
    CookieAuthContext,
    StaticAuthContext,
    read_session,
    require_user,
    sign_session,
)
from tokencasino.core.exceptions import Unauthenticated


class TestSessionCookie(unittest.TestCase):
    def test_signed_session_round_trips(self):
        cookie = sign_session("alice", secret_key="k1")
        self.assertEqual(read_session(cookie, secret_key="k1"), "alice")

    def test_wrong_key_or_tampering_is_rejected(self):
        cookie = sign_session("alice", secret_key="k1")
        self.assertIsNone(read_session(cookie, secret_key="k2"))
        self.assertIsNone(read_session(cookie.replace("alice", "bob"), secret_key="k1"))
        self.assertIsNone(read_session("garbage", secret_key="k1"))
        self.assertIsNone(read_session(None))

    def test_expired_session_is_rejected(self):
        cookie = sign_session("alice", secret_key="k1")
        self.assertIsNone(read_session(cookie, secret_key="k1", max_age=-1))


class TestAuthContext(unittest.TestCase):
    def test_require_user(self):
        self.assertEqual(require_user(StaticAuthContext("alice")), "alice")
        with self.assertRaises(Unauthenticated):
            require_user(StaticAuthContext(None))
        with self.assertRaises(Unauthenticated):
            require_user(StaticAuthContext(""))


async def test_cookie_context_uses_configured_secret():
    ctx = await CookieAuthContext.from_cookie(sign_session("carol"))
    assert ctx.current_user_id() == "carol"
    assert (await CookieAuthContext.from_cookie(None)).current_user_id() is None


if __name__ == "__main__":
    unittest.main()
