import unittest

import orjson
from fastapi.testclient import TestClient

from tokencasino.config import settings
from tokencasino.core.auth import SESSION_COOKIE, sign_session
from tokencasino.core.casino import Casino
from tokencasino.core.rng import SeededRandomSource, SequenceRandomSource
from tokencasino.main import create_app
from tokencasino.routers.api import limiter


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self._rate_limit_enabled = settings.rate_limit.enabled
        settings.rate_limit.enabled = False
        limiter.reset()

        self.casino = Casino.in_memory()
        self.app = create_app(casino=self.casino)
        self.client = TestClient(self.app)
        self.client.__enter__()
        self.sign_in("alice")

    def tearDown(self):
        self.client.__exit__(None, None, None)
        settings.rate_limit.enabled = self._rate_limit_enabled

    def sign_in(self, user_id):
        self.client.cookies.set(SESSION_COOKIE, sign_session(user_id))

    def draws(self, *values):
        self.casino.source = SequenceRandomSource(values)

    def deposit(self, amount=10):
        response = self.client.post("/api/deposit", json={"amount": amount})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()


class TestAccountEndpoints(ApiTestCase):
    def test_requires_session(self):
        self.client.cookies.clear()
        response = self.client.get("/api/balance")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "not_signed_in")

    def test_forged_session_is_rejected(self):
        self.client.cookies.set(SESSION_COOKIE, "alice.forged.cookie")
        self.assertEqual(self.client.get("/api/balance").status_code, 401)

    def test_new_account_starts_empty(self):
        response = self.client.get("/api/balance")
        self.assertEqual(response.json(), {"account_id": "alice", "balance": 0.0})

    def test_deposit_buys_ten_tokens_per_unit(self):
        data = self.deposit(10)
        self.assertEqual(data["tokens"], 100.0)
        self.assertEqual(data["balance"], 100.0)

        history = self.client.get("/api/transactions").json()["transactions"]
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]["type"], "purchase")

    def test_invalid_deposit(self):
        response = self.client.post("/api/deposit", json={"amount": 0})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_bet")

    def test_security_headers(self):
        response = self.client.get("/api/balance")
        self.assertEqual(response.headers["X-Frame-Options"], "DENY")
        self.assertEqual(response.headers["X-Content-Type-Options"], "nosniff")


class TestDiceEndpoint(ApiTestCase):
    def test_win_end_to_end(self):
        self.deposit(10)
        self.draws(0.30)

        response = self.client.post("/api/games/dice/roll", json={"bet": 20, "target": 50})
        self.assertEqual(response.status_code, 200, response.text)
        data = response.json()
        self.assertEqual(data["outcome"], "win")
        self.assertEqual(data["payout"], 39.6)
        self.assertEqual(data["balance"], 119.6)

        history = self.client.get("/api/transactions?limit=2").json()["transactions"]
        self.assertEqual([t["type"] for t in history], ["game_win", "game_spend"])
        self.assertEqual(history[0]["reference"], data["round_id"])

    def test_insufficient_balance(self):
        self.deposit(1)
        self.draws(0.30)
        response = self.client.post("/api/games/dice/roll", json={"bet": 500})
        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["error"], "insufficient_funds")
        self.assertEqual(self.client.get("/api/balance").json()["balance"], 10.0)

    def test_bad_target(self):
        self.deposit(1)
        response = self.client.post("/api/games/dice/roll", json={"bet": 1, "target": 99})
        self.assertEqual(response.status_code, 400)

    def test_negative_bet(self):
        response = self.client.post("/api/games/dice/roll", json={"bet": -5})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_bet")

    def test_practice_roll_needs_no_tokens(self):
        self.draws(0.99)
        response = self.client.post("/api/games/dice/roll", json={"bet": 0})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["practice"])


class TestInstantGames(ApiTestCase):
    def test_plinko_drop(self):
        self.deposit(10)
        self.draws(0.01)
        data = self.client.post("/api/games/plinko/drop", json={"bet": 10, "risk": "Medium"}).json()
        self.assertEqual(data["bucket"], 0)
        self.assertEqual(data["balance"], 202.0)
        self.assertEqual(len(data["path"]), 16)

    def test_plinko_unknown_risk(self):
        response = self.client.post("/api/games/plinko/drop", json={"bet": 1, "risk": "Extreme"})
        self.assertEqual(response.status_code, 422)

    def test_mining_dig(self):
        self.deposit(10)
        self.draws(0.9)
        data = self.client.post("/api/games/mining/dig", json={"bet": 10, "difficulty": "easy"}).json()
        self.assertEqual(data["outcome"], "failed")
        self.assertEqual(data["energy"], 90)
        self.assertEqual(data["balance"], 90.0)


class TestMinesEndpoints(ApiTestCase):
    # mines at (0,0) (0,1) (0,2), gems at (1,0) (1,1) (1,2)
    BOARD = (0.0, 0.0, 0.0, 0.2, 0.0, 0.4, 0.2, 0.0, 0.2, 0.2, 0.2, 0.4)

    def start(self):
        self.deposit(10)
        self.draws(*self.BOARD)
        response = self.client.post("/api/games/mines/start", json={"bet": 10, "mines": 3, "gems": 3})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["round_id"]

    def test_reveal_and_cash_out(self):
        round_id = self.start()
        data = self.client.post(f"/api/games/mines/{round_id}/reveal", json={"row": 1, "col": 1}).json()
        self.assertEqual(data["cell"]["content"], "gem")
        self.assertNotIn("mine_positions", data)

        data = self.client.post(f"/api/games/mines/{round_id}/cashout").json()
        self.assertEqual(data["payout"], 79.2)
        self.assertEqual(data["balance"], 169.2)

        # settled rounds are gone
        self.assertEqual(self.client.get(f"/api/games/{round_id}").status_code, 404)

    def test_cash_out_before_any_gem(self):
        round_id = self.start()
        response = self.client.post(f"/api/games/mines/{round_id}/cashout")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "invalid_action")

    def test_only_owner_can_act(self):
        round_id = self.start()
        self.sign_in("bob")
        response = self.client.post(f"/api/games/mines/{round_id}/reveal", json={"row": 1, "col": 1})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"], "This is not your game")

    def test_round_lookup(self):
        round_id = self.start()
        data = self.client.get(f"/api/games/{round_id}").json()
        self.assertEqual(data["status"], "active")
        self.assertEqual(data["game"], "mines")

    def test_wrong_game_endpoint(self):
        round_id = self.start()
        self.assertEqual(self.client.post(f"/api/games/blackjack/{round_id}/hit").status_code, 404)


class TestBlackjackEndpoints(ApiTestCase):
    def test_deal_and_finish(self):
        self.deposit(10)
        self.casino.source = SeededRandomSource(2024)
        data = self.client.post("/api/games/blackjack/deal", json={"bet": 10}).json()

        if data["status"] == "active":
            self.assertTrue(data["dealer_hidden"])
            data = self.client.post(f"/api/games/blackjack/{data['round_id']}/stand").json()

        self.assertEqual(data["status"], "settled")
        self.assertFalse(data["dealer_hidden"])
        self.assertEqual(data["balance"], 90.0 + data["payout"])


class TestCrashEndpoints(ApiTestCase):
    def test_start_watch_and_cash_out(self):
        self.deposit(10)
        self.draws(0.5)
        data = self.client.post("/api/games/crash/start", json={"bet": 10}).json()
        round_id = data["round_id"]
        self.assertEqual(data["status"], "active")
        self.assertNotIn("crash_point", data)

        with self.client.websocket_connect(f"/ws/crash/{round_id}") as ws:
            frame = orjson.loads(ws.receive_bytes())
            self.assertEqual(frame["type"], "tick")
            self.assertEqual(frame["round_id"], round_id)

        data = self.client.post(f"/api/games/crash/{round_id}/cashout").json()
        self.assertEqual(data["outcome"], "cashout")
        self.assertGreaterEqual(data["payout"], 10.0)
        self.assertAlmostEqual(data["balance"], 90.0 + data["payout"])

    def test_feed_requires_session(self):
        self.client.cookies.clear()
        with self.client.websocket_connect("/ws/crash/whatever") as ws:
            frame = orjson.loads(ws.receive_bytes())
        self.assertEqual(frame["type"], "error")


if __name__ == "__main__":
    unittest.main()
