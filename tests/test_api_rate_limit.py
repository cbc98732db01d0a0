import unittest

from fastapi.testclient import TestClient

from tokencasino.config import settings
from tokencasino.core.auth import SESSION_COOKIE, sign_session
from tokencasino.core.casino import Casino
from tokencasino.core.rng import SeededRandomSource
from tokencasino.main import create_app
from tokencasino.routers.api import limiter


class TestApiRateLimit(unittest.TestCase):
    def setUp(self):
        # Create a new app instance for each test to ensure a clean state
        self.app = create_app(casino=Casino.in_memory(source=SeededRandomSource(1)))
        limiter.reset()

        self._saved = (
            settings.rate_limit.enabled,
            settings.rate_limit.game_requests,
            settings.rate_limit.api_requests,
        )
        settings.rate_limit.enabled = True
        settings.rate_limit.game_requests = "5/minute"
        settings.rate_limit.api_requests = "3/minute"

    def tearDown(self):
        (
            settings.rate_limit.enabled,
            settings.rate_limit.game_requests,
            settings.rate_limit.api_requests,
        ) = self._saved
        limiter.reset()

    def test_rate_limit_applied_to_game_endpoints(self):
        endpoint = "/api/games/dice/roll"
        body = {"bet": 0, "target": 50}

        with TestClient(self.app) as client:
            client.cookies.set(SESSION_COOKIE, sign_session("alice"))
            # The first 5 requests should succeed
            for i in range(5):
                response = client.post(endpoint, json=body)
                self.assertNotEqual(
                    response.status_code, 429,
                    f"Request {i+1}/6 should have succeeded, but got 429."
                )

            # The 6th request should be rate-limited
            response = client.post(endpoint, json=body)
            self.assertEqual(
                response.status_code, 429,
                f"The 6th request should have been rate-limited (429), but got {response.status_code}."
            )

    def test_account_reads_use_the_general_api_limit(self):
        with TestClient(self.app) as client:
            client.cookies.set(SESSION_COOKIE, sign_session("alice"))
            for _ in range(3):
                self.assertEqual(client.get("/api/balance").status_code, 200)
            self.assertEqual(client.get("/api/balance").status_code, 429)

            # game actions are counted separately
            self.assertEqual(
                client.post("/api/games/dice/roll", json={"bet": 0, "target": 50}).status_code, 200
            )


if __name__ == "__main__":
    unittest.main()
