"""
Load profile for the dice endpoint.

    locust -f locustfile.py --host http://127.0.0.1:8000

Each simulated player signs its own session cookie with the server's
SECRET_KEY, buys tokens once, then rolls dice.
"""

import uuid

from locust import HttpUser, between, task

from tokencasino.core.auth import SESSION_COOKIE, sign_session


class DicePlayer(HttpUser):
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.user_id = f"load-{uuid.uuid4().hex[:12]}"
        self.client.cookies.set(SESSION_COOKIE, sign_session(self.user_id))

        response = self.client.post("/api/deposit", json={"amount": 100})
        if response.status_code != 200:
            print(f"Deposit failed for {self.user_id}: {response.status_code} {response.text}")
            self.environment.runner.quit()

    @task(10)
    def roll(self):
        with self.client.post(
            "/api/games/dice/roll",
            json={"bet": 1, "target": 50},
            name="/api/games/dice/roll",
            catch_response=True,
        ) as response:
            # Running out of tokens is an expected outcome, not a failure
            if response.status_code in (200, 402):
                response.success()
            else:
                response.failure(f"Unexpected status {response.status_code}")

    @task(1)
    def balance(self):
        self.client.get("/api/balance")
