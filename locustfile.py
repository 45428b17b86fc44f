from locust import HttpUser, task, between

SAMPLE_REQUEST = {
    "labels": [
        {"name": "water bottle", "prob": 0.82},
        {"name": "plastic bottle", "prob": 0.61},
    ],
    "rules": {},
    "meta": {"conf": 0.82, "delta": 0.08, "recentCount": 1},
}


class WastePolicyUser(HttpUser):
    # Simulates users waiting between 1 and 3 seconds between captures
    wait_time = between(1, 3)

    @task(5)
    def map_capture(self):
        self.client.post("/python/api/v1/map", json=SAMPLE_REQUEST)

    @task(1)
    def load_openapi(self):
        """Simulates developers/tools fetching the API schema."""
        self.client.get("/python/openapi.json")
