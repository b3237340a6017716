import os
import uuid

from locust import HttpUser, task, between

# tokens are issued out of band (chat login), so the benchmark takes one from the environment
BENCH_TOKEN = os.getenv("BENCH_TOKEN", "")


class AssetBrowser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = {"Authorization": f"Bearer {BENCH_TOKEN}"} if BENCH_TOKEN else {}

    @task(5)
    def list_assets(self):
        self.client.get("/api/assets", params={"page": 1, "limit": 24})

    @task(2)
    def list_alerts(self):
        if self.headers:
            self.client.get("/api/alerts", params={"read": "unread"}, headers=self.headers)

    @task(1)
    def upload_asset(self):
        if not self.headers:
            return
        data = {
            "name": "bench saber",
            "license": "cc0",
            "file_format": "saber_saber",
            "file_hash": uuid.uuid4().hex,
            "file_size": 1024,
        }
        self.client.post("/api/assets", json=data, headers=self.headers)
