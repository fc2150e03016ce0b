from locust import HttpUser, task, between
import random

CARD = {"payment_method": "card", "payment_status": "paid"}


class ShopperUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Sign up and log in a shopper for this simulated client
        email = f"shopper_{random.randint(1, 1_000_000)}@example.com"
        self.client.post("/signup", json={"username": email.split("@")[0], "email": email, "password": "loadtest"})
        r = self.client.post("/login", json={"email": email, "password": "loadtest"})
        self.token = r.json().get("token") if r.status_code == 200 else None
        self.product_ids = []

    @task(5)
    def browse(self):
        r = self.client.get("/products")
        if r.status_code == 200:
            self.product_ids = [p["id"] for p in r.json()]

    @task(1)
    def checkout(self):
        if not self.token or not self.product_ids:
            return
        product_id = random.choice(self.product_ids)
        quantity = random.randint(1, 3)
        self.client.post(
            "/orders",
            json={"items": [{"product_id": product_id, "quantity": quantity}], "total": 1, "payment_details": CARD},
            headers={"Authorization": f"Bearer {self.token}"},
        )

    @task(1)
    def order_history(self):
        if not self.token:
            return
        self.client.get("/orders", headers={"Authorization": f"Bearer {self.token}"})
