from locust import HttpUser, task, between
import random


class VendorUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register and log in a vendor for this simulated client
        self.email = f"vendor_{random.randint(1, 1_000_000)}@example.com"
        self.client.post("/signup", data={"email": self.email, "password": "pw123", "advertiser": "on"}, allow_redirects=False)
        r = self.client.post("/login", data={"email": self.email, "password": "pw123"}, allow_redirects=False)
        self.logged_in = r.status_code == 303

    @task(3)
    def create_product(self):
        if not self.logged_in:
            return
        self.client.post(
            "/create-product",
            data={
                "name": f"Item {random.randint(1, 1000)}",
                "description": "Load test product",
                "price": str(round(random.random() * 100, 2)),
                "stock": str(random.randint(0, 50)),
            },
            allow_redirects=False,
        )

    @task(1)
    def own_products(self):
        if self.logged_in:
            self.client.get("/usuario_ambulante")


class ShopperUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        email = f"shopper_{random.randint(1, 1_000_000)}@example.com"
        self.client.post("/signup", data={"email": email, "password": "pw123"}, allow_redirects=False)
        self.client.post("/login", data={"email": email, "password": "pw123"}, allow_redirects=False)

    @task
    def browse(self):
        self.client.get("/usuario_padrao")
