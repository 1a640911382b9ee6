"""Integration tests for Cart API endpoints via TestClient."""

BUYER = {"X-User-ID": "buyer-1"}


class TestCartEndpoints:
    def test_get_creates_empty_cart(self, client):
        response = client.get("/cart", headers=BUYER)
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "buyer-1"
        assert data["items"] == []
        assert data["summary"]["total"] == 0.0

    def test_missing_identity_is_rejected(self, client):
        response = client.get("/cart")
        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "Unauthenticated"

    def test_add_item(self, client):
        response = client.post(
            "/cart/items",
            json={"product_id": "P1", "quantity": 2, "shipping_selected": True},
            headers=BUYER,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["items"][0]["quantity"] == 2
        assert data["summary"] == {"item_count": 2, "subtotal": 20.0, "shipping_cost": 3.0, "total": 23.0}

    def test_add_unknown_product(self, client):
        response = client.post("/cart/items", json={"product_id": "P9", "quantity": 1}, headers=BUYER)
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "ProductNotFound"

    def test_add_rejects_non_positive_quantity(self, client):
        response = client.post("/cart/items", json={"product_id": "P1", "quantity": 0}, headers=BUYER)
        assert response.status_code == 422

    def test_update_and_remove(self, client):
        client.post("/cart/items", json={"product_id": "P1", "quantity": 1}, headers=BUYER)
        client.post("/cart/items", json={"product_id": "P2", "quantity": 1}, headers=BUYER)

        response = client.put("/cart/items/P1", json={"quantity": 3}, headers=BUYER)
        assert response.json()["summary"]["subtotal"] == 50.0

        response = client.delete("/cart/items/P2", headers=BUYER)
        assert [i["product_id"] for i in response.json()["items"]] == ["P1"]

    def test_update_to_zero_removes_line(self, client):
        client.post("/cart/items", json={"product_id": "P1", "quantity": 1}, headers=BUYER)
        response = client.put("/cart/items/P1", json={"quantity": 0}, headers=BUYER)
        assert response.json()["items"] == []

    def test_update_missing_line(self, client):
        response = client.put("/cart/items/P1", json={"quantity": 2}, headers=BUYER)
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "ItemNotInCart"

    def test_summary(self, client):
        client.post("/cart/items", json={"product_id": "P2", "quantity": 2}, headers=BUYER)
        response = client.get("/cart/summary", headers=BUYER)
        assert response.json()["total"] == 40.0

    def test_clear(self, client):
        client.post("/cart/items", json={"product_id": "P1", "quantity": 1}, headers=BUYER)
        response = client.delete("/cart", headers=BUYER)
        assert response.json()["items"] == []

    def test_save_for_later_and_move_back(self, client):
        client.post("/cart/items", json={"product_id": "P1", "quantity": 2}, headers=BUYER)

        response = client.post("/cart/saved/P1", headers=BUYER)
        data = response.json()
        assert data["items"] == []
        assert data["saved_items"][0]["product_id"] == "P1"

        response = client.post("/cart/saved/P1/move", headers=BUYER)
        data = response.json()
        assert data["items"][0]["quantity"] == 2
        assert data["saved_items"] == []

    def test_remove_saved(self, client):
        client.post("/cart/items", json={"product_id": "P1", "quantity": 2}, headers=BUYER)
        client.post("/cart/saved/P1", headers=BUYER)
        response = client.delete("/cart/saved/P1", headers=BUYER)
        assert response.json()["saved_items"] == []
