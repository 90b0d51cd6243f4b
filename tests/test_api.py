"""
Tests de la API HTTP (FastAPI TestClient).
"""
from tests.conftest import PASSWORD, SUPERVISOR_PIN


class TestPublic:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_requires_token(self, client):
        response = client.get("/api/v1/auth/me")

        assert response.status_code in (401, 403)


class TestAuth:
    def test_login_json_and_me(self, client, operator):
        response = client.post(
            "/api/v1/auth/login-json",
            json={"email": operator.email, "password": PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["role"] == "OPERARIO"
        assert me.json()["has_pin"] is False

    def test_wrong_password(self, client, operator):
        response = client.post(
            "/api/v1/auth/login-json",
            json={"email": operator.email, "password": "incorrecta"}
        )

        assert response.status_code == 401

    def test_verify_pin(self, client, operator, supervisor, auth_headers):
        ok = client.post(
            "/api/v1/auth/verify-pin", json={"pin": SUPERVISOR_PIN}, headers=auth_headers(operator)
        )
        assert ok.status_code == 200
        assert ok.json()["supervisor"]["id"] == supervisor.id

        wrong = client.post(
            "/api/v1/auth/verify-pin", json={"pin": "9999"}, headers=auth_headers(operator)
        )
        assert wrong.status_code == 401
        assert wrong.json()["error_code"] == "INVALID_CREDENTIALS"


class TestPalletEndpoints:
    def test_receive_pallet(self, client, operator, auth_headers, warehouse, product, supplier, locations):
        response = client.post(
            "/api/v1/pallets/",
            json={
                "warehouse_id": warehouse.id,
                "product_id": product.id,
                "supplier_id": supplier.id,
                "location_id": locations[0].id,
                "capacity": 100,
                "unit_price": "18.50"
            },
            headers=auth_headers(operator)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["pallet"]["current_inventory"] == 100
        assert body["pallet"]["status"] == "ACTIVA"

    def test_shrinkage_escalation_over_http(self, client, make_pallet, operator, supervisor, auth_headers):
        pallet = make_pallet(70)
        url = f"/api/v1/pallets/{pallet.id}/shrinkage"

        denied = client.post(
            url, json={"quantity": 20, "reason": "Botellas rotas"}, headers=auth_headers(operator)
        )
        assert denied.status_code == 403
        body = denied.json()
        assert body["success"] is False
        assert body["error_code"] == "ESCALATION_REQUIRED"
        assert body["details"]["threshold"] == 14

        approved = client.post(
            url,
            json={"quantity": 20, "reason": "Botellas rotas", "supervisor_pin": SUPERVISOR_PIN},
            headers=auth_headers(operator)
        )
        assert approved.status_code == 200
        assert approved.json()["pallet"]["current_inventory"] == 50

        history = client.get(f"/api/v1/events/pallet/{pallet.id}", headers=auth_headers(operator))
        assert history.status_code == 200
        shrinkage = [e for e in history.json() if e["type"] == "MERMA"]
        assert shrinkage[0]["supervisor_id"] == supervisor.id

    def test_unknown_pallet_is_404(self, client, operator, auth_headers):
        response = client.get("/api/v1/pallets/no-existe", headers=auth_headers(operator))

        assert response.status_code == 404
        assert response.json()["error_code"] == "PALLET_NOT_FOUND"


class TestOrderEndpoints:
    def test_create_and_assign(self, client, make_pallet, operator, auth_headers, warehouse, customer, product):
        make_pallet(100)
        created = client.post(
            "/api/v1/orders/",
            json={
                "warehouse_id": warehouse.id,
                "customer_id": customer.id,
                "lines": [{"product_id": product.id, "requested_quantity": 12, "unit_price": "20"}]
            },
            headers=auth_headers(operator)
        )
        assert created.status_code == 201
        order_id = created.json()["order"]["id"]

        assigned = client.post(f"/api/v1/orders/{order_id}/assign", headers=auth_headers(operator))

        assert assigned.status_code == 200
        assert assigned.json()["order"]["status"] == "ENVIADO_BODEGA"

        again = client.post(f"/api/v1/orders/{order_id}/assign", headers=auth_headers(operator))
        assert again.status_code == 409
