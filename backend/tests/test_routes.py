# Overview: Pytest coverage for the HTTP API surface.

"""
API Route Tests

Drives the blueprints through the Flask test client: request context
headers, payload parsing (current and legacy shapes), error mapping to
status codes, and tenant scoping of reads.
"""

import pytest

from ledgerpos.services import cash_account_service, sales_service

from conftest import context_headers


class TestRequestContext:

    @pytest.mark.parametrize("method,url", [
        ("get", "/api/sales"),
        ("post", "/api/sales"),
        ("post", "/api/registers/open"),
        ("get", "/api/cash-accounts"),
        ("get", "/api/stock"),
        ("get", "/api/reports/profit-loss"),
    ])
    def test_missing_headers(self, client, db_session, method, url):
        response = getattr(client, method)(url)
        assert response.status_code == 401
        assert response.get_json()["code"] == "UNAUTHORIZED"

    def test_user_of_another_tenant(self, client, db_session, user, other_tenant):
        headers = {"X-Tenant-ID": str(other_tenant.id), "X-User-ID": str(user.id)}
        assert client.get("/api/sales", headers=headers).status_code == 401

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "healthy"


class TestSalesApi:

    def test_post_legacy_payload(self, client, db_session, user, stocked_product, open_session):
        response = client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"productId": stocked_product.id, "quantity": 2, "unitPrice": 100, "taxRate": 21, "discount": 10}],
            "paymentMethod": "CASH",
        })

        assert response.status_code == 201
        sale = response.get_json()["sale"]
        assert sale["sale_number"] == "SALE-000001"
        assert sale["total"] == "180.00"
        assert sale["tax_amount"] == "31.24"
        assert sale["subtotal"] == "148.76"
        assert sale["items"][0]["discount_type"] == "PERCENTAGE"
        assert sale["payments"] == [{
            "id": sale["payments"][0]["id"],
            "sale_id": sale["id"],
            "method": "CASH",
            "amount": "180.00",
            "reference": None,
        }]

    def test_post_split_tender(self, client, db_session, user, stocked_product, open_session, bank_account):
        response = client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"product_id": stocked_product.id, "quantity": 2, "unit_price": "125.00", "tax_rate": 21}],
            "payments": [
                {"method": "CASH", "amount": 100},
                {"method": "CREDIT_CARD", "amount": 150, "cardLastFour": "4242"},
            ],
        })
        assert response.status_code == 201
        payments = response.get_json()["sale"]["payments"]
        assert [p["reference"] for p in payments] == [None, "card:4242"]

        movements = client.get(f"/api/cash-accounts/{bank_account.id}/movements", headers=context_headers(user))
        assert [m["amount"] for m in movements.get_json()["movements"]] == ["150.00"]

    def test_payments_mismatch(self, client, db_session, user, stocked_product, open_session):
        response = client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"product_id": stocked_product.id, "quantity": 1, "unit_price": 100, "tax_rate": 21}],
            "payments": [{"method": "CASH", "amount": 50}],
        })
        assert response.status_code == 400
        body = response.get_json()
        assert body["code"] == "PAYMENTS_MISMATCH"
        assert body["details"] == {"payments_total": "50.00", "sale_total": "100.00"}

    def test_invalid_payload(self, client, db_session, user, open_session):
        response = client.post("/api/sales", headers=context_headers(user), json={"items": []})
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_no_open_register(self, client, db_session, user, stocked_product):
        response = client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"product_id": stocked_product.id, "quantity": 1, "unit_price": 100, "tax_rate": 21}],
            "paymentMethod": "CASH",
        })
        assert response.status_code == 400
        assert response.get_json()["code"] == "NO_OPEN_REGISTER"

    def test_list_and_detail_are_tenant_scoped(self, client, db_session, user, other_user, stocked_product,
                                               open_session):
        created = client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"product_id": stocked_product.id, "quantity": 1, "unit_price": 100, "tax_rate": 21}],
            "paymentMethod": "CASH",
        }).get_json()["sale"]

        listing = client.get("/api/sales?payment_method=CASH&limit=10", headers=context_headers(user))
        assert [s["id"] for s in listing.get_json()["sales"]] == [created["id"]]

        detail = client.get(f"/api/sales/{created['id']}", headers=context_headers(user))
        assert detail.status_code == 200
        assert detail.get_json()["sale"]["items"][0]["cost_price"] == "60.00"

        assert client.get(f"/api/sales/{created['id']}", headers=context_headers(other_user)).status_code == 404
        assert client.get("/api/sales", headers=context_headers(other_user)).get_json()["sales"] == []

    def test_detail_unexpected_error(self, client, db_session, user, monkeypatch):
        def broken(tenant_id, sale_id):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(sales_service, "get_sale", broken)
        response = client.get("/api/sales/1", headers=context_headers(user))
        assert response.status_code == 500
        assert response.get_json() == {"error": "Internal server error"}

    def test_bad_query_params(self, client, db_session, user):
        assert client.get("/api/sales?from=yesterday", headers=context_headers(user)).status_code == 400
        assert client.get("/api/sales?limit=-1", headers=context_headers(user)).status_code == 400


class TestRegistersApi:

    def test_open_and_close(self, client, db_session, user, cash_account):
        client.post(f"/api/cash-accounts/{cash_account.id}/movements", headers=context_headers(user), json={
            "type": "RECEIVED", "amount": "50", "concept": "Change fund",
        })
        opened = client.post("/api/registers/open", headers=context_headers(user), json={"openingBalance": "50"})
        assert opened.status_code == 201
        session_id = opened.get_json()["session"]["id"]

        again = client.post("/api/registers/open", headers=context_headers(user), json={})
        assert again.status_code == 400
        assert again.get_json()["code"] == "REGISTER_ALREADY_OPEN"

        current = client.get("/api/registers/current", headers=context_headers(user))
        assert current.get_json()["session"]["id"] == session_id

        tx = client.post(f"/api/registers/{session_id}/transactions", headers=context_headers(user), json={
            "type": "EXPENSE", "amount": 5, "concept": "Coffee filters",
        })
        assert tx.status_code == 201

        closed = client.post(f"/api/registers/{session_id}/close", headers=context_headers(user),
                             json={"finalBalance": 45})
        assert closed.status_code == 200
        body = closed.get_json()
        assert body["session"]["status"] == "CLOSED"
        assert body["session"]["expected_balance"] == "45.00"
        assert body["session"]["difference"] == "0.00"
        assert body["expenses"] == "5.00"
        assert body["payment_breakdown"]["CASH"] == "0.00"

        assert client.get("/api/registers/current", headers=context_headers(user)).get_json()["session"] is None

        account = client.get(f"/api/cash-accounts/{cash_account.id}/movements", headers=context_headers(user))
        assert [m["movement_type"] for m in account.get_json()["movements"]] == [
            "TRANSFER_IN", "TRANSFER_OUT", "RECEIVED",
        ]

    def test_float_without_funds(self, client, db_session, user, cash_account):
        response = client.post("/api/registers/open", headers=context_headers(user), json={"openingBalance": "50"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "INSUFFICIENT_FUNDS"
        assert client.get("/api/registers/current", headers=context_headers(user)).get_json()["session"] is None


class TestStockApi:

    def test_record_and_list(self, client, db_session, user, product, location):
        response = client.post("/api/stock/movements", headers=context_headers(user), json={
            "productId": product.id, "movementType": "purchase", "quantity": 3, "reason": "Delivery",
        })
        assert response.status_code == 201
        assert response.get_json()["movement"]["quantity"] == 3

        stock = client.get(f"/api/stock?location_id={location.id}", headers=context_headers(user)).get_json()
        assert [row["quantity"] for row in stock["stock"]] == [3]

        movements = client.get(f"/api/stock/movements?product_id={product.id}", headers=context_headers(user))
        assert [m["movement_type"] for m in movements.get_json()["movements"]] == ["PURCHASE"]

    def test_sale_movements_are_not_manual(self, client, db_session, user, stocked_product):
        response = client.post("/api/stock/movements", headers=context_headers(user), json={
            "product_id": stocked_product.id, "movement_type": "SALE", "quantity": 1,
        })
        assert response.status_code == 400

    def test_insufficient_stock(self, client, db_session, user, stocked_product):
        response = client.post("/api/stock/movements", headers=context_headers(user), json={
            "product_id": stocked_product.id, "movement_type": "LOSS", "quantity": 50,
        })
        assert response.status_code == 400
        assert response.get_json()["code"] == "INSUFFICIENT_STOCK"


class TestTreasuryApi:

    def test_create_receive_and_transfer(self, client, db_session, user, cash_account):
        created = client.post("/api/cash-accounts", headers=context_headers(user), json={"name": "Bank"})
        assert created.status_code == 201
        bank_id = created.get_json()["account"]["id"]

        received = client.post(f"/api/cash-accounts/{bank_id}/movements", headers=context_headers(user), json={
            "type": "RECEIVED", "amount": "300", "concept": "Deposit",
        })
        assert received.status_code == 201

        transfer = client.post("/api/cash-accounts/transfer", headers=context_headers(user), json={
            "fromAccountId": bank_id, "toAccountId": cash_account.id, "amount": 80, "concept": "Float",
        })
        assert transfer.status_code == 201
        body = transfer.get_json()
        assert body["out"]["balance_after"] == "220.00"
        assert body["in"]["related_account_id"] == bank_id

        overdraw = client.post(f"/api/cash-accounts/{cash_account.id}/movements", headers=context_headers(user), json={
            "type": "PAID", "amount": "81", "concept": "Rent",
        })
        assert overdraw.status_code == 400
        assert overdraw.get_json()["code"] == "INSUFFICIENT_FUNDS"

    def test_map_payment_method(self, client, db_session, user, tenant, cash_account):
        response = client.put("/api/cash-accounts/payment-methods/qr", headers=context_headers(user),
                              json={"cashAccountId": cash_account.id})
        assert response.status_code == 200
        assert response.get_json()["mapping"]["payment_method"] == "QR"
        assert cash_account_service.mapped_account_id(tenant.id, "QR") == cash_account.id


class TestCustomerAccountsApi:

    def test_account_lifecycle(self, client, db_session, user, customer):
        url = f"/api/customers/{customer.id}/account"
        account = client.get(url, headers=context_headers(user)).get_json()["account"]
        assert account["balance"] == "0.00"
        assert account["available_credit"] is None

        patched = client.patch(url, headers=context_headers(user), json={"creditLimit": 200})
        assert patched.status_code == 200

        payment = client.post(f"{url}/payments", headers=context_headers(user), json={"amount": 20})
        assert payment.status_code == 201
        adjustment = client.post(f"{url}/adjustments", headers=context_headers(user),
                                 json={"amount": -70, "concept": "Opening balance"})
        assert adjustment.status_code == 201

        account = client.get(url, headers=context_headers(user)).get_json()["account"]
        assert account["balance"] == "-50.00"
        assert account["available_credit"] == "150.00"

        movements = client.get(f"{url}/movements", headers=context_headers(user)).get_json()["movements"]
        assert [m["movement_type"] for m in movements] == ["ADJUSTMENT", "PAYMENT"]

    def test_other_tenant_customer(self, client, db_session, other_user, customer):
        response = client.get(f"/api/customers/{customer.id}/account", headers=context_headers(other_user))
        assert response.status_code == 404
        assert response.get_json()["code"] == "CUSTOMER_NOT_FOUND"


class TestReportsApi:

    def test_profit_loss(self, client, db_session, user, stocked_product, open_session):
        client.post("/api/sales", headers=context_headers(user), json={
            "items": [{"product_id": stocked_product.id, "quantity": 1, "unit_price": 100, "tax_rate": 21}],
            "paymentMethod": "CASH",
        })
        report = client.get("/api/reports/profit-loss", headers=context_headers(user))
        assert report.status_code == 200
        assert report.get_json()["revenue"]["gross"] == "100.00"
        assert report.get_json()["cogs"] == "60.00"

    def test_inverted_window(self, client, db_session, user):
        response = client.get("/api/reports/profit-loss?from=2026-02-01&to=2026-01-01", headers=context_headers(user))
        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"
