"""
HTTP surface tests: status codes and JSON shapes of the business routes.
"""

import pytest


@pytest.fixture
def ids(client, auth):
    """Customer C1 and product P1 created through the API."""
    customer = client.post("/api/customers", json={"name": "C1", "phone": "0900000001"}, headers=auth)
    assert customer.status_code == 201
    product = client.post("/api/products", json={
        "code": "P1", "name": "Product One", "cost_price": 60, "sale_price": 100, "new_stock": 50,
    }, headers=auth)
    assert product.status_code == 201
    return {"customer_id": customer.json["id"], "product_id": product.json["id"]}


def _create_order(client, auth, ids, status="debt", quantity=5):
    return client.post("/api/orders", json={
        "order_code": "O1",
        "customer_id": ids["customer_id"],
        "status": status,
        "items": [{"product_code": "P1", "quantity": quantity, "price": 100}],
    }, headers=auth)


# =============================================================================
# CUSTOMERS
# =============================================================================


class TestCustomers:

    def test_search_and_paginate(self, client, auth):
        for name in ("Alice", "Bob", "Alicia"):
            client.post("/api/customers", json={"name": name}, headers=auth)

        resp = client.get("/api/customers?search=ali&page=1&page_size=1", headers=auth)
        assert resp.status_code == 200
        assert resp.json["total_count"] == 2
        assert resp.json["total_pages"] == 2
        assert [c["name"] for c in resp.json["items"]] == ["Alice"]

        all_resp = client.get("/api/customers/all", headers=auth)
        assert all_resp.json["count"] == 3

    def test_name_required(self, client, auth):
        resp = client.post("/api/customers", json={"phone": "1"}, headers=auth)
        assert resp.status_code == 400

    def test_unknown_field_rejected(self, client, auth):
        resp = client.post("/api/customers", json={"name": "X", "balance": 5}, headers=auth)
        assert resp.status_code == 400

    def test_update_and_get(self, client, auth, ids):
        cid = ids["customer_id"]
        resp = client.put(f"/api/customers/{cid}", json={"phone": "0911"}, headers=auth)
        assert resp.status_code == 200
        assert client.get(f"/api/customers/{cid}", headers=auth).json["phone"] == "0911"

    def test_delete_refused_with_orders(self, client, auth, ids):
        _create_order(client, auth, ids)
        resp = client.delete(f"/api/customers/{ids['customer_id']}", headers=auth)
        assert resp.status_code == 409

    def test_get_unknown(self, client, auth):
        assert client.get("/api/customers/9999", headers=auth).status_code == 404


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProducts:

    def test_create_books_opening_stock(self, client, auth, ids):
        history = client.get("/api/stocks/history/P1", headers=auth).json["items"]
        assert [(m["type"], m["quantity"], m["note"]) for m in history] == [("import", 50, "Opening stock")]

    def test_duplicate_code(self, client, auth, ids):
        resp = client.post("/api/products", json={"code": "P1", "name": "Again"}, headers=auth)
        assert resp.status_code == 409

    def test_negative_price(self, client, auth):
        resp = client.post("/api/products", json={"code": "PX", "name": "X", "cost_price": -1}, headers=auth)
        assert resp.status_code == 400

    def test_update_and_delete(self, client, auth, ids):
        pid = ids["product_id"]
        resp = client.put(f"/api/products/{pid}", json={"sale_price": 120}, headers=auth)
        assert resp.status_code == 200
        assert resp.json["sale_price"] == 120

        assert client.delete(f"/api/products/{pid}", headers=auth).status_code == 200
        assert client.get(f"/api/products/{pid}", headers=auth).status_code == 404


# =============================================================================
# ORDERS
# =============================================================================


class TestOrders:

    def test_create_paid(self, client, auth, ids):
        resp = _create_order(client, auth, ids, status="paid")
        assert resp.status_code == 201
        body = resp.json
        assert (body["total"], body["total_is_paid"], body["remaining_debt"], body["is_paid"]) == (500, 500, 0, True)
        assert body["details"][0]["amount"] == 500
        assert body["details"][0]["profit"] == 200

        product = client.get(f"/api/products/{ids['product_id']}", headers=auth).json
        assert product["new_stock"] == 45

    def test_create_debt(self, client, auth, ids):
        body = _create_order(client, auth, ids).json
        assert (body["remaining_debt"], body["is_paid"], body["status"]) == (500, False, "debt")
        assert [(p["type"], p["amount"]) for p in body["payments"]] == [("new_debt", 500)]

    def test_validation_error(self, client, auth, ids):
        resp = client.post("/api/orders", json={"order_code": "O1", "items": []}, headers=auth)
        assert resp.status_code == 400
        assert "error" in resp.json

    def test_unknown_product(self, client, auth, ids):
        resp = client.post("/api/orders", json={
            "order_code": "O1",
            "customer_id": ids["customer_id"],
            "items": [{"product_code": "NOPE", "quantity": 1, "price": 1}],
        }, headers=auth)
        assert resp.status_code == 404
        assert resp.json["details"] == {"product_code": "NOPE"}

    def test_duplicate_order_code(self, client, auth, ids):
        _create_order(client, auth, ids)
        assert _create_order(client, auth, ids).status_code == 409

    def test_update_quantity(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]
        resp = client.put(f"/api/orders/{order_id}", json={
            "items": [{"product_code": "P1", "quantity": 8, "price": 100}],
        }, headers=auth)

        assert resp.status_code == 200
        assert resp.json["details"][0]["amount"] == 800
        assert resp.json["details"][0]["profit"] == 320
        assert resp.json["remaining_debt"] == 800
        assert client.get(f"/api/products/{ids['product_id']}", headers=auth).json["new_stock"] == 42

    def test_delete(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]
        assert client.delete(f"/api/orders/{order_id}", headers=auth).status_code == 200
        assert client.get(f"/api/orders/{order_id}", headers=auth).status_code == 404
        assert client.get(f"/api/products/{ids['product_id']}", headers=auth).json["new_stock"] == 50
        assert client.get("/api/payments", headers=auth).json["count"] == 0

    def test_list(self, client, auth, ids):
        _create_order(client, auth, ids)
        body = client.get("/api/orders", headers=auth).json
        assert body["count"] == 1
        assert body["items"][0]["customer_name"] == "C1"


# =============================================================================
# PAYMENTS AND DEBTS
# =============================================================================


class TestPayments:

    def test_pay_order_debt(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]

        rejected = client.post("/api/payments/pay-order-debt", json={"order_id": order_id, "amount": 400}, headers=auth)
        assert rejected.status_code == 409
        assert rejected.json["details"]["remaining_debt"] == 500

        resp = client.post("/api/payments/pay-order-debt", json={"order_id": order_id, "amount": 500}, headers=auth)
        assert resp.status_code == 201
        assert resp.json["order"]["remaining_debt"] == 0
        assert resp.json["order"]["is_paid"] is True

    def test_pay_order_debt_bad_amount(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]
        resp = client.post("/api/payments/pay-order-debt", json={"order_id": order_id, "amount": -1}, headers=auth)
        assert resp.status_code == 400

    def test_pay_multiple_orders(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]
        resp = client.post("/api/payments/pay-multiple-orders", json={
            "customer_id": ids["customer_id"],
            "total_amount": 600,
            "payments": [
                {"order_id": order_id, "amount": 500},
                {"order_id": 9999, "amount": 100},
            ],
        }, headers=auth)

        assert resp.status_code == 201
        assert resp.json["total_paid"] == 500
        assert resp.json["summary_payment"]["type"] == "payment"
        assert resp.json["skipped_orders"] == [{"order_id": 9999, "reason": "Order not found"}]

    def test_pay_multiple_orders_all_invalid(self, client, auth, ids):
        resp = client.post("/api/payments/pay-multiple-orders", json={
            "customer_id": ids["customer_id"],
            "payments": [{"order_id": 9999, "amount": 100}],
        }, headers=auth)
        assert resp.status_code == 409
        assert resp.json["details"]["skipped_orders"][0]["order_id"] == 9999

    def test_record_and_list_customer_payments(self, client, auth, ids):
        resp = client.post("/api/payments", json={
            "customer_id": ids["customer_id"], "amount": 50, "note": "Deposit",
        }, headers=auth)
        assert resp.status_code == 201

        listed = client.get(f"/api/payments/customer/{ids['customer_id']}", headers=auth).json
        assert [p["note"] for p in listed["items"]] == ["Deposit"]

    def test_debt_reads(self, client, auth, ids):
        order_id = _create_order(client, auth, ids).json["id"]

        summaries = client.get("/api/debts/customer-debts", headers=auth).json
        assert summaries["total_debt_amount"] == 500

        detail = client.get(f"/api/debts/customer-debt/{ids['customer_id']}", headers=auth).json
        assert detail["summary"]["total_remaining_debt"] == 500

        rows = client.post("/api/debts/order-debts", json={"order_ids": [order_id]}, headers=auth).json
        assert rows["items"][0]["remaining_debt"] == 500

        assert client.get("/api/debts/customer-debt/9999", headers=auth).status_code == 404


# =============================================================================
# STOCKS AND DASHBOARD
# =============================================================================


class TestStocksAndDashboard:

    def test_update_stats(self, client, auth, ids):
        resp = client.post("/api/stocks/update-stats", json={
            "product_code": "P1", "type": "export", "quantity": 60, "note": "Write-off",
        }, headers=auth)
        assert resp.status_code == 201
        assert resp.json["new_stock"] == -10

    def test_update_stats_invalid_type(self, client, auth, ids):
        resp = client.post("/api/stocks/update-stats", json={
            "product_code": "P1", "type": "move", "quantity": 1,
        }, headers=auth)
        assert resp.status_code == 400

    def test_levels_with_date_range(self, client, auth, ids):
        rows = client.get("/api/stocks?from=2000-01-01&to=2999-12-31", headers=auth).json["items"]
        assert rows[0]["stock"] == 50
        assert client.get("/api/stocks?from=yesterday", headers=auth).status_code == 400

    def test_report(self, client, auth, ids):
        body = client.get("/api/stocks/report", headers=auth).json
        assert body["summary"]["total_products"] == 1

    def test_dashboard(self, client, auth, ids):
        _create_order(client, auth, ids)

        stats = client.get("/api/dashboard/stats", headers=auth).json
        assert stats["total_orders"] == 1
        assert stats["debt_orders_count"] == 1
        assert stats["total_revenue"] == 500
        assert stats["total_debt"] == 500
        assert stats["total_profit"] == 200
        assert stats["top_products"][0]["total_quantity"] == 5
        assert len(stats["sales_over_time"]) == 7

        customers = client.get("/api/dashboard/customers", headers=auth).json
        assert customers["customers_with_debt"][0]["total_debt"] == 500

        inventory = client.get("/api/dashboard/inventory", headers=auth).json
        assert inventory["inventory_summary"][0]["current_stock"] == 45
