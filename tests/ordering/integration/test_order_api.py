"""Integration tests for Order API endpoints via TestClient."""

import pytest
from ordering.order.order import Order, OrderStatus
from protean import current_domain


def _place(client, payload, headers=None):
    response = client.post("/orders", json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture()
def guest_order(client, order_payload, guest_contact):
    return _place(client, {**order_payload, "guest_contact": guest_contact})


class TestPlaceOrder:
    def test_customer_order(self, client, order_payload, customer_headers):
        body = _place(client, order_payload, customer_headers)
        assert body["order_number"].startswith("KRN-")
        assert body["tracking_code"].startswith("KN-")
        assert body["total_price"] == 854_000.0
        assert body["guest_access_token"] is None
        assert current_domain.repository_for(Order).get(body["order_id"]).customer_id == "cust-001"

    def test_guest_order_returns_token(self, guest_order):
        assert guest_order["guest_access_token"]

    def test_guest_contact_required_without_account(self, client, order_payload):
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_legacy_address_fields(self, client, order_payload, customer_headers):
        order_payload["shipping_address"] = {
            "fullName": "Sara Ahmadi",
            "phoneNumber": "09120000000",
            "address": "12 Valiasr St",
            "city": "Tehran",
            "province": "Tehran",
            "zipCode": "1234567890",
        }
        body = _place(client, order_payload, customer_headers)
        address = current_domain.repository_for(Order).get(body["order_id"]).shipping_address
        assert address.street == "12 Valiasr St"
        assert address.state == "Tehran"
        assert address.postal_code == "1234567890"

    def test_insufficient_stock(self, client, order_payload, customer_headers):
        order_payload["items"][0]["quantity"] = 50
        response = client.post("/orders", json=order_payload, headers=customer_headers)
        assert response.status_code == 400

    def test_unknown_product(self, client, order_payload, customer_headers):
        order_payload["items"][0]["product_id"] = "missing"
        response = client.post("/orders", json=order_payload, headers=customer_headers)
        assert response.status_code == 404

    def test_schema_validation(self, client, order_payload, customer_headers):
        order_payload["items"] = []
        response = client.post("/orders", json=order_payload, headers=customer_headers)
        assert response.status_code == 422


class TestReadOrder:
    def test_owner(self, client, order_payload, customer_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.get(f"/orders/{order_id}", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["items"][0]["name"] == "Desk Lamp"

    def test_other_customer(self, client, order_payload, customer_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.get(f"/orders/{order_id}", headers={"X-User-Id": "cust-999"})
        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    def test_admin(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        assert client.get(f"/orders/{order_id}", headers=admin_headers).status_code == 200

    def test_guest_with_bearer_token(self, client, guest_order):
        response = client.get(
            f"/orders/{guest_order['order_id']}",
            headers={"Authorization": f"Bearer {guest_order['guest_access_token']}"},
        )
        assert response.status_code == 200
        assert response.json()["guest_email"] == "guest@example.com"

    def test_guest_with_header_and_query_token(self, client, guest_order):
        order_id, token = guest_order["order_id"], guest_order["guest_access_token"]
        assert client.get(f"/orders/{order_id}", headers={"X-Guest-Token": token}).status_code == 200
        assert client.get(f"/orders/{order_id}?token={token}").status_code == 200

    def test_guest_without_token(self, client, guest_order):
        response = client.get(f"/orders/{guest_order['order_id']}")
        assert response.status_code == 401

    def test_guest_token_for_another_order(self, client, order_payload, guest_contact, guest_order):
        other = _place(client, {**order_payload, "guest_contact": guest_contact})
        response = client.get(
            f"/orders/{other['order_id']}",
            headers={"Authorization": f"Bearer {guest_order['guest_access_token']}"},
        )
        assert response.status_code == 403

    def test_forged_token(self, client, guest_order):
        response = client.get(f"/orders/{guest_order['order_id']}", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401

    def test_unknown_order(self, client, admin_headers):
        response = client.get("/orders/4b1f6a3c-0000-4000-8000-000000000000", headers=admin_headers)
        assert response.status_code == 404


class TestCancelOrder:
    def test_owner_cancels(self, client, order_payload, customer_headers, lamp, stock_of):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"reason": "Changed my mind"}, headers=customer_headers)
        assert response.status_code == 200
        assert response.json() == {"order_id": order_id, "changed": True, "status": "cancelled"}
        assert stock_of(lamp) == 12

    def test_guest_cancels_with_token(self, client, guest_order):
        response = client.post(
            f"/orders/{guest_order['order_id']}/cancel",
            headers={"X-Guest-Token": guest_order["guest_access_token"]},
        )
        assert response.status_code == 200
        order = current_domain.repository_for(Order).get(guest_order["order_id"])
        assert order.cancelled_by == "guest"

    def test_repeat_cancel_reports_no_change(self, client, order_payload, customer_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        client.post(f"/orders/{order_id}/cancel", headers=customer_headers)
        response = client.post(f"/orders/{order_id}/cancel", headers=customer_headers)
        assert response.json()["changed"] is False

    def test_stranger_cannot_cancel(self, client, order_payload, customer_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", headers={"X-User-Id": "cust-999"})
        assert response.status_code == 403


class TestAdminEndpoints:
    def test_status_update(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "processing"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == OrderStatus.PROCESSING.value

    def test_status_update_requires_admin(self, client, order_payload, customer_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "processing"}, headers=customer_headers)
        assert response.status_code == 403

    def test_invalid_transition(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_payment_override(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(
            f"/orders/{order_id}/payment", json={"is_paid": True, "receipt_id": "bank-7781"}, headers=admin_headers
        )
        assert response.status_code == 200
        order = current_domain.repository_for(Order).get(order_id)
        assert order.is_paid is True
        assert order.payment_result.receipt_id == "bank-7781"

    def test_tracking_number(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        client.put(f"/orders/{order_id}/status", json={"status": "processing"}, headers=admin_headers)
        response = client.put(f"/orders/{order_id}/tracking", json={"tracking_number": "POST-1"}, headers=admin_headers)
        assert response.json()["status"] == OrderStatus.SHIPPED.value

    def test_shipping_option(self, client, order_payload, customer_headers, admin_headers):
        order_id = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(
            f"/orders/{order_id}/shipping-option", json={"shipping_option": "same_day"}, headers=admin_headers
        )
        assert response.json()["changed"] is True

    def test_bulk_status_update(self, client, order_payload, customer_headers, admin_headers):
        first = _place(client, order_payload, customer_headers)["order_id"]
        second = _place(client, order_payload, customer_headers)["order_id"]
        response = client.put(
            "/orders/bulk-status-update",
            json={"order_ids": [first, second, "missing"], "status": "processing"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["succeeded"] == 2
        assert body["failed"] == 1
        assert body["results"][2]["error"] == "Order not found"


class TestOrderListings:
    def test_my_orders(self, client, order_payload, customer_headers, guest_order):
        first = _place(client, order_payload, customer_headers)
        second = _place(client, order_payload, customer_headers)
        _place(client, order_payload, {"X-User-Id": "cust-002"})

        response = client.get("/orders/user", headers=customer_headers)

        assert response.status_code == 200
        body = response.json()
        assert [order["order_id"] for order in body] == [second["order_id"], first["order_id"]]
        assert body[0]["total_price"] == 854_000.0
        assert body[0]["item_count"] == 2

    def test_my_orders_requires_sign_in(self, client):
        assert client.get("/orders/user").status_code == 403

    def test_admin_listing(self, client, order_payload, customer_headers, admin_headers):
        placed = [_place(client, order_payload, customer_headers) for _ in range(3)]
        client.put(f"/orders/{placed[0]['order_id']}/status", json={"status": "processing"}, headers=admin_headers)

        response = client.get("/orders", params={"page": 1, "limit": 2}, headers=admin_headers)
        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert body["current_page"] == 1
        assert body["results"] == 2
        assert [order["order_id"] for order in body["data"]] == [placed[2]["order_id"], placed[1]["order_id"]]

        body = client.get("/orders", params={"status": "processing"}, headers=admin_headers).json()
        assert [order["order_id"] for order in body["data"]] == [placed[0]["order_id"]]

    def test_admin_listing_requires_admin(self, client, customer_headers):
        assert client.get("/orders", headers=customer_headers).status_code == 403

    def test_admin_listing_unknown_status(self, client, admin_headers):
        response = client.get("/orders", params={"status": "teleported"}, headers=admin_headers)
        assert response.status_code == 400


class TestTracking:
    def test_public_view(self, client, order_payload, customer_headers):
        placed = _place(client, order_payload, customer_headers)
        response = client.get(f"/orders/track/{placed['tracking_code']}")
        assert response.status_code == 200
        body = response.json()
        assert body["order_number"] == placed["order_number"]
        assert body["status"] == "pending"
        assert "customer_id" not in body
        assert "shipping_address" not in body

    def test_lower_case_code_accepted(self, client, order_payload, customer_headers):
        placed = _place(client, order_payload, customer_headers)
        assert client.get(f"/orders/track/{placed['tracking_code'].lower()}").status_code == 200

    def test_status_message_and_milestones(self, client, order_payload, customer_headers):
        placed = _place(client, order_payload, customer_headers)
        body = client.get(f"/orders/track/{placed['tracking_code']}").json()
        assert body["status_message"] == "Your order is awaiting confirmation"
        assert [milestone["stage"] for milestone in body["milestones"]] == [
            "placed",
            "processing",
            "shipped",
            "delivered",
        ]
        assert [milestone["completed"] for milestone in body["milestones"]] == [True, False, False, False]

    def test_validate_format(self, client, order_payload, customer_headers):
        placed = _place(client, order_payload, customer_headers)
        response = client.post("/orders/track/validate", json={"tracking_code": placed["tracking_code"].lower()})
        assert response.status_code == 200
        assert response.json() == {"tracking_code": placed["tracking_code"], "is_valid": True}

        response = client.post("/orders/track/validate", json={"tracking_code": "not-a-code"})
        assert response.json()["is_valid"] is False

    def test_malformed_code(self, client):
        response = client.get("/orders/track/not-a-code")
        assert response.status_code == 400

    def test_unknown_code(self, client):
        response = client.get("/orders/track/KN-20240115-ABC123-FFFFFF")
        assert response.status_code == 404


class TestGuestVerify:
    def test_success(self, client, guest_order):
        response = client.post(
            "/orders/guest/verify", json={"email": "guest@example.com", "order_id": guest_order["order_id"]}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == 30 * 24 * 3600
        order_response = client.get(
            f"/orders/{guest_order['order_id']}", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert order_response.status_code == 200

    def test_mismatch(self, client, guest_order):
        response = client.post(
            "/orders/guest/verify", json={"email": "other@example.com", "order_id": guest_order["order_id"]}
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Order not found or access denied"

    def test_throttled(self, client, guest_order):
        for _ in range(5):
            client.post("/orders/guest/verify", json={"email": "guest@example.com", "order_id": "nope"})
        response = client.post(
            "/orders/guest/verify", json={"email": "guest@example.com", "order_id": guest_order["order_id"]}
        )
        assert response.status_code == 429
        assert response.json()["retryable"] is True
