import asyncio
import base64
import hashlib
import hmac
import json
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from bluecollar.config import settings
from bluecollar.models.models import BookingStatus as S
from bluecollar.services import payments as payment_service
from bluecollar.services.payment_gateway import PAID, CashfreeAdapter, PaymentError, RazorpayAdapter, get_adapter
from bluecollar.services.pricing import split_commission

from conftest import book, register

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture()
def pending_booking(client, provider, client_user):
    return book(client, client_user, provider["service"]["id"])


def _order(client, client_user, booking_id, gateway="razorpay"):
    response = client.post("/payments/create-order", json={"booking_id": booking_id, "gateway": gateway}, headers=client_user["headers"])
    assert response.status_code == 200, response.text
    return response.json()


def _razorpay_event(event, order_id, payment_id="pay_abc123"):
    return {
        "event": event,
        "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id, "status": "captured", "method": "upi"}}},
    }


def _signed_post(client, payload, event_id="evt_1", secret=WEBHOOK_SECRET):
    body = json.dumps(payload).encode()
    signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return client.post(
        "/payments/webhook/razorpay",
        content=body,
        headers={"X-Razorpay-Signature": signature, "X-Razorpay-Event-Id": event_id, "Content-Type": "application/json"},
    )


def test_commission_split_adds_up():
    assert split_commission(500) == (Decimal("50.00"), Decimal("450.00"))
    commission, provider_amount = split_commission("999.99")
    assert commission == Decimal("100.00")
    assert provider_amount == Decimal("899.99")
    assert commission + provider_amount == Decimal("999.99")
    assert split_commission(200, rate=0.15) == (Decimal("30.00"), Decimal("170.00"))


def test_razorpay_checkout_signature():
    adapter = RazorpayAdapter()
    signature = adapter.sign_checkout("order_1", "pay_1")
    expected = hmac.new(adapter.checkout_secret().encode(), b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert signature == expected
    assert adapter.verify_checkout("order_1", "pay_1", signature)
    assert not adapter.verify_checkout("order_1", "pay_2", signature)


def test_cashfree_webhook_signature(monkeypatch):
    monkeypatch.setattr(settings, "CASHFREE_SECRET_KEY", "cf_secret")
    adapter = CashfreeAdapter()
    body = b'{"data": {}}'
    digest = hmac.new(b"cf_secret", b"1700000000" + body, hashlib.sha256).digest()
    headers = {"x-webhook-timestamp": "1700000000", "x-webhook-signature": base64.b64encode(digest).decode()}
    assert adapter.verify_webhook(headers, body)
    headers["x-webhook-timestamp"] = "1700000001"
    assert not adapter.verify_webhook(headers, body)


def test_cashfree_parses_legacy_notification():
    event = CashfreeAdapter().parse_webhook({}, {"orderId": "BLC_1_1", "txStatus": "SUCCESS", "referenceId": "885", "paymentMode": "UPI"})
    assert event.order_id == "BLC_1_1"
    assert event.outcome == PAID
    assert event.transaction_id == "885"


def test_unknown_gateway():
    with pytest.raises(PaymentError):
        get_adapter("paypal")


def test_razorpay_verify_confirms_booking(client, provider, client_user, pending_booking):
    order = _order(client, client_user, pending_booking["id"])
    assert order["amount"] == 500.0
    assert order["checkout"]["simulated"] is True

    signature = RazorpayAdapter().sign_checkout(order["order_id"], "pay_xyz")
    verified = client.post(
        "/payments/verify",
        json={"gateway": "razorpay", "order_id": order["order_id"], "payment_id": "pay_xyz", "signature": signature},
        headers=client_user["headers"],
    )
    assert verified.status_code == 200, verified.text
    payment = verified.json()
    assert payment["status"] == "PAID"
    assert payment["commission"] == 50.0
    assert payment["provider_amount"] == 450.0
    assert payment["transaction_id"] == "pay_xyz"

    booking = client.get(f"/bookings/{pending_booking['id']}", headers=provider["headers"]).json()
    assert booking["status"] == S.ACCEPTED
    provider_notes = client.get("/notifications", headers=provider["headers"]).json()
    assert provider_notes[0]["title"] == "New Paid Booking Request!"
    client_notes = client.get("/notifications", headers=client_user["headers"]).json()
    assert client_notes[0]["type"] == "PAYMENT_RECEIVED"

    again = client.post(
        "/payments/verify",
        json={"gateway": "razorpay", "order_id": order["order_id"], "payment_id": "pay_xyz", "signature": signature},
        headers=client_user["headers"],
    )
    assert again.status_code == 400

    status = client.get(f"/payments/status/{order['order_id']}", headers=client_user["headers"]).json()
    assert status["status"] == "PAID"


def test_bad_signature_fails_payment_but_allows_retry(client, provider, client_user, pending_booking):
    order = _order(client, client_user, pending_booking["id"])
    response = client.post(
        "/payments/verify",
        json={"gateway": "razorpay", "order_id": order["order_id"], "payment_id": "pay_1", "signature": "forged"},
        headers=client_user["headers"],
    )
    assert response.status_code == 400

    payment = client.get(f"/payments/booking/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert payment["status"] == "FAILED"
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert booking["status"] == S.PENDING_PAYMENT

    retry = _order(client, client_user, pending_booking["id"])
    assert retry["payment_id"] == order["payment_id"]
    assert retry["order_id"] != order["order_id"]
    payment = client.get(f"/payments/booking/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert payment["status"] == "PENDING"


def test_create_order_guards(client, provider, client_user, pending_booking, monkeypatch):
    stranger = register(client)
    response = client.post("/payments/create-order", json={"booking_id": pending_booking["id"]}, headers=stranger["headers"])
    assert response.status_code == 403

    cash = book(client, client_user, provider["service"]["id"], payment_method="CASH")
    response = client.post("/payments/create-order", json={"booking_id": cash["id"]}, headers=client_user["headers"])
    assert response.status_code == 400

    monkeypatch.setattr(settings, "PAYMENT_MAX_AMOUNT", 100)
    response = client.post("/payments/create-order", json={"booking_id": pending_booking["id"]}, headers=client_user["headers"])
    assert response.status_code == 400


def test_cashfree_verify_uses_gateway_status(client, provider, client_user, pending_booking):
    order = _order(client, client_user, pending_booking["id"], gateway="cashfree")
    assert order["order_id"].startswith(f"BLC_{pending_booking['id']}_")
    assert order["checkout"]["payment_session_id"]

    verified = client.post("/payments/verify", json={"gateway": "cashfree", "order_id": order["order_id"]}, headers=client_user["headers"])
    assert verified.status_code == 200
    assert verified.json()["status"] == "PAID"
    assert verified.json()["gateway"] == "cashfree"


def test_verify_follows_the_order_gateway(client, provider, client_user, pending_booking):
    order = _order(client, client_user, pending_booking["id"])

    switched = client.post("/payments/verify", json={"gateway": "cashfree", "order_id": order["order_id"]}, headers=client_user["headers"])
    assert switched.status_code == 400
    payment = client.get(f"/payments/booking/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert payment["status"] == "PENDING"

    # without a gateway the razorpay signature is still required
    unsigned = client.post("/payments/verify", json={"order_id": order["order_id"]}, headers=client_user["headers"])
    assert unsigned.status_code == 400
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert booking["status"] == S.PENDING_PAYMENT
    assert client.get(f"/bookings/{pending_booking['id']}", headers=provider["headers"]).status_code == 404


def test_unconfigured_gateway_is_refused_without_simulation(client, provider, client_user, pending_booking, monkeypatch):
    order = _order(client, client_user, pending_booking["id"], gateway="cashfree")
    monkeypatch.setattr(settings, "PAYMENT_SIMULATION", False)

    for gateway in ("razorpay", "cashfree"):
        response = client.post("/payments/create-order", json={"booking_id": pending_booking["id"], "gateway": gateway}, headers=client_user["headers"])
        assert response.status_code == 400
        assert "not configured" in response.json()["detail"]

    verified = client.post("/payments/verify", json={"order_id": order["order_id"]}, headers=client_user["headers"])
    assert verified.status_code == 400
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert booking["status"] == S.PENDING_PAYMENT

    with pytest.raises(PaymentError):
        RazorpayAdapter().checkout_secret()
    with pytest.raises(PaymentError):
        asyncio.run(CashfreeAdapter().fetch_status(order["order_id"]))


def test_racing_confirmations_settle_once(client, provider, client_user, pending_booking, session_factory):
    order = _order(client, client_user, pending_booking["id"])

    async def _race():
        async with session_factory() as first, session_factory() as second:
            early = await payment_service.get_by_order_id(first, order["order_id"])
            late = await payment_service.get_by_order_id(second, order["order_id"])
            assert early.status == late.status == "PENDING"
            await payment_service.mark_paid(first, early, transaction_id="pay_verify")
            await first.commit()
            await payment_service.mark_paid(second, late, transaction_id="pay_webhook")
            await second.commit()
            return late

    late = asyncio.run(_race())
    assert late.status == "PAID"
    assert late.transaction_id == "pay_verify"

    provider_types = [n["type"] for n in client.get("/notifications", headers=provider["headers"]).json()]
    assert provider_types.count("BOOKING_CREATED") == 1
    client_types = [n["type"] for n in client.get("/notifications", headers=client_user["headers"]).json()]
    assert client_types.count("PAYMENT_RECEIVED") == 1
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=provider["headers"]).json()
    assert booking["status"] == S.ACCEPTED


def test_webhook_is_idempotent(client, provider, client_user, pending_booking, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    order = _order(client, client_user, pending_booking["id"])

    first = _signed_post(client, _razorpay_event("payment.captured", order["order_id"]))
    assert first.status_code == 200
    assert first.json() == {"received": True, "processed": True}

    replay = _signed_post(client, _razorpay_event("payment.captured", order["order_id"]))
    assert replay.json() == {"received": True, "processed": False}

    payment = client.get(f"/payments/booking/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert payment["status"] == "PAID"
    assert payment["method"] == "UPI"
    provider_notes = client.get("/notifications", headers=provider["headers"]).json()
    assert [n["type"] for n in provider_notes].count("BOOKING_CREATED") == 1


def test_webhook_rejects_bad_signature(client, pending_booking, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    response = _signed_post(client, _razorpay_event("payment.captured", "order_x"), secret="wrong")
    assert response.status_code == 400


def test_webhook_failure_keeps_booking_payable(client, client_user, pending_booking, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    order = _order(client, client_user, pending_booking["id"])
    response = _signed_post(client, _razorpay_event("payment.failed", order["order_id"]), event_id="evt_fail")
    assert response.json()["processed"] is True

    payment = client.get(f"/payments/booking/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert payment["status"] == "FAILED"
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert booking["status"] == S.PENDING_PAYMENT


def test_webhook_for_unknown_order_is_acknowledged(client, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    response = _signed_post(client, _razorpay_event("payment.captured", "order_missing"), event_id="evt_unknown")
    assert response.status_code == 200
    assert response.json() == {"received": True, "processed": False}


def test_admin_refund_and_stats(client, provider, client_user, pending_booking, admin):
    order = _order(client, client_user, pending_booking["id"])
    signature = RazorpayAdapter().sign_checkout(order["order_id"], "pay_r")
    client.post(
        "/payments/verify",
        json={"gateway": "razorpay", "order_id": order["order_id"], "payment_id": "pay_r", "signature": signature},
        headers=client_user["headers"],
    )

    stats = client.get("/payments/admin/stats", headers=admin["headers"]).json()
    assert stats["total_revenue"] == 500.0
    assert stats["total_commission"] == 50.0
    assert stats["total_transactions"] == 1
    assert stats["status_distribution"] == {"PAID": 1}

    assert client.post(f"/payments/admin/refund/{order['payment_id']}", headers=client_user["headers"]).status_code == 403
    cancelled_before = REGISTRY.get_sample_value("bluecollar_booking_transitions_total", {"status": S.CANCELLED}) or 0
    refunded = client.post(f"/payments/admin/refund/{order['payment_id']}", json={"reason": "Provider no-show"}, headers=admin["headers"])
    assert refunded.status_code == 200
    assert refunded.json()["payment"]["status"] == "REFUNDED"
    booking = client.get(f"/bookings/{pending_booking['id']}", headers=client_user["headers"]).json()
    assert booking["status"] == S.CANCELLED
    assert booking["cancelled_at"] is not None
    assert booking["cancel_reason"] == "Provider no-show"
    assert REGISTRY.get_sample_value("bluecollar_booking_transitions_total", {"status": S.CANCELLED}) == cancelled_before + 1

    assert client.post(f"/payments/admin/refund/{order['payment_id']}", headers=admin["headers"]).status_code == 400

    listing = client.get("/payments/admin/all", params={"status": "REFUNDED"}, headers=admin["headers"]).json()
    assert listing["pagination"]["total"] == 1

    logs = client.get("/admin/audit-logs", params={"action": "refund_payment"}, headers=admin["headers"]).json()
    assert logs["pagination"]["total"] == 1
