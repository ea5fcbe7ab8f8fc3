import base64
import hmac
import hashlib
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional
from uuid import uuid4

import httpx

from bluecollar.config import settings
from bluecollar.redis_client import redis_client

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    pass


PAID, FAILED, PENDING = "paid", "failed", "pending"


@dataclass
class GatewayStatus:
    """Gateway-side view of an order, normalized across providers."""

    outcome: str
    transaction_id: Optional[str] = None
    method: Optional[str] = None


@dataclass
class WebhookEvent:
    event_id: str
    order_id: Optional[str]
    outcome: str
    transaction_id: Optional[str] = None
    method: Optional[str] = None


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class BaseAdapter:
    gateway_name: str = "base"
    method: str = "ONLINE"

    def is_configured(self) -> bool:
        return False

    def simulated(self) -> bool:
        """Whether to fake this gateway. Raises when it is neither configured nor simulated."""
        if self.is_configured():
            return False
        if not settings.PAYMENT_SIMULATION:
            raise PaymentError(f"{self.gateway_name} gateway not configured")
        return True

    async def create_order(self, order_id: str, amount: Decimal, currency: str, customer: Dict, notes: Dict) -> Dict:
        raise NotImplementedError()

    async def fetch_status(self, order_id: str) -> GatewayStatus:
        raise NotImplementedError()

    async def refund(self, order_id: str, transaction_id: Optional[str], amount: Decimal, reason: str) -> Dict:
        raise NotImplementedError()

    def verify_webhook(self, headers: Dict[str, str], body: bytes) -> bool:
        raise NotImplementedError()

    def parse_webhook(self, headers: Dict[str, str], payload: Dict) -> WebhookEvent:
        raise NotImplementedError()

    async def _request(self, method: str, url: str, **kwargs) -> Dict:
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                resp = await client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s %s: %s", self.gateway_name, method, url, exc)
            raise PaymentError(f"{self.gateway_name} request failed") from exc


class RazorpayAdapter(BaseAdapter):
    gateway_name = "razorpay"
    method = "RAZORPAY"
    base_url = "https://api.razorpay.com/v1"

    def is_configured(self) -> bool:
        return bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET)

    def _auth(self):
        return (settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)

    def checkout_secret(self) -> str:
        # simulated checkouts are signed with the app secret
        return settings.SECRET_KEY if self.simulated() else settings.RAZORPAY_KEY_SECRET

    def sign_checkout(self, order_id: str, payment_id: str) -> str:
        return _hmac_hex(self.checkout_secret(), f"{order_id}|{payment_id}".encode())

    def verify_checkout(self, order_id: str, payment_id: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign_checkout(order_id, payment_id), signature or "")

    async def create_order(self, order_id: str, amount: Decimal, currency: str, customer: Dict, notes: Dict) -> Dict:
        paise = int(amount * 100)
        if self.simulated():
            return {
                "gateway_order_id": f"order_sim_{uuid4().hex[:14]}",
                "amount": paise,
                "currency": currency,
                "receipt": order_id,
                "key_id": None,
                "simulated": True,
            }
        data = await self._request(
            "POST",
            f"{self.base_url}/orders",
            auth=self._auth(),
            json={"amount": paise, "currency": currency, "receipt": order_id, "notes": notes},
        )
        return {
            "gateway_order_id": data["id"],
            "amount": data.get("amount", paise),
            "currency": data.get("currency", currency),
            "receipt": data.get("receipt", order_id),
            "key_id": settings.RAZORPAY_KEY_ID,
            "simulated": False,
        }

    async def fetch_status(self, order_id: str) -> GatewayStatus:
        if self.simulated():
            return GatewayStatus(outcome=PENDING)
        data = await self._request("GET", f"{self.base_url}/orders/{order_id}/payments", auth=self._auth())
        items = data.get("items") or []
        for item in items:
            if item.get("status") == "captured":
                return GatewayStatus(outcome=PAID, transaction_id=item.get("id"), method=item.get("method"))
        if items and all(i.get("status") == "failed" for i in items):
            return GatewayStatus(outcome=FAILED, transaction_id=items[0].get("id"))
        return GatewayStatus(outcome=PENDING)

    async def refund(self, order_id: str, transaction_id: Optional[str], amount: Decimal, reason: str) -> Dict:
        if self.simulated():
            return {"refund_id": f"rfnd_sim_{uuid4().hex[:14]}", "amount": float(amount), "status": "processed"}
        if not transaction_id:
            raise PaymentError("Payment has no gateway transaction to refund")
        data = await self._request(
            "POST",
            f"{self.base_url}/payments/{transaction_id}/refund",
            auth=self._auth(),
            json={"amount": int(amount * 100), "speed": "normal", "notes": {"reason": reason}},
        )
        return {"refund_id": data.get("id"), "amount": data.get("amount", 0) / 100, "status": data.get("status")}

    def verify_webhook(self, headers: Dict[str, str], body: bytes) -> bool:
        secret = settings.RAZORPAY_WEBHOOK_SECRET
        if not secret:
            return False
        return hmac.compare_digest(_hmac_hex(secret, body), headers.get("x-razorpay-signature", ""))

    def parse_webhook(self, headers: Dict[str, str], payload: Dict) -> WebhookEvent:
        event = payload.get("event", "")
        entity = (payload.get("payload", {}).get("payment") or {}).get("entity") or {}
        if event in ("payment.captured", "order.paid"):
            outcome = PAID
        elif event == "payment.failed":
            outcome = FAILED
        else:
            outcome = PENDING
        event_id = headers.get("x-razorpay-event-id") or payload.get("id") or entity.get("id")
        return WebhookEvent(
            event_id=event_id,
            order_id=entity.get("order_id"),
            outcome=outcome,
            transaction_id=entity.get("id"),
            method=entity.get("method"),
        )


class CashfreeAdapter(BaseAdapter):
    gateway_name = "cashfree"
    method = "CASHFREE"

    @property
    def base_url(self) -> str:
        if settings.CASHFREE_ENVIRONMENT.upper() == "PRODUCTION":
            return "https://api.cashfree.com/pg"
        return "https://sandbox.cashfree.com/pg"

    def is_configured(self) -> bool:
        return bool(settings.CASHFREE_APP_ID and settings.CASHFREE_SECRET_KEY)

    def _headers(self) -> Dict[str, str]:
        return {
            "x-client-id": settings.CASHFREE_APP_ID,
            "x-client-secret": settings.CASHFREE_SECRET_KEY,
            "x-api-version": settings.CASHFREE_API_VERSION,
        }

    async def create_order(self, order_id: str, amount: Decimal, currency: str, customer: Dict, notes: Dict) -> Dict:
        if self.simulated():
            session = f"session_{uuid4().hex[:16]}"
            return {
                "gateway_order_id": order_id,
                "cf_order_id": f"CF_{uuid4().hex[:12]}",
                "payment_session_id": session,
                "payment_url": f"{self.base_url}/orders/{session}",
                "simulated": True,
            }
        body = {
            "order_id": order_id,
            "order_amount": float(amount),
            "order_currency": currency,
            "customer_details": customer,
            "order_meta": {
                "return_url": f"{settings.FRONTEND_URL}/booking/payment-success?order_id={order_id}",
                "notify_url": f"{settings.PAYMENT_CALLBACK_HOST}/payments/webhook/cashfree",
            },
            "order_note": notes.get("note", ""),
        }
        data = await self._request("POST", f"{self.base_url}/orders", headers=self._headers(), json=body)
        return {
            "gateway_order_id": order_id,
            "cf_order_id": data.get("cf_order_id"),
            "payment_session_id": data.get("payment_session_id"),
            "payment_url": data.get("payment_link"),
            "simulated": False,
        }

    async def fetch_status(self, order_id: str) -> GatewayStatus:
        if self.simulated():
            return GatewayStatus(outcome=PAID, transaction_id=f"CF_PAY_{uuid4().hex[:12]}", method=self.method)
        data = await self._request("GET", f"{self.base_url}/orders/{order_id}/payments", headers=self._headers())
        if not data:
            return GatewayStatus(outcome=PENDING)
        latest = data[0]
        status = (latest.get("payment_status") or "").upper()
        outcome = {"SUCCESS": PAID, "FAILED": FAILED, "CANCELLED": FAILED, "USER_DROPPED": FAILED}.get(status, PENDING)
        return GatewayStatus(outcome=outcome, transaction_id=str(latest.get("cf_payment_id") or ""), method=latest.get("payment_group"))

    async def refund(self, order_id: str, transaction_id: Optional[str], amount: Decimal, reason: str) -> Dict:
        refund_id = f"REF_{order_id}_{uuid4().hex[:8]}"
        if self.simulated():
            return {"refund_id": refund_id, "amount": float(amount), "status": "PENDING"}
        data = await self._request(
            "POST",
            f"{self.base_url}/orders/{order_id}/refunds",
            headers=self._headers(),
            json={"refund_id": refund_id, "refund_amount": float(amount), "refund_note": reason},
        )
        return {"refund_id": data.get("cf_refund_id") or refund_id, "amount": float(amount), "status": data.get("refund_status")}

    def verify_webhook(self, headers: Dict[str, str], body: bytes) -> bool:
        secret = settings.CASHFREE_SECRET_KEY
        if not secret:
            return False
        timestamp = headers.get("x-webhook-timestamp", "")
        digest = hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256).digest()
        return hmac.compare_digest(base64.b64encode(digest).decode(), headers.get("x-webhook-signature", ""))

    def parse_webhook(self, headers: Dict[str, str], payload: Dict) -> WebhookEvent:
        data = payload.get("data")
        if data:
            order_id = (data.get("order") or {}).get("order_id")
            pay = data.get("payment") or {}
            status = (pay.get("payment_status") or "").upper()
            txn, method = pay.get("cf_payment_id"), pay.get("payment_group")
        else:
            # legacy form-style notification: orderId / txStatus / paymentMode
            order_id = payload.get("orderId")
            status = (payload.get("txStatus") or "").upper()
            txn, method = payload.get("referenceId"), payload.get("paymentMode")
        outcome = {"SUCCESS": PAID, "FAILED": FAILED, "CANCELLED": FAILED, "USER_DROPPED": FAILED}.get(status, PENDING)
        event_id = headers.get("x-idempotency-key") or f"{order_id}:{txn}:{status}"
        return WebhookEvent(event_id=event_id, order_id=order_id, outcome=outcome, transaction_id=str(txn) if txn else None, method=method)


ADAPTERS = {
    "razorpay": RazorpayAdapter(),
    "cashfree": CashfreeAdapter(),
}


def get_adapter(name: str) -> BaseAdapter:
    ad = ADAPTERS.get((name or "").lower())
    if not ad:
        raise PaymentError(f"Unknown payment gateway: {name}")
    return ad


IDEMPOTENCY_KEY_TPL = "payment_webhook:{gateway}:{event_id}"


async def mark_event_processed(gateway: str, event_id: str, ttl: int = 60 * 60 * 24) -> bool:
    key = IDEMPOTENCY_KEY_TPL.format(gateway=gateway, event_id=event_id)
    # set NX to ensure we only process once
    added = await redis_client.set(key, "1", ex=ttl, nx=True)
    return bool(added)


async def release_event(gateway: str, event_id: str):
    await redis_client.delete(IDEMPOTENCY_KEY_TPL.format(gateway=gateway, event_id=event_id))
