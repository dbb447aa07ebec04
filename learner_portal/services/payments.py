"""Paystack gateway: open checkouts, verify transactions, check webhook signatures."""

import hashlib
import hmac
import logging
import threading
import time
import uuid

import requests

from learner_portal.config import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY, PAYSTACK_TIMEOUT

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """The gateway could not be reached or refused the request."""


class CheckoutAlreadyResolved(RuntimeError):
    """A checkout attempt was resolved a second time."""


class CheckoutAttempt:
    """One trip through the hosted checkout.

    Resolves exactly once, to either ``success`` (with the gateway reference)
    or ``cancelled``.
    """

    def __init__(self, reference: str, authorization_url: str, course_id: str,
                 user_id: str, amount: int, currency: str) -> None:
        self.reference = reference
        self.authorization_url = authorization_url
        self.course_id = course_id
        self.user_id = user_id
        self.amount = amount
        self.currency = currency
        self.outcome: str | None = None
        self.resolved_reference = ""
        self.opened_at = time.monotonic()
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    def _resolve(self, outcome: str, reference: str = "") -> None:
        with self._lock:
            if self.outcome is not None:
                raise CheckoutAlreadyResolved(
                    f"Checkout {self.reference} already resolved as {self.outcome}"
                )
            self.outcome = outcome
            self.resolved_reference = reference

    def resolve_success(self, reference: str) -> None:
        self._resolve("success", reference)

    def resolve_cancel(self) -> None:
        self._resolve("cancelled")


def to_minor_units(amount: float) -> int:
    """Major currency units to kobo/cents."""
    return int(round(amount * 100))


def new_reference() -> str:
    return f"ae-{uuid.uuid4().hex[:20]}"


class PaystackGateway:
    """Thin client over the Paystack transaction API."""

    def __init__(self, secret_key: str = PAYSTACK_SECRET_KEY,
                 base_url: str = PAYSTACK_BASE_URL, timeout: float = PAYSTACK_TIMEOUT,
                 http: requests.Session | None = None) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _call(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=payload, headers=self._headers(),
                                         timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise PaymentError(f"Paystack {method} {path} failed: {e}") from e
        if not body.get("status"):
            raise PaymentError(f"Paystack {method} {path} refused: {body.get('message', '')}")
        return body.get("data") or {}

    def open_checkout(self, amount: int, currency: str, email: str, metadata: dict,
                      callback_url: str, reference: str | None = None) -> CheckoutAttempt:
        """Initialize a hosted checkout. ``amount`` is in minor units."""
        reference = reference or new_reference()
        data = self._call("POST", "/transaction/initialize", {
            "amount": amount,
            "currency": currency,
            "email": email,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": metadata,
        })
        logger.info("Opened checkout %s for course %s", reference, metadata.get("course_id"))
        return CheckoutAttempt(
            reference=data.get("reference", reference),
            authorization_url=data.get("authorization_url", ""),
            course_id=str(metadata.get("course_id", "")),
            user_id=str(metadata.get("user_id", "")),
            amount=amount,
            currency=currency,
        )

    def verify(self, reference: str) -> dict:
        """Look up a transaction. Returns Paystack's ``data`` object."""
        return self._call("GET", f"/transaction/verify/{reference}")

    def verify_signature(self, body: bytes, signature: str) -> bool:
        """Check the ``x-paystack-signature`` header (HMAC-SHA512 of the raw body)."""
        if not self.secret_key or not signature:
            return False
        expected = hmac.new(self.secret_key.encode(), body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature)
