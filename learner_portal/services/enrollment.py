"""Enrollment / payment state machine.

    no-record ──checkout──> pending ──confirm──> completed
                   │                    ▲
                   └──────confirm───────┘

Confirmation is idempotent: a completed enrollment short-circuits to success
and the write is an upsert on (user_id, course_id), so replayed callbacks
never create a second row. A paid course only moves to completed on a
transaction the gateway reports as successful for this learner and this
course, or on a signature-verified gateway event. A failed completion write
is the one error that is never degraded: the learner has already paid, so it
surfaces as PaymentReconciliationError ("contact support").

Open checkouts are kept in memory by reference so the callback, the webhook
and a cancel can resolve them. Each resolves once; entries are forgotten
after CHECKOUT_TTL_SECONDS.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from urllib.parse import urlencode

from learner_portal import supabase_client as db
from learner_portal.config import CHECKOUT_TTL_SECONDS, PAYMENT_PROVIDER, PUBLIC_URL
from learner_portal.models import Enrollment, SchemaError
from learner_portal.services.courses import get_course
from learner_portal.services.payments import (
    CheckoutAttempt,
    PaymentError,
    PaystackGateway,
    new_reference,
    to_minor_units,
)
from learner_portal.session import Session
from learner_portal.supabase_client import StoreError

logger = logging.getLogger(__name__)

CONTACT_SUPPORT = "Failed to activate enrollment. Please contact support."
CANCELLED_NOTICE = "Payment was cancelled. You have not been charged."

# reference -> checkout attempt, open or recently resolved
_attempts: dict[str, CheckoutAttempt] = {}
_attempts_lock = threading.Lock()


class PaymentReconciliationError(Exception):
    """The gateway reported success but access could not be recorded."""

    def __init__(self, message: str = CONTACT_SUPPORT) -> None:
        super().__init__(message)
        self.message = message


class PaymentNotConfirmed(Exception):
    """The gateway does not report a successful payment by this learner for this course."""


class PaymentsNotConfigured(Exception):
    """No payment gateway is configured, so paid access can't be granted."""


class CheckoutUnavailable(Exception):
    """A checkout could not be started; nothing was charged."""


def find_enrollment(user_id: str, course_id: str) -> Enrollment | None:
    """Current enrollment for (user, course). Read failures count as no record."""
    try:
        row = db.get_enrollment(user_id, course_id)
    except StoreError as e:
        logger.warning("Enrollment lookup failed for %s/%s: %s", user_id, course_id, e)
        return None
    if not row:
        return None
    try:
        return Enrollment.from_row(row)
    except SchemaError as e:
        logger.warning("Malformed enrollment for %s/%s: %s", user_id, course_id, e)
        return None


def enrollment_status(session: Session, course_id: str) -> dict | None:
    """Enroll page state; None when the course doesn't exist."""
    course = get_course(course_id)
    if course is None:
        return None
    enrollment = find_enrollment(session.user_id, course_id)
    return {
        "course_id": course.id,
        "title": course.title,
        "short_description": course.short_description,
        "price": course.price,
        "currency": course.currency,
        "payment_status": enrollment.payment_status if enrollment else None,
        "already_enrolled": bool(enrollment and enrollment.is_completed),
    }


# ---------------------------------------------------------------------------
# Checkout attempts
# ---------------------------------------------------------------------------

def _prune_attempts(now: float) -> None:
    # caller holds _attempts_lock
    expired = [ref for ref, a in _attempts.items() if now - a.opened_at > CHECKOUT_TTL_SECONDS]
    for ref in expired:
        del _attempts[ref]
    if expired:
        logger.debug("Forgot %d expired checkout attempts", len(expired))


def _register(attempt: CheckoutAttempt) -> None:
    with _attempts_lock:
        _prune_attempts(time.monotonic())
        _attempts[attempt.reference] = attempt


def get_attempt(reference: str) -> CheckoutAttempt | None:
    with _attempts_lock:
        _prune_attempts(time.monotonic())
        return _attempts.get(reference)


def _owned_attempt(session: Session, course_id: str, reference: str) -> CheckoutAttempt | None:
    """The attempt behind reference, only if it was opened by this learner for this course."""
    attempt = get_attempt(reference) if reference else None
    if attempt and (attempt.user_id != session.user_id or attempt.course_id != course_id):
        return None
    return attempt


def _settle_success(attempt: CheckoutAttempt | None, reference: str) -> None:
    if attempt is None or attempt.outcome == "success":
        return
    if attempt.outcome == "cancelled":
        # the gateway is authoritative; the cancel stays on record
        logger.warning("Checkout %s was cancelled but the gateway reports success", reference)
        return
    attempt.resolve_success(reference)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _complete_enrollment(session: Session, course_id: str, reference: str,
                         provider: str, amount_paid: float) -> dict:
    try:
        db.upsert_enrollment({
            "user_id": session.user_id,
            "course_id": course_id,
            "payment_status": "completed",
            "payment_provider": provider,
            "payment_reference": reference,
            "amount_paid": amount_paid,
            "enrollment_date": datetime.now(timezone.utc).isoformat(),
        })
    except StoreError as e:
        logger.error("PAID BUT LOCKED: user=%s course=%s reference=%s: %s",
                     session.user_id, course_id, reference, e)
        raise PaymentReconciliationError() from e

    logger.info("Enrollment %s/%s completed (reference %s)", session.user_id, course_id, reference)
    return {"status": "enrolled", "course_id": course_id,
            "message": "Payment confirmed! Course unlocked."}


def _already_enrolled(course_id: str) -> dict:
    return {"status": "already_enrolled", "course_id": course_id,
            "message": "You're already enrolled in this course."}


def start_checkout(session: Session, course_id: str,
                   gateway: PaystackGateway | None) -> dict | None:
    """Record a pending enrollment and open a hosted checkout for it."""
    course = get_course(course_id)
    if course is None:
        return None

    existing = find_enrollment(session.user_id, course_id)
    if existing and existing.is_completed:
        return {"status": "already_enrolled", "course_id": course_id}

    if course.is_free:
        return _complete_enrollment(session, course_id, "free", "free", 0)

    if gateway is None:
        raise PaymentsNotConfigured("Payments are not configured")
    if not session.email:
        raise CheckoutUnavailable("An email address is required to pay")

    reference = new_reference()
    try:
        db.upsert_enrollment({
            "user_id": session.user_id,
            "course_id": course_id,
            "payment_status": "pending",
            "payment_provider": PAYMENT_PROVIDER,
            "payment_reference": reference,
        })
    except StoreError as e:
        logger.warning("Could not record pending enrollment %s: %s", reference, e)
        raise CheckoutUnavailable("Could not start checkout. Please try again.") from e

    callback = f"{PUBLIC_URL}/payment-success?{urlencode({'course_id': course_id})}"
    try:
        attempt = gateway.open_checkout(
            amount=to_minor_units(course.price),
            currency=course.currency,
            email=session.email,
            metadata={"course_id": course_id, "user_id": session.user_id},
            callback_url=callback,
            reference=reference,
        )
    except PaymentError as e:
        logger.warning("Checkout for %s/%s failed: %s", session.user_id, course_id, e)
        raise CheckoutUnavailable("Could not start checkout. Please try again.") from e

    _register(attempt)
    return {
        "status": "checkout",
        "course_id": course_id,
        "reference": attempt.reference,
        "authorization_url": attempt.authorization_url,
        "amount": attempt.amount,
        "currency": attempt.currency,
    }


def confirm_payment(session: Session, course_id: str, reference: str,
                    gateway: PaystackGateway | None) -> dict:
    """Move (user, course) to completed once the gateway confirms this learner paid.

    Raises PaymentNotConfirmed when there is no reference or the transaction
    is not a successful payment by this learner for this course,
    PaymentsNotConfigured when there is no gateway to ask, and
    PaymentReconciliationError when the completed state cannot be verified
    or written.
    """
    if not reference:
        raise PaymentNotConfirmed("Missing payment reference")
    attempt = _owned_attempt(session, course_id, reference)

    existing = find_enrollment(session.user_id, course_id)
    if existing and existing.is_completed:
        _settle_success(attempt, reference)
        logger.info("Enrollment %s/%s already completed, nothing to do", session.user_id, course_id)
        return _already_enrolled(course_id)

    if gateway is None:
        raise PaymentsNotConfigured("Payments are not configured")

    try:
        tx = gateway.verify(reference)
    except PaymentError as e:
        logger.error("Could not verify payment %s for %s/%s: %s",
                     reference, session.user_id, course_id, e)
        raise PaymentReconciliationError() from e
    if tx.get("status") != "success":
        raise PaymentNotConfirmed(f"Payment {reference} is {tx.get('status', 'unknown')}")

    metadata = tx.get("metadata") or {}
    if str(metadata.get("course_id", "")) != course_id:
        raise PaymentNotConfirmed(f"Payment {reference} was not made for this course")
    if str(metadata.get("user_id", "")) != session.user_id:
        logger.warning("User %s presented payment %s made by %s",
                       session.user_id, reference, metadata.get("user_id"))
        raise PaymentNotConfirmed(f"Payment {reference} was not made by this account")

    result = _complete_enrollment(session, course_id, reference, PAYMENT_PROVIDER,
                                  (tx.get("amount") or 0) / 100)
    _settle_success(attempt, reference)
    return result


def record_verified_payment(session: Session, course_id: str, reference: str,
                            amount_paid: float) -> dict:
    """Complete an enrollment from a signature-verified gateway event.

    The caller has already authenticated the event and taken user and course
    from its metadata.
    """
    existing = find_enrollment(session.user_id, course_id)
    attempt = _owned_attempt(session, course_id, reference)
    if existing and existing.is_completed:
        _settle_success(attempt, reference)
        return _already_enrolled(course_id)

    result = _complete_enrollment(session, course_id, reference, PAYMENT_PROVIDER, amount_paid)
    _settle_success(attempt, reference)
    return result


def cancel_payment(session: Session, course_id: str, reference: str = "") -> dict:
    """Checkout closed without paying. No enrollment transition.

    Raises CheckoutAlreadyResolved when the checkout has already been paid.
    """
    attempt = _owned_attempt(session, course_id, reference)
    if attempt and attempt.outcome != "cancelled":
        attempt.resolve_cancel()
    logger.info("Checkout cancelled by %s for course %s", session.user_id, course_id)
    return {"status": "cancelled", "course_id": course_id, "message": CANCELLED_NOTICE}
