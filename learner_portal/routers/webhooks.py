"""Webhooks: Paystack server-to-server payment events."""

import asyncio
import json
import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Header, HTTPException, Request

from learner_portal.config import WEBHOOK_RATE_LIMIT, WEBHOOK_RATE_WINDOW
from learner_portal.services.enrollment import PaymentReconciliationError, record_verified_payment
from learner_portal.session import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

# In-memory rate limiter: {ip: [timestamp, ...]}
_rate_buckets: dict[str, list[float]] = defaultdict(list)


def _check_rate_limit(request: Request) -> None:
    """Raise 429 if IP exceeds rate limit. Simple sliding window."""
    ip = request.client.host if request.client else "unknown"
    now = time.monotonic()
    cutoff = now - WEBHOOK_RATE_WINDOW
    # Drop clients whose whole window has expired
    for idle in [k for k, b in _rate_buckets.items() if not b or b[-1] <= cutoff]:
        del _rate_buckets[idle]
    _rate_buckets[ip] = bucket = [t for t in _rate_buckets[ip] if t > cutoff]
    if len(bucket) >= WEBHOOK_RATE_LIMIT:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")
    bucket.append(now)


@router.post("/paystack")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: str = Header(""),
):
    """Receive Paystack events. Only charge.success changes state."""
    _check_rate_limit(request)
    raw = await request.body()

    gateway = request.app.state.gateway
    if gateway is None or not gateway.verify_signature(raw, x_paystack_signature):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        body = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    event = body.get("event", "")
    data = body.get("data") or {}
    if event != "charge.success":
        return {"status": "ignored", "reason": f"unhandled event: {event}"}

    metadata = data.get("metadata") or {}
    course_id = str(metadata.get("course_id", ""))
    user_id = str(metadata.get("user_id", ""))
    reference = data.get("reference", "")
    if not course_id or not user_id or not reference:
        return {"status": "ignored", "reason": "missing course_id, user_id or reference"}

    customer = data.get("customer") or {}
    session = Session(user_id=user_id, email=customer.get("email", ""))
    try:
        result = await asyncio.to_thread(record_verified_payment, session, course_id, reference,
                                         (data.get("amount") or 0) / 100)
    except PaymentReconciliationError as e:
        # non-2xx makes Paystack redeliver the event
        raise HTTPException(status_code=500, detail=e.message)

    return {"status": result["status"], "course_id": course_id}
