"""Enrollment routes: enroll page state, checkout, payment callback, cancel."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from learner_portal.services.enrollment import (
    CheckoutUnavailable,
    PaymentNotConfirmed,
    PaymentReconciliationError,
    PaymentsNotConfigured,
    cancel_payment,
    confirm_payment,
    enrollment_status,
    start_checkout,
)
from learner_portal.services.payments import CheckoutAlreadyResolved
from learner_portal.session import Session
from learner_portal.routers.auth import onboarded_session

router = APIRouter()


@router.get("/api/courses/{course_id}/enroll")
async def enroll_page(course_id: str, session: Session = Depends(onboarded_session)):
    status = await asyncio.to_thread(enrollment_status, session, course_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return status


@router.post("/api/courses/{course_id}/checkout")
async def checkout(request: Request, course_id: str,
                   session: Session = Depends(onboarded_session)):
    gateway = request.app.state.gateway
    try:
        result = await asyncio.to_thread(start_checkout, session, course_id, gateway)
    except PaymentsNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except CheckoutUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PaymentReconciliationError as e:
        raise HTTPException(status_code=502, detail=e.message)
    if result is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return result


@router.get("/payment-success")
async def payment_success(
    request: Request,
    course_id: str = Query(""),
    reference: str = Query(""),
    trxref: str = Query(""),
    session: Session = Depends(onboarded_session),
):
    """Gateway redirect target. Safe to hit repeatedly (refresh, replays)."""
    if not course_id:
        raise HTTPException(status_code=400, detail="course_id required")
    gateway = request.app.state.gateway
    if gateway is None:
        raise HTTPException(status_code=503, detail="Payments are not configured")
    try:
        return await asyncio.to_thread(confirm_payment, session, course_id,
                                       trxref or reference, gateway)
    except PaymentNotConfirmed as e:
        raise HTTPException(status_code=402, detail=str(e))
    except PaymentsNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PaymentReconciliationError as e:
        raise HTTPException(status_code=502, detail=e.message)


@router.post("/api/courses/{course_id}/payment-cancel")
async def payment_cancel(course_id: str, reference: str = Query(""),
                         session: Session = Depends(onboarded_session)):
    try:
        return await asyncio.to_thread(cancel_payment, session, course_id, reference)
    except CheckoutAlreadyResolved:
        raise HTTPException(status_code=409, detail="This checkout has already been paid")
