# backend/coachwire/routes/v1/classes.py
"""
Class booking routes - API v1

Versioned endpoints under /api/v1/classes.
All business logic delegated to BookingOrchestrator.

Endpoints:
    GET /{class_id}/availability - Remaining spots (advisory)
    POST /{class_id}/payment-intent - Intent for the payment sheet
    DELETE /{class_id}/payment-intent - Payer abandoned the payment sheet
    POST /{class_id}/bookings - Authorize payment and book a spot
    GET /{class_id}/bookings/me - Caller's confirmed booking
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from ...api.dependencies import get_booking_orchestrator, get_current_caller
from ...core.config import settings
from ...core.exceptions import DomainException
from ...principal import CallerIdentity
from ...schemas.booking import (
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    PaymentIntentResponse,
)
from ...services.booking_orchestrator import BookingOrchestrator

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["classes-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


@router.get("/{class_id}/availability", response_model=AvailabilityResponse)
async def get_class_availability(
    class_id: str,
    _caller: CallerIdentity = Depends(get_current_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> AvailabilityResponse:
    try:
        availability = await asyncio.to_thread(orchestrator.get_availability, class_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse(
        class_id=availability.class_id,
        capacity=availability.capacity,
        confirmed=availability.confirmed,
        remaining=availability.remaining,
        available=availability.available,
    )


@router.post("/{class_id}/payment-intent", response_model=PaymentIntentResponse)
async def create_class_payment_intent(
    class_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> PaymentIntentResponse:
    """
    Prepare the payment sheet.

    Returns the open intent for this client and class when one exists, so
    reopening the sheet never creates a second charge.
    """
    try:
        prepared = await asyncio.to_thread(orchestrator.prepare_payment, class_id, caller)
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentIntentResponse(
        payment_intent_id=prepared.intent_id,
        client_secret=prepared.client_secret,
        amount=prepared.amount,
        currency=prepared.currency,
        publishable_key=settings.stripe_publishable_key,
    )


@router.delete("/{class_id}/payment-intent", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_class_payment_intent(
    class_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> Response:
    try:
        await asyncio.to_thread(orchestrator.abandon_payment, class_id, caller)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{class_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_class(
    class_id: str,
    booking_data: Optional[BookingCreate] = Body(default=None),
    caller: CallerIdentity = Depends(get_current_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingResponse:
    """
    Book a spot: availability pre-check, payment authorization, booking write.

    A 409 with code PAYMENT_NEEDS_REVERSAL means the payment went through but
    the spot could not be saved; the response carries the payment reference.
    """
    payment_intent_id = booking_data.payment_intent_id if booking_data else None
    try:
        booking = await asyncio.to_thread(
            orchestrator.book_class, class_id, caller, payment_intent_id=payment_intent_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{class_id}/bookings/me", response_model=BookingResponse)
async def get_my_booking(
    class_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingResponse:
    booking = await asyncio.to_thread(orchestrator.get_booking, class_id, caller)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "No booking for this class", "code": "BOOKING_NOT_FOUND"},
        )
    return BookingResponse.model_validate(booking)
