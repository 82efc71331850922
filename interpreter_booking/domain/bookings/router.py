"""Booking router - FastAPI endpoints for booking operations"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_acting_user, require_admin
from ...config import get_booking_config
from ...database import get_db
from ...services.notification_outbox import enqueue_notifications
from .context import ActingUser
from .schemas import (
    BookingActionResponse,
    BookingCreate,
    BookingEmailConfirm,
    BookingHistoryResponse,
    BookingResponse,
    BookingUpdateRequest,
    DistanceFeedRequest,
    ResendResponse,
    UpdateOutcomeResponse,
    UserBookingsResponse,
)
from .service import BookingAction, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, get_booking_config())


def get_notification_outbox():
    """Dependency injection for the notification hand-off"""
    return enqueue_notifications


def _action_response(action: BookingAction, background_tasks: BackgroundTasks, outbox) -> BookingActionResponse:
    if action.notifications:
        background_tasks.add_task(outbox, action.notifications)
    return BookingActionResponse(
        message=action.message, booking=BookingResponse.model_validate(action.booking)
    )


def _target_user_id(acting_user: ActingUser, user_id: Optional[int]) -> int:
    # Only admins may look at another user's bookings
    if user_id is not None and acting_user.is_admin:
        return user_id
    return acting_user.id


# ============================================================================
# CUSTOMER AND INTERPRETER OPERATIONS
# ============================================================================


@router.post("", response_model=BookingActionResponse)
async def create_booking(
    data: BookingCreate,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
):
    """Create a new booking"""
    booking = service.create_booking(acting_user, data)
    return BookingActionResponse(message="Booking created", booking=BookingResponse.model_validate(booking))


@router.get("", response_model=UserBookingsResponse)
async def list_bookings(
    user_id: Optional[int] = Query(None),
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
):
    """Open bookings of the current user, split into emergency and normal"""
    result = service.list_user_bookings(_target_user_id(acting_user, user_id))
    return UserBookingsResponse(
        user_type=result["user_type"],
        emergency_bookings=[BookingResponse.model_validate(b) for b in result["emergency_bookings"]],
        normal_bookings=[BookingResponse.model_validate(b) for b in result["normal_bookings"]],
    )


@router.get("/history", response_model=BookingHistoryResponse)
async def booking_history(
    page: int = Query(1, ge=1),
    user_id: Optional[int] = Query(None),
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
):
    """Finished bookings of the current user, newest first"""
    result = service.booking_history(_target_user_id(acting_user, user_id), page)
    return BookingHistoryResponse(
        user_type=result["user_type"],
        bookings=[BookingResponse.model_validate(b) for b in result["bookings"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get("/potential", response_model=list[BookingResponse])
async def potential_bookings(
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
):
    """Pending bookings the current interpreter may accept"""
    return [BookingResponse.model_validate(b) for b in service.potential_bookings(acting_user)]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.model_validate(service.get_booking(booking_id, acting_user))


@router.post("/{booking_id}/confirm-email", response_model=BookingActionResponse)
async def confirm_booking_email(
    booking_id: int,
    data: BookingEmailConfirm,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    """Store contact details and notify the customer and eligible interpreters"""
    action = service.confirm_booking_email(booking_id, data, acting_user)
    return _action_response(action, background_tasks, outbox)


@router.post("/{booking_id}/accept", response_model=BookingActionResponse)
async def accept_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    action = service.accept_booking(booking_id, acting_user)
    return _action_response(action, background_tasks, outbox)


@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    action = service.cancel_booking(booking_id, acting_user)
    return _action_response(action, background_tasks, outbox)


@router.post("/{booking_id}/end-session", response_model=BookingActionResponse)
async def end_session(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    action = service.end_session(booking_id, acting_user)
    return _action_response(action, background_tasks, outbox)


@router.post("/{booking_id}/customer-not-call", response_model=BookingActionResponse)
async def customer_not_call(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    action = service.customer_not_call(booking_id, acting_user)
    return _action_response(action, background_tasks, outbox)


@router.post("/{booking_id}/reopen", response_model=BookingActionResponse)
async def reopen_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(get_acting_user),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    action = service.reopen(booking_id, acting_user)
    return _action_response(action, background_tasks, outbox)


# ============================================================================
# ADMIN OPERATIONS
# ============================================================================


@router.put("/{booking_id}", response_model=UpdateOutcomeResponse)
async def update_booking(
    booking_id: int,
    edit: BookingUpdateRequest,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    """Edit a booking and notify everyone the edit concerns"""
    outcome = service.update_booking(booking_id, edit, acting_user)
    if outcome.notifications:
        background_tasks.add_task(outbox, outcome.notifications)
    return UpdateOutcomeResponse(
        result=outcome.result,
        notifications=len(outcome.notifications),
        booking=BookingResponse.model_validate(outcome.booking),
    )


@router.post("/distance-feed", response_model=BookingActionResponse)
async def distance_feed(
    data: DistanceFeedRequest,
    acting_user: ActingUser = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Record travel distance, time and admin flags for a booking"""
    booking = service.record_distance_feed(data)
    return BookingActionResponse(message="Record updated!", booking=BookingResponse.model_validate(booking))


@router.post("/{booking_id}/resend-notifications", response_model=ResendResponse)
async def resend_notifications(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    notifications = service.resend_notifications(booking_id)
    if notifications:
        background_tasks.add_task(outbox, notifications)
    recipients = sum(len(n.recipients) for n in notifications)
    return ResendResponse(message="Push sent", recipients=recipients)


@router.post("/{booking_id}/resend-sms", response_model=ResendResponse)
async def resend_sms(
    booking_id: int,
    background_tasks: BackgroundTasks,
    acting_user: ActingUser = Depends(require_admin),
    service: BookingService = Depends(get_booking_service),
    outbox=Depends(get_notification_outbox),
):
    notifications = service.resend_sms(booking_id)
    if notifications:
        background_tasks.add_task(outbox, notifications)
    recipients = sum(len(n.recipients) for n in notifications)
    return ResendResponse(message="SMS sent", recipients=recipients)
