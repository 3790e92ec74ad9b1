# class_registration/routers/enrollments.py
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..core.actor import Actor
from ..schemas.registration_schemas import (
    EnrollmentRequest, EnrollmentRead, WaitlistJoinResponse, CancellationRead,
)
from ..services.registration_engine import RegistrationEngine
from .dependencies import get_actor, get_engine

router = APIRouter(prefix="/api/v1/enrollments", tags=["Enrollment"])


@router.post("/", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
async def enroll(
    payload: EnrollmentRequest,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Reserve a seat; a full class answers 409 capacity_exceeded and the client offers the waitlist"""
    return (await engine.enroll(actor, payload.student_id, payload.class_id)).unwrap()


@router.post("/waitlist", response_model=WaitlistJoinResponse, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    payload: EnrollmentRequest,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    position = (await engine.join_waitlist(actor, payload.student_id, payload.class_id)).unwrap()
    entry = await engine.active_enrollment(payload.student_id, payload.class_id)
    return {"enrollment_id": entry.id, "position": position}


@router.delete("/waitlist/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_waitlist(
    enrollment_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    (await engine.leave_waitlist(actor, enrollment_id)).unwrap()


@router.post("/{enrollment_id}/cancel", response_model=CancellationRead)
async def cancel_enrollment(
    enrollment_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    result = (await engine.cancel(actor, enrollment_id)).unwrap()
    return CancellationRead.model_validate(result)
