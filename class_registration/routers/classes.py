# class_registration/routers/classes.py
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status as http_status

from ..core.actor import Actor
from ..core.exceptions import NotAuthorized
from ..models.class_section import ClassStatus
from ..models.enrollment import EnrollmentStatus
from ..schemas.registration_schemas import (
    ClassSectionSpec, ClassSectionRead, EnrollmentRead, ConflictReport, BlockCreate, BlockRead,
)
from ..services.registration_engine import RegistrationEngine
from .dependencies import get_actor, get_engine

router = APIRouter(prefix="/api/v1/classes", tags=["Class Scheduling"])


@router.post("/", response_model=ClassSectionRead, status_code=http_status.HTTP_201_CREATED)
async def create_class(
    spec: ClassSectionSpec,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Create a class; rejected with 409 when the teacher or room is already booked"""
    result = (await engine.create_or_update_class(actor, spec)).unwrap()
    return result.class_section


@router.patch("/{class_id}", response_model=ClassSectionRead)
async def update_class(
    class_id: UUID,
    spec: ClassSectionSpec,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    result = (await engine.create_or_update_class(actor, spec, exclude_self_id=class_id)).unwrap()
    return result.class_section


@router.post("/{class_id}/publish", response_model=ClassSectionRead)
async def publish_class(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    return (await engine.publish_class(actor, class_id)).unwrap()


@router.post("/{class_id}/complete", response_model=ClassSectionRead)
async def complete_class(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    return (await engine.complete_class(actor, class_id)).unwrap()


@router.post("/{class_id}/cancel", response_model=dict)
async def cancel_class(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    affected = (await engine.cancel_class(actor, class_id)).unwrap()
    return {"class_id": str(class_id), "affected_enrollments": affected}


@router.delete("/{class_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_draft_class(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    (await engine.delete_draft_class(actor, class_id)).unwrap()


@router.get("/conflicts", response_model=ConflictReport)
async def get_conflicts(
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Conflicting classes for calendar highlighting"""
    class_ids = await engine.detect_all_conflicts()
    alerts = await engine.conflict_alerts()
    return {"class_ids": sorted(class_ids, key=str), "alerts": alerts}


@router.get("/{class_id}/waitlist", response_model=dict)
async def get_waitlist_count(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    section = await engine.get_class(class_id)
    return {"class_id": str(section.id), "waitlist_count": await engine.waitlist_count(class_id)}


@router.get("/{class_id}/waitlist/{student_id}", response_model=Optional[EnrollmentRead])
async def get_waitlist_entry(
    class_id: UUID,
    student_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    return await engine.active_enrollment(student_id, class_id)


@router.post("/{class_id}/blocks", response_model=BlockRead, status_code=http_status.HTTP_201_CREATED)
async def block_student(
    class_id: UUID,
    payload: BlockCreate,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Block a student; any active enrollment is cancelled and the seat handed to the waitlist"""
    result = (await engine.block_student(actor, class_id, payload.student_id, payload.reason)).unwrap()
    return result.block


@router.get("/{class_id}/blocks", response_model=List[BlockRead])
async def list_blocks(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    return await engine.list_blocks(class_id)


@router.delete("/blocks/{block_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def unblock_student(
    block_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    (await engine.unblock_student(actor, block_id)).unwrap()


@router.get("/{class_id}/invariants", response_model=dict)
async def check_invariants(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Stored seat counter and waitlist order compared with the enrollment rows"""
    report = await engine.verify_class_invariants(class_id)
    return {
        **report.model_dump(mode="json"),
        "seats_consistent": report.seats_consistent,
        "waitlist_contiguous": report.waitlist_contiguous,
        "ok": report.ok,
    }


@router.get("/", response_model=List[ClassSectionRead])
async def list_classes(
    status: Optional[List[ClassStatus]] = Query(None),
    teacher_id: Optional[UUID] = Query(None),
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    """Classes ordered by start date, filtered by status and teacher"""
    return await engine.list_classes(status, teacher_id)


@router.get("/{class_id}", response_model=ClassSectionRead)
async def get_class(
    class_id: UUID,
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    return await engine.get_class(class_id)


@router.get("/{class_id}/enrollments", response_model=List[EnrollmentRead])
async def get_roster(
    class_id: UUID,
    status: Optional[List[EnrollmentStatus]] = Query(None),
    actor: Actor = Depends(get_actor),
    engine: RegistrationEngine = Depends(get_engine),
):
    section = await engine.get_class(class_id)
    if not actor.can_manage_class(section):
        raise NotAuthorized("Only the class teacher, schedulers or admins can view the roster")
    return await engine.class_roster(class_id, status)
