# class_registration/services/enrollment_service.py
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select

from ..core.actor import Actor
from ..core.exceptions import (
    NotAuthorized, NotFound, NotPublished, DuplicateEnrollment,
    StudentBlocked, InvalidStateTransition,
)
from ..core.transactions import UnitOfWork, LockedClass
from ..models.class_block import ClassBlock
from ..models.class_section import ClassSection, ClassStatus
from ..models.enrollment import Enrollment, EnrollmentStatus
from ..models.student import Student
from .base_service import BaseService
from .capacity_ledger import CapacityLedger
from .waitlist_queue import WaitlistQueue

logger = logging.getLogger(__name__)


# Nothing ever moves back into waitlisted, and cancelled is terminal
ALLOWED_TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.PENDING: frozenset({EnrollmentStatus.CONFIRMED, EnrollmentStatus.CANCELLED}),
    EnrollmentStatus.CONFIRMED: frozenset({EnrollmentStatus.CANCELLED}),
    EnrollmentStatus.WAITLISTED: frozenset({EnrollmentStatus.PENDING, EnrollmentStatus.CANCELLED}),
    EnrollmentStatus.CANCELLED: frozenset(),
}


def ensure_transition(current: EnrollmentStatus, target: EnrollmentStatus):
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(current.value, target.value)


@dataclass
class CancellationResult:
    enrollment: Enrollment
    previous_status: EnrollmentStatus
    promoted: List[Enrollment] = field(default_factory=list)


class EnrollmentService(BaseService[Enrollment]):
    """Per (student, class) state machine gated by the blocklist, capacity ledger and waitlist"""

    def __init__(self, uow: UnitOfWork):
        super().__init__(Enrollment, uow.session)
        self.uow = uow
        self.ledger = CapacityLedger(self.db)
        self.waitlist = WaitlistQueue(self.db, self.ledger)

    async def get_active(self, student_id: UUID, class_id: UUID) -> Optional[Enrollment]:
        """The non-cancelled enrollment for a student and class, if any"""
        stmt = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.class_id == class_id,
            Enrollment.status != EnrollmentStatus.CANCELLED,
        ).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_class(self, class_id: UUID, statuses=None) -> List[Enrollment]:
        stmt = select(Enrollment).where(Enrollment.class_id == class_id)
        if statuses:
            stmt = stmt.where(Enrollment.status.in_(statuses))
        result = await self.db.execute(stmt.order_by(Enrollment.created_at))
        return result.scalars().all()

    async def is_blocked(self, class_id: UUID, student_id: UUID) -> bool:
        stmt = select(ClassBlock.id).where(
            ClassBlock.class_id == class_id,
            ClassBlock.student_id == student_id,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def _get_student(self, student_id: UUID) -> Student:
        student = await self.db.get(Student, student_id)
        if student is None:
            raise NotFound("Student", student_id)
        return student

    async def _get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.get_fresh(enrollment_id)
        if enrollment is None:
            raise NotFound("Enrollment", enrollment_id)
        return enrollment

    async def _check_admission(self, actor: Actor, section: ClassSection, student_id: UUID):
        """Preconditions shared by enroll and join_waitlist, in order, first failure wins"""
        if section.status != ClassStatus.PUBLISHED:
            raise NotPublished(section.id, section.status.value)

        student = await self._get_student(student_id)
        if not actor.can_act_for_student(student):
            raise NotAuthorized("Student not found or access denied")

        if await self.is_blocked(section.id, student_id):
            raise StudentBlocked(section.id, student_id)

        existing = await self.get_active(student_id, section.id)
        if existing is not None:
            raise DuplicateEnrollment(existing.id, existing.status.value)

    async def enroll(self, actor: Actor, student_id: UUID, class_id: UUID) -> Enrollment:
        """Reserve a seat and create a pending enrollment; a full class is an error, never a silent waitlist"""
        async with self.uow.class_lock(class_id) as locked:
            await self._check_admission(actor, locked.section, student_id)

            self.ledger.try_reserve_seat(locked)
            enrollment = await self.add(Enrollment(
                student_id=student_id,
                class_id=class_id,
                status=EnrollmentStatus.PENDING,
            ))

        self.uow.record(actor, "enrollment.created", "enrollment", enrollment.id,
                        class_id=class_id, student_id=student_id)
        logger.info(f"Enrolled student {student_id} in class {class_id} as pending")
        return enrollment

    async def join_waitlist(self, actor: Actor, student_id: UUID, class_id: UUID) -> Enrollment:
        async with self.uow.class_lock(class_id) as locked:
            await self._check_admission(actor, locked.section, student_id)
            enrollment = await self.waitlist.join(locked, student_id)

        self.uow.record(actor, "waitlist.joined", "enrollment", enrollment.id,
                        class_id=class_id, position=enrollment.waitlist_position)
        return enrollment

    async def _owned_enrollment(self, actor: Actor, enrollment: Enrollment):
        if actor.is_admin:
            return
        student = await self._get_student(enrollment.student_id)
        if not actor.can_act_for_student(student):
            raise NotAuthorized("Access denied")

    async def leave_waitlist(self, actor: Actor, enrollment_id: UUID):
        enrollment = await self._get_enrollment(enrollment_id)
        await self._owned_enrollment(actor, enrollment)

        async with self.uow.class_lock(enrollment.class_id) as locked:
            # State may have moved on while we waited for the lock
            enrollment = await self._get_enrollment(enrollment_id)
            position = enrollment.waitlist_position
            await self.waitlist.leave(locked, enrollment)

        self.uow.record(actor, "waitlist.left", "enrollment", enrollment_id,
                        class_id=enrollment.class_id, position=position)

    async def cancel_locked(
        self,
        locked: LockedClass,
        enrollment: Enrollment,
        actor: Actor,
        reason: str = "cancelled",
    ) -> CancellationResult:
        """Cancel and hand the freed seat to the waitlist as one step"""
        previous = enrollment.status
        ensure_transition(previous, EnrollmentStatus.CANCELLED)

        if previous == EnrollmentStatus.WAITLISTED:
            await self.waitlist.cancel(locked, enrollment)
            promoted = []
        else:
            enrollment.status = EnrollmentStatus.CANCELLED
            self.ledger.release_seat(locked)
            await self.db.flush()
            promoted = await self.waitlist.promote_while_available(locked)

        self.uow.record(actor, "enrollment.cancelled", "enrollment", enrollment.id,
                        class_id=locked.class_id, previous_status=previous.value, reason=reason)
        for promoted_enrollment in promoted:
            self.uow.record(actor, "waitlist.promoted", "enrollment", promoted_enrollment.id,
                            class_id=locked.class_id)

        return CancellationResult(enrollment, previous, promoted)

    async def cancel(self, actor: Actor, enrollment_id: UUID, reason: str = "cancelled") -> CancellationResult:
        enrollment = await self._get_enrollment(enrollment_id)
        await self._owned_enrollment(actor, enrollment)

        async with self.uow.class_lock(enrollment.class_id) as locked:
            enrollment = await self._get_enrollment(enrollment_id)
            return await self.cancel_locked(locked, enrollment, actor, reason)

    async def confirm_payment(self, enrollment_id: UUID) -> Enrollment:
        """pending -> confirmed; confirming an already confirmed enrollment is a no-op"""
        enrollment = await self._get_enrollment(enrollment_id)

        async with self.uow.class_lock(enrollment.class_id):
            enrollment = await self._get_enrollment(enrollment_id)
            if enrollment.status == EnrollmentStatus.CONFIRMED:
                logger.info(f"Enrollment {enrollment_id} already confirmed")
                return enrollment

            ensure_transition(enrollment.status, EnrollmentStatus.CONFIRMED)
            enrollment.status = EnrollmentStatus.CONFIRMED
            await self.db.flush()

        self.uow.record(Actor.system(), "enrollment.confirmed", "enrollment", enrollment_id,
                        class_id=enrollment.class_id)
        return enrollment

    async def refund(self, enrollment_id: UUID) -> CancellationResult:
        """Cancel on behalf of the payment provider; redelivered refund events are no-ops"""
        actor = Actor.system()
        enrollment = await self._get_enrollment(enrollment_id)

        async with self.uow.class_lock(enrollment.class_id) as locked:
            enrollment = await self._get_enrollment(enrollment_id)
            if enrollment.status == EnrollmentStatus.CANCELLED:
                logger.info(f"Enrollment {enrollment_id} already cancelled, ignoring refund")
                return CancellationResult(enrollment, EnrollmentStatus.CANCELLED)
            return await self.cancel_locked(locked, enrollment, actor, reason="refunded")
