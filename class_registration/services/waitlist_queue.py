# class_registration/services/waitlist_queue.py
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFull, InvalidStateTransition
from ..core.transactions import LockedClass
from ..models.enrollment import Enrollment, EnrollmentStatus
from .capacity_ledger import CapacityLedger

logger = logging.getLogger(__name__)


class WaitlistQueue:
    """Gap-free FIFO of waitlisted enrollments per class.

    Positions for a class are always exactly 1..N. Every removal shifts the
    later entries down by one, whether the entry left, was cancelled or was
    promoted.
    """

    def __init__(self, db: AsyncSession, ledger: CapacityLedger = None):
        self.db = db
        self.ledger = ledger or CapacityLedger(db)

    async def next_position(self, class_id: UUID) -> int:
        stmt = select(func.max(Enrollment.waitlist_position)).where(
            Enrollment.class_id == class_id,
            Enrollment.status == EnrollmentStatus.WAITLISTED,
        )
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) + 1

    async def join(self, locked: LockedClass, student_id: UUID) -> Enrollment:
        locked.ensure_active()
        if not locked.section.is_full:
            raise NotFull(locked.class_id)

        position = await self.next_position(locked.class_id)
        enrollment = Enrollment(
            student_id=student_id,
            class_id=locked.class_id,
            status=EnrollmentStatus.WAITLISTED,
            waitlist_position=position,
        )
        self.db.add(enrollment)
        await self.db.flush()
        logger.info(f"Student {student_id} joined waitlist of class {locked.class_id} at position {position}")
        return enrollment

    async def _close_gap(self, class_id: UUID, removed_position: int):
        stmt = (
            update(Enrollment)
            .where(
                Enrollment.class_id == class_id,
                Enrollment.status == EnrollmentStatus.WAITLISTED,
                Enrollment.waitlist_position > removed_position,
            )
            .values(waitlist_position=Enrollment.waitlist_position - 1)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(stmt)

    def _ensure_waitlisted(self, enrollment: Enrollment, target: EnrollmentStatus):
        if enrollment.status != EnrollmentStatus.WAITLISTED:
            raise InvalidStateTransition(enrollment.status.value, target.value)

    async def leave(self, locked: LockedClass, enrollment: Enrollment):
        """Delete a waitlisted row and close the gap it leaves"""
        locked.ensure_active()
        self._ensure_waitlisted(enrollment, EnrollmentStatus.CANCELLED)

        position = enrollment.waitlist_position
        await self.db.delete(enrollment)
        await self.db.flush()
        await self._close_gap(locked.class_id, position)

    async def cancel(self, locked: LockedClass, enrollment: Enrollment):
        """Keep the row as cancelled and close the gap it leaves"""
        locked.ensure_active()
        self._ensure_waitlisted(enrollment, EnrollmentStatus.CANCELLED)

        position = enrollment.waitlist_position
        enrollment.status = EnrollmentStatus.CANCELLED
        enrollment.waitlist_position = None
        await self.db.flush()
        await self._close_gap(locked.class_id, position)

    async def head(self, class_id: UUID) -> Optional[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(
                Enrollment.class_id == class_id,
                Enrollment.status == EnrollmentStatus.WAITLISTED,
            )
            .order_by(Enrollment.waitlist_position.asc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def promote_head(self, locked: LockedClass) -> Optional[Enrollment]:
        """Move the lowest position into a pending seat; None when full or nobody is waiting"""
        locked.ensure_active()
        if locked.section.is_full:
            return None

        head = await self.head(locked.class_id)
        if head is None:
            return None

        position = head.waitlist_position
        self.ledger.try_reserve_seat(locked)
        head.status = EnrollmentStatus.PENDING
        head.waitlist_position = None
        await self.db.flush()
        await self._close_gap(locked.class_id, position)

        logger.info(f"Promoted enrollment {head.id} from waitlist position {position} in class {locked.class_id}")
        return head

    async def promote_while_available(self, locked: LockedClass) -> List[Enrollment]:
        promoted = []
        while True:
            enrollment = await self.promote_head(locked)
            if enrollment is None:
                return promoted
            promoted.append(enrollment)

    async def positions(self, class_id: UUID) -> List[int]:
        await self.db.flush()
        stmt = (
            select(Enrollment.waitlist_position)
            .where(
                Enrollment.class_id == class_id,
                Enrollment.status == EnrollmentStatus.WAITLISTED,
            )
            .order_by(Enrollment.waitlist_position.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def position_of(self, class_id: UUID, student_id: UUID) -> Optional[int]:
        stmt = select(Enrollment.waitlist_position).where(
            Enrollment.class_id == class_id,
            Enrollment.student_id == student_id,
            Enrollment.status == EnrollmentStatus.WAITLISTED,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, class_id: UUID) -> int:
        stmt = select(func.count()).select_from(Enrollment).where(
            Enrollment.class_id == class_id,
            Enrollment.status == EnrollmentStatus.WAITLISTED,
        )
        result = await self.db.execute(stmt)
        return result.scalar()
