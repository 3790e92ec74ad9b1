# class_registration/services/capacity_ledger.py
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import CapacityExceeded
from ..core.transactions import LockedClass
from ..models.enrollment import Enrollment, SEAT_HOLDING_STATUSES

logger = logging.getLogger(__name__)


class CapacityLedger:
    """Seat accounting for a class.

    ``seats_taken`` is derived from the pending and confirmed enrollments and
    is only changed here, under the class lock, in the same transaction as
    the enrollment row that backs the change.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def try_reserve_seat(self, locked: LockedClass):
        locked.ensure_active()
        section = locked.section
        if section.seats_taken >= section.capacity:
            raise CapacityExceeded(section.id, section.capacity)
        section.seats_taken += 1

    def release_seat(self, locked: LockedClass):
        locked.ensure_active()
        section = locked.section
        if section.seats_taken <= 0:
            # A seat-holding enrollment exists but the counter says none are taken
            logger.error(f"Release on class {section.id} with no seats taken")
            raise RuntimeError(f"seats_taken for class {section.id} is out of step with its enrollments")
        section.seats_taken -= 1

    async def count_active(self, class_id) -> int:
        stmt = select(func.count()).select_from(Enrollment).where(
            Enrollment.class_id == class_id,
            Enrollment.status.in_(SEAT_HOLDING_STATUSES),
        )
        result = await self.db.execute(stmt)
        return result.scalar()

    async def recount(self, locked: LockedClass) -> int:
        """Recompute seats_taken from the enrollment rows"""
        locked.ensure_active()
        await self.db.flush()
        actual = await self.count_active(locked.class_id)
        if actual != locked.section.seats_taken:
            logger.warning(
                f"Class {locked.class_id} seats_taken drifted: stored {locked.section.seats_taken}, actual {actual}"
            )
            locked.section.seats_taken = actual
        return actual
