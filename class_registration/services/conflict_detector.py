# class_registration/services/conflict_detector.py
from typing import Iterable, List, Optional, Set
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ScheduleConflict
from ..models.class_section import ClassSection, SCHEDULED_STATUSES
from .schedule_index import ScheduleIndex, ScheduleSlot, room_key

logger = logging.getLogger(__name__)


def _scheduled(sections: Iterable) -> List:
    return [section for section in sections if section.status in SCHEDULED_STATUSES]


def detect_all_conflicts(classes: Iterable) -> Set[UUID]:
    """Ids of every draft or published class that takes part in a teacher or room conflict"""
    index = ScheduleIndex.from_classes(_scheduled(classes))
    return index.conflicting_class_ids()


def conflict_alerts(classes: Iterable) -> List[dict]:
    """Pairwise conflict descriptions for the calendar view"""
    index = ScheduleIndex.from_classes(_scheduled(classes))
    return [
        {
            "id": f"{pair.kind}-{pair.first.class_id}-{pair.second.class_id}",
            "kind": pair.kind,
            "severity": pair.severity,
            "class_ids": [pair.first.class_id, pair.second.class_id],
            "message": pair.message,
        }
        for pair in index.conflicting_pairs()
    ]


class ConflictDetector:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_scheduled_classes(self) -> List[ClassSection]:
        stmt = select(ClassSection).where(ClassSection.status.in_(SCHEDULED_STATUSES))
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def load_index(
        self,
        teacher_id: Optional[UUID],
        location: Optional[str],
        slot: ScheduleSlot,
        exclude_class_id: Optional[UUID] = None,
    ) -> ScheduleIndex:
        """Index of the classes that could collide with the candidate's teacher or room.

        Room names are matched by the index with ``room_key``, so the query only
        narrows rooms down to classes using the same block.
        """
        owners = []
        if teacher_id is not None:
            owners.append(ClassSection.teacher_id == teacher_id)
        if room_key(location) is not None:
            owners.append(ClassSection.block == slot.block)
        if not owners:
            return ScheduleIndex()

        stmt = select(ClassSection).where(
            ClassSection.status.in_(SCHEDULED_STATUSES),
            or_(*owners),
        )
        if exclude_class_id is not None:
            stmt = stmt.where(ClassSection.id != exclude_class_id)

        result = await self.db.execute(stmt)
        return ScheduleIndex.from_classes(result.scalars().all())

    async def check_conflict(
        self,
        teacher_id: Optional[UUID],
        location: Optional[str],
        slot: ScheduleSlot,
        exclude_class_id: Optional[UUID] = None,
    ) -> Optional[ScheduleConflict]:
        index = await self.load_index(teacher_id, location, slot, exclude_class_id)
        hit = index.find_conflict(teacher_id, location, slot, exclude_class_id)
        if hit is None:
            return None

        existing = hit.existing
        return ScheduleConflict(
            kind=hit.kind,
            class_id=existing.class_id,
            class_name=existing.name,
            day=existing.slot.day_label,
            block=existing.slot.block,
            location=existing.location,
        )

    async def ensure_no_conflict(
        self,
        teacher_id: Optional[UUID],
        location: Optional[str],
        slot: ScheduleSlot,
        exclude_class_id: Optional[UUID] = None,
    ):
        conflict = await self.check_conflict(teacher_id, location, slot, exclude_class_id)
        if conflict is not None:
            logger.info(f"Rejected schedule write: {conflict.message}")
            raise conflict
