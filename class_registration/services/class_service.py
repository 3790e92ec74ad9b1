# class_registration/services/class_service.py
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update, delete

from ..core.actor import Actor, Role
from ..core.exceptions import NotAuthorized, NotFound, InvalidClassSpec, InvalidStateTransition
from ..core.transactions import UnitOfWork
from ..models.class_block import ClassBlock
from ..models.class_section import ClassSection, ClassStatus, SCHEDULED_STATUSES
from ..models.enrollment import Enrollment, EnrollmentStatus
from ..schemas.registration_schemas import ClassSectionSpec
from .base_service import BaseService
from .capacity_ledger import CapacityLedger
from .conflict_detector import ConflictDetector
from .schedule_index import ScheduleSlot, room_key, day_label
from .waitlist_queue import WaitlistQueue

logger = logging.getLogger(__name__)


CLASS_TRANSITIONS = {
    ClassStatus.DRAFT: {ClassStatus.PUBLISHED, ClassStatus.CANCELLED},
    ClassStatus.PUBLISHED: {ClassStatus.COMPLETED, ClassStatus.CANCELLED},
    ClassStatus.CANCELLED: set(),
    ClassStatus.COMPLETED: set(),
}


@dataclass
class ClassWriteResult:
    class_section: ClassSection
    promoted: List[Enrollment] = field(default_factory=list)


class ClassSectionService(BaseService[ClassSection]):
    def __init__(self, uow: UnitOfWork):
        super().__init__(ClassSection, uow.session)
        self.uow = uow
        self.detector = ConflictDetector(self.db)
        self.ledger = CapacityLedger(self.db)
        self.waitlist = WaitlistQueue(self.db, self.ledger)

    async def get_classes(self, statuses=None, teacher_id: Optional[UUID] = None) -> List[ClassSection]:
        stmt = select(ClassSection)
        if statuses:
            stmt = stmt.where(ClassSection.status.in_(statuses))
        if teacher_id:
            stmt = stmt.where(ClassSection.teacher_id == teacher_id)
        result = await self.db.execute(stmt.order_by(ClassSection.start_date, ClassSection.name))
        return result.scalars().all()

    @staticmethod
    def _slot_from_spec(spec: ClassSectionSpec) -> Optional[ScheduleSlot]:
        if spec.schedule is None:
            return None
        schedule = spec.schedule
        return ScheduleSlot.build(schedule.days, schedule.block, schedule.start_date, schedule.end_date)

    @staticmethod
    def _apply_slot(section: ClassSection, slot: Optional[ScheduleSlot]):
        if slot is None:
            section.days, section.block, section.start_date, section.end_date = None, None, None, None
            return
        section.days = day_label(slot.days).split("/")
        section.block = slot.block
        section.start_date = slot.start_date
        section.end_date = slot.end_date

    async def _guard_schedule(
        self,
        teacher_id: UUID,
        location: Optional[str],
        slot: Optional[ScheduleSlot],
        exclude_class_id: Optional[UUID] = None,
    ):
        """Serialize schedule writes per teacher and room, then reject any double booking"""
        if slot is None:
            return
        keys = [f"teacher:{teacher_id}"]
        room = room_key(location)
        if room is not None:
            keys.append(f"room:{room}")
        await self.uow.lock_keys(*keys)
        await self.detector.ensure_no_conflict(teacher_id, location, slot, exclude_class_id)

    async def create_or_update_class(
        self,
        actor: Actor,
        spec: ClassSectionSpec,
        exclude_self_id: Optional[UUID] = None,
    ) -> ClassWriteResult:
        if exclude_self_id is None:
            return ClassWriteResult(await self.create_class(actor, spec))
        return await self.update_class(actor, exclude_self_id, spec)

    async def create_class(self, actor: Actor, spec: ClassSectionSpec) -> ClassSection:
        """Create new class with conflict validation"""
        if not (actor.can_schedule or actor.role == Role.TEACHER):
            raise NotAuthorized("Only teachers, schedulers and admins can create classes")

        teacher_id = spec.teacher_id or actor.id
        if not actor.can_schedule and teacher_id != actor.id:
            raise NotAuthorized("Teachers can only create their own classes")
        if not spec.name:
            raise InvalidClassSpec("Name is required", "name")
        if spec.capacity is None:
            raise InvalidClassSpec("Capacity is required", "capacity")

        status = spec.status or ClassStatus.DRAFT
        if status not in SCHEDULED_STATUSES:
            raise InvalidClassSpec("New classes must be draft or published", "status")

        slot = self._slot_from_spec(spec)
        await self._guard_schedule(teacher_id, spec.location, slot)

        section = ClassSection(
            name=spec.name,
            teacher_id=teacher_id,
            location=spec.location,
            capacity=spec.capacity,
            seats_taken=0,
            status=status,
        )
        self._apply_slot(section, slot)
        await self.add(section)

        self.uow.record(actor, "class.created", "class", section.id, name=section.name)
        logger.info(f"Created class {section.name} ({section.id})")
        return section

    async def update_class(self, actor: Actor, class_id: UUID, spec: ClassSectionSpec) -> ClassWriteResult:
        """Merge the changes into the stored class and re-run conflict detection on the proposed state"""
        changes = spec.model_dump(exclude_unset=True)
        if "status" in changes:
            raise InvalidClassSpec("Use publish, complete or cancel to change a class status", "status")

        async with self.uow.class_lock(class_id) as locked:
            section = locked.section
            if not actor.can_manage_class(section):
                raise NotAuthorized("Not authorized to update this class")

            teacher_id = changes.get("teacher_id") or section.teacher_id
            if teacher_id != section.teacher_id and not actor.can_schedule:
                raise NotAuthorized("Only schedulers and admins can reassign a class")

            location = changes["location"] if "location" in changes else section.location
            slot = self._slot_from_spec(spec) if "schedule" in changes else ScheduleSlot.from_class(section)

            capacity = changes.get("capacity") or section.capacity
            if capacity < section.seats_taken:
                raise InvalidClassSpec(
                    f"Capacity cannot be below the {section.seats_taken} seats already taken", "capacity"
                )

            if section.status in SCHEDULED_STATUSES:
                await self._guard_schedule(teacher_id, location, slot, exclude_class_id=class_id)

            if changes.get("name"):
                section.name = changes["name"]
            section.teacher_id = teacher_id
            section.location = location
            if "schedule" in changes:
                self._apply_slot(section, slot)
            grew = capacity > section.capacity
            section.capacity = capacity
            await self.db.flush()

            promoted = []
            if grew and section.status == ClassStatus.PUBLISHED:
                promoted = await self.waitlist.promote_while_available(locked)

        self.uow.record(actor, "class.updated", "class", class_id, fields=",".join(sorted(changes)))
        for enrollment in promoted:
            self.uow.record(actor, "waitlist.promoted", "enrollment", enrollment.id, class_id=class_id)
        return ClassWriteResult(section, promoted)

    async def _transition(self, actor: Actor, class_id: UUID, target: ClassStatus) -> ClassSection:
        async with self.uow.class_lock(class_id) as locked:
            section = locked.section
            if not actor.can_manage_class(section):
                raise NotAuthorized(f"Not authorized to change this class to {target.value}")
            if target not in CLASS_TRANSITIONS[section.status]:
                raise InvalidStateTransition(section.status.value, target.value, entity="class")
            section.status = target
            await self.db.flush()

        self.uow.record(actor, f"class.{target.value}", "class", class_id, name=section.name)
        return section

    async def publish_class(self, actor: Actor, class_id: UUID) -> ClassSection:
        return await self._transition(actor, class_id, ClassStatus.PUBLISHED)

    async def complete_class(self, actor: Actor, class_id: UUID) -> ClassSection:
        return await self._transition(actor, class_id, ClassStatus.COMPLETED)

    async def cancel_class(self, actor: Actor, class_id: UUID) -> int:
        """Cancel the class and every live enrollment in it, waitlist included; returns affected count"""
        async with self.uow.class_lock(class_id) as locked:
            section = locked.section
            if not actor.can_manage_class(section):
                raise NotAuthorized("Not authorized to cancel this class")
            if ClassStatus.CANCELLED not in CLASS_TRANSITIONS[section.status]:
                raise InvalidStateTransition(section.status.value, ClassStatus.CANCELLED.value, entity="class")

            stmt = (
                update(Enrollment)
                .where(
                    Enrollment.class_id == class_id,
                    Enrollment.status != EnrollmentStatus.CANCELLED,
                )
                .values(status=EnrollmentStatus.CANCELLED, waitlist_position=None)
                .execution_options(synchronize_session="fetch")
            )
            result = await self.db.execute(stmt)
            affected = result.rowcount

            section.status = ClassStatus.CANCELLED
            await self.ledger.recount(locked)
            await self.db.flush()

        self.uow.record(actor, "class.cancelled", "class", class_id, name=section.name, affected_enrollments=affected)
        logger.info(f"Cancelled class {class_id}, {affected} enrollments cancelled")
        return affected

    async def delete_draft_class(self, actor: Actor, class_id: UUID):
        """Only drafts can be hard-deleted; published classes keep their history"""
        async with self.uow.class_lock(class_id) as locked:
            section = locked.section
            if not actor.can_manage_class(section):
                raise NotAuthorized("Not authorized to delete this class")
            if section.status != ClassStatus.DRAFT:
                raise InvalidClassSpec("Only draft classes can be deleted", "status")

            await self.db.execute(delete(ClassBlock).where(ClassBlock.class_id == class_id))
            await self.db.delete(section)
            await self.db.flush()

        self.uow.record(actor, "class.deleted", "class", class_id, name=section.name)

    async def get_class_or_404(self, class_id: UUID) -> ClassSection:
        section = await self.get(class_id)
        if section is None:
            raise NotFound("Class", class_id)
        return section
