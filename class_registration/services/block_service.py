# class_registration/services/block_service.py
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select

from ..core.actor import Actor
from ..core.exceptions import NotAuthorized, NotFound, DuplicateBlock
from ..core.transactions import UnitOfWork
from ..models.class_block import ClassBlock
from ..models.student import Student
from .base_service import BaseService

logger = logging.getLogger(__name__)


@dataclass
class BlockResult:
    block: ClassBlock
    cancellation: Optional[object] = None  # CancellationResult when an active enrollment was force-cancelled


class BlockService(BaseService[ClassBlock]):
    def __init__(self, uow: UnitOfWork):
        super().__init__(ClassBlock, uow.session)
        self.uow = uow

    async def get_for_pair(self, class_id: UUID, student_id: UUID) -> Optional[ClassBlock]:
        stmt = select(ClassBlock).where(
            ClassBlock.class_id == class_id,
            ClassBlock.student_id == student_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_blocks(self, class_id: UUID) -> List[ClassBlock]:
        stmt = select(ClassBlock).where(ClassBlock.class_id == class_id).order_by(ClassBlock.created_at.desc())
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def block_student(
        self,
        actor: Actor,
        class_id: UUID,
        student_id: UUID,
        reason: Optional[str] = None,
    ) -> BlockResult:
        """Insert a block and force-cancel the pair's active enrollment through the normal cancel path"""
        from .enrollment_service import EnrollmentService
        enrollments = EnrollmentService(self.uow)

        async with self.uow.class_lock(class_id) as locked:
            if not actor.can_manage_class(locked.section):
                raise NotAuthorized("Only the class teacher, schedulers or admins can block students")

            if await self.db.get(Student, student_id) is None:
                raise NotFound("Student", student_id)

            if await self.get_for_pair(class_id, student_id) is not None:
                raise DuplicateBlock()

            block = await self.add(ClassBlock(
                class_id=class_id,
                student_id=student_id,
                reason=reason,
                created_by=actor.id,
            ))
            self.uow.record(actor, "student.blocked", "class", class_id, student_id=student_id, reason=reason)

            cancellation = None
            active = await enrollments.get_active(student_id, class_id)
            if active is not None:
                logger.info(f"Force-cancelling enrollment {active.id} for blocked student {student_id}")
                cancellation = await enrollments.cancel_locked(locked, active, actor, reason="blocked")

        return BlockResult(block, cancellation)

    async def unblock_student(self, actor: Actor, block_id: UUID):
        block = await self.get(block_id)
        if block is None:
            raise NotFound("Block", block_id)

        async with self.uow.class_lock(block.class_id) as locked:
            if not actor.can_manage_class(locked.section):
                raise NotAuthorized("Access denied")
            await self.db.delete(block)
            await self.db.flush()

        self.uow.record(actor, "student.unblocked", "class", block.class_id, student_id=block.student_id)
