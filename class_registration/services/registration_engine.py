# class_registration/services/registration_engine.py
"""Library entry point consumed by the web layer and the payment-event source.

Each public method runs one transaction through ``run_in_transaction`` and
returns an ``Outcome``: expected failures (full class, conflict, block,
duplicate, bad transition, exhausted retries) come back as typed errors,
while unexpected failures such as an unreachable database propagate.
"""
from dataclasses import dataclass
from typing import Any, Generic, Iterable, List, Optional, Set, TypeVar
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.actor import Actor
from ..core.database import AsyncSessionLocal
from ..core.exceptions import RegistrationError, NotFound
from ..core.transactions import run_in_transaction, UnitOfWork
from ..models.class_section import ClassSection
from ..models.enrollment import Enrollment
from ..schemas.registration_schemas import ClassSectionSpec, InvariantReport
from .audit_service import LoggingAuditSink
from .block_service import BlockService, BlockResult
from .capacity_ledger import CapacityLedger
from .class_service import ClassSectionService, ClassWriteResult
from .conflict_detector import ConflictDetector, detect_all_conflicts, conflict_alerts
from .enrollment_service import EnrollmentService, CancellationResult
from .waitlist_queue import WaitlistQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[RegistrationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RegistrationError) -> "Outcome[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


class RegistrationEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker = None,
        lock_backend=None,
        audit_sink=None,
        max_retries: Optional[int] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.lock_backend = lock_backend
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.max_retries = max_retries

    async def _run(self, name: str, operation) -> Outcome:
        try:
            value = await run_in_transaction(
                self.session_factory,
                operation,
                name=name,
                lock_backend=self.lock_backend,
                audit_sink=self.audit_sink,
                max_retries=self.max_retries,
            )
        except RegistrationError as e:
            logger.info(f"{name} rejected: {e.code} - {e.message}")
            return Outcome.failure(e)
        return Outcome.success(value)

    # Scheduling

    async def create_or_update_class(
        self,
        actor: Actor,
        class_spec: ClassSectionSpec,
        exclude_self_id: Optional[UUID] = None,
    ) -> Outcome[ClassWriteResult]:
        async def operation(uow: UnitOfWork):
            return await ClassSectionService(uow).create_or_update_class(actor, class_spec, exclude_self_id)
        return await self._run("create_or_update_class", operation)

    async def publish_class(self, actor: Actor, class_id: UUID) -> Outcome[ClassSection]:
        return await self._run(
            "publish_class", lambda uow: ClassSectionService(uow).publish_class(actor, class_id)
        )

    async def complete_class(self, actor: Actor, class_id: UUID) -> Outcome[ClassSection]:
        return await self._run(
            "complete_class", lambda uow: ClassSectionService(uow).complete_class(actor, class_id)
        )

    async def cancel_class(self, actor: Actor, class_id: UUID) -> Outcome[int]:
        return await self._run(
            "cancel_class", lambda uow: ClassSectionService(uow).cancel_class(actor, class_id)
        )

    async def delete_draft_class(self, actor: Actor, class_id: UUID) -> Outcome[None]:
        return await self._run(
            "delete_draft_class", lambda uow: ClassSectionService(uow).delete_draft_class(actor, class_id)
        )

    async def detect_all_conflicts(self, classes: Optional[Iterable[ClassSection]] = None) -> Set[UUID]:
        """Class ids taking part in any teacher or room conflict; loads the live catalog when no list is given"""
        if classes is None:
            classes = await self._scheduled_classes()
        return detect_all_conflicts(classes)

    async def conflict_alerts(self, classes: Optional[Iterable[ClassSection]] = None) -> List[dict]:
        if classes is None:
            classes = await self._scheduled_classes()
        return conflict_alerts(classes)

    async def _scheduled_classes(self) -> List[ClassSection]:
        async with self.session_factory() as session:
            return await ConflictDetector(session).get_scheduled_classes()

    # Catalog

    async def list_classes(self, statuses=None, teacher_id: Optional[UUID] = None) -> List[ClassSection]:
        async with self.session_factory() as session:
            return await ClassSectionService(UnitOfWork(session, self.lock_backend)).get_classes(statuses, teacher_id)

    async def get_class(self, class_id: UUID) -> ClassSection:
        async with self.session_factory() as session:
            return await ClassSectionService(UnitOfWork(session, self.lock_backend)).get_class_or_404(class_id)

    async def class_roster(self, class_id: UUID, statuses=None) -> List[Enrollment]:
        """Enrollments of a class in creation order, optionally filtered by status"""
        async with self.session_factory() as session:
            return await EnrollmentService(UnitOfWork(session, self.lock_backend)).get_by_class(class_id, statuses)

    # Enrollment

    async def enroll(self, actor: Actor, student_id: UUID, class_id: UUID) -> Outcome[Enrollment]:
        return await self._run(
            "enroll", lambda uow: EnrollmentService(uow).enroll(actor, student_id, class_id)
        )

    async def join_waitlist(self, actor: Actor, student_id: UUID, class_id: UUID) -> Outcome[int]:
        """Waitlist a student for a full class; the value is the 1-based position"""
        async def operation(uow: UnitOfWork):
            enrollment = await EnrollmentService(uow).join_waitlist(actor, student_id, class_id)
            return enrollment.waitlist_position
        return await self._run("join_waitlist", operation)

    async def leave_waitlist(self, actor: Actor, enrollment_id: UUID) -> Outcome[None]:
        return await self._run(
            "leave_waitlist", lambda uow: EnrollmentService(uow).leave_waitlist(actor, enrollment_id)
        )

    async def cancel(self, actor: Actor, enrollment_id: UUID) -> Outcome[CancellationResult]:
        return await self._run(
            "cancel", lambda uow: EnrollmentService(uow).cancel(actor, enrollment_id)
        )

    async def on_payment_confirmed(self, enrollment_id: UUID) -> Outcome[Enrollment]:
        return await self._run(
            "on_payment_confirmed", lambda uow: EnrollmentService(uow).confirm_payment(enrollment_id)
        )

    async def on_payment_refunded(self, enrollment_id: UUID) -> Outcome[CancellationResult]:
        return await self._run(
            "on_payment_refunded", lambda uow: EnrollmentService(uow).refund(enrollment_id)
        )

    async def waitlist_position(self, class_id: UUID, student_id: UUID) -> Optional[int]:
        async with self.session_factory() as session:
            return await WaitlistQueue(session).position_of(class_id, student_id)

    async def waitlist_count(self, class_id: UUID) -> int:
        async with self.session_factory() as session:
            return await WaitlistQueue(session).count(class_id)

    async def active_enrollment(self, student_id: UUID, class_id: UUID) -> Optional[Enrollment]:
        async with self.session_factory() as session:
            return await EnrollmentService(UnitOfWork(session, self.lock_backend)).get_active(student_id, class_id)

    # Blocklist

    async def block_student(
        self,
        actor: Actor,
        class_id: UUID,
        student_id: UUID,
        reason: Optional[str] = None,
    ) -> Outcome[BlockResult]:
        return await self._run(
            "block_student", lambda uow: BlockService(uow).block_student(actor, class_id, student_id, reason)
        )

    async def unblock_student(self, actor: Actor, block_id: UUID) -> Outcome[None]:
        return await self._run(
            "unblock_student", lambda uow: BlockService(uow).unblock_student(actor, block_id)
        )

    async def list_blocks(self, class_id: UUID) -> List[Any]:
        async with self.session_factory() as session:
            return await BlockService(UnitOfWork(session, self.lock_backend)).list_blocks(class_id)

    # Invariants

    async def verify_class_invariants(self, class_id: UUID) -> InvariantReport:
        """Compare stored counters with the enrollment rows behind them"""
        async with self.session_factory() as session:
            section = await session.get(ClassSection, class_id)
            if section is None:
                raise NotFound("Class", class_id)
            active = await CapacityLedger(session).count_active(class_id)
            positions = await WaitlistQueue(session).positions(class_id)
            return InvariantReport(
                class_id=class_id,
                capacity=section.capacity,
                seats_taken=section.seats_taken,
                active_enrollments=active,
                waitlist_positions=positions,
            )
