# class_registration/core/transactions.py
"""Unit of work, per-class locking and bounded retry for state-changing operations.

Every operation that changes seats, waitlist positions, blocks or schedules
runs inside ``run_in_transaction``. The operation receives a ``UnitOfWork``
whose ``class_lock`` is the only way to obtain a ``LockedClass``, and the
capacity ledger and waitlist queue refuse to work without one. Mutexes taken
through the unit of work stay held until the transaction has committed or
rolled back, so no other request can observe the class between our read of
the derived counters and our commit.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .database import is_postgres
from .exceptions import ConcurrencyConflict, NotFound
from .locks import get_lock_backend

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}


def is_retryable(exc: DBAPIError) -> bool:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate in RETRYABLE_SQLSTATES:
            return True
    return "database is locked" in str(orig).lower()


@dataclass
class AuditEvent:
    actor_id: Optional[UUID]
    action: str
    target_type: str
    target_id: UUID
    details: Dict[str, Any] = field(default_factory=dict)


class LockedClass:
    """A class row loaded under its per-class lock.

    Only valid inside the ``async with uow.class_lock(...)`` block that produced it.
    """

    def __init__(self, section):
        self.section = section
        self._active = True

    @property
    def class_id(self) -> UUID:
        return self.section.id

    def ensure_active(self):
        if not self._active:
            raise RuntimeError(f"Class {self.section.id} used outside of its class_lock block")

    def _deactivate(self):
        self._active = False


class UnitOfWork:
    def __init__(self, session: AsyncSession, lock_backend=None):
        self.session = session
        self.lock_backend = lock_backend or get_lock_backend()
        self.audit_events: List[AuditEvent] = []
        self._held_keys: set = set()
        self._exit_stack = contextlib.AsyncExitStack()

    async def _hold(self, key: str):
        # Re-entrant within one unit of work: cancel -> promote, block -> cancel
        if key in self._held_keys:
            return
        await self._exit_stack.enter_async_context(self.lock_backend.hold(key))
        self._held_keys.add(key)

        # The backend mutex may be process-local; the advisory lock spans workers
        if is_postgres(self.session):
            await self.session.execute(
                select(func.pg_advisory_xact_lock(func.hashtext(key)))
            )

    async def lock_keys(self, *keys: str):
        """Acquire several mutexes in a stable order to avoid lock-order deadlocks"""
        for key in sorted(set(keys)):
            await self._hold(key)

    @contextlib.asynccontextmanager
    async def class_lock(self, class_id: UUID):
        """Serialize all seat and waitlist work for one class.

        Takes the keyed mutex (plus a transaction-scoped advisory lock on
        PostgreSQL), then a row lock, and loads the freshest copy of the class row.
        """
        from ..models.class_section import ClassSection

        await self._hold(f"class:{class_id}")

        stmt = (
            select(ClassSection)
            .where(ClassSection.id == class_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        section = result.scalar_one_or_none()
        if section is None:
            raise NotFound("Class", class_id)

        locked = LockedClass(section)
        try:
            yield locked
        finally:
            locked._deactivate()

    def record(self, actor, action: str, target_type: str, target_id: UUID, **details):
        self.audit_events.append(AuditEvent(
            actor_id=actor.id if actor else None,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        ))

    async def release(self):
        self._held_keys.clear()
        await self._exit_stack.aclose()


async def run_in_transaction(
    session_factory: async_sessionmaker,
    operation: Callable[[UnitOfWork], Awaitable[Any]],
    *,
    name: str = "operation",
    lock_backend=None,
    audit_sink=None,
    max_retries: Optional[int] = None,
):
    """Run ``operation`` as one transaction, retrying serialization failures a bounded number of times"""
    retries = settings.max_retries if max_retries is None else max_retries
    attempt = 0

    while True:
        attempt += 1
        try:
            async with session_factory() as session:
                uow = UnitOfWork(session, lock_backend)
                try:
                    async with session.begin():
                        result = await operation(uow)
                finally:
                    await uow.release()
            break
        except ConcurrencyConflict:
            if attempt > retries:
                logger.error(f"{name} gave up after {attempt} attempts waiting for a class lock")
                raise
            logger.warning(f"{name} lock timeout, retrying (attempt {attempt})")
        except DBAPIError as e:
            if not is_retryable(e):
                raise
            if attempt > retries:
                logger.error(f"{name} gave up after {attempt} attempts: {e.orig}")
                raise ConcurrencyConflict() from e
            logger.warning(f"{name} serialization failure, retrying (attempt {attempt}): {e.orig}")

        await asyncio.sleep(settings.retry_backoff_seconds * attempt)

    if audit_sink is not None and uow.audit_events:
        await audit_sink.write(uow.audit_events)

    return result
