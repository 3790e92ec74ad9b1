# class_registration/services/audit_service.py
"""Fire-and-forget audit sinks written to after a transaction commits."""
import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.transactions import AuditEvent
from ..models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class LoggingAuditSink:
    async def write(self, events: Iterable[AuditEvent]):
        for event in events:
            logger.info(
                f"audit {event.action} {event.target_type}={event.target_id} "
                f"actor={event.actor_id} details={event.details}"
            )


class DatabaseAuditSink:
    """Persist audit entries in their own session so a logging failure never fails the action"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def write(self, events: Iterable[AuditEvent]):
        rows = [
            AuditLog(
                actor_id=event.actor_id,
                action=event.action,
                target_type=event.target_type,
                target_id=event.target_id,
                details=_jsonable(event.details),
            )
            for event in events
        ]
        if not rows:
            return
        try:
            async with self.session_factory() as session:
                session.add_all(rows)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write {len(rows)} audit entries: {e}")


def _jsonable(details: dict) -> dict:
    return {key: (value if isinstance(value, (int, float, bool, type(None))) else str(value))
            for key, value in details.items()}
