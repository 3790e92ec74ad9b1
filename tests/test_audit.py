import uuid

from sqlalchemy import select

from class_registration.core.actor import Actor
from class_registration.core.transactions import AuditEvent
from class_registration.models import AuditLog
from class_registration.services.audit_service import DatabaseAuditSink


async def test_database_sink_persists_events(session_factory):
    target = uuid.uuid4()
    sink = DatabaseAuditSink(session_factory)

    await sink.write([
        AuditEvent(Actor.system().id, "enrollment.cancelled", "enrollment", target,
                   {"reason": "refunded", "class_id": uuid.uuid4(), "position": None}),
    ])

    async with session_factory() as session:
        rows = (await session.execute(select(AuditLog))).scalars().all()

    assert len(rows) == 1
    assert rows[0].target_id == target
    assert rows[0].details["reason"] == "refunded"
    assert isinstance(rows[0].details["class_id"], str)


async def test_database_sink_failure_does_not_raise():
    sink = DatabaseAuditSink(BrokenSession)

    await sink.write([AuditEvent(None, "class.created", "class", uuid.uuid4())])


class BrokenSession:
    async def __aenter__(self):
        raise ConnectionError("database unreachable")

    async def __aexit__(self, *exc):
        return False
