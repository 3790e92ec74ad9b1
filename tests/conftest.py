import uuid
from datetime import date

import pytest

from class_registration.core.actor import Actor, Role
from class_registration.core.database import build_engine, build_session_factory, create_all
from class_registration.core.locks import LocalLockBackend
from class_registration.models import Student
from class_registration.schemas.registration_schemas import ClassSectionSpec
from class_registration.services.registration_engine import RegistrationEngine


class RecordingAuditSink:
    def __init__(self):
        self.events = []

    async def write(self, events):
        self.events.extend(events)

    def actions(self):
        return [event.action for event in self.events]


@pytest.fixture
async def db_engine(tmp_path):
    # File-backed so concurrent transactions use separate connections
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'registration.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def lock_backend():
    return LocalLockBackend()


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def engine(session_factory, lock_backend, audit_sink):
    return RegistrationEngine(
        session_factory=session_factory,
        lock_backend=lock_backend,
        audit_sink=audit_sink,
        max_retries=2,
    )


@pytest.fixture
def admin():
    return Actor(uuid.uuid4(), Role.ADMIN)


@pytest.fixture
def teacher():
    return Actor(uuid.uuid4(), Role.TEACHER)


@pytest.fixture
def guardian():
    return Actor(uuid.uuid4(), Role.PARENT)


@pytest.fixture
def make_student(session_factory, guardian):
    async def _make(first_name="Ada", last_name="Lovelace", guardian_id=None):
        async with session_factory() as session:
            student = Student(
                guardian_id=guardian_id or guardian.id,
                first_name=first_name,
                last_name=last_name,
            )
            session.add(student)
            await session.commit()
            return student
    return _make


@pytest.fixture
def make_class(engine, admin):
    async def _make(
        name="Robotics",
        capacity=2,
        publish=True,
        teacher_id=None,
        location=None,
        days=("Tuesday",),
        block="Block 1",
        start_date=date(2026, 3, 1),
        end_date=date(2026, 5, 31),
    ):
        spec = ClassSectionSpec(
            name=name,
            teacher_id=teacher_id or uuid.uuid4(),
            location=location,
            capacity=capacity,
            schedule={
                "days": list(days),
                "block": block,
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        section = (await engine.create_or_update_class(admin, spec)).unwrap().class_section
        if publish:
            section = (await engine.publish_class(admin, section.id)).unwrap()
        return section
    return _make
