import uuid
from datetime import date

from class_registration.core.actor import Actor, Role
from class_registration.core.exceptions import (
    InvalidClassSpec, InvalidStateTransition, NotAuthorized, NotFound, ScheduleConflict,
)
from class_registration.models import ClassSection, ClassStatus
from class_registration.schemas.registration_schemas import ClassSectionSpec


def spec(name, teacher_id, days, block, start=None, end=None, location=None, capacity=10):
    return ClassSectionSpec(
        name=name,
        teacher_id=teacher_id,
        location=location,
        capacity=capacity,
        schedule={"days": days, "block": block, "start_date": start, "end_date": end},
    )


async def test_teacher_double_booking_is_rejected_with_existing_class_name(engine, admin):
    teacher_id = uuid.uuid4()
    class_a = spec("Class A", teacher_id, ["Tuesday"], "Block 1", date(2026, 3, 1), date(2026, 5, 31))
    class_b = spec("Class B", teacher_id, ["Tuesday"], "Block 1", date(2026, 4, 1), date(2026, 4, 30))

    assert (await engine.create_or_update_class(admin, class_a)).ok
    outcome = await engine.create_or_update_class(admin, class_b)

    assert isinstance(outcome.error, ScheduleConflict)
    assert outcome.error.kind == "teacher"
    assert outcome.error.message.startswith("Teacher Conflict: Class A")


async def test_room_double_booking_is_rejected(engine, admin):
    first = spec("Ceramics", uuid.uuid4(), ["Monday"], "Block 2", location="Studio 4")
    second = spec("Sculpture", uuid.uuid4(), ["Monday", "Wednesday"], "Block 2", location=" studio 4")

    assert (await engine.create_or_update_class(admin, first)).ok
    outcome = await engine.create_or_update_class(admin, second)

    assert isinstance(outcome.error, ScheduleConflict)
    assert outcome.error.kind == "room"
    assert "uses Studio 4" in outcome.error.message


async def test_different_block_or_dates_do_not_conflict(engine, admin):
    teacher_id = uuid.uuid4()
    base = spec("Base", teacher_id, ["Tuesday"], "Block 1", date(2026, 3, 1), date(2026, 5, 31))
    other_block = spec("Other Block", teacher_id, ["Tuesday"], "Block 2", date(2026, 3, 1), date(2026, 5, 31))
    later = spec("Later", teacher_id, ["Tuesday"], "Block 1", date(2026, 6, 1), date(2026, 8, 31))

    for class_spec in (base, other_block, later):
        assert (await engine.create_or_update_class(admin, class_spec)).ok


async def test_update_does_not_conflict_with_itself(engine, admin, make_class):
    section = await make_class(name="Debate", publish=False)

    outcome = await engine.create_or_update_class(
        admin, ClassSectionSpec(name="Debate Club", capacity=12), exclude_self_id=section.id
    )

    updated = outcome.unwrap().class_section
    assert updated.name == "Debate Club"
    assert updated.capacity == 12
    assert updated.days == ["Tuesday"]


async def test_update_moving_into_booked_slot_is_rejected(engine, admin, make_class):
    teacher_id = uuid.uuid4()
    await make_class(name="Morning", teacher_id=teacher_id, block="Block 1")
    afternoon = await make_class(name="Afternoon", teacher_id=teacher_id, block="Block 4")

    outcome = await engine.create_or_update_class(
        admin,
        ClassSectionSpec(schedule={"days": ["Tuesday"], "block": "Block 1"}),
        exclude_self_id=afternoon.id,
    )

    assert isinstance(outcome.error, ScheduleConflict)
    assert outcome.error.class_name == "Morning"


async def test_cancelled_class_frees_its_slot(engine, admin, make_class):
    teacher_id = uuid.uuid4()
    original = await make_class(name="Original", teacher_id=teacher_id)
    assert (await engine.cancel_class(admin, original.id)).ok

    replacement = await make_class(name="Replacement", teacher_id=teacher_id)

    assert replacement.status == ClassStatus.PUBLISHED


async def test_teacher_can_only_create_own_classes(engine):
    teacher = Actor(uuid.uuid4(), Role.TEACHER)

    own = await engine.create_or_update_class(teacher, ClassSectionSpec(name="Mine", capacity=5))
    other = await engine.create_or_update_class(
        teacher, ClassSectionSpec(name="Theirs", capacity=5, teacher_id=uuid.uuid4())
    )
    parent = await engine.create_or_update_class(
        Actor(uuid.uuid4(), Role.PARENT), ClassSectionSpec(name="Nope", capacity=5)
    )

    assert own.unwrap().class_section.teacher_id == teacher.id
    assert isinstance(other.error, NotAuthorized)
    assert isinstance(parent.error, NotAuthorized)


async def test_create_requires_name_and_capacity(engine, admin):
    outcome = await engine.create_or_update_class(admin, ClassSectionSpec(name="No capacity"))

    assert isinstance(outcome.error, InvalidClassSpec)
    assert outcome.error.details == {"field": "capacity"}


async def test_status_cannot_change_through_update(engine, admin, make_class):
    section = await make_class(publish=False)

    outcome = await engine.create_or_update_class(
        admin, ClassSectionSpec(status=ClassStatus.PUBLISHED), exclude_self_id=section.id
    )

    assert isinstance(outcome.error, InvalidClassSpec)


async def test_capacity_cannot_drop_below_seats_taken(engine, admin, make_class, make_student):
    section = await make_class(capacity=2)
    for name in ("Ann", "Ben"):
        student = await make_student(first_name=name)
        assert (await engine.enroll(admin, student.id, section.id)).ok

    outcome = await engine.create_or_update_class(
        admin, ClassSectionSpec(capacity=1), exclude_self_id=section.id
    )

    assert isinstance(outcome.error, InvalidClassSpec)


async def test_capacity_increase_promotes_waitlist(engine, admin, make_class, make_student):
    section = await make_class(capacity=1)
    seated = await make_student(first_name="Seated")
    first = await make_student(first_name="First")
    second = await make_student(first_name="Second")
    await engine.enroll(admin, seated.id, section.id)
    await engine.join_waitlist(admin, first.id, section.id)
    await engine.join_waitlist(admin, second.id, section.id)

    result = (await engine.create_or_update_class(
        admin, ClassSectionSpec(capacity=2), exclude_self_id=section.id
    )).unwrap()

    assert [e.student_id for e in result.promoted] == [first.id]
    assert result.class_section.seats_taken == 2
    assert await engine.waitlist_position(section.id, second.id) == 1
    assert (await engine.verify_class_invariants(section.id)).ok


async def test_publish_twice_is_invalid_transition(engine, admin, make_class):
    section = await make_class(publish=True)

    outcome = await engine.publish_class(admin, section.id)

    assert isinstance(outcome.error, InvalidStateTransition)
    assert outcome.error.details["entity"] == "class"


async def test_cancel_class_cancels_all_enrollments(engine, admin, make_class, make_student):
    section = await make_class(capacity=1)
    seated = await make_student(first_name="Seated")
    waiting = await make_student(first_name="Waiting")
    await engine.enroll(admin, seated.id, section.id)
    await engine.join_waitlist(admin, waiting.id, section.id)

    affected = (await engine.cancel_class(admin, section.id)).unwrap()

    assert affected == 2
    assert await engine.active_enrollment(seated.id, section.id) is None
    assert await engine.active_enrollment(waiting.id, section.id) is None
    report = await engine.verify_class_invariants(section.id)
    assert report.seats_taken == 0
    assert report.ok


async def test_only_drafts_can_be_deleted(engine, admin, make_class):
    draft = await make_class(name="Draft", publish=False)
    published = await make_class(name="Published", publish=True)

    assert (await engine.delete_draft_class(admin, draft.id)).ok
    assert isinstance((await engine.delete_draft_class(admin, published.id)).error, InvalidClassSpec)
    assert isinstance((await engine.publish_class(admin, draft.id)).error, NotFound)


async def test_class_teacher_can_complete_own_class(engine, make_class):
    owner = Actor(uuid.uuid4(), Role.TEACHER)
    section = await make_class(teacher_id=owner.id)

    intruder = await engine.complete_class(Actor(uuid.uuid4(), Role.TEACHER), section.id)
    completed = await engine.complete_class(owner, section.id)

    assert isinstance(intruder.error, NotAuthorized)
    assert completed.unwrap().status == ClassStatus.COMPLETED


async def test_live_catalog_conflict_detection(engine, admin, make_class):
    # Conflicts that predate the write-time check still show up in the calendar view
    teacher_id = uuid.uuid4()
    first = await make_class(name="First", teacher_id=teacher_id, block="Block 5")
    second = await make_class(name="Second", teacher_id=teacher_id, block="Block 6")
    async with engine.session_factory() as session:
        stored = await session.get(ClassSection, second.id)
        stored.block = "Block 5"
        await session.commit()

    assert await engine.detect_all_conflicts() == {first.id, second.id}
    alerts = await engine.conflict_alerts()
    assert alerts[0]["kind"] == "teacher"


async def test_non_ascii_room_double_booking_is_rejected(engine, admin):
    first = spec("Français", uuid.uuid4(), ["Tuesday"], "Block 1", location="Salle É")
    same_room = spec("Histoire", uuid.uuid4(), ["Tuesday"], "Block 1", location="Salle É")
    other_case = spec("Géographie", uuid.uuid4(), ["Tuesday"], "Block 1", location="SALLE é ")

    assert (await engine.create_or_update_class(admin, first)).ok
    identical = await engine.create_or_update_class(admin, same_room)
    folded = await engine.create_or_update_class(admin, other_case)

    assert isinstance(identical.error, ScheduleConflict)
    assert identical.error.kind == "room"
    assert identical.error.class_name == "Français"
    assert isinstance(folded.error, ScheduleConflict)
    assert folded.error.kind == "room"
