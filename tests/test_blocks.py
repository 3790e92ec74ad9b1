import uuid

from class_registration.core.actor import Actor, Role
from class_registration.core.exceptions import DuplicateBlock, NotAuthorized, StudentBlocked
from class_registration.models import EnrollmentStatus


async def test_blocking_pending_student_frees_seat_for_waitlist(engine, admin, guardian, make_class, make_student):
    section = await make_class(capacity=1)
    blocked = await make_student(first_name="Blocked")
    waiting = await make_student(first_name="Waiting")
    enrollment = (await engine.enroll(guardian, blocked.id, section.id)).unwrap()
    await engine.join_waitlist(guardian, waiting.id, section.id)

    result = (await engine.block_student(admin, section.id, blocked.id, "Disruptive")).unwrap()

    assert result.block.reason == "Disruptive"
    assert result.cancellation.enrollment.id == enrollment.id
    assert result.cancellation.enrollment.status == EnrollmentStatus.CANCELLED
    assert [e.student_id for e in result.cancellation.promoted] == [waiting.id]
    assert (await engine.verify_class_invariants(section.id)).ok


async def test_blocked_student_cannot_enroll_or_waitlist(engine, admin, guardian, make_class, make_student):
    section = await make_class(capacity=1)
    blocked = await make_student(first_name="Blocked")
    await engine.block_student(admin, section.id, blocked.id)

    enroll = await engine.enroll(guardian, blocked.id, section.id)
    filler = await make_student(first_name="Filler")
    await engine.enroll(guardian, filler.id, section.id)
    waitlist = await engine.join_waitlist(guardian, blocked.id, section.id)

    assert isinstance(enroll.error, StudentBlocked)
    assert isinstance(waitlist.error, StudentBlocked)


async def test_blocking_waitlisted_student_reindexes_queue(engine, admin, make_class, make_student):
    section = await make_class(capacity=1)
    seated = await make_student(first_name="Seated")
    await engine.enroll(admin, seated.id, section.id)
    first, second = await make_student(first_name="First"), await make_student(first_name="Second")
    await engine.join_waitlist(admin, first.id, section.id)
    await engine.join_waitlist(admin, second.id, section.id)

    result = (await engine.block_student(admin, section.id, first.id)).unwrap()

    assert result.cancellation.previous_status == EnrollmentStatus.WAITLISTED
    assert await engine.waitlist_position(section.id, second.id) == 1
    assert (await engine.verify_class_invariants(section.id)).seats_taken == 1


async def test_block_without_enrollment_has_no_cancellation(engine, admin, make_class, make_student):
    section = await make_class()
    student = await make_student()

    result = (await engine.block_student(admin, section.id, student.id)).unwrap()

    assert result.cancellation is None
    assert [block.student_id for block in await engine.list_blocks(section.id)] == [student.id]


async def test_duplicate_block_is_rejected(engine, admin, make_class, make_student):
    section = await make_class()
    student = await make_student()
    await engine.block_student(admin, section.id, student.id)

    outcome = await engine.block_student(admin, section.id, student.id)

    assert isinstance(outcome.error, DuplicateBlock)


async def test_only_class_teacher_or_admin_can_block(engine, make_class, make_student):
    owner = Actor(uuid.uuid4(), Role.TEACHER)
    section = await make_class(teacher_id=owner.id)
    student = await make_student()

    other_teacher = await engine.block_student(Actor(uuid.uuid4(), Role.TEACHER), section.id, student.id)
    by_owner = await engine.block_student(owner, section.id, student.id)

    assert isinstance(other_teacher.error, NotAuthorized)
    assert by_owner.ok
    assert by_owner.value.block.created_by == owner.id


async def test_unblock_allows_enrollment_again(engine, admin, guardian, make_class, make_student):
    section = await make_class()
    student = await make_student()
    block = (await engine.block_student(admin, section.id, student.id)).unwrap().block

    assert (await engine.unblock_student(admin, block.id)).ok
    assert await engine.list_blocks(section.id) == []
    assert (await engine.enroll(guardian, student.id, section.id)).ok


async def test_blocking_leaves_audit_trail(engine, admin, make_class, make_student, audit_sink):
    section = await make_class()
    student = await make_student()
    await engine.enroll(admin, student.id, section.id)

    await engine.block_student(admin, section.id, student.id, "Unpaid")

    assert "student.blocked" in audit_sink.actions()
    cancelled = [e for e in audit_sink.events if e.action == "enrollment.cancelled"]
    assert cancelled[0].details["reason"] == "blocked"
