import uuid
from datetime import date

import pytest

from class_registration.core.exceptions import InvalidSchedule
from class_registration.models import ClassSection, ClassStatus
from class_registration.schemas.registration_schemas import ScheduleSlotIn
from class_registration.services.conflict_detector import detect_all_conflicts, conflict_alerts
from class_registration.services.schedule_index import (
    ScheduleIndex, ScheduleSlot, ScheduledClass, date_ranges_overlap, normalize_days, room_key,
)

TEACHER = uuid.uuid4()
OTHER_TEACHER = uuid.uuid4()


def entry(name, teacher_id=TEACHER, location=None, days="Tuesday", block="Block 1",
          start=date(2026, 3, 1), end=date(2026, 5, 31)):
    return ScheduledClass(uuid.uuid4(), name, teacher_id, location, ScheduleSlot.build(days, block, start, end))


def section(name, teacher_id=TEACHER, location=None, days=("Tuesday",), block="Block 1",
            start=date(2026, 3, 1), end=date(2026, 5, 31), status=ClassStatus.PUBLISHED):
    return ClassSection(
        id=uuid.uuid4(), name=name, teacher_id=teacher_id, location=location, capacity=10,
        seats_taken=0, status=status, days=list(days), block=block, start_date=start, end_date=end,
    )


def test_normalize_days_accepts_patterns_and_aliases():
    assert normalize_days("Tuesday/Thursday") == {"Tuesday", "Thursday"}
    assert normalize_days(["tue", "THU"]) == {"Tuesday", "Thursday"}
    assert normalize_days("Mo, We") == {"Monday", "Wednesday"}


def test_normalize_days_rejects_unknown_day():
    with pytest.raises(InvalidSchedule):
        normalize_days("Tuesday/Funday")


def test_slot_requires_day_and_ordered_dates():
    with pytest.raises(InvalidSchedule):
        ScheduleSlot.build([], "Block 1")
    with pytest.raises(InvalidSchedule):
        ScheduleSlot.build("Monday", "Block 1", date(2026, 5, 1), date(2026, 4, 1))


def test_date_ranges_treat_missing_bounds_as_open():
    assert date_ranges_overlap(None, None, date(2026, 1, 1), date(2026, 1, 2))
    assert date_ranges_overlap(date(2026, 1, 1), None, None, date(2026, 1, 1))
    assert not date_ranges_overlap(date(2026, 2, 1), None, None, date(2026, 1, 31))
    assert not date_ranges_overlap(date(2026, 1, 1), date(2026, 1, 31), date(2026, 2, 1), date(2026, 2, 28))


def test_slots_collide_only_on_shared_day_same_block_overlapping_dates():
    base = ScheduleSlot.build("Tuesday/Thursday", "Block 1", date(2026, 3, 1), date(2026, 5, 31))

    assert base.collides_with(ScheduleSlot.build("Thursday", "Block 1", date(2026, 4, 1), date(2026, 4, 30)))
    assert not base.collides_with(ScheduleSlot.build("Thursday", "Block 2", date(2026, 4, 1), date(2026, 4, 30)))
    assert not base.collides_with(ScheduleSlot.build("Friday", "Block 1", date(2026, 4, 1), date(2026, 4, 30)))
    assert not base.collides_with(ScheduleSlot.build("Tuesday", "Block 1", date(2026, 6, 1), date(2026, 6, 30)))


def test_teacher_conflict_names_existing_class():
    class_a = entry("Class A")
    index = ScheduleIndex([class_a])

    candidate = ScheduleSlot.build("Tuesday", "Block 1", date(2026, 4, 1), date(2026, 4, 30))
    hit = index.find_conflict(TEACHER, None, candidate)

    assert hit is not None
    assert hit.kind == "teacher"
    assert hit.existing.name == "Class A"


def test_teacher_conflict_reported_before_room_conflict():
    room_holder = entry("Room Holder", teacher_id=OTHER_TEACHER, location="Room 101")
    teacher_holder = entry("Teacher Holder", location="Lab")
    index = ScheduleIndex([room_holder, teacher_holder])

    hit = index.find_conflict(TEACHER, "Room 101", ScheduleSlot.build("Tuesday", "Block 1"))

    assert hit.kind == "teacher"
    assert hit.existing.name == "Teacher Holder"


def test_room_matching_ignores_case_and_whitespace():
    index = ScheduleIndex([entry("Art", teacher_id=OTHER_TEACHER, location="Room 101")])

    hit = index.find_conflict(uuid.uuid4(), "  room 101 ", ScheduleSlot.build("Tuesday", "Block 1"))

    assert hit.kind == "room"
    assert room_key("  ") is None


def test_excluded_class_does_not_conflict_with_itself():
    class_a = entry("Class A")
    index = ScheduleIndex([class_a])

    assert index.find_conflict(TEACHER, None, class_a.slot, exclude_class_id=class_a.class_id) is None


def test_conflicting_pairs_are_reported_once():
    first = entry("Chess", days="Tuesday/Thursday")
    second = entry("Piano", days="Tuesday/Thursday")
    index = ScheduleIndex([first, second, entry("Drama", block="Block 3")])

    pairs = index.conflicting_pairs()

    assert len(pairs) == 1
    assert pairs[0].severity == "high"
    assert index.conflicting_class_ids() == {first.class_id, second.class_id}


def test_detect_all_conflicts_ignores_cancelled_and_unscheduled_classes():
    live = section("Live")
    cancelled = section("Cancelled", status=ClassStatus.CANCELLED)
    unscheduled = section("Unscheduled", days=(), block=None)
    clash = section("Clash", days=("Tuesday", "Friday"))

    assert detect_all_conflicts([live, cancelled, unscheduled, clash]) == {live.id, clash.id}


def test_conflict_alerts_describe_room_conflicts():
    first = section("Pottery", teacher_id=uuid.uuid4(), location="Studio")
    second = section("Painting", teacher_id=uuid.uuid4(), location="studio")

    alerts = conflict_alerts([first, second])

    assert len(alerts) == 1
    assert alerts[0]["kind"] == "room"
    assert alerts[0]["severity"] == "medium"
    assert alerts[0]["message"].startswith("Room Conflict: Pottery and Painting")


def test_schedule_input_accepts_comma_separated_days():
    slot_in = ScheduleSlotIn(days="Tuesday, Thursday", block="Block 1")

    assert slot_in.days == ["Tuesday", "Thursday"]
    assert ScheduleSlot.build(slot_in.days, slot_in.block).days == {"Tuesday", "Thursday"}
