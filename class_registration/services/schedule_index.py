# class_registration/services/schedule_index.py
"""Recurring slot occupancy per teacher and per room.

A slot is a set of weekdays, one discrete time block and a date range.
Two slots collide when their date ranges overlap, they share a weekday and
they use the identical block. Blocks are opaque labels, so there is no
partial-overlap arithmetic.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple
from uuid import UUID

from ..core.exceptions import InvalidSchedule

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_DAY_ALIASES = {
    "mo": "Monday", "mon": "Monday",
    "tu": "Tuesday", "tue": "Tuesday", "tues": "Tuesday",
    "we": "Wednesday", "wed": "Wednesday",
    "th": "Thursday", "thu": "Thursday", "thur": "Thursday", "thurs": "Thursday",
    "fr": "Friday", "fri": "Friday",
    "sa": "Saturday", "sat": "Saturday",
    "su": "Sunday", "sun": "Sunday",
}
_DAY_ALIASES.update({day.lower(): day for day in WEEKDAYS})


def normalize_days(value) -> FrozenSet[str]:
    """Accept "Tuesday/Thursday", "Tu/Th", ["tue", "Thursday"] and return canonical weekday names"""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        tokens = value.replace(",", "/").split("/")
    else:
        tokens = list(value)

    days = set()
    for token in tokens:
        key = str(token).strip().lower()
        if not key:
            continue
        if key not in _DAY_ALIASES:
            raise InvalidSchedule(f"Unknown weekday: {token}")
        days.add(_DAY_ALIASES[key])
    return frozenset(days)


def day_label(days: Iterable[str]) -> str:
    return "/".join(sorted(days, key=WEEKDAYS.index))


def date_ranges_overlap(
    start_a: Optional[date], end_a: Optional[date],
    start_b: Optional[date], end_b: Optional[date],
) -> bool:
    # A missing bound is open-ended
    if start_a is not None and end_b is not None and start_a > end_b:
        return False
    if end_a is not None and start_b is not None and end_a < start_b:
        return False
    return True


@dataclass(frozen=True)
class ScheduleSlot:
    days: FrozenSet[str]
    block: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self):
        if not self.days:
            raise InvalidSchedule("A schedule needs at least one day")
        if not self.block:
            raise InvalidSchedule("A schedule needs a time block")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidSchedule("Start date must be on or before end date")

    @classmethod
    def build(cls, days, block: str, start_date: date = None, end_date: date = None) -> "ScheduleSlot":
        return cls(normalize_days(days), block.strip() if block else block, start_date, end_date)

    @classmethod
    def from_class(cls, section) -> Optional["ScheduleSlot"]:
        """Slot of a stored class, or None when it has not been placed on the calendar"""
        if not section.days or not section.block:
            return None
        return cls.build(section.days, section.block, section.start_date, section.end_date)

    @property
    def day_label(self) -> str:
        return day_label(self.days)

    def collides_with(self, other: "ScheduleSlot") -> bool:
        # Cheapest filter first
        if not date_ranges_overlap(self.start_date, self.end_date, other.start_date, other.end_date):
            return False
        if not self.days & other.days:
            return False
        return self.block == other.block


def room_key(location: Optional[str]) -> Optional[str]:
    if location is None:
        return None
    key = location.strip().casefold()
    return key or None


@dataclass(frozen=True)
class ScheduledClass:
    """Index entry for one class occupying a teacher and possibly a room"""
    class_id: UUID
    name: str
    teacher_id: Optional[UUID]
    location: Optional[str]
    slot: ScheduleSlot

    @classmethod
    def from_class(cls, section) -> Optional["ScheduledClass"]:
        slot = ScheduleSlot.from_class(section)
        if slot is None:
            return None
        return cls(section.id, section.name, section.teacher_id, section.location, slot)


@dataclass(frozen=True)
class ConflictHit:
    kind: str  # "teacher" or "room"
    existing: ScheduledClass


@dataclass(frozen=True)
class ConflictPair:
    kind: str
    first: ScheduledClass
    second: ScheduledClass

    @property
    def severity(self) -> str:
        return "high" if self.kind == "teacher" else "medium"

    @property
    def message(self) -> str:
        if self.kind == "teacher":
            return f"Teacher Conflict: {self.first.name} overlaps with {self.second.name}"
        return f"Room Conflict: {self.first.name} and {self.second.name} in {self.first.location}"


BucketKey = Tuple[object, str, str]


class ScheduleIndex:
    """Entries bucketed by (teacher or room, day, block); only bucket-mates are compared."""

    def __init__(self, entries: Iterable[ScheduledClass] = ()):
        self._by_teacher: Dict[BucketKey, List[ScheduledClass]] = defaultdict(list)
        self._by_room: Dict[BucketKey, List[ScheduledClass]] = defaultdict(list)
        self._size = 0
        for entry in entries:
            self.add(entry)

    def __len__(self):
        return self._size

    @classmethod
    def from_classes(cls, sections: Iterable) -> "ScheduleIndex":
        entries = (ScheduledClass.from_class(section) for section in sections)
        return cls(entry for entry in entries if entry is not None)

    def add(self, entry: ScheduledClass):
        for day in entry.slot.days:
            if entry.teacher_id is not None:
                self._by_teacher[(entry.teacher_id, day, entry.slot.block)].append(entry)
            room = room_key(entry.location)
            if room is not None:
                self._by_room[(room, day, entry.slot.block)].append(entry)
        self._size += 1

    def _candidates(self, buckets, owner, slot: ScheduleSlot) -> Iterator[ScheduledClass]:
        seen = set()
        for day in sorted(slot.days, key=WEEKDAYS.index):
            for entry in buckets.get((owner, day, slot.block), ()):
                if entry.class_id not in seen:
                    seen.add(entry.class_id)
                    yield entry

    def find_conflict(
        self,
        teacher_id: Optional[UUID],
        location: Optional[str],
        slot: ScheduleSlot,
        exclude_class_id: Optional[UUID] = None,
    ) -> Optional[ConflictHit]:
        """First class colliding with the candidate slot; teacher collisions are reported before room ones"""
        if teacher_id is not None:
            for entry in self._candidates(self._by_teacher, teacher_id, slot):
                if entry.class_id != exclude_class_id and entry.slot.collides_with(slot):
                    return ConflictHit("teacher", entry)

        room = room_key(location)
        if room is not None:
            for entry in self._candidates(self._by_room, room, slot):
                if entry.class_id != exclude_class_id and entry.slot.collides_with(slot):
                    return ConflictHit("room", entry)
        return None

    def conflicting_pairs(self) -> List[ConflictPair]:
        pairs: List[ConflictPair] = []
        seen: Set[Tuple[str, FrozenSet[UUID]]] = set()
        for kind, buckets in (("teacher", self._by_teacher), ("room", self._by_room)):
            for bucket in buckets.values():
                for i, first in enumerate(bucket):
                    for second in bucket[i + 1:]:
                        key = (kind, frozenset((first.class_id, second.class_id)))
                        if key in seen or first.class_id == second.class_id:
                            continue
                        if first.slot.collides_with(second.slot):
                            seen.add(key)
                            pairs.append(ConflictPair(kind, first, second))
        return pairs

    def conflicting_class_ids(self) -> Set[UUID]:
        ids: Set[UUID] = set()
        for pair in self.conflicting_pairs():
            ids.add(pair.first.class_id)
            ids.add(pair.second.class_id)
        return ids
