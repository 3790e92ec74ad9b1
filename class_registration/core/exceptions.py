# class_registration/core/exceptions.py
"""Typed outcomes for the scheduling and enrollment engine."""
from typing import Any, Dict, Optional


class RegistrationError(Exception):
    """Base exception for expected, recoverable registration outcomes."""
    code = "registration_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "error": self.message,
            "code": self.code,
            "type": self.__class__.__name__,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class NotAuthorized(RegistrationError):
    """Caller lacks the role or ownership needed for the operation."""
    code = "not_authorized"
    status_code = 403

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFound(RegistrationError):
    """Class, student, enrollment or block missing."""
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, id: Any = None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(message, {"resource": resource, "id": str(id) if id is not None else None})


class ScheduleConflict(RegistrationError):
    """A teacher or room is already booked for the candidate slot."""
    code = "schedule_conflict"
    status_code = 409

    def __init__(self, kind: str, class_id: Any, class_name: str, day: str = None, block: str = None, location: str = None):
        self.kind = kind
        self.class_id = class_id
        self.class_name = class_name
        label = "Teacher" if kind == "teacher" else "Room"
        message = f"{label} Conflict: {class_name}"
        if kind == "room" and location:
            message += f" uses {location}"
        if day and block:
            message += f" at {day} {block}"
        super().__init__(message, {
            "kind": kind,
            "class_id": str(class_id),
            "class_name": class_name,
            "day": day,
            "block": block,
            "location": location,
        })


class InvalidClassSpec(RegistrationError):
    code = "invalid_class"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)


class InvalidSchedule(InvalidClassSpec):
    code = "invalid_schedule"

    def __init__(self, message: str):
        super().__init__(message, "schedule")


class CapacityExceeded(RegistrationError):
    """Class is full; the caller should offer the waitlist."""
    code = "capacity_exceeded"
    status_code = 409

    def __init__(self, class_id: Any, capacity: int):
        super().__init__(
            f"Class is full. Maximum capacity: {capacity}",
            {"class_id": str(class_id), "capacity": capacity, "waitlist_available": True},
        )


class NotFull(RegistrationError):
    code = "not_full"
    status_code = 409

    def __init__(self, class_id: Any):
        super().__init__(
            "Class has available spots - please enroll directly",
            {"class_id": str(class_id)},
        )


class NotPublished(RegistrationError):
    code = "not_published"
    status_code = 409

    def __init__(self, class_id: Any, status: str):
        super().__init__(
            "Class is not accepting enrollments",
            {"class_id": str(class_id), "status": status},
        )


class DuplicateEnrollment(RegistrationError):
    code = "duplicate_enrollment"
    status_code = 409

    def __init__(self, enrollment_id: Any, status: str):
        message = "Student is already enrolled in this class"
        if status == "waitlisted":
            message = "Student is already on the waitlist for this class"
        super().__init__(message, {"enrollment_id": str(enrollment_id), "status": status})


class DuplicateBlock(RegistrationError):
    code = "duplicate_block"
    status_code = 409

    def __init__(self):
        super().__init__("Student is already blocked")


class StudentBlocked(RegistrationError):
    code = "student_blocked"
    status_code = 403

    def __init__(self, class_id: Any, student_id: Any):
        super().__init__(
            "This student has been blocked from enrolling in this class",
            {"class_id": str(class_id), "student_id": str(student_id)},
        )


class InvalidStateTransition(RegistrationError):
    code = "invalid_state_transition"
    status_code = 409

    def __init__(self, current: str, target: str, entity: str = "enrollment"):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move {entity} from {current} to {target}",
            {"entity": entity, "current": current, "target": target},
        )


class ConcurrencyConflict(RegistrationError):
    """Serialization failure or lock timeout; safe to retry the whole operation."""
    code = "concurrency_conflict"
    status_code = 503

    def __init__(self, message: str = "The class is busy, please try again"):
        super().__init__(message)
