from .base_service import BaseService
from .schedule_index import ScheduleIndex, ScheduleSlot
from .conflict_detector import ConflictDetector, detect_all_conflicts, conflict_alerts
from .capacity_ledger import CapacityLedger
from .waitlist_queue import WaitlistQueue
from .enrollment_service import EnrollmentService
from .block_service import BlockService
from .class_service import ClassSectionService
from .registration_engine import RegistrationEngine, Outcome

__all__ = [
    "BaseService",
    "ScheduleIndex",
    "ScheduleSlot",
    "ConflictDetector",
    "detect_all_conflicts",
    "conflict_alerts",
    "CapacityLedger",
    "WaitlistQueue",
    "EnrollmentService",
    "BlockService",
    "ClassSectionService",
    "RegistrationEngine",
    "Outcome",
]
