# class_registration/core/actor.py
"""Already-authorized caller context passed into every engine operation."""
from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    PARENT = "parent"
    STUDENT = "student"
    TEACHER = "teacher"
    SCHEDULER = "class_scheduler"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SYSTEM = "system"


# Payment webhooks and other internal event sources act as this id
SYSTEM_ACTOR_ID = UUID(int=0)


@dataclass(frozen=True)
class Actor:
    id: UUID
    role: Role

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=SYSTEM_ACTOR_ID, role=Role.SYSTEM)

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN, Role.SYSTEM)

    @property
    def can_schedule(self) -> bool:
        """Schedulers and admins may create or move any class"""
        return self.is_admin or self.role == Role.SCHEDULER

    def can_manage_class(self, class_section) -> bool:
        if self.can_schedule:
            return True
        return self.role == Role.TEACHER and class_section.teacher_id == self.id

    def can_act_for_student(self, student) -> bool:
        return self.is_admin or student.guardian_id == self.id
