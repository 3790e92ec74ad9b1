# class_registration/schemas/registration_schemas.py
from typing import List, Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.class_section import ClassStatus
from ..models.enrollment import EnrollmentStatus


class ScheduleSlotIn(BaseModel):
    days: List[str] = Field(..., min_length=1)
    block: str = Field(..., min_length=1, max_length=50)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("days", mode="before")
    @classmethod
    def split_day_pattern(cls, value):
        # "Tuesday/Thursday" and "Tuesday, Thursday" are accepted as well as a list
        if isinstance(value, str):
            parts = value.replace(",", "/").split("/")
            return [part.strip() for part in parts if part.strip()]
        return value

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class ClassSectionSpec(BaseModel):
    """Fields for creating a class, or the changed fields when updating one"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    teacher_id: Optional[UUID] = None
    location: Optional[str] = Field(default=None, max_length=100)
    capacity: Optional[int] = Field(default=None, ge=1)
    status: Optional[ClassStatus] = None
    schedule: Optional[ScheduleSlotIn] = None


class ClassSectionRead(BaseModel):
    id: UUID
    name: str
    teacher_id: UUID
    location: Optional[str] = None
    capacity: int
    seats_taken: int
    seats_available: int
    status: ClassStatus
    days: Optional[List[str]] = None
    block: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EnrollmentRequest(BaseModel):
    student_id: UUID
    class_id: UUID


class EnrollmentRead(BaseModel):
    id: UUID
    student_id: UUID
    class_id: UUID
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class WaitlistJoinResponse(BaseModel):
    enrollment_id: UUID
    position: int


class CancellationRead(BaseModel):
    enrollment: EnrollmentRead
    previous_status: EnrollmentStatus
    promoted: List[EnrollmentRead] = []

    class Config:
        from_attributes = True


class BlockCreate(BaseModel):
    student_id: UUID
    reason: Optional[str] = Field(default=None, max_length=2000)


class BlockRead(BaseModel):
    id: UUID
    class_id: UUID
    student_id: UUID
    reason: Optional[str] = None
    created_by: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentEvent(BaseModel):
    type: str = Field(..., pattern="^(payment_confirmed|payment_refunded)$")
    enrollment_id: UUID


class ConflictAlert(BaseModel):
    id: str
    kind: str
    severity: str
    class_ids: List[UUID]
    message: str


class ConflictReport(BaseModel):
    class_ids: List[UUID]
    alerts: List[ConflictAlert]


class InvariantReport(BaseModel):
    class_id: UUID
    capacity: int
    seats_taken: int
    active_enrollments: int
    waitlist_positions: List[int]

    @property
    def seats_consistent(self) -> bool:
        return self.seats_taken == self.active_enrollments and self.seats_taken <= self.capacity

    @property
    def waitlist_contiguous(self) -> bool:
        return self.waitlist_positions == list(range(1, len(self.waitlist_positions) + 1))

    @property
    def ok(self) -> bool:
        return self.seats_consistent and self.waitlist_contiguous
