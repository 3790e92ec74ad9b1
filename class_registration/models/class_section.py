# class_registration/models/class_section.py
from sqlalchemy import Column, String, Integer, Date, Enum, CheckConstraint, Uuid, JSON, Index
from sqlalchemy.orm import relationship
from .base import Base
import enum


class ClassStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Classes in these states occupy their teacher and room
SCHEDULED_STATUSES = (ClassStatus.DRAFT, ClassStatus.PUBLISHED)


class ClassSection(Base):
    __tablename__ = "class_sections"

    # Ownership
    teacher_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    # Class Information
    name = Column(String(200), nullable=False)
    location = Column(String(100), index=True)
    capacity = Column(Integer, nullable=False)
    seats_taken = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(ClassStatus, name="class_status", values_callable=lambda e: [m.value for m in e]),
        default=ClassStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Schedule slot
    days = Column(JSON)          # ["Tuesday", "Thursday"]
    block = Column(String(50))   # "Block 1"
    start_date = Column(Date)
    end_date = Column(Date)

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_class_capacity_positive"),
        CheckConstraint("seats_taken >= 0", name="ck_class_seats_non_negative"),
        CheckConstraint("seats_taken <= capacity", name="ck_class_seats_lte_capacity"),
        Index("ix_class_sections_teacher_block", "teacher_id", "block"),
    )

    # Relationships
    enrollments = relationship("Enrollment", back_populates="class_section")
    blocks = relationship("ClassBlock", back_populates="class_section")

    @property
    def is_full(self) -> bool:
        return self.seats_taken >= self.capacity

    @property
    def seats_available(self) -> int:
        return max(0, self.capacity - self.seats_taken)

    def __repr__(self):
        return f"<ClassSection {self.name} {self.seats_taken}/{self.capacity} {self.status.value}>"
