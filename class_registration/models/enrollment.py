# class_registration/models/enrollment.py
from sqlalchemy import Column, Integer, Enum, ForeignKey, CheckConstraint, Index, Uuid, text
from sqlalchemy.orm import relationship
from .base import Base
import enum


class EnrollmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


# Statuses that hold one of the class's seats
SEAT_HOLDING_STATUSES = (EnrollmentStatus.PENDING, EnrollmentStatus.CONFIRMED)


class Enrollment(Base):
    __tablename__ = "enrollments"

    # Foreign Keys
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("class_sections.id"), nullable=False, index=True)

    # Enrollment Details
    status = Column(
        Enum(EnrollmentStatus, name="enrollment_status", values_callable=lambda e: [m.value for m in e]),
        default=EnrollmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    waitlist_position = Column(Integer)

    __table_args__ = (
        CheckConstraint(
            "(status = 'waitlisted' AND waitlist_position IS NOT NULL AND waitlist_position >= 1)"
            " OR (status != 'waitlisted' AND waitlist_position IS NULL)",
            name="ck_enrollment_waitlist_position",
        ),
        # At most one non-cancelled enrollment per student and class
        Index(
            "uq_enrollment_active_student_class",
            "student_id",
            "class_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index("ix_enrollments_class_status", "class_id", "status"),
    )

    # Relationships
    student = relationship("Student", back_populates="enrollments")
    class_section = relationship("ClassSection", back_populates="enrollments")

    def __repr__(self):
        return f"<Enrollment {self.id} {self.status.value} pos={self.waitlist_position}>"
