# class_registration/models/student.py
from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship
from .base import Base


class Student(Base):
    """A family member record that can be enrolled in classes"""
    __tablename__ = "students"

    guardian_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # Relationships
    enrollments = relationship("Enrollment", back_populates="student")
