# class_registration/models/__init__.py
"""Import all models here, if needed for Alembic migration."""
from .base import Base

from .class_section import ClassSection, ClassStatus, SCHEDULED_STATUSES
from .student import Student
from .enrollment import Enrollment, EnrollmentStatus, SEAT_HOLDING_STATUSES
from .class_block import ClassBlock
from .audit_log import AuditLog

# This ensures all models are loaded when importing models
