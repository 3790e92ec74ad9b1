# class_registration/models/audit_log.py
from sqlalchemy import Column, String, JSON, Uuid
from .base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    actor_id = Column(Uuid(as_uuid=True), index=True)
    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(50), nullable=False)
    target_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    details = Column(JSON)
