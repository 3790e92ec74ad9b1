# class_registration/models/class_block.py
from sqlalchemy import Column, Text, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from .base import Base


class ClassBlock(Base):
    __tablename__ = "class_blocks"

    class_id = Column(Uuid(as_uuid=True), ForeignKey("class_sections.id"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    reason = Column(Text)
    created_by = Column(Uuid(as_uuid=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name="uq_class_block_pair"),
    )

    class_section = relationship("ClassSection", back_populates="blocks")
