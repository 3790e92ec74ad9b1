"""create class registration tables

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-18 09:12:40.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


class_status = sa.Enum('draft', 'published', 'cancelled', 'completed', name='class_status')
enrollment_status = sa.Enum('pending', 'confirmed', 'waitlisted', 'cancelled', name='enrollment_status')


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _base_indexes(table: str):
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])


def upgrade() -> None:
    op.create_table(
        'students',
        *_base_columns(),
        sa.Column('guardian_id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('students')
    op.create_index('ix_students_guardian_id', 'students', ['guardian_id'])

    op.create_table(
        'class_sections',
        *_base_columns(),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('location', sa.String(length=100), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('seats_taken', sa.Integer(), nullable=False),
        sa.Column('status', class_status, nullable=False),
        sa.Column('days', sa.JSON(), nullable=True),
        sa.Column('block', sa.String(length=50), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.CheckConstraint('capacity >= 1', name='ck_class_capacity_positive'),
        sa.CheckConstraint('seats_taken >= 0', name='ck_class_seats_non_negative'),
        sa.CheckConstraint('seats_taken <= capacity', name='ck_class_seats_lte_capacity'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('class_sections')
    op.create_index('ix_class_sections_teacher_id', 'class_sections', ['teacher_id'])
    op.create_index('ix_class_sections_location', 'class_sections', ['location'])
    op.create_index('ix_class_sections_status', 'class_sections', ['status'])
    op.create_index('ix_class_sections_teacher_block', 'class_sections', ['teacher_id', 'block'])

    op.create_table(
        'enrollments',
        *_base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('status', enrollment_status, nullable=False),
        sa.Column('waitlist_position', sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "(status = 'waitlisted' AND waitlist_position IS NOT NULL AND waitlist_position >= 1)"
            " OR (status != 'waitlisted' AND waitlist_position IS NULL)",
            name='ck_enrollment_waitlist_position',
        ),
        sa.ForeignKeyConstraint(['class_id'], ['class_sections.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('enrollments')
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_class_id', 'enrollments', ['class_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])
    op.create_index('ix_enrollments_class_status', 'enrollments', ['class_id', 'status'])
    op.create_index(
        'uq_enrollment_active_student_class',
        'enrollments',
        ['student_id', 'class_id'],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
        sqlite_where=sa.text("status != 'cancelled'"),
    )

    op.create_table(
        'class_blocks',
        *_base_columns(),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(['class_id'], ['class_sections.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('class_id', 'student_id', name='uq_class_block_pair'),
    )
    _base_indexes('class_blocks')
    op.create_index('ix_class_blocks_class_id', 'class_blocks', ['class_id'])
    op.create_index('ix_class_blocks_student_id', 'class_blocks', ['student_id'])

    op.create_table(
        'audit_logs',
        *_base_columns(),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('target_type', sa.String(length=50), nullable=False),
        sa.Column('target_id', sa.Uuid(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('audit_logs')
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target_id', 'audit_logs', ['target_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('class_blocks')
    op.drop_table('enrollments')
    op.drop_table('class_sections')
    op.drop_table('students')
    class_status.drop(op.get_bind(), checkfirst=True)
    enrollment_status.drop(op.get_bind(), checkfirst=True)
