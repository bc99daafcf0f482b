from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Course(Base):
    __tablename__ = "courses_master"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    course_code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    course_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    professor: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    credit: Mapped[float] = mapped_column(Numeric(4, 1), nullable=False, default=0)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    course_type: Mapped[str] = mapped_column(String(20), nullable=False, default="")  # MAJOR | LIBERAL | ''
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="")  # 전필, 전선, 교필, 교선 ...
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default="BASIC")  # BASIC | ADVANCED
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    area: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    semester: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("course_type in ('MAJOR', 'LIBERAL', '')", name="ck_courses_master_course_type"),
        CheckConstraint("stage in ('BASIC', 'ADVANCED')", name="ck_courses_master_stage"),
        Index("ix_courses_master_is_required", "is_required"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_audit_logs_action", "action"),)
