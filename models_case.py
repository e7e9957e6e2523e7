# models_case.py
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Text, Enum, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, JSONType

CASE_STATUSES = ("pending", "processing", "analyzed", "error")
CaseStatusEnum = Enum(*CASE_STATUSES, name="case_status")


def _new_id() -> str:
    return str(uuid.uuid4())


class CaseRecord(Base):
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # Tenant & user
    org_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # Case + file metadata
    case_title: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)

    # Analysis status
    status: Mapped[str] = mapped_column(CaseStatusEnum, nullable=False, default="pending")
    analysis_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    jurisdiction: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Result slots (one per analysis mode)
    default_recommendations: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    parameterized_recommendations: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    parameterized_analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
