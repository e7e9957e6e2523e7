# models_rule.py
import uuid
from typing import Optional

from sqlalchemy import String, Integer, Text, Boolean, Enum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, JSONType

DOCUMENT_TYPES = ("convention", "arbitration_rules", "expedited_arbitration")
AI_USAGES = ("classification_only", "flagging", "monitoring", "benchmarking")

DocumentTypeEnum = Enum(*DOCUMENT_TYPES, name="rule_document_type")


class InstitutionRuleRecord(Base):
    __tablename__ = "institution_rules"
    __table_args__ = (
        UniqueConstraint("org_id", "institution", "version", "ref", name="institution_rules_org_ref_uq"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    org_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    institution: Mapped[str] = mapped_column(String(64), nullable=False)   # ICSID
    version: Mapped[str] = mapped_column(String(32), nullable=False)       # 2022
    document_type: Mapped[str] = mapped_column(DocumentTypeEnum, nullable=False)

    ref: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False)

    # Legal control flags, derived once at seed time
    non_derogable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    annulment_linked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # 1 = Convention, 2 = Arbitration Rules, 3 = Expedited Arbitration
    hierarchy_level: Mapped[int] = mapped_column(Integer, nullable=False)

    parameter_tag: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    ai_usage: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    extra_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
