"""
Entite ReconciliationLink - Domain Layer
Registre d'idempotence : une ligne par couple (seance, activite) accepte par la reconciliation
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, Column, DateTime, Index, UniqueConstraint
from typing import Optional
from datetime import datetime, timezone
from uuid import UUID, uuid4
from enum import Enum


class ConfidenceTier(str, Enum):
    """Niveau de confiance d'un rapprochement"""
    HIGH = "high"
    MEDIUM = "medium"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationLink(SQLModel, table=True):
    """Table reconciliation_link (une activite et une seance ne sont liees qu'une fois par utilisateur)"""
    __tablename__ = "reconciliation_link"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_reconciliation_link_user_session"),
        UniqueConstraint("user_id", "activity_id", name="uq_reconciliation_link_user_activity"),
        CheckConstraint("confidence IN ('high', 'medium')", name="ck_reconciliation_link_confidence"),
        Index("ix_reconciliation_link_user_created", "user_id", "created_at"),
    )

    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    session_id: str = Field(max_length=64)
    activity_id: str = Field(max_length=64)
    day_delta: int
    duration_delta_pct: float
    confidence: str
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ReconciliationLinkRead(SQLModel):
    """Schéma pour lire une ligne du registre (réponse API)"""
    session_id: str
    activity_id: str
    day_delta: int
    duration_delta_pct: float
    confidence: str
    created_at: datetime
