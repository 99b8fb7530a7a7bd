"""
Entité PlannedSession - Domain Layer
Représente une séance planifiée (prévision) à rapprocher d'une ActivityRecord réelle
"""
from sqlmodel import SQLModel, Field
from sqlalchemy import CheckConstraint, Column, DateTime
from typing import Optional
from datetime import datetime, date
from enum import Enum


class SessionType(str, Enum):
    """Types de séances du plan"""
    RIDE = "Ride"
    LONG_RIDE = "Long Ride"
    STRENGTH = "Strength"
    REST = "Rest"


# Seules ces séances peuvent être complétées par une sortie Strava
RIDE_SESSION_TYPES = frozenset({SessionType.RIDE.value, SessionType.LONG_RIDE.value})


class CompletionSource(str, Enum):
    """Origine de la complétion d'une séance"""
    MANUAL = "manual"
    EXTERNAL_SYNC = "external-sync"


class PlannedSessionBase(SQLModel):
    """Modèle de base pour PlannedSession"""
    week: int
    day: str
    session_type: str
    description: str = ""
    minutes: int  # durée planifiée
    scheduled_date: Optional[date] = None  # absente pour les anciens plans


class PlannedSession(PlannedSessionBase, table=True):
    """Entité PlannedSession complète pour la base de données"""
    __tablename__ = "planned_session"
    __table_args__ = (
        CheckConstraint(
            "completion_source IS NULL OR completion_source IN ('manual', 'external-sync')",
            name="ck_planned_session_completion_source",
        ),
    )

    user_id: str = Field(primary_key=True, index=True)
    id: str = Field(primary_key=True, max_length=64)

    # Statut et réalisation
    completed: bool = Field(default=False)
    completion_source: Optional[str] = None
    completed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    completed_activity_id: Optional[str] = Field(default=None, max_length=64, index=True)
    completion_match_score: Optional[float] = None

