"""
Objets de la reconciliation Strava -> plan (non persistés)
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlmodel import SQLModel

from .activity import ActivityRecord
from .planned_session import PlannedSession
from .reconciliation_link import ConfidenceTier


@dataclass(frozen=True)
class MatchCandidate:
    """Couple (séance, activité) proposé pendant une passe de reconciliation"""
    session: PlannedSession = field(compare=False, repr=False)
    activity: ActivityRecord = field(compare=False, repr=False)
    session_id: str
    activity_id: str
    day_delta: int  # date activité - date planifiée, en jours
    duration_delta_pct: float  # |durée réelle - durée planifiée| / durée planifiée
    confidence: ConfidenceTier
    match_score: float

    @property
    def sort_key(self):
        return (abs(self.day_delta), self.duration_delta_pct, self.session_id, self.activity_id)


class AcceptedMatch(SQLModel):
    """Rapprochement retenu, tel que renvoyé à l'appelant"""
    session_id: str
    activity_id: str
    day_delta: int
    duration_delta_pct: float
    confidence: ConfidenceTier
    match_score: float

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> "AcceptedMatch":
        return cls(
            session_id=candidate.session_id,
            activity_id=candidate.activity_id,
            day_delta=candidate.day_delta,
            duration_delta_pct=candidate.duration_delta_pct,
            confidence=candidate.confidence,
            match_score=candidate.match_score,
        )


class ReconciliationSummary(SQLModel):
    """Résumé d'une passe de reconciliation"""
    policy: str
    accepted_count: int = 0
    candidate_count: int = 0
    unmatched_activity_count: int = 0
    skipped_conflicts: int = 0
    rejected_records: int = 0
    dry_run: bool = False
    matches: List[AcceptedMatch] = []


class ReconciliationRequest(SQLModel):
    """Corps de requête : activités brutes Strava + politique optionnelle"""
    activities: List[Any] = []
    policy: Optional[str] = None
