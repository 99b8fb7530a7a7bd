"""
Initialisation des entités du domaine
"""

from .activity import ActivityRecord, RideType
from .planned_session import PlannedSession, SessionType, CompletionSource, RIDE_SESSION_TYPES
from .reconciliation_link import ReconciliationLink, ReconciliationLinkRead, ConfidenceTier
from .reconciliation import MatchCandidate, AcceptedMatch, ReconciliationSummary, ReconciliationRequest

__all__ = [
    "ActivityRecord", "RideType",
    "PlannedSession", "SessionType", "CompletionSource", "RIDE_SESSION_TYPES",
    "ReconciliationLink", "ReconciliationLinkRead", "ConfidenceTier",
    "MatchCandidate", "AcceptedMatch", "ReconciliationSummary", "ReconciliationRequest",
]
