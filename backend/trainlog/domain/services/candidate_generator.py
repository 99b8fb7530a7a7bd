"""
Generation des couples candidats (seance planifiee, activite Strava).

Fonctions pures sur un instantane : aucune lecture ni ecriture en base.
"""
import logging
from datetime import date, datetime, timezone
from typing import AbstractSet, Iterable, List, Optional

from trainlog.domain.entities.activity import ActivityRecord
from trainlog.domain.entities.planned_session import PlannedSession, RIDE_SESSION_TYPES
from trainlog.domain.entities.reconciliation import MatchCandidate
from trainlog.domain.services.matching_policy import MatchingPolicy, match_score

logger = logging.getLogger(__name__)


def activity_calendar_date(start: datetime) -> date:
    """Date calendaire de l'activite, tronquee a minuit UTC (pas de fuseau utilisateur)."""
    if start.tzinfo is None:
        return start.date()
    return start.astimezone(timezone.utc).date()


def day_delta(activity_start: datetime, scheduled: date) -> int:
    """Ecart signe en jours calendaires : date activite - date planifiee."""
    return (activity_calendar_date(activity_start) - scheduled).days


def duration_delta_pct(activity_seconds: float, planned_minutes: float) -> float:
    planned_seconds = planned_minutes * 60
    return abs(activity_seconds - planned_seconds) / planned_seconds


def is_session_eligible(
    session: PlannedSession,
    linked_session_ids: AbstractSet[str] = frozenset(),
) -> bool:
    """Seance non completee, non liee, datee, de type velo, duree > 0."""
    try:
        return (
            not session.completed
            and session.completed_activity_id is None
            and session.id not in linked_session_ids
            and session.scheduled_date is not None
            and session.session_type in RIDE_SESSION_TYPES
            and session.minutes is not None
            and session.minutes > 0
        )
    except (AttributeError, TypeError) as e:
        logger.debug(f"Seance ignoree (donnees invalides): {e}")
        return False


def is_activity_eligible(
    activity: ActivityRecord,
    spent_activity_ids: AbstractSet[str] = frozenset(),
) -> bool:
    """Sortie velo, non consommee par le registre, avec une duree exploitable."""
    if activity.activity_id in spent_activity_ids:
        return False
    if not activity.is_ride:
        return False
    duration = activity.duration_seconds
    return duration is not None and duration > 0


def eligible_sessions(
    sessions: Iterable[PlannedSession],
    linked_session_ids: AbstractSet[str] = frozenset(),
) -> List[PlannedSession]:
    return [s for s in sessions if is_session_eligible(s, linked_session_ids)]


def eligible_activities(
    activities: Iterable[ActivityRecord],
    spent_activity_ids: AbstractSet[str] = frozenset(),
) -> List[ActivityRecord]:
    """Filtre les activites ; en cas de doublon d'id dans le lot, la premiere eligible est gardee."""
    seen: set = set()
    result = []
    for activity in activities:
        if activity.activity_id in seen:
            continue
        if is_activity_eligible(activity, spent_activity_ids):
            seen.add(activity.activity_id)
            result.append(activity)
    return result


def build_candidate(
    session: PlannedSession,
    activity: ActivityRecord,
    policy: MatchingPolicy,
) -> Optional[MatchCandidate]:
    """Construit le candidat si le couple respecte la fenetre de la politique."""
    delta_days = day_delta(activity.start_date, session.scheduled_date)
    if abs(delta_days) > policy.max_day_delta:
        return None

    delta_pct = duration_delta_pct(activity.duration_seconds, session.minutes)
    confidence = policy.classify(delta_days, delta_pct)
    if confidence is None:
        return None

    return MatchCandidate(
        session=session,
        activity=activity,
        session_id=session.id,
        activity_id=activity.activity_id,
        day_delta=delta_days,
        duration_delta_pct=delta_pct,
        confidence=confidence,
        match_score=match_score(delta_pct),
    )


def generate_candidates(
    sessions: Iterable[PlannedSession],
    activities: Iterable[ActivityRecord],
    policy: MatchingPolicy,
    linked_session_ids: AbstractSet[str] = frozenset(),
    spent_activity_ids: AbstractSet[str] = frozenset(),
) -> List[MatchCandidate]:
    """
    Propose tous les couples (seance, activite) compatibles.

    Les seances et activites deja presentes dans le registre sont exclues
    avant toute comparaison.

    Returns:
        Liste de MatchCandidate, non triee
    """
    sessions = eligible_sessions(sessions, linked_session_ids)
    activities = eligible_activities(activities, spent_activity_ids)

    candidates = []
    for session in sessions:
        for activity in activities:
            candidate = build_candidate(session, activity, policy)
            if candidate is not None:
                candidates.append(candidate)

    logger.debug(
        f"{len(candidates)} candidats ({len(sessions)} seances x {len(activities)} activites, politique {policy.name})"
    )
    return candidates
