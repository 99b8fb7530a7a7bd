"""
Resolution des conflits entre candidats : selection gloutonne stable.

Ordre de priorite : meme jour avant jour adjacent, puis ecart de duree le plus
faible, puis id de seance et id d'activite (ordre lexicographique) pour que le
resultat soit reproductible a egalite parfaite.
"""
import logging
from typing import Iterable, List

from trainlog.domain.entities.reconciliation import MatchCandidate

logger = logging.getLogger(__name__)


def resolve_matches(candidates: Iterable[MatchCandidate]) -> List[MatchCandidate]:
    """Retourne un appariement un-pour-un, dans l'ordre d'acceptation."""
    used_sessions: set = set()
    used_activities: set = set()
    accepted: List[MatchCandidate] = []

    for candidate in sorted(candidates, key=lambda c: c.sort_key):
        if candidate.session_id in used_sessions or candidate.activity_id in used_activities:
            continue
        used_sessions.add(candidate.session_id)
        used_activities.add(candidate.activity_id)
        accepted.append(candidate)

    logger.debug(f"{len(accepted)} rapprochements retenus")
    return accepted
