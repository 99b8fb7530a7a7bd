"""
Registre des rapprochements (table reconciliation_link).

Seul point d'acces en lecture/ecriture au registre : filtre d'exclusion avant
la resolution, cible d'ecriture apres.
"""
import logging
from typing import List, Set, Tuple

from sqlmodel import Session, select

from trainlog.domain.entities.reconciliation import MatchCandidate
from trainlog.domain.entities.reconciliation_link import ReconciliationLink

logger = logging.getLogger(__name__)


def get_linked_ids(session: Session, user_id: str) -> Tuple[Set[str], Set[str]]:
    """Retourne (ids de seances liees, ids d'activites consommees) pour un utilisateur."""
    rows = session.exec(
        select(ReconciliationLink.session_id, ReconciliationLink.activity_id).where(
            ReconciliationLink.user_id == user_id
        )
    ).all()
    return {row[0] for row in rows}, {row[1] for row in rows}


def get_link_for_activity(session: Session, user_id: str, activity_id: str):
    return session.exec(
        select(ReconciliationLink).where(
            ReconciliationLink.user_id == user_id,
            ReconciliationLink.activity_id == activity_id,
        )
    ).first()


def get_link_for_session(session: Session, user_id: str, session_id: str):
    return session.exec(
        select(ReconciliationLink).where(
            ReconciliationLink.user_id == user_id,
            ReconciliationLink.session_id == session_id,
        )
    ).first()


def list_links(session: Session, user_id: str, limit: int = 100) -> List[ReconciliationLink]:
    """Lignes du registre d'un utilisateur, les plus recentes d'abord."""
    return session.exec(
        select(ReconciliationLink)
        .where(ReconciliationLink.user_id == user_id)
        .order_by(ReconciliationLink.created_at.desc(), ReconciliationLink.session_id)
        .limit(limit)
    ).all()


def add_link(session: Session, user_id: str, candidate: MatchCandidate) -> ReconciliationLink:
    """
    Ajoute la ligne du registre et la flush.

    Doit etre appele dans un SAVEPOINT : une violation d'unicite leve
    IntegrityError au flush et l'appelant annule uniquement ce couple.
    """
    link = ReconciliationLink(
        user_id=user_id,
        session_id=candidate.session_id,
        activity_id=candidate.activity_id,
        day_delta=candidate.day_delta,
        duration_delta_pct=candidate.duration_delta_pct,
        confidence=candidate.confidence.value,
    )
    session.add(link)
    session.flush()
    logger.debug(f"Lien enregistre: seance {link.session_id} <-> activite {link.activity_id}")
    return link
