"""
Service de reconciliation Strava -> plan d'entrainement.

Pipeline : generation des candidats -> classification -> resolution gloutonne
-> application transactionnelle (seance completee + ligne du registre).
"""
import logging
from typing import Any, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from trainlog.core.settings import get_settings
from trainlog.domain.entities.activity import ActivityRecord
from trainlog.domain.entities.planned_session import CompletionSource, PlannedSession
from trainlog.domain.entities.reconciliation import (
    AcceptedMatch,
    MatchCandidate,
    ReconciliationSummary,
)
from trainlog.domain.services import link_ledger
from trainlog.domain.services.candidate_generator import (
    eligible_activities,
    eligible_sessions,
    generate_candidates,
)
from trainlog.domain.services.conflict_resolver import resolve_matches
from trainlog.domain.services.matching_policy import MatchingPolicy, get_policy

logger = logging.getLogger(__name__)

PolicyArg = Union[MatchingPolicy, str, None]


class ReconciliationService:
    """Rapproche les sorties Strava d'un utilisateur de ses seances planifiees"""

    def resolve_policy(self, policy: PolicyArg) -> MatchingPolicy:
        if isinstance(policy, MatchingPolicy):
            return policy
        return get_policy(policy or get_settings().RECONCILIATION_POLICY)

    def parse_activities(self, raw_activities: Iterable[Any]) -> Tuple[List[ActivityRecord], int]:
        """
        Convertit les activites brutes Strava en ActivityRecord.

        Un enregistrement invalide est ecarte sans interrompre le lot.

        Returns:
            (activites valides, nombre d'enregistrements rejetes)
        """
        records: List[ActivityRecord] = []
        rejected = 0
        for raw in raw_activities:
            if isinstance(raw, ActivityRecord):
                records.append(raw)
                continue
            if not isinstance(raw, dict):
                rejected += 1
                logger.debug(f"Activite ignoree (format inattendu): {type(raw).__name__}")
                continue
            try:
                records.append(ActivityRecord.from_strava(raw))
            except (ValueError, TypeError) as e:
                rejected += 1
                logger.debug(f"Activite {raw.get('id')} ignoree (donnees invalides): {e}")
        return records, rejected

    def load_sessions(self, session: Session, user_id: str) -> List[PlannedSession]:
        return session.exec(
            select(PlannedSession)
            .where(PlannedSession.user_id == user_id)
            .order_by(PlannedSession.scheduled_date, PlannedSession.id)
        ).all()

    def apply_matches(
        self, session: Session, user_id: str, accepted: List[MatchCandidate]
    ) -> Tuple[List[MatchCandidate], int]:
        """
        Applique les rapprochements dans une seule transaction.

        Chaque couple est ecrit dans son propre SAVEPOINT : un conflit d'unicite
        sur le registre (sync concurrente) annule ce couple uniquement. Toute
        autre erreur annule la transaction entiere et remonte a l'appelant.

        Returns:
            (couples appliques, nombre de couples ignores)
        """
        applied: List[MatchCandidate] = []
        skipped = 0

        try:
            for candidate in accepted:
                try:
                    with session.begin_nested():
                        written = self._apply_pair(session, user_id, candidate)
                except IntegrityError as e:
                    written = False
                    logger.warning(
                        f"Conflit registre ignore: seance {candidate.session_id} / activite "
                        f"{candidate.activity_id} (user {user_id}): {e.orig}"
                    )

                if written:
                    applied.append(candidate)
                else:
                    skipped += 1

            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.error(f"Reconciliation annulee pour user {user_id}", exc_info=True)
            raise

        return applied, skipped

    def _apply_pair(self, session: Session, user_id: str, candidate: MatchCandidate) -> bool:
        planned = session.exec(
            select(PlannedSession)
            .where(
                PlannedSession.user_id == user_id,
                PlannedSession.id == candidate.session_id,
            )
            .with_for_update()
        ).first()

        if planned is None or planned.completed or planned.completed_activity_id is not None:
            logger.warning(
                f"Seance {candidate.session_id} introuvable ou deja completee, couple ignore"
            )
            return False

        if (
            link_ledger.get_link_for_session(session, user_id, candidate.session_id)
            or link_ledger.get_link_for_activity(session, user_id, candidate.activity_id)
        ):
            logger.warning(
                f"Seance {candidate.session_id} ou activite {candidate.activity_id} deja au registre, couple ignore"
            )
            return False

        planned.completed = True
        planned.completed_at = candidate.activity.start_date
        planned.completion_source = CompletionSource.EXTERNAL_SYNC.value
        planned.completed_activity_id = candidate.activity_id
        planned.completion_match_score = candidate.match_score
        session.add(planned)

        link_ledger.add_link(session, user_id, candidate)
        return True

    def reconcile(
        self,
        session: Session,
        user_id: str,
        planned_sessions: Iterable[PlannedSession],
        activities: Iterable[ActivityRecord],
        policy: PolicyArg = None,
        dry_run: bool = False,
        rejected_records: int = 0,
    ) -> ReconciliationSummary:
        """
        Execute le pipeline complet sur un instantane (seances + activites).

        En dry_run, aucune ecriture : le resume decrit ce qui serait applique.
        """
        matching_policy = self.resolve_policy(policy)
        linked_session_ids, spent_activity_ids = link_ledger.get_linked_ids(session, user_id)

        sessions = eligible_sessions(planned_sessions, linked_session_ids)
        rides = eligible_activities(activities, spent_activity_ids)

        candidates = generate_candidates(sessions, rides, matching_policy)
        accepted = resolve_matches(candidates)

        skipped = 0
        if dry_run:
            applied = accepted
        else:
            applied, skipped = self.apply_matches(session, user_id, accepted)

        summary = ReconciliationSummary(
            policy=matching_policy.name,
            accepted_count=len(applied),
            candidate_count=len(candidates),
            unmatched_activity_count=len(rides) - len(applied),
            skipped_conflicts=skipped,
            rejected_records=rejected_records,
            dry_run=dry_run,
            matches=[AcceptedMatch.from_candidate(c) for c in applied],
        )

        logger.info(
            f"Reconciliation user {user_id} ({matching_policy.name}{', dry-run' if dry_run else ''}): "
            f"{summary.accepted_count} acceptes, {summary.candidate_count} candidats, "
            f"{summary.unmatched_activity_count} activites sans seance, "
            f"{skipped} conflits, {rejected_records} rejetes"
        )
        return summary

    def sync_user(
        self,
        session: Session,
        user_id: str,
        raw_activities: Iterable[Any],
        policy: PolicyArg = None,
        dry_run: bool = False,
    ) -> ReconciliationSummary:
        """Charge les seances de l'utilisateur et reconcilie un lot d'activites brutes Strava."""
        matching_policy = self.resolve_policy(policy)
        activities, rejected = self.parse_activities(raw_activities)
        planned_sessions = self.load_sessions(session, user_id)
        return self.reconcile(
            session,
            user_id,
            planned_sessions,
            activities,
            policy=matching_policy,
            dry_run=dry_run,
            rejected_records=rejected,
        )


# Instance globale
reconciliation_service = ReconciliationService()
