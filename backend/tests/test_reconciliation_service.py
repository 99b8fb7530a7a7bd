"""
Tests pour ReconciliationService : application transactionnelle, idempotence,
conflits de registre et erreurs fatales.
"""
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from trainlog.domain.entities import (
    CompletionSource,
    ConfidenceTier,
    PlannedSession,
    ReconciliationLink,
)
from trainlog.domain.services import link_ledger
from trainlog.domain.services.candidate_generator import build_candidate
from trainlog.domain.services.matching_policy import ADAPTIVE_POLICY
from trainlog.domain.services.reconciliation_service import (
    ReconciliationService,
    reconciliation_service,
)

from factories import USER_ID, make_activity, make_session


def _strava(activity_id, start="2024-05-04T08:00:00Z", moving_time=3600, activity_type="Ride"):
    return {
        "id": activity_id,
        "name": f"Sortie {activity_id}",
        "type": activity_type,
        "start_date": start,
        "moving_time": moving_time,
        "elapsed_time": moving_time + 300,
    }


def _seed(db, *sessions):
    for planned in sessions:
        db.add(planned)
    db.commit()


def _session(db, session_id, user_id=USER_ID):
    return db.exec(
        select(PlannedSession).where(PlannedSession.user_id == user_id, PlannedSession.id == session_id)
    ).one()


def _links(db, user_id=USER_ID):
    return db.exec(select(ReconciliationLink).where(ReconciliationLink.user_id == user_id)).all()


class TestResolvePolicy:
    def test_default_from_settings(self):
        assert ReconciliationService().resolve_policy(None).name == "adaptive"

    def test_by_name(self):
        assert ReconciliationService().resolve_policy("legacy").name == "legacy"

    def test_instance_passthrough(self):
        assert ReconciliationService().resolve_policy(ADAPTIVE_POLICY) is ADAPTIVE_POLICY

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            ReconciliationService().resolve_policy("aggressive")


class TestParseActivities:
    def test_invalid_records_counted(self):
        records, rejected = ReconciliationService().parse_activities([
            _strava(1),
            {"id": 2, "type": "Ride"},
            {"type": "Ride", "start_date": "2024-05-04T08:00:00Z"},
            "pas un dict",
            _strava(3, start="hier"),
        ])
        assert [r.activity_id for r in records] == ["1"]
        assert rejected == 4

    def test_records_passthrough(self):
        activity = make_activity()
        records, rejected = ReconciliationService().parse_activities([activity])
        assert records == [activity]
        assert rejected == 0


class TestSyncUser:
    def test_match_persists_completion_and_ledger(self, db):
        _seed(db, make_session("s1"))

        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(42, moving_time=3300)])

        assert summary.accepted_count == 1
        assert summary.candidate_count == 1
        assert summary.unmatched_activity_count == 0
        assert summary.policy == "adaptive"
        assert summary.dry_run is False
        match = summary.matches[0]
        assert (match.session_id, match.activity_id) == ("s1", "42")
        assert match.confidence == ConfidenceTier.HIGH.value

        planned = _session(db, "s1")
        assert planned.completed is True
        assert planned.completion_source == CompletionSource.EXTERNAL_SYNC.value
        assert planned.completed_activity_id == "42"
        assert planned.completion_match_score == pytest.approx(1 - 300 / 3600)
        assert planned.completed_at.replace(tzinfo=None) == datetime(2024, 5, 4, 8, 0)

        links = _links(db)
        assert len(links) == 1
        assert links[0].session_id == "s1"
        assert links[0].activity_id == "42"
        assert links[0].day_delta == 0
        assert links[0].confidence == "high"

    def test_resync_is_idempotent(self, db):
        _seed(db, make_session("s1"), make_session("s2", scheduled_date=date(2024, 5, 5)))
        batch = [_strava(1), _strava(2, start="2024-05-05T09:00:00Z")]

        first = reconciliation_service.sync_user(db, USER_ID, batch)
        second = reconciliation_service.sync_user(db, USER_ID, batch)

        assert first.accepted_count == 2
        assert second.accepted_count == 0
        assert second.candidate_count == 0
        assert second.unmatched_activity_count == 0
        assert len(_links(db)) == 2

    def test_activity_never_linked_twice_across_syncs(self, db):
        _seed(db, make_session("s1"))
        reconciliation_service.sync_user(db, USER_ID, [_strava(7)])

        # Nouvelle seance le meme jour : l'activite 7 est deja consommee
        _seed(db, make_session("s2", minutes=60))
        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(7)])

        assert summary.accepted_count == 0
        assert _session(db, "s2").completed is False
        assert [link.session_id for link in _links(db)] == ["s1"]

    def test_session_never_linked_twice_across_syncs(self, db):
        _seed(db, make_session("s1"))
        reconciliation_service.sync_user(db, USER_ID, [_strava(7)])

        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(8)])

        assert summary.accepted_count == 0
        assert summary.unmatched_activity_count == 1
        assert _session(db, "s1").completed_activity_id == "7"

    def test_manual_completion_untouched(self, db):
        _seed(db, make_session("s1", completed=True, completion_source=CompletionSource.MANUAL.value))

        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(1)])

        assert summary.accepted_count == 0
        planned = _session(db, "s1")
        assert planned.completion_source == "manual"
        assert planned.completed_activity_id is None

    def test_non_ride_activities_ignored(self, db):
        _seed(db, make_session("s1"))
        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(1, activity_type="Run")])
        assert summary.accepted_count == 0
        assert summary.candidate_count == 0
        assert summary.unmatched_activity_count == 0

    def test_rejected_records_reported(self, db):
        _seed(db, make_session("s1"))
        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(1), {"id": 2}])
        assert summary.accepted_count == 1
        assert summary.rejected_records == 1

    def test_users_isolated(self, db):
        _seed(db, make_session("s1"), make_session("s1", user_id="user-2"))

        reconciliation_service.sync_user(db, USER_ID, [_strava(1)])

        assert _session(db, "s1", user_id="user-2").completed is False
        assert _links(db, user_id="user-2") == []

    def test_legacy_policy_by_name(self, db):
        _seed(db, make_session("s1"))
        summary = reconciliation_service.sync_user(
            db, USER_ID, [_strava(1, start="2024-05-05T08:00:00Z")], policy="legacy"
        )
        assert summary.policy == "legacy"
        assert summary.accepted_count == 0
        assert summary.unmatched_activity_count == 1

    def test_dry_run_writes_nothing(self, db):
        _seed(db, make_session("s1"))

        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(1)], dry_run=True)

        assert summary.dry_run is True
        assert summary.accepted_count == 1
        assert _session(db, "s1").completed is False
        assert _links(db) == []

    def test_independent_adjacent_day_match(self, db):
        """A le 04 sur la seance du 04 (high), B le 05 sur la seance du 04 voisine (medium)."""
        _seed(
            db,
            make_session("s-0504", scheduled_date=date(2024, 5, 4)),
            make_session("s-0503", scheduled_date=date(2024, 5, 3)),
        )
        batch = [
            _strava("A", start="2024-05-04T08:00:00Z", moving_time=3300),
            _strava("B", start="2024-05-04T18:00:00Z", moving_time=4500),
        ]

        summary = reconciliation_service.sync_user(db, USER_ID, batch)

        by_session = {m.session_id: m for m in summary.matches}
        assert summary.accepted_count == 2
        assert by_session["s-0504"].activity_id == "A"
        assert by_session["s-0504"].confidence == "high"
        assert by_session["s-0503"].activity_id == "B"
        assert by_session["s-0503"].confidence == "medium"
        assert by_session["s-0503"].day_delta == 1

    def test_same_day_75_min_ride_is_high(self, db):
        """Sortie de 75 min le 05 sur une seance de 60 min le 05 : 25 % le meme jour reste high."""
        _seed(
            db,
            make_session("s-0504", scheduled_date=date(2024, 5, 4)),
            make_session("s-0505", scheduled_date=date(2024, 5, 5)),
        )
        batch = [
            _strava("A", start="2024-05-04T08:00:00Z", moving_time=3300),
            _strava("B", start="2024-05-05T08:00:00Z", moving_time=4500),
        ]

        summary = reconciliation_service.sync_user(db, USER_ID, batch)

        by_session = {m.session_id: m for m in summary.matches}
        assert summary.accepted_count == 2
        assert by_session["s-0504"].activity_id == "A"
        assert by_session["s-0504"].confidence == "high"
        assert by_session["s-0505"].activity_id == "B"
        assert by_session["s-0505"].day_delta == 0
        assert by_session["s-0505"].duration_delta_pct == pytest.approx(0.25)
        assert by_session["s-0505"].confidence == "high"

    def test_two_sessions_one_activity(self, db):
        _seed(db, make_session("s60", minutes=60), make_session("s58", minutes=58))

        summary = reconciliation_service.sync_user(db, USER_ID, [_strava(1, moving_time=59 * 60)])

        assert summary.accepted_count == 1
        assert summary.candidate_count == 2
        assert summary.matches[0].session_id == "s60"
        assert _session(db, "s58").completed is False


class TestApplyMatches:
    def test_existing_ledger_row_skips_pair(self, db):
        """Une sync concurrente a deja lie l'activite : le couple est ignore, le reste passe."""
        _seed(db, make_session("s1"), make_session("s2", scheduled_date=date(2024, 5, 5)))
        other = build_candidate(make_session("s9"), make_activity("a1"), ADAPTIVE_POLICY)
        link_ledger.add_link(db, USER_ID, other)
        db.commit()

        pairs = [
            build_candidate(_session(db, "s1"), make_activity("a1"), ADAPTIVE_POLICY),
            build_candidate(
                _session(db, "s2"),
                make_activity("a2", start=datetime(2024, 5, 5, 8, 0, tzinfo=timezone.utc)),
                ADAPTIVE_POLICY,
            ),
        ]
        applied, skipped = reconciliation_service.apply_matches(db, USER_ID, pairs)

        assert [c.activity_id for c in applied] == ["a2"]
        assert skipped == 1
        assert _session(db, "s1").completed is False
        assert _session(db, "s2").completed is True

    def test_unique_violation_rolls_back_only_the_pair(self, db):
        _seed(db, make_session("s1"), make_session("s2", scheduled_date=date(2024, 5, 5)))
        link_ledger.add_link(
            db, USER_ID, build_candidate(make_session("s9"), make_activity("a1"), ADAPTIVE_POLICY)
        )
        db.commit()

        pairs = [
            build_candidate(_session(db, "s1"), make_activity("a1"), ADAPTIVE_POLICY),
            build_candidate(
                _session(db, "s2"),
                make_activity("a2", start=datetime(2024, 5, 5, 8, 0, tzinfo=timezone.utc)),
                ADAPTIVE_POLICY,
            ),
        ]
        # La pre-verification ne voit pas la ligne : seule la contrainte d'unicite protege
        with patch.object(link_ledger, "get_link_for_activity", return_value=None):
            applied, skipped = reconciliation_service.apply_matches(db, USER_ID, pairs)

        assert [c.activity_id for c in applied] == ["a2"]
        assert skipped == 1
        assert _session(db, "s1").completed is False
        assert _session(db, "s1").completed_activity_id is None
        assert _session(db, "s2").completed_activity_id == "a2"
        assert len(_links(db)) == 2

    def test_fatal_error_rolls_back_everything(self, db):
        _seed(db, make_session("s1"), make_session("s2", scheduled_date=date(2024, 5, 5)))
        batch = [_strava(1), _strava(2, start="2024-05-05T08:00:00Z")]
        failure = OperationalError("INSERT INTO reconciliation_link", {}, Exception("disk I/O error"))

        calls = {"n": 0}
        real_add_link = link_ledger.add_link

        def flaky_add_link(session, user_id, candidate):
            calls["n"] += 1
            if calls["n"] == 2:
                raise failure
            return real_add_link(session, user_id, candidate)

        with patch.object(link_ledger, "add_link", side_effect=flaky_add_link):
            with pytest.raises(OperationalError):
                reconciliation_service.sync_user(db, USER_ID, batch)

        assert _session(db, "s1").completed is False
        assert _session(db, "s2").completed is False
        assert _links(db) == []

    def test_empty(self, db):
        assert reconciliation_service.apply_matches(db, USER_ID, []) == ([], 0)
