#!/usr/bin/env python3
"""
Script CLI pour reconcilier un export JSON d'activites Strava avec le plan d'un utilisateur
Utile pour rejouer une synchronisation ou verifier une politique avant de l'appliquer
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from sqlmodel import Session

from trainlog.core.database import create_db_and_tables, engine
from trainlog.core.schema_guard import SchemaOutOfDateError, verify_schema_or_raise
from trainlog.domain.entities import ReconciliationSummary
from trainlog.domain.services.reconciliation_service import reconciliation_service

# Configuration du logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_activities(input_file: str) -> List[Dict[str, Any]]:
    """Charge la liste d'activites ; accepte une liste brute ou {"activities": [...]}"""
    with open(input_file, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("activities", [])
    if not isinstance(data, list):
        raise ValueError("Le fichier doit contenir une liste d'activites")
    return data


def display_summary(summary: ReconciliationSummary) -> None:
    mode = " (dry-run)" if summary.dry_run else ""
    print(f"\nReconciliation [{summary.policy}]{mode}")
    print(f"  Rapprochements acceptes : {summary.accepted_count}")
    print(f"  Couples candidats       : {summary.candidate_count}")
    print(f"  Activites sans seance   : {summary.unmatched_activity_count}")
    print(f"  Conflits ignores        : {summary.skipped_conflicts}")
    print(f"  Enregistrements rejetes : {summary.rejected_records}")
    for match in summary.matches:
        print(
            f"  - seance {match.session_id} <- activite {match.activity_id} "
            f"(J{match.day_delta:+d}, ecart {match.duration_delta_pct:.1%}, {match.confidence.value})"
        )


def main():
    """Point d'entrée principal du script CLI"""
    parser = argparse.ArgumentParser(
        description="Reconciliation des activites Strava avec les seances planifiees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples d'utilisation:
  python reconcile_cli.py user-42 data/strava_activities.json
  python reconcile_cli.py user-42 data/strava_activities.json --policy legacy
  python reconcile_cli.py user-42 data/strava_activities.json --dry-run -o rapport.json
        """
    )

    parser.add_argument('user_id', help='Identifiant de l\'utilisateur')
    parser.add_argument(
        'input_file',
        help='Fichier JSON contenant les activites brutes Strava'
    )
    parser.add_argument(
        '--policy',
        choices=['adaptive', 'legacy'],
        default=None,
        help='Politique de tolerance (defaut: RECONCILIATION_POLICY)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Calculer les rapprochements sans rien ecrire en base'
    )
    parser.add_argument(
        '-o', '--output',
        help='Fichier JSON de sortie pour le resume (optionnel)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Afficher les logs détaillés'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not Path(args.input_file).exists():
        print(f"Erreur: Le fichier {args.input_file} n'existe pas")
        sys.exit(1)

    try:
        activities = load_activities(args.input_file)
        logger.info(f"{len(activities)} activites chargees depuis {args.input_file}")

        create_db_and_tables()
        verify_schema_or_raise(engine)

        with Session(engine) as session:
            summary = reconciliation_service.sync_user(
                session, args.user_id, activities, policy=args.policy, dry_run=args.dry_run
            )

        display_summary(summary)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(summary.model_dump_json(indent=2))
            logger.info(f"Resume sauvegarde dans {args.output}")

    except SchemaOutOfDateError as e:
        print(f"Erreur: {e}")
        sys.exit(2)
    except Exception as e:
        print(f"Erreur lors de la reconciliation: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
