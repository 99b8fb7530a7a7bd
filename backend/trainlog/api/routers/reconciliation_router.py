"""
Routes de reconciliation : rapprochement des sorties Strava avec le plan.
Routes = validation + delegation au service. Pas de logique metier ici.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from trainlog.core.database import get_session
from trainlog.domain.entities import (
    ReconciliationLinkRead,
    ReconciliationRequest,
    ReconciliationSummary,
)
from trainlog.domain.services import link_ledger
from trainlog.domain.services.reconciliation_service import reconciliation_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _run(session: Session, user_id: str, payload: ReconciliationRequest, dry_run: bool) -> ReconciliationSummary:
    try:
        return reconciliation_service.sync_user(
            session, user_id, payload.activities, policy=payload.policy, dry_run=dry_run
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Reconciliation echouee pour user {user_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Reconciliation failed: {str(e)}"
        )


@router.post("/users/{user_id}/reconciliation/sync", response_model=ReconciliationSummary)
async def sync_reconciliation(
    user_id: str,
    payload: ReconciliationRequest,
    session: Session = Depends(get_session),
):
    """Rapproche un lot d'activites Strava des seances planifiees et marque les seances completees"""
    return _run(session, user_id, payload, dry_run=False)


@router.post("/users/{user_id}/reconciliation/preview", response_model=ReconciliationSummary)
async def preview_reconciliation(
    user_id: str,
    payload: ReconciliationRequest,
    session: Session = Depends(get_session),
):
    """Calcule les rapprochements sans rien ecrire"""
    return _run(session, user_id, payload, dry_run=True)


@router.get("/users/{user_id}/reconciliation/links", response_model=List[ReconciliationLinkRead])
async def list_reconciliation_links(
    user_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    """Liste les lignes du registre de reconciliation, les plus recentes d'abord"""
    return link_ledger.list_links(session, user_id, limit=limit)
