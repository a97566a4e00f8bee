"""Settlements: balances, plan generation, and the payment lifecycle of each transaction."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.auth import get_current_user
from settleup.database import get_db
from settleup.dependencies import get_orchestrator
from settleup.event_guards import get_event_for_participant
from settleup.models import Settlement, User
from settleup.schemas import (
    Balance, PendingTotal, SettlementFail, SettlementPlan, SettlementRecord, SettlementReject,
)
from settleup.services.settlement_orchestrator import SettlementOrchestrator

router = APIRouter(prefix="/settlements", tags=["settlements"])


def _check_settlement_access(db: Session, settlement_id: int, user: User) -> None:
    settlement = db.query(Settlement).filter(Settlement.id == settlement_id).first()
    if not settlement:
        raise HTTPException(status_code=404, detail="Settlement not found")
    get_event_for_participant(db, settlement.event_id, user)


@router.get("/event/{event_id}/balances", response_model=list[Balance])
def get_balances(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    get_event_for_participant(db, event_id, current_user)
    return orchestrator.compute_balances(event_id)


@router.post("/event/{event_id}/generate", response_model=SettlementPlan)
def generate_settlement(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    get_event_for_participant(db, event_id, current_user)
    return orchestrator.generate_settlement(event_id, current_user.id)


@router.get("/event/{event_id}", response_model=list[SettlementRecord])
def list_settlements(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    get_event_for_participant(db, event_id, current_user)
    return orchestrator.list_settlements(event_id)


@router.get("/event/{event_id}/pending-total", response_model=PendingTotal)
def get_pending_total(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    get_event_for_participant(db, event_id, current_user)
    return PendingTotal(event_id=event_id, pending_total=orchestrator.pending_total(event_id))


@router.post("/{settlement_id}/initiate", response_model=SettlementRecord)
def initiate_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    _check_settlement_access(db, settlement_id, current_user)
    return orchestrator.initiate(settlement_id, current_user.id)


@router.post("/{settlement_id}/approve", response_model=SettlementRecord)
def approve_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    _check_settlement_access(db, settlement_id, current_user)
    return orchestrator.approve(settlement_id, current_user.id)


@router.post("/{settlement_id}/reject", response_model=SettlementRecord)
def reject_settlement(
    settlement_id: int,
    data: SettlementReject,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    _check_settlement_access(db, settlement_id, current_user)
    return orchestrator.reject(settlement_id, current_user.id, data.reason, data.failed)


@router.post("/{settlement_id}/fail", response_model=SettlementRecord)
def fail_settlement(
    settlement_id: int,
    data: SettlementFail,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    _check_settlement_access(db, settlement_id, current_user)
    return orchestrator.mark_failed(settlement_id, current_user.id, data.reason)


@router.post("/{settlement_id}/retry", response_model=SettlementRecord)
def retry_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    _check_settlement_access(db, settlement_id, current_user)
    return orchestrator.retry(settlement_id, current_user.id)
