"""Events: create, list, get, update, delete, add participants."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.auth import get_current_user
from settleup.database import get_db
from settleup.dependencies import get_orchestrator
from settleup.event_guards import get_event_for_participant, require_event_admin
from settleup.models import Event, User
from settleup.schemas import EventAddParticipant, EventCreate, EventResponse, EventUpdate, MemberInfo
from settleup.services.settlement_orchestrator import SettlementOrchestrator

logger = logging.getLogger("settleup.routers.events")

router = APIRouter(prefix="/events", tags=["events"])


def _event_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        description=event.description,
        currency=event.currency,
        settlement_currency=event.settlement_currency,
        fx_rate_mode=event.fx_rate_mode or "eod",
        predefined_fx_rates=event.predefined_fx_rates,
        status=event.status,
        created_by=event.created_by,
        created_at=event.created_at,
        admin_ids=[u.id for u in event.admins],
        participant_ids=[u.id for u in event.participants],
        participants=[MemberInfo(id=u.id, name=u.name, email=u.email) for u in event.participants],
    )


def _validate_rates(rates):
    if rates and any(r is None or r <= 0 for r in rates.values()):
        raise HTTPException(status_code=400, detail="Predefined FX rates must be positive")


@router.get("", response_model=list[EventResponse])
def list_events(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    events = (
        db.query(Event)
        .filter(Event.participants.any(User.id == current_user.id))
        .order_by(Event.id)
        .all()
    )
    return [_event_response(e) for e in events]


@router.post("", response_model=EventResponse)
def create_event(
    data: EventCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _validate_rates(data.predefined_fx_rates)
    event = Event(
        name=data.name,
        description=data.description,
        currency=data.currency.upper(),
        settlement_currency=data.settlement_currency.upper() if data.settlement_currency else None,
        fx_rate_mode=data.fx_rate_mode,
        predefined_fx_rates=data.predefined_fx_rates,
        status="active",
        created_by=current_user.id,
    )
    event.admins = [current_user]
    event.participants = [current_user]
    db.add(event)
    db.commit()
    db.refresh(event)
    return _event_response(event)


@router.get("/{event_id}", response_model=EventResponse)
def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _event_response(get_event_for_participant(db, event_id, current_user))


@router.patch("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: int,
    data: EventUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = get_event_for_participant(db, event_id, current_user)
    require_event_admin(event, current_user)
    _validate_rates(data.predefined_fx_rates)

    if data.name is not None:
        event.name = data.name
    if data.description is not None:
        event.description = data.description
    if data.currency is not None:
        event.currency = data.currency.upper()
    if data.settlement_currency is not None:
        event.settlement_currency = data.settlement_currency.upper() or None
    if data.fx_rate_mode is not None:
        event.fx_rate_mode = data.fx_rate_mode
    if data.predefined_fx_rates is not None:
        event.predefined_fx_rates = data.predefined_fx_rates
    if data.status is not None:
        event.status = data.status
    db.commit()
    db.refresh(event)
    return _event_response(event)


@router.delete("/{event_id}", status_code=204)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    orchestrator: SettlementOrchestrator = Depends(get_orchestrator),
):
    event = get_event_for_participant(db, event_id, current_user)
    require_event_admin(event, current_user)
    orchestrator.terminate_event(event_id)
    db.delete(event)
    db.commit()
    logger.info("Event %s deleted by user %s", event_id, current_user.id)


@router.post("/{event_id}/participants", response_model=EventResponse)
def add_participant(
    event_id: int,
    data: EventAddParticipant,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = get_event_for_participant(db, event_id, current_user)
    require_event_admin(event, current_user)
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if not user:
        raise HTTPException(status_code=404, detail="No user found with that email")
    if user not in event.participants:
        event.participants.append(user)
    if data.admin and user not in event.admins:
        event.admins.append(user)
    db.commit()
    db.refresh(event)
    return _event_response(event)
