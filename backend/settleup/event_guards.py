"""Access and status guards shared by the event-scoped routers."""
from fastapi import HTTPException
from sqlalchemy.orm import Session

from settleup.models import Event, User

LOCKED_STATUSES = ("settled", "closed")


def get_event_for_participant(db: Session, event_id: int, user: User) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if user not in event.participants and user.id != event.created_by:
        raise HTTPException(status_code=403, detail="Not a participant of this event")
    return event


def is_event_admin(event: Event, user: User) -> bool:
    return user.id == event.created_by or user in event.admins


def require_event_admin(event: Event, user: User) -> None:
    if not is_event_admin(event, user):
        raise HTTPException(status_code=403, detail="Only event admins can do this")


def require_active_event(event: Event) -> None:
    """Expenses and groups cannot change once the event is settled or closed."""
    if event.status in LOCKED_STATUSES:
        raise HTTPException(
            status_code=403,
            detail=f"Cannot modify a {event.status} event. The event must be active.",
        )
