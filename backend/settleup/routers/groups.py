"""Groups: sub-groups of an event's participants that settle as a single entity."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.auth import get_current_user
from settleup.database import get_db
from settleup.event_guards import get_event_for_participant, is_event_admin, require_active_event
from settleup.models import Event, Group, User
from settleup.schemas import GroupCreate, GroupResponse, GroupUpdate, MemberInfo

router = APIRouter(prefix="/groups", tags=["groups"])


def _group_response(group: Group) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        event_id=group.event_id,
        name=group.name,
        description=group.description,
        created_at=group.created_at,
        member_ids=[u.id for u in group.members],
        members=[MemberInfo(id=u.id, name=u.name, email=u.email) for u in group.members],
        representative_id=group.representative_id,
        payer_id=group.payer_id,
    )


def _event_members(event: Event, member_ids: list[int]) -> list[User]:
    if not member_ids:
        raise HTTPException(status_code=400, detail="A group needs at least one member")
    members = [u for u in event.participants if u.id in member_ids]
    if len(members) != len(set(member_ids)):
        raise HTTPException(status_code=400, detail="All members must be event participants")
    return members


def _get_group(db: Session, group_id: int, user: User) -> tuple[Group, Event]:
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    event = get_event_for_participant(db, group.event_id, user)
    return group, event


def _check_can_manage(group: Group, event: Event, user: User) -> None:
    if user.id not in (group.created_by, group.representative_id) and not is_event_admin(event, user):
        raise HTTPException(
            status_code=403,
            detail="Only the group creator, its representative or an event admin can change this group",
        )


@router.get("", response_model=list[GroupResponse])
def list_groups(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_event_for_participant(db, event_id, current_user)
    groups = db.query(Group).filter(Group.event_id == event_id).order_by(Group.id).all()
    return [_group_response(g) for g in groups]


@router.post("", response_model=GroupResponse)
def create_group(
    data: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = get_event_for_participant(db, data.event_id, current_user)
    require_active_event(event)
    members = _event_members(event, data.member_ids)

    representative_id = data.representative_id or data.member_ids[0]
    if representative_id not in data.member_ids:
        raise HTTPException(status_code=400, detail="Representative must be a member of the group")
    payer_id = data.payer_id or representative_id

    group = Group(
        event_id=event.id,
        name=data.name,
        description=data.description,
        representative_id=representative_id,
        payer_id=payer_id,
        created_by=current_user.id,
    )
    group.members = members
    db.add(group)
    db.commit()
    db.refresh(group)
    return _group_response(group)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group, _ = _get_group(db, group_id, current_user)
    return _group_response(group)


@router.patch("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: int,
    data: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group, event = _get_group(db, group_id, current_user)
    _check_can_manage(group, event, current_user)
    require_active_event(event)

    if data.name is not None:
        group.name = data.name
    if data.description is not None:
        group.description = data.description
    if data.member_ids is not None:
        group.members = _event_members(event, data.member_ids)
    member_ids = [u.id for u in group.members]
    if data.representative_id is not None:
        if data.representative_id not in member_ids:
            raise HTTPException(status_code=400, detail="Representative must be a member of the group")
        group.representative_id = data.representative_id
    elif group.representative_id not in member_ids:
        raise HTTPException(status_code=400, detail="Representative must be a member of the group")
    if data.payer_id is not None:
        group.payer_id = data.payer_id
    db.commit()
    db.refresh(group)
    return _group_response(group)


@router.delete("/{group_id}", status_code=204)
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group, event = _get_group(db, group_id, current_user)
    _check_can_manage(group, event, current_user)
    require_active_event(event)
    db.delete(group)
    db.commit()
