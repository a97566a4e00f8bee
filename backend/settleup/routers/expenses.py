"""Expenses: create, list, update, delete, export."""
import csv
import io
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from settleup.auth import get_current_user
from settleup.database import get_db
from settleup.event_guards import get_event_for_participant, is_event_admin, require_active_event
from settleup.models import Event, Expense, ExpenseSplit, Group, User
from settleup.schemas import (
    EntityRef, ExpenseCreate, ExpenseResponse, ExpenseUpdate, SplitInput, SplitRecord,
)
from settleup.services.balance_calculator import equal_splits, ratio_splits, validate_splits
from settleup.stores import expense_record

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _expense_response(exp: Expense) -> ExpenseResponse:
    record = expense_record(exp)
    return ExpenseResponse(
        **record.model_dump(),
        description=exp.description,
        created_at=exp.created_at,
        updated_at=exp.updated_at,
    )


def _check_entities(db: Session, event: Event, entities: list[EntityRef]) -> None:
    participant_ids = {u.id for u in event.participants}
    group_ids = {g.id for g in db.query(Group).filter(Group.event_id == event.id).all()}
    for e in entities:
        known = group_ids if e.entity_type == "group" else participant_ids
        if e.entity_id not in known:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown {e.entity_type} {e.entity_id} for this event",
            )


def _build_splits(
    event: Event,
    amount: float,
    split_type: str,
    is_private: bool,
    participant_ids: Optional[list[int]],
    splits: Optional[list[SplitInput]],
) -> list[SplitRecord]:
    if is_private:
        return []
    if split_type == "equal":
        if splits:
            entities = [EntityRef(entity_type=s.entity_type, entity_id=s.entity_id) for s in splits]
        else:
            ids = participant_ids or [u.id for u in event.participants]
            entities = [EntityRef(entity_type="user", entity_id=uid) for uid in ids]
        return equal_splits(amount, entities)
    if not splits:
        raise HTTPException(status_code=400, detail=f"A {split_type} split requires splits")
    if split_type == "ratio":
        if any(s.ratio is None or s.ratio < 0 for s in splits):
            raise HTTPException(status_code=400, detail="Ratio splits need a non-negative ratio per entry")
        weighted = [SplitRecord(entity_type=s.entity_type, entity_id=s.entity_id, amount=0, ratio=s.ratio) for s in splits]
        return ratio_splits(amount, weighted)
    if any(s.amount is None or s.amount < 0 for s in splits):
        raise HTTPException(status_code=400, detail="Custom splits need a non-negative amount per entry")
    custom = [SplitRecord(entity_type=s.entity_type, entity_id=s.entity_id, amount=round(s.amount, 2)) for s in splits]
    validate_splits(amount, split_type, custom, is_private)
    return custom


def _set_splits(expense: Expense, splits: list[SplitRecord]) -> None:
    expense.splits = [
        ExpenseSplit(entity_type=s.entity_type, entity_id=s.entity_id, amount=s.amount, ratio=s.ratio)
        for s in splits
    ]


def _get_expense(db: Session, expense_id: int, user: User) -> tuple[Expense, Event]:
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense, get_event_for_participant(db, expense.event_id, user)


def _check_can_modify(expense: Expense, event: Event, user: User) -> None:
    if expense.payer_id != user.id and not is_event_admin(event, user):
        raise HTTPException(status_code=403, detail="Only the payer or an admin can change this expense")


@router.post("", response_model=ExpenseResponse)
def create_expense(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = get_event_for_participant(db, data.event_id, current_user)
    require_active_event(event)
    if data.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")
    payer_id = data.payer_id or current_user.id
    if payer_id not in {u.id for u in event.participants}:
        raise HTTPException(status_code=400, detail="Payer must be an event participant")

    splits = _build_splits(event, data.amount, data.split_type, data.is_private, data.participant_ids, data.splits)
    on_behalf = [] if data.is_private else (data.paid_on_behalf_of or [])
    _check_entities(db, event, [EntityRef(entity_type=s.entity_type, entity_id=s.entity_id) for s in splits] + on_behalf)

    expense = Expense(
        event_id=event.id,
        title=data.title,
        description=data.description,
        amount=data.amount,
        currency=(data.currency or event.currency).upper(),
        payer_id=payer_id,
        is_private=data.is_private,
        split_type=data.split_type,
        paid_on_behalf_of=[e.model_dump() for e in on_behalf],
    )
    _set_splits(expense, splits)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return _expense_response(expense)


@router.get("", response_model=list[ExpenseResponse])
def list_expenses(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_event_for_participant(db, event_id, current_user)
    expenses = (
        db.query(Expense)
        .filter(Expense.event_id == event_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .all()
    )
    return [_expense_response(e) for e in expenses]


@router.get("/export")
def export_expenses(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = get_event_for_participant(db, event_id, current_user)
    expenses = db.query(Expense).filter(Expense.event_id == event_id).order_by(Expense.id).all()
    member_map = {u.id: u.name or u.email for u in event.participants}
    group_map = {g.id: g.name for g in event.groups}

    def entity_name(split: ExpenseSplit) -> str:
        names = group_map if split.entity_type == "group" else member_map
        return names.get(split.entity_id, str(split.entity_id))

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Date", "Title", "Amount", "Currency", "Paid By", "Private", "Split Type", "Splits"])
    for e in expenses:
        splits = ", ".join(f"{entity_name(s)}: {s.amount:.2f}" for s in e.splits)
        date_str = e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else ""
        writer.writerow([
            date_str,
            e.title,
            f"{e.amount:.2f}",
            e.currency,
            member_map.get(e.payer_id, str(e.payer_id)),
            "yes" if e.is_private else "no",
            e.split_type or "equal",
            splits,
        ])

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=expenses-event-{event_id}.csv"},
    )


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense, _ = _get_expense(db, expense_id, current_user)
    return _expense_response(expense)


@router.patch("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense, event = _get_expense(db, expense_id, current_user)
    _check_can_modify(expense, event, current_user)
    require_active_event(event)
    if data.amount is not None and data.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")

    amount = data.amount if data.amount is not None else expense.amount
    split_type = data.split_type or expense.split_type
    is_private = data.is_private if data.is_private is not None else bool(expense.is_private)
    resplit = any(v is not None for v in (data.amount, data.split_type, data.is_private, data.participant_ids, data.splits))

    # Validate everything before touching the row.
    splits = None
    if resplit:
        current = [
            SplitInput(entity_type=s.entity_type, entity_id=s.entity_id, amount=s.amount, ratio=s.ratio)
            for s in expense.splits
        ]
        splits = _build_splits(
            event, amount, split_type, is_private, data.participant_ids,
            data.splits if data.splits is not None else (None if data.participant_ids else current),
        )
    on_behalf = data.paid_on_behalf_of
    if is_private:
        on_behalf = []
    _check_entities(
        db, event,
        [EntityRef(entity_type=s.entity_type, entity_id=s.entity_id) for s in splits or []] + (on_behalf or []),
    )

    if data.title is not None:
        expense.title = data.title
    if data.description is not None:
        expense.description = data.description
    if data.currency is not None:
        expense.currency = data.currency.upper()
    expense.amount = amount
    expense.split_type = split_type
    expense.is_private = is_private
    if on_behalf is not None:
        expense.paid_on_behalf_of = [e.model_dump() for e in on_behalf]
    if splits is not None:
        _set_splits(expense, splits)

    db.commit()
    db.refresh(expense)
    return _expense_response(expense)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense, event = _get_expense(db, expense_id, current_user)
    _check_can_modify(expense, event, current_user)
    require_active_event(event)
    db.delete(expense)
    db.commit()
