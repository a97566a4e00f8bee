"""Narrow read/write interfaces the settlement core depends on, with SQLAlchemy implementations."""
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from settleup.models import Event, Expense, FxRateCacheEntry, Group, Settlement
from settleup.schemas import (
    EventRecord, ExpenseRecord, GroupRecord, SettlementRecord, SettlementStatus, SplitRecord,
)

RateTable = dict[str, float]


class ExpenseStore(Protocol):
    def get_expenses_for_event(self, event_id: int) -> list[ExpenseRecord]: ...


class GroupStore(Protocol):
    def get_groups_for_event(self, event_id: int) -> list[GroupRecord]: ...


class SettlementStore(Protocol):
    def get(self, settlement_id: int) -> Optional[SettlementRecord]: ...

    def list_by_event(self, event_id: int) -> list[SettlementRecord]: ...

    def bulk_delete(self, ids: list[int]) -> None: ...

    def create(self, record: SettlementRecord) -> int: ...

    def update_status(self, settlement_id: int, expected_status: SettlementStatus, patch: dict) -> bool:
        """Apply ``patch`` only if the row is still in ``expected_status``."""
        ...


class EventStore(Protocol):
    def get(self, event_id: int) -> Optional[EventRecord]: ...

    def update_status(self, event_id: int, status: str) -> None: ...


class RateCache(Protocol):
    def get(self, key: str) -> Optional[RateTable]: ...

    def put(self, key: str, table: RateTable) -> None: ...


# ----- ORM -> record conversion -----
def event_record(event: Event) -> EventRecord:
    return EventRecord(
        id=event.id,
        name=event.name,
        currency=event.currency,
        settlement_currency=event.settlement_currency,
        fx_rate_mode=event.fx_rate_mode or "eod",
        predefined_fx_rates=event.predefined_fx_rates,
        status=event.status,
        created_by=event.created_by,
        admin_ids=[u.id for u in event.admins],
        participant_ids=[u.id for u in event.participants],
    )


def group_record(group: Group) -> GroupRecord:
    return GroupRecord(
        id=group.id,
        event_id=group.event_id,
        name=group.name,
        member_ids=[u.id for u in group.members],
        representative_id=group.representative_id,
        payer_id=group.payer_id,
    )


def expense_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=expense.id,
        event_id=expense.event_id,
        title=expense.title,
        amount=expense.amount,
        currency=expense.currency,
        payer_id=expense.payer_id,
        is_private=bool(expense.is_private),
        split_type=expense.split_type or "equal",
        splits=[SplitRecord.model_validate(s) for s in expense.splits],
        paid_on_behalf_of=expense.paid_on_behalf_of or [],
    )


# ----- SQLAlchemy implementations -----
class SqlExpenseStore:
    def __init__(self, db: Session):
        self.db = db

    def get_expenses_for_event(self, event_id: int) -> list[ExpenseRecord]:
        expenses = self.db.query(Expense).filter(Expense.event_id == event_id).order_by(Expense.id).all()
        return [expense_record(e) for e in expenses]


class SqlGroupStore:
    def __init__(self, db: Session):
        self.db = db

    def get_groups_for_event(self, event_id: int) -> list[GroupRecord]:
        groups = self.db.query(Group).filter(Group.event_id == event_id).order_by(Group.id).all()
        return [group_record(g) for g in groups]


class SqlSettlementStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, settlement_id: int) -> Optional[SettlementRecord]:
        row = self.db.query(Settlement).filter(Settlement.id == settlement_id).first()
        return SettlementRecord.model_validate(row) if row else None

    def list_by_event(self, event_id: int) -> list[SettlementRecord]:
        rows = self.db.query(Settlement).filter(Settlement.event_id == event_id).order_by(Settlement.id).all()
        return [SettlementRecord.model_validate(r) for r in rows]

    def bulk_delete(self, ids: list[int]) -> None:
        if not ids:
            return
        self.db.query(Settlement).filter(Settlement.id.in_(ids)).delete(synchronize_session=False)
        self.db.commit()

    def create(self, record: SettlementRecord) -> int:
        row = Settlement(**record.model_dump(exclude={"id", "created_at"}))
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row.id

    def update_status(self, settlement_id: int, expected_status: SettlementStatus, patch: dict) -> bool:
        updated = (
            self.db.query(Settlement)
            .filter(Settlement.id == settlement_id, Settlement.status == expected_status)
            .update(patch, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1


class SqlEventStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, event_id: int) -> Optional[EventRecord]:
        event = self.db.query(Event).filter(Event.id == event_id).first()
        return event_record(event) if event else None

    def update_status(self, event_id: int, status: str) -> None:
        self.db.query(Event).filter(Event.id == event_id).update({"status": status}, synchronize_session=False)
        self.db.commit()


class SqlRateCache:
    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[RateTable]:
        entry = self.db.query(FxRateCacheEntry).filter(FxRateCacheEntry.key == key).first()
        return dict(entry.rates) if entry and entry.rates else None

    def put(self, key: str, table: RateTable) -> None:
        base, _, day = key.partition("_")
        try:
            self.db.merge(FxRateCacheEntry(key=key, base=base, date=day, rates=dict(table)))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
