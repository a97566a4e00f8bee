"""Net balances per entity (user or group) from an event's expenses.

Positive balance = entity is owed money, negative balance = entity owes money.
"""
from settleup.errors import ValidationError
from settleup.schemas import Balance, EntityRef, ExpenseRecord, SplitRecord
from settleup.services.group_resolver import GroupResolver

BALANCE_TOLERANCE = 0.01


def compute_balances(expenses: list[ExpenseRecord], resolver: GroupResolver) -> list[Balance]:
    """Balances in order of each entity's first appearance; settled entities are omitted."""
    totals: dict[EntityRef, float] = {}

    for e in expenses:
        if e.is_private:
            continue
        if e.amount <= 0:
            raise ValueError(f"Expense {e.id} has non-positive amount {e.amount}")

        payer_entity = resolver.entity_for_user(e.payer_id)
        totals[payer_entity] = totals.get(payer_entity, 0.0) + e.amount

        on_behalf = bool(e.paid_on_behalf_of)
        for s in e.splits:
            if s.amount < 0:
                raise ValueError(f"Expense {e.id} has a negative split for {s.entity_type} {s.entity_id}")
            entity = resolver.resolve(s.entity_type, s.entity_id)
            # Paying on behalf of others: the payer's own share is zero.
            if on_behalf and entity == payer_entity:
                continue
            totals[entity] = totals.get(entity, 0.0) - s.amount

    balances = []
    for entity, amount in totals.items():
        amount = round(amount, 2)
        if abs(amount) > BALANCE_TOLERANCE:
            balances.append(Balance(entity_id=entity.entity_id, entity_type=entity.entity_type, amount=amount))
    return balances


def validate_splits(amount: float, split_type: str, splits: list[SplitRecord], is_private: bool = False) -> None:
    if is_private or split_type != "custom" or not splits:
        return
    total = round(sum(s.amount for s in splits), 2)
    if abs(total - amount) > BALANCE_TOLERANCE:
        raise ValidationError(f"Split amounts ({total}) must sum to the total expense amount ({amount})")


def equal_splits(amount: float, entities: list[EntityRef]) -> list[SplitRecord]:
    """Even share per entity; the rounding remainder goes to the first one."""
    if not entities:
        raise ValidationError("At least one participant required")
    per_entity = round(amount / len(entities), 2)
    remainder = round(amount - per_entity * len(entities), 2)
    return [
        SplitRecord(
            entity_type=e.entity_type,
            entity_id=e.entity_id,
            amount=round(per_entity + remainder, 2) if i == 0 else per_entity,
        )
        for i, e in enumerate(entities)
    ]


def ratio_splits(amount: float, weighted: list[SplitRecord]) -> list[SplitRecord]:
    total_ratio = sum(s.ratio or 0 for s in weighted)
    if total_ratio <= 0:
        raise ValidationError("Total ratio must be positive")
    return [
        SplitRecord(
            entity_type=s.entity_type,
            entity_id=s.entity_id,
            amount=round(amount * (s.ratio or 0) / total_ratio, 2),
            ratio=s.ratio,
        )
        for s in weighted
    ]
