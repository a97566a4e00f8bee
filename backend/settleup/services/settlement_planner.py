"""Minimize number of transfers so every entity is settled (who pays whom)."""
import heapq
import logging
from typing import Optional

from settleup.schemas import Balance, EntityRef, SettlementPlan, SettlementRecord
from settleup.services.group_resolver import GroupResolver

logger = logging.getLogger("settleup.services.settlement_planner")

TOLERANCE = 0.01


def _worklist(parties: list[tuple[int, Balance, float]]) -> list[list]:
    # Max-heap on remaining; ties go to the party that came first in the input.
    heap = [[-remaining, index, balance] for index, balance, remaining in parties]
    heapq.heapify(heap)
    return heap


def plan_settlements(
    balances: list[Balance],
    event_id: int,
    currency: str,
    resolver: Optional[GroupResolver] = None,
) -> SettlementPlan:
    """
    balances: net balance per entity (positive = is owed money, negative = owes money).
    Greedy: the largest remaining debtor pays the largest remaining creditor until
    one side runs out. Not guaranteed globally minimal for every topology.
    """
    resolver = resolver or GroupResolver()
    creditors = []
    debtors = []
    for index, b in enumerate(balances):
        if b.amount > TOLERANCE:
            creditors.append((index, b, b.amount))
        elif b.amount < -TOLERANCE:
            debtors.append((index, b, -b.amount))

    owed = round(sum(r for _, _, r in creditors), 2)
    owing = round(sum(r for _, _, r in debtors), 2)
    if abs(owed - owing) > TOLERANCE * max(len(balances), 1):
        logger.warning("Event %s balances do not net to zero: owed %s, owing %s", event_id, owed, owing)

    debtor_heap = _worklist(debtors)
    creditor_heap = _worklist(creditors)

    out: list[SettlementRecord] = []
    while debtor_heap and creditor_heap:
        debtor = heapq.heappop(debtor_heap)
        creditor = heapq.heappop(creditor_heap)
        d_remaining, c_remaining = -debtor[0], -creditor[0]

        transfer = round(min(d_remaining, c_remaining), 2)
        if transfer > TOLERANCE:
            out.append(_transaction(event_id, currency, debtor[2], creditor[2], transfer, resolver))

        d_remaining = round(d_remaining - transfer, 2)
        c_remaining = round(c_remaining - transfer, 2)
        if d_remaining > TOLERANCE:
            debtor[0] = -d_remaining
            heapq.heappush(debtor_heap, debtor)
        if c_remaining > TOLERANCE:
            creditor[0] = -c_remaining
            heapq.heappush(creditor_heap, creditor)

    return SettlementPlan(
        event_id=event_id,
        settlements=out,
        total_transactions=len(out),
        total_amount=round(sum(s.amount for s in out), 2),
    )


def _transaction(
    event_id: int,
    currency: str,
    debtor: Balance,
    creditor: Balance,
    amount: float,
    resolver: GroupResolver,
) -> SettlementRecord:
    from_entity = EntityRef(entity_type=debtor.entity_type, entity_id=debtor.entity_id)
    to_entity = EntityRef(entity_type=creditor.entity_type, entity_id=creditor.entity_id)
    return SettlementRecord(
        event_id=event_id,
        from_entity_id=from_entity.entity_id,
        from_entity_type=from_entity.entity_type,
        to_entity_id=to_entity.entity_id,
        to_entity_type=to_entity.entity_type,
        from_user_id=resolver.payer_for(from_entity),
        to_user_id=resolver.payer_for(to_entity),
        amount=amount,
        currency=currency,
        status="pending",
    )
