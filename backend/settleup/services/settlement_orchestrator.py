"""Entry point of the settlement core: balances, plan generation, lifecycle and event status."""
import logging
import threading
from collections import defaultdict

from settleup.errors import Forbidden, InvalidState, NotFound
from settleup.schemas import Balance, EventRecord, SettlementPlan, SettlementRecord
from settleup.services.balance_calculator import compute_balances
from settleup.services.fx_rates import FxRateResolver
from settleup.services.group_resolver import GroupResolver
from settleup.services.settlement_lifecycle import SettlementLifecycle
from settleup.services.settlement_planner import plan_settlements
from settleup.stores import EventStore, ExpenseStore, GroupStore, SettlementStore

logger = logging.getLogger("settleup.services.settlement_orchestrator")

# Regeneration deletes then rewrites an event's settlements; serialize it per
# event within this process. Multi-instance deployments need a shared lock.
_event_locks: defaultdict = defaultdict(threading.Lock)
_event_locks_guard = threading.Lock()


def event_lock(event_id: int) -> threading.Lock:
    with _event_locks_guard:
        return _event_locks[event_id]


def discard_event_lock(event_id: int) -> None:
    """Forget the lock of an event that no longer exists."""
    with _event_locks_guard:
        _event_locks.pop(event_id, None)


class SettlementOrchestrator:
    def __init__(
        self,
        events: EventStore,
        expenses: ExpenseStore,
        groups: GroupStore,
        settlements: SettlementStore,
        fx: FxRateResolver,
    ):
        self.events = events
        self.expenses = expenses
        self.groups = groups
        self.settlements = settlements
        self.fx = fx
        self.lifecycle = SettlementLifecycle(settlements)

    def _event(self, event_id: int) -> EventRecord:
        event = self.events.get(event_id)
        if event is None:
            raise NotFound("Event not found")
        return event

    def _resolver(self, event_id: int) -> GroupResolver:
        return GroupResolver(self.groups.get_groups_for_event(event_id))

    def compute_balances(self, event_id: int) -> list[Balance]:
        resolver = self._resolver(event_id)
        return compute_balances(self.expenses.get_expenses_for_event(event_id), resolver)

    def generate_settlement(self, event_id: int, actor_id: int) -> SettlementPlan:
        event = self._event(event_id)
        if not event.is_admin(actor_id):
            raise Forbidden("Only admins can generate settlements")
        if event.status == "closed":
            raise InvalidState("Cannot generate settlements for a closed event")

        resolver = self._resolver(event_id)
        balances = compute_balances(self.expenses.get_expenses_for_event(event_id), resolver)
        plan = plan_settlements(balances, event_id, event.currency, resolver)

        if event.settlement_currency and event.settlement_currency != event.currency and plan.settlements:
            fx_rate = self.fx.get_rate(
                event.currency, event.settlement_currency, event.predefined_fx_rates, event.fx_rate_mode,
            )
            for s in plan.settlements:
                s.settlement_amount = self.fx.convert(s.amount, fx_rate.rate)
                s.settlement_currency = event.settlement_currency
                s.fx_rate = fx_rate.rate

        with event_lock(event_id):
            existing = self.settlements.list_by_event(event_id)
            self.settlements.bulk_delete([s.id for s in existing])
            for s in plan.settlements:
                s.id = self.settlements.create(s)
            status = "settled" if plan.total_transactions == 0 else "payment"
            self.events.update_status(event_id, status)

        logger.info(
            "Generated %d settlements (%s %s) for event %s, replaced %d; event is now %s",
            plan.total_transactions, plan.total_amount, event.currency, event_id, len(existing), status,
        )
        return plan

    def list_settlements(self, event_id: int) -> list[SettlementRecord]:
        self._event(event_id)
        return self.settlements.list_by_event(event_id)

    def pending_total(self, event_id: int) -> float:
        return round(sum(s.amount for s in self.list_settlements(event_id) if s.status == "pending"), 2)

    def _require_payment_phase(self, settlement_id: int) -> SettlementRecord:
        settlement = self.settlements.get(settlement_id)
        if settlement is None:
            raise NotFound("Settlement not found")
        event = self._event(settlement.event_id)
        if event.status != "payment":
            raise InvalidState(f"Event is {event.status}, settlements can only change during payment")
        return settlement

    def initiate(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        self._require_payment_phase(settlement_id)
        return self.lifecycle.initiate(settlement_id, actor_id)

    def retry(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        self._require_payment_phase(settlement_id)
        return self.lifecycle.retry(settlement_id, actor_id)

    def approve(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        event_id = self._require_payment_phase(settlement_id).event_id
        # The completion check must see every concurrent approval of this event.
        with event_lock(event_id):
            settlement = self.lifecycle.approve(settlement_id, actor_id)
            remaining = [s for s in self.settlements.list_by_event(event_id) if s.status != "completed"]
            if not remaining:
                self.events.update_status(event_id, "settled")
                logger.info("All settlements completed; event %s is settled", event_id)
        return settlement

    def reject(self, settlement_id: int, actor_id: int, reason: str, failed: bool = False) -> SettlementRecord:
        self._require_payment_phase(settlement_id)
        return self.lifecycle.reject(settlement_id, actor_id, reason, failed)

    def mark_failed(self, settlement_id: int, actor_id: int, reason: str) -> SettlementRecord:
        self._require_payment_phase(settlement_id)
        return self.lifecycle.mark_failed(settlement_id, actor_id, reason)

    def terminate_event(self, event_id: int) -> int:
        with event_lock(event_id):
            terminated = self.lifecycle.terminate_for_event(event_id, "Event deleted")
        discard_event_lock(event_id)
        return terminated
