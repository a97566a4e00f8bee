"""Per-settlement state machine.

    pending | failed --initiate (payer)--> initiated --approve (payee)--> completed
    initiated --reject (payee)--> pending | failed
    pending | initiated --mark_failed (payer)--> failed
    any non-terminal --terminate (admin, event deleted)--> terminated

Initiating from ``failed`` is a retry and bumps ``retry_count``. Every
transition is a compare-and-swap on the expected current status, so two
actors racing on the same settlement cannot both succeed.
"""
import logging
from datetime import datetime, timezone

from settleup.errors import Forbidden, InvalidState, NotFound
from settleup.schemas import SettlementRecord
from settleup.services.fx_rates import get_payment_provider
from settleup.stores import SettlementStore

logger = logging.getLogger("settleup.services.settlement_lifecycle")

TERMINAL_STATUSES = ("completed", "terminated")
INITIABLE_STATUSES = ("pending", "failed")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SettlementLifecycle:
    def __init__(self, store: SettlementStore):
        self.store = store

    def _get(self, settlement_id: int) -> SettlementRecord:
        settlement = self.store.get(settlement_id)
        if settlement is None:
            raise NotFound("Settlement not found")
        return settlement

    def _transition(self, settlement: SettlementRecord, expected: str, patch: dict) -> SettlementRecord:
        if settlement.status != expected:
            raise InvalidState(f"Settlement is {settlement.status}, expected {expected}")
        if not self.store.update_status(settlement.id, expected, patch):
            raise InvalidState("Settlement was modified concurrently")
        logger.info("Settlement %s: %s -> %s", settlement.id, expected, patch["status"])
        return settlement.model_copy(update=patch)

    def initiate(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        settlement = self._get(settlement_id)
        if actor_id != settlement.from_user_id:
            raise Forbidden("Only the payer can initiate this settlement")
        if settlement.status not in INITIABLE_STATUSES:
            raise InvalidState(f"Cannot initiate payment: settlement is already {settlement.status}")
        retry_count = settlement.retry_count + (1 if settlement.status == "failed" else 0)
        provider = get_payment_provider(settlement.settlement_currency or settlement.currency)
        return self._transition(settlement, settlement.status, {
            "status": "initiated",
            "payment_provider": provider,
            "initiated_at": _now(),
            "rejection_reason": None,
            "failure_reason": None,
            "failed_at": None,
            "retry_count": retry_count,
        })

    def retry(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        """The payer starts a fresh payment attempt, abandoning one still in flight."""
        settlement = self._get(settlement_id)
        if actor_id != settlement.from_user_id:
            raise Forbidden("Only the payer can retry this settlement")
        if settlement.status == "initiated":
            self._transition(settlement, "initiated", {
                "status": "failed",
                "failure_reason": "retry_requested_by_payer",
                "failed_at": _now(),
            })
        return self.initiate(settlement_id, actor_id)

    def approve(self, settlement_id: int, actor_id: int) -> SettlementRecord:
        settlement = self._get(settlement_id)
        if actor_id != settlement.to_user_id:
            raise Forbidden("Only the payee can approve this settlement")
        return self._transition(settlement, "initiated", {"status": "completed", "completed_at": _now()})

    def reject(self, settlement_id: int, actor_id: int, reason: str, failed: bool = False) -> SettlementRecord:
        settlement = self._get(settlement_id)
        if actor_id != settlement.to_user_id:
            raise Forbidden("Only the payee can reject this settlement")
        if failed:
            patch = {"status": "failed", "failure_reason": reason, "rejection_reason": reason, "failed_at": _now()}
        else:
            patch = {"status": "pending", "rejection_reason": reason, "initiated_at": None}
        return self._transition(settlement, "initiated", patch)

    def mark_failed(self, settlement_id: int, actor_id: int, reason: str) -> SettlementRecord:
        """The payer reports that the external payment action failed."""
        settlement = self._get(settlement_id)
        if actor_id != settlement.from_user_id:
            raise Forbidden("Only the payer can report a failed payment")
        if settlement.status not in ("pending", "initiated"):
            raise InvalidState(f"Settlement is {settlement.status}, cannot fail")
        return self._transition(settlement, settlement.status, {
            "status": "failed",
            "failure_reason": reason,
            "failed_at": _now(),
        })

    def terminate_for_event(self, event_id: int, reason: str) -> int:
        """Administrative bulk transition; bypasses actor checks. Returns how many were terminated."""
        terminated = 0
        for settlement in self.store.list_by_event(event_id):
            if settlement.status in TERMINAL_STATUSES:
                continue
            patch = {"status": "terminated", "terminated_reason": reason, "terminated_at": _now()}
            if self.store.update_status(settlement.id, settlement.status, patch):
                terminated += 1
        logger.info("Terminated %d settlements for event %s", terminated, event_id)
        return terminated
