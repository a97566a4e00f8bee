from settleup.schemas import Balance, GroupRecord
from settleup.services.group_resolver import GroupResolver
from settleup.services.settlement_planner import plan_settlements

A, B, C, D, E = 1, 2, 3, 4, 5
GROUP_1 = 100


def bal(entity_id, amount, entity_type="user"):
    return Balance(entity_id=entity_id, entity_type=entity_type, amount=amount)


def test_single_debtor_single_creditor():
    plan = plan_settlements([bal(A, 100), bal(B, -100)], event_id=7, currency="USD")
    assert plan.total_transactions == 1
    s = plan.settlements[0]
    assert (s.from_entity_id, s.to_entity_id, s.amount) == (B, A, 100)
    assert (s.from_user_id, s.to_user_id) == (B, A)
    assert s.status == "pending"
    assert s.currency == "USD"
    assert s.event_id == 7
    assert s.id is None


def test_one_creditor_two_debtors_including_a_group():
    balances = [bal(A, 200), bal(GROUP_1, -120, "group"), bal(C, -80)]
    plan = plan_settlements(balances, event_id=1, currency="USD")
    assert plan.total_transactions == 2
    assert plan.total_amount == 200
    assert [(s.from_entity_type, s.from_entity_id, s.amount) for s in plan.settlements] == [
        ("group", GROUP_1, 120),
        ("user", C, 80),
    ]


def test_group_debtor_pays_through_its_designated_payer():
    group = GroupRecord(id=GROUP_1, event_id=1, name="Family", member_ids=[B, C], representative_id=B, payer_id=C)
    plan = plan_settlements([bal(A, 50), bal(GROUP_1, -50, "group")], 1, "USD", GroupResolver([group]))
    assert plan.settlements[0].from_user_id == C
    assert plan.settlements[0].to_user_id == A


def test_unknown_group_falls_back_to_entity_id():
    plan = plan_settlements([bal(GROUP_1, 50, "group"), bal(B, -50)], 1, "USD", GroupResolver())
    assert plan.settlements[0].to_user_id == GROUP_1


def test_no_balances_no_transactions():
    plan = plan_settlements([], 1, "USD")
    assert plan.total_transactions == 0
    assert plan.total_amount == 0
    assert plan.settlements == []


def test_dust_is_ignored():
    plan = plan_settlements([bal(A, 0.01), bal(B, -0.01)], 1, "USD")
    assert plan.total_transactions == 0


def test_largest_debtor_pays_largest_creditor_first():
    balances = [bal(A, 30), bal(B, 70), bal(C, -20), bal(D, -80)]
    plan = plan_settlements(balances, 1, "USD")
    first = plan.settlements[0]
    assert (first.from_entity_id, first.to_entity_id, first.amount) == (D, B, 70)


def test_ties_go_to_earlier_input():
    balances = [bal(A, 50), bal(B, 50), bal(C, -50), bal(D, -50)]
    plan = plan_settlements(balances, 1, "USD")
    assert [(s.from_entity_id, s.to_entity_id) for s in plan.settlements] == [(C, A), (D, B)]

    reordered = [bal(B, 50), bal(A, 50), bal(D, -50), bal(C, -50)]
    plan = plan_settlements(reordered, 1, "USD")
    assert [(s.from_entity_id, s.to_entity_id) for s in plan.settlements] == [(D, B), (C, A)]


def test_every_participant_ends_at_zero():
    balances = [bal(A, 45.55), bal(B, 12.3), bal(C, 0.15), bal(D, -33.33), bal(E, -24.67)]
    plan = plan_settlements(balances, 1, "USD")
    remaining = {b.entity_id: b.amount for b in balances}
    for s in plan.settlements:
        remaining[s.from_entity_id] += s.amount
        remaining[s.to_entity_id] -= s.amount
    assert all(abs(v) <= 0.01 for v in remaining.values())
    assert plan.total_transactions <= len(balances) - 1


def test_same_balances_give_equal_plans():
    balances = [bal(A, 60), bal(B, 40), bal(C, -25), bal(D, -75)]
    first = plan_settlements(balances, 1, "USD")
    second = plan_settlements(list(balances), 1, "USD")
    assert first == second
