import pytest

from settleup.errors import ValidationError
from settleup.schemas import EntityRef, ExpenseRecord, GroupRecord, SplitRecord
from settleup.services.balance_calculator import (
    compute_balances, equal_splits, ratio_splits, validate_splits,
)
from settleup.services.group_resolver import GroupResolver

A, B, C, D = 1, 2, 3, 4
GROUP_1 = 100


def expense(payer, amount, splits, private=False, on_behalf=(), expense_id=1):
    return ExpenseRecord(
        id=expense_id,
        event_id=1,
        title="Dinner",
        amount=amount,
        currency="USD",
        payer_id=payer,
        is_private=private,
        split_type="custom",
        splits=[SplitRecord(entity_type=t, entity_id=i, amount=a) for t, i, a in splits],
        paid_on_behalf_of=[EntityRef(entity_type=t, entity_id=i) for t, i in on_behalf],
    )


def by_entity(balances):
    return {(b.entity_type, b.entity_id): b.amount for b in balances}


def test_no_expenses():
    assert compute_balances([], GroupResolver()) == []


def test_individual_users():
    e = expense(A, 300, [("user", A, 100), ("user", B, 100), ("user", C, 100)])
    balances = by_entity(compute_balances([e], GroupResolver()))
    assert balances == {("user", A): 200, ("user", B): -100, ("user", C): -100}


def test_private_expenses_are_skipped():
    e = expense(A, 100, [("user", B, 100)], private=True)
    assert compute_balances([e], GroupResolver()) == []


def test_user_split_rolls_up_into_group():
    group = GroupRecord(id=GROUP_1, event_id=1, name="Family", member_ids=[A, B], representative_id=A, payer_id=A)
    e = expense(C, 200, [("user", B, 100), ("user", C, 100)])
    balances = by_entity(compute_balances([e], GroupResolver([group])))
    assert balances == {("group", GROUP_1): -100, ("user", C): 100}


def test_payer_in_group_credits_group():
    group = GroupRecord(id=GROUP_1, event_id=1, name="Family", member_ids=[A, B], representative_id=A, payer_id=A)
    e = expense(A, 300, [("group", GROUP_1, 150), ("user", C, 150)])
    balances = by_entity(compute_balances([e], GroupResolver([group])))
    assert balances == {("group", GROUP_1): 150, ("user", C): -150}


def test_user_and_group_with_same_id_do_not_collide():
    group = GroupRecord(id=A, event_id=1, name="Family", member_ids=[C, D], representative_id=C, payer_id=C)
    e = expense(A, 100, [("group", A, 50), ("user", A, 50)])
    balances = by_entity(compute_balances([e], GroupResolver([group])))
    assert balances == {("user", A): 50, ("group", A): -50}


def test_multiple_expenses_net_out():
    e1 = expense(A, 100, [("user", A, 50), ("user", B, 50)], expense_id=1)
    e2 = expense(B, 60, [("user", A, 30), ("user", B, 30)], expense_id=2)
    balances = by_entity(compute_balances([e1, e2], GroupResolver()))
    assert balances == {("user", A): 20, ("user", B): -20}


def test_fully_balanced_entities_are_omitted():
    e1 = expense(A, 50, [("user", B, 50)], expense_id=1)
    e2 = expense(B, 50, [("user", A, 50)], expense_id=2)
    assert compute_balances([e1, e2], GroupResolver()) == []


def test_on_behalf_skips_payer_share():
    e = expense(A, 300, [("user", A, 100), ("user", B, 100), ("user", C, 100)], on_behalf=[("user", B)])
    balances = by_entity(compute_balances([e], GroupResolver()))
    assert balances == {("user", A): 300, ("user", B): -100, ("user", C): -100}


def test_on_behalf_skips_payer_group_share():
    group = GroupRecord(id=GROUP_1, event_id=1, name="Family", member_ids=[A, B], representative_id=A, payer_id=A)
    e = expense(A, 200, [("group", GROUP_1, 100), ("user", C, 100)], on_behalf=[("user", C)])
    balances = by_entity(compute_balances([e], GroupResolver([group])))
    assert balances == {("group", GROUP_1): 200, ("user", C): -100}


def test_empty_on_behalf_list_is_a_normal_expense():
    e = expense(A, 100, [("user", A, 50), ("user", B, 50)], on_behalf=[])
    balances = by_entity(compute_balances([e], GroupResolver()))
    assert balances == {("user", A): 50, ("user", B): -50}


def test_money_is_conserved():
    expenses = [
        expense(A, 100, [("user", A, 33.33), ("user", B, 33.33), ("user", C, 33.34)], expense_id=1),
        expense(B, 45.5, [("user", C, 20.25), ("user", D, 25.25)], expense_id=2),
        expense(D, 12.1, [("user", A, 6.05), ("user", D, 6.05)], expense_id=3),
    ]
    balances = compute_balances(expenses, GroupResolver())
    assert abs(sum(b.amount for b in balances)) <= 0.01 * len(balances)


def test_output_order_is_deterministic():
    e = expense(C, 90, [("user", A, 30), ("user", B, 30), ("user", C, 30)])
    first = compute_balances([e], GroupResolver())
    assert [b.entity_id for b in first] == [C, A, B]
    assert compute_balances([e], GroupResolver()) == first


def test_malformed_amounts_fail_fast():
    with pytest.raises(ValueError):
        compute_balances([expense(A, 0, [])], GroupResolver())
    with pytest.raises(ValueError):
        compute_balances([expense(A, 10, [("user", B, -10)])], GroupResolver())


def test_custom_split_mismatch_is_rejected():
    splits = [SplitRecord(entity_id=A, amount=40), SplitRecord(entity_id=B, amount=40)]
    with pytest.raises(ValidationError):
        validate_splits(100, "custom", splits)


def test_custom_split_within_tolerance_passes():
    splits = [SplitRecord(entity_id=A, amount=33.33), SplitRecord(entity_id=B, amount=66.66)]
    validate_splits(99.995, "custom", splits)
    validate_splits(100, "custom", [SplitRecord(entity_id=A, amount=40)], is_private=True)


def test_equal_splits_give_remainder_to_first():
    entities = [EntityRef(entity_type="user", entity_id=i) for i in (A, B, C)]
    splits = equal_splits(100, entities)
    assert [s.amount for s in splits] == [33.34, 33.33, 33.33]
    assert round(sum(s.amount for s in splits), 2) == 100


def test_ratio_splits():
    weighted = [
        SplitRecord(entity_id=A, amount=0, ratio=1),
        SplitRecord(entity_type="group", entity_id=GROUP_1, amount=0, ratio=3),
    ]
    splits = ratio_splits(200, weighted)
    assert [(s.entity_type, s.amount) for s in splits] == [("user", 50), ("group", 150)]


def test_ratio_splits_need_a_positive_total():
    with pytest.raises(ValidationError):
        ratio_splits(100, [SplitRecord(entity_id=A, amount=0, ratio=0)])
