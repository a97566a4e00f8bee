from settleup.schemas import EntityRef, GroupRecord
from settleup.services.group_resolver import GroupResolver


def group(group_id, members, payer):
    return GroupRecord(id=group_id, event_id=1, name=f"G{group_id}", member_ids=members, representative_id=members[0], payer_id=payer)


def test_member_resolves_to_group():
    resolver = GroupResolver([group(10, [1, 2], payer=2)])
    assert resolver.entity_for_user(1) == EntityRef(entity_type="group", entity_id=10)
    assert resolver.entity_for_user(3) == EntityRef(entity_type="user", entity_id=3)


def test_group_entities_are_not_rolled_up_again():
    resolver = GroupResolver([group(10, [1, 2], payer=2)])
    assert resolver.resolve("group", 1) == EntityRef(entity_type="group", entity_id=1)
    assert resolver.resolve("user", 2) == EntityRef(entity_type="group", entity_id=10)


def test_overlapping_membership_keeps_first_group():
    resolver = GroupResolver([group(10, [1, 2], payer=1), group(11, [2, 3], payer=3)])
    assert resolver.group_for_user(2) == 10
    assert resolver.group_for_user(3) == 11


def test_payer_for():
    resolver = GroupResolver([group(10, [1, 2], payer=2)])
    assert resolver.payer_for(EntityRef(entity_type="group", entity_id=10)) == 2
    assert resolver.payer_for(EntityRef(entity_type="user", entity_id=5)) == 5
    assert resolver.payer_for(EntityRef(entity_type="group", entity_id=99)) == 99
