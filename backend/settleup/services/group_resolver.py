"""Roll individual users up into the group entity they belong to within an event."""
import logging
from typing import Iterable, Optional

from settleup.schemas import EntityRef, EntityType, GroupRecord

logger = logging.getLogger("settleup.services.group_resolver")


class GroupResolver:
    """Lookup from member user id to group entity, plus group payer resolution.

    A user is expected to belong to at most one group per event. When
    memberships overlap, the first group in input order wins.
    """

    def __init__(self, groups: Iterable[GroupRecord] = ()):
        self._groups: dict[int, GroupRecord] = {}
        self._user_to_group: dict[int, int] = {}
        for group in groups:
            self._groups[group.id] = group
            for member_id in group.member_ids:
                existing = self._user_to_group.get(member_id)
                if existing is None:
                    self._user_to_group[member_id] = group.id
                elif existing != group.id:
                    logger.warning(
                        "User %s is in groups %s and %s; keeping %s",
                        member_id, existing, group.id, existing,
                    )

    def group(self, group_id: int) -> Optional[GroupRecord]:
        return self._groups.get(group_id)

    def group_for_user(self, user_id: int) -> Optional[int]:
        return self._user_to_group.get(user_id)

    def entity_for_user(self, user_id: int) -> EntityRef:
        group_id = self._user_to_group.get(user_id)
        if group_id is not None:
            return EntityRef(entity_type="group", entity_id=group_id)
        return EntityRef(entity_type="user", entity_id=user_id)

    def resolve(self, entity_type: EntityType, entity_id: int) -> EntityRef:
        if entity_type == "group":
            return EntityRef(entity_type="group", entity_id=entity_id)
        return self.entity_for_user(entity_id)

    def payer_for(self, entity: EntityRef) -> int:
        """Real user id who pays or receives money on behalf of ``entity``."""
        if entity.entity_type == "user":
            return entity.entity_id
        group = self._groups.get(entity.entity_id)
        if group is None:
            return entity.entity_id
        return group.payer_id
