"""
Ownership-aware access policy for contractor records.

Each action family is checked on its own: ADMIN allows everything, the "ALL"
permission of the family allows any record, the "OWN" permission allows only
records the user owns (assigned manager or creator). Ownership is read from the
record as loaded for the current request.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol

from app.features.permissions.dependencies import has_permission
from app.features.permissions.models import Permission


class Action(str, Enum):
    EDIT = "edit"
    DELETE = "delete"
    HIDE = "hide"
    VIEW_HIDDEN = "view_hidden"


@dataclass(frozen=True)
class OwnershipRule:
    all: Permission
    own: Permission


OWNERSHIP_RULES: dict[Action, OwnershipRule] = {
    Action.EDIT: OwnershipRule(all=Permission.EDIT_ALL_CLIENTS, own=Permission.EDIT_OWN_CLIENT),
    Action.DELETE: OwnershipRule(all=Permission.DELETE_ALL_CLIENTS, own=Permission.DELETE_OWN_CLIENT),
    Action.HIDE: OwnershipRule(all=Permission.HIDE_ALL_CLIENTS, own=Permission.HIDE_OWN_CLIENT),
    Action.VIEW_HIDDEN: OwnershipRule(all=Permission.HIDE_ALL_CLIENTS, own=Permission.HIDE_OWN_CLIENT),
}


class OwnedRecord(Protocol):
    manager_id: Optional[str]
    created_by_id: Optional[str]


def is_owner(user_id: str, record: OwnedRecord) -> bool:
    """A user owns a record when they are its assigned manager or its creator."""
    return user_id is not None and user_id in (record.manager_id, record.created_by_id)


def can_perform(
    user_permissions: Iterable[str],
    user_id: str,
    record: OwnedRecord,
    action: Action,
) -> bool:
    rule = OWNERSHIP_RULES[action]
    held = frozenset(user_permissions)

    # has_permission covers ADMIN
    if has_permission(held, rule.all):
        return True

    return has_permission(held, rule.own) and is_owner(user_id, record)


def can_view(user_permissions: Iterable[str], user_id: str, record: OwnedRecord, is_hidden: bool) -> bool:
    """Viewing needs VIEW_ALL_CLIENTS or ownership; hidden records also need VIEW_HIDDEN."""
    held = frozenset(user_permissions)
    if not (has_permission(held, Permission.VIEW_ALL_CLIENTS) or is_owner(user_id, record)):
        return False
    if is_hidden:
        return can_perform(held, user_id, record, Action.VIEW_HIDDEN)
    return True
