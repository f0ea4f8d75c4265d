"""
Tests for the ownership-aware access policy.
"""
from types import SimpleNamespace

import pytest

from app.features.permissions.models import Permission
from app.features.permissions.policy import OWNERSHIP_RULES, Action, can_perform, can_view, is_owner


@pytest.fixture
def record():
    """Contractor managed by u1 and created by u2."""
    return SimpleNamespace(manager_id="u1", created_by_id="u2")


class TestIsOwner:

    def test_manager_and_creator_own_the_record(self, record):
        assert is_owner("u1", record)
        assert is_owner("u2", record)

    def test_other_users_do_not(self, record):
        assert not is_owner("u3", record)

    def test_unassigned_record_has_no_owner(self):
        assert not is_owner("u1", SimpleNamespace(manager_id=None, created_by_id=None))


class TestCanPerform:

    @pytest.mark.parametrize("action", list(Action))
    def test_own_permission_needs_ownership(self, record, action):
        own = {OWNERSHIP_RULES[action].own.value}
        assert can_perform(own, "u1", record, action) is True
        assert can_perform(own, "u3", record, action) is False

    @pytest.mark.parametrize("action", list(Action))
    def test_all_permission_ignores_ownership(self, record, action):
        assert can_perform({OWNERSHIP_RULES[action].all.value}, "u3", record, action) is True

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_allows_every_action(self, record, action):
        assert can_perform({Permission.ADMIN.value}, "u3", record, action) is True

    def test_families_are_independent(self, record):
        edit_only = {Permission.EDIT_ALL_CLIENTS.value}
        assert can_perform(edit_only, "u1", record, Action.EDIT) is True
        assert can_perform(edit_only, "u1", record, Action.HIDE) is False
        assert can_perform(edit_only, "u1", record, Action.DELETE) is False

    def test_no_permissions_denies_owner(self, record):
        assert can_perform(set(), "u1", record, Action.EDIT) is False

    def test_ownership_is_read_from_current_record(self, record):
        own = {Permission.EDIT_OWN_CLIENT.value}
        assert can_perform(own, "u1", record, Action.EDIT)
        record.manager_id = "u4"
        assert not can_perform(own, "u1", record, Action.EDIT)


class TestCanView:

    def test_view_all_sees_visible_records(self, record):
        assert can_view({Permission.VIEW_ALL_CLIENTS.value}, "u3", record, is_hidden=False)

    def test_owner_sees_own_record_without_view_all(self, record):
        assert can_view(set(), "u1", record, is_hidden=False)
        assert not can_view(set(), "u3", record, is_hidden=False)

    def test_hidden_record_needs_hide_permission(self, record):
        view_all = {Permission.VIEW_ALL_CLIENTS.value}
        assert not can_view(view_all, "u1", record, is_hidden=True)
        assert can_view(view_all | {Permission.HIDE_OWN_CLIENT.value}, "u1", record, is_hidden=True)
        assert not can_view(view_all | {Permission.HIDE_OWN_CLIENT.value}, "u3", record, is_hidden=True)
        assert can_view(view_all | {Permission.HIDE_ALL_CLIENTS.value}, "u3", record, is_hidden=True)
