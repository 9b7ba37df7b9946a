"""Tests for dotted-permission capability checks."""

from datetime import datetime, timezone

import pytest

from app.adapters.auth.permission_authorizer import PermissionAuthorizer, grants, has_permission
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.actor import Actor

T0 = datetime(2026, 3, 2, tzinfo=timezone.utc)


def _conversation():
    return Conversation(id="c1", organization_id="org-1", created_at=T0, last_activity_at=T0)


def test_exact_permission():
    assert grants("conversations.close", "conversations.close")
    assert not grants("conversations.close", "conversations.assign")


def test_resource_wildcard():
    assert grants("conversations.*", "conversations.transfer")
    assert not grants("conversations.*", "organizations.all")


def test_global_wildcard():
    assert grants("*", "conversations.close")
    assert grants("*", "organizations.all")


def test_prefix_is_not_a_wildcard():
    assert not grants("conversations", "conversations.close")
    assert not grants("conv.*", "conversations.close")


def test_has_permission_any_of():
    assert has_permission({"conversations.view", "conversations.close"}, "conversations.close")
    assert not has_permission(set(), "conversations.view")


@pytest.mark.asyncio
async def test_can_act_maps_action_to_capability():
    authorizer = PermissionAuthorizer()
    actor = Actor(user_id="u1", organization_id="org-1", permissions=frozenset({"conversations.assign"}))

    assert await authorizer.can_act(actor, "assign", _conversation())
    assert not await authorizer.can_act(actor, "close", _conversation())


@pytest.mark.asyncio
async def test_all_organizations_requires_explicit_grant():
    authorizer = PermissionAuthorizer()
    supervisor = Actor(user_id="u1", organization_id=None, permissions=frozenset({"conversations.*"}))
    admin = Actor(user_id="u2", organization_id=None, permissions=frozenset({"organizations.all"}))

    assert not await authorizer.can_access_all_organizations(supervisor)
    assert await authorizer.can_access_all_organizations(admin)
