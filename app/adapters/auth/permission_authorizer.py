"""PermissionAuthorizer — capability checks over dotted permission strings.

Permissions arrive from the gateway as names like ``conversations.close``.
A trailing ``*`` segment grants everything below it (``conversations.*``),
and a bare ``*`` grants everything.
"""

from __future__ import annotations

import logging

from app.application.ports.authorizer import Authorizer
from app.domain.entities.conversation import Conversation
from app.domain.value_objects.actor import Actor

logger = logging.getLogger(__name__)

RESOURCE = "conversations"
ALL_ORGANIZATIONS = "organizations.all"


def grants(held: str, required: str) -> bool:
    """Whether permission *held* covers permission *required*."""
    if held == "*" or held == required:
        return True
    if held.endswith(".*"):
        prefix = held[:-1]
        return required.startswith(prefix)
    return False


def has_permission(permissions, required: str) -> bool:
    return any(grants(p, required) for p in permissions)


class PermissionAuthorizer(Authorizer):
    async def can_act(self, actor: Actor, action: str, conversation: Conversation) -> bool:
        required = f"{RESOURCE}.{action}"
        allowed = has_permission(actor.permissions, required)
        if not allowed:
            logger.info(
                "Denied %s to user %s on conversation %s", required, actor.user_id, conversation.id
            )
        return allowed

    async def can_access_all_organizations(self, actor: Actor) -> bool:
        return has_permission(actor.permissions, ALL_ORGANIZATIONS)
