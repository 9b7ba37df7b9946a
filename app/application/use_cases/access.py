"""AccessGuard — organization scoping and capability checks in one place."""

from __future__ import annotations

import logging

from app.application.ports.authorizer import Authorizer
from app.application.ports.conversation_repo import ConversationRepository
from app.domain.entities.conversation import Conversation
from app.domain.exceptions import ConversationNotFound, PermissionDenied
from app.domain.value_objects.actor import Actor
from app.domain.value_objects.query import Scope

logger = logging.getLogger(__name__)


class AccessGuard:
    def __init__(self, authorizer: Authorizer):
        self._authorizer = authorizer

    async def scope_for(self, actor: Actor) -> Scope:
        """Resolve the organization scope an actor operates in.

        An actor without an organization gets the cross-organization scope
        only with an explicit grant, and every such use is logged.

        Raises:
            PermissionDenied: if the actor has neither.
        """
        if actor.organization_id is not None:
            return Scope.for_organization(actor.organization_id)

        if await self._authorizer.can_access_all_organizations(actor):
            logger.info("User %s operating with unrestricted organization scope", actor.user_id)
            return Scope.unrestricted()

        raise PermissionDenied(actor.user_id, "access-all-organizations")

    async def check(self, actor: Actor, action: str, conversation: Conversation, scope: Scope) -> None:
        """Conversations outside the scope look missing; inside it, the
        authorizer decides.
        """
        if not scope.allows(conversation.organization_id):
            raise ConversationNotFound(conversation.id)
        if not await self._authorizer.can_act(actor, action, conversation):
            raise PermissionDenied(actor.user_id, action, conversation.id)

    async def load(
        self,
        conversations: ConversationRepository,
        conversation_id: str,
        actor: Actor,
        action: str,
    ) -> Conversation:
        scope = await self.scope_for(actor)
        conversation = await conversations.get_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        await self.check(actor, action, conversation, scope)
        return conversation
