from __future__ import annotations

from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import ForbiddenError, NotFoundError
from case_chat.domain.entities.conversation import Conversation
from case_chat.domain.value_objects.enums import Operation


def authorize(
    principal: Principal,
    conversation: Conversation | None,
    operation: Operation,
    *,
    pending_observer_roles: list[str] | None = None,
) -> Conversation:
    """Raise unless ``principal`` may perform ``operation`` on the conversation.

    Participants may do everything, except that the counterpart slot only
    exists once bound. Observers in ``pending_observer_roles`` may read a
    conversation while its counterpart is still unbound.
    """
    if conversation is None:
        raise NotFoundError("Conversation not found")

    actor_id = principal.subject_id
    if conversation.is_participant(actor_id):
        return conversation

    if (
        operation == Operation.READ
        and not conversation.is_bound
        and pending_observer_roles
        and principal.has_any_role(pending_observer_roles)
    ):
        return conversation

    raise ForbiddenError("Not a participant of this conversation")
