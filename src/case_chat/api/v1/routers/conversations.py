from __future__ import annotations

from fastapi import APIRouter

from case_chat.api.deps import CurrentAdmin, CurrentPrincipal, FacadeDep, UoWDep
from case_chat.api.v1.schemas.conversation import (
    BindCounterpartRequest,
    BindCounterpartResponse,
    ConversationResponse,
)
from case_chat.api.v1.schemas.message import (
    ClearConversationResponse,
    MarkReadResponse,
    MessageResponse,
)
from case_chat.application.dto.message import CounterpartInfo

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await facade.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_history(
    conversation_id: str,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await facade.get_history(conversation_id, principal, uow)
    return [MessageResponse.from_entity(m) for m in messages]


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_read(
    conversation_id: str,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> MarkReadResponse:
    updated = await facade.mark_read(conversation_id, principal, uow)
    return MarkReadResponse(updated=updated)


@router.delete("/{conversation_id}", response_model=ClearConversationResponse)
async def clear_conversation(
    conversation_id: str,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> ClearConversationResponse:
    removed = await facade.clear_conversation(conversation_id, principal, uow)
    return ClearConversationResponse(deleted_count=removed)


@router.put("/{conversation_id}/counterpart", response_model=BindCounterpartResponse)
async def bind_counterpart(
    conversation_id: str,
    body: BindCounterpartRequest,
    admin: CurrentAdmin,
    facade: FacadeDep,
    uow: UoWDep,
) -> BindCounterpartResponse:
    """Called by the case service when an advisor is assigned."""
    counterpart = CounterpartInfo(
        counterpart_id=body.counterpart_id,
        display_name=body.display_name,
        email=body.email,
        phone=body.phone,
    )
    conv, rebound = await facade.bind_counterpart(
        conversation_id, counterpart, uow, initiator_id=body.initiator_id,
    )
    return BindCounterpartResponse(
        conversation=ConversationResponse.model_validate(conv, from_attributes=True),
        rebound_count=rebound,
    )
