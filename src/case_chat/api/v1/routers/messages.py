from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status

from case_chat.api.deps import CurrentPrincipal, FacadeDep, UoWDep
from case_chat.api.v1.schemas.message import (
    EditMessageRequest,
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
)

router = APIRouter(prefix="/api/v1/chat", tags=["messages"])


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> MessageResponse:
    msg = await facade.send_message(body.conversation_id, principal, body.text, uow)
    return MessageResponse.from_entity(msg)


@router.api_route("/messages/{message_id}", methods=["PUT", "PATCH"], response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    body: EditMessageRequest,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> MessageResponse:
    msg = await facade.edit_message(message_id, principal, body.text, uow)
    return MessageResponse.from_entity(msg)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> Response:
    await facade.delete_message(message_id, principal, uow)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count(
    principal: CurrentPrincipal,
    facade: FacadeDep,
    uow: UoWDep,
) -> UnreadCountResponse:
    count = await facade.unread_count(principal, uow)
    return UnreadCountResponse(unread_count=count)
