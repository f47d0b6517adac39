from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from case_chat.api.deps import GatewayDep, UoWFactoryDep
from case_chat.application.exceptions import AppError, UnauthenticatedError, ValidationError
from case_chat.config import settings
from case_chat.infrastructure.ws.protocol import WsInbound, WsOutbound, error_frame
from case_chat.logging_config import correlation_scope
from case_chat.services.presence_gateway import PresenceGateway

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    gateway: GatewayDep,
    uow_factory: UoWFactoryDep,
    token: str | None = Query(None),
) -> None:
    try:
        principal = await gateway.authenticate_connection(token)
    except UnauthenticatedError as exc:
        logger.debug("WS auth failed: %s", exc.detail)
        await websocket.close(code=4001, reason="Authentication failed")
        return

    connection_id = await gateway.manager.connect(websocket, principal)
    await websocket.send_text(
        WsOutbound(
            type="connected",
            data={"connection_id": connection_id, "user_id": principal.subject_id},
        ).model_dump_json()
    )

    with correlation_scope(connection_id):
        heartbeat_task = asyncio.create_task(
            _heartbeat(websocket), name=f"ws-heartbeat-{connection_id}",
        )
        try:
            await _read_loop(websocket, connection_id, gateway, uow_factory)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WS error for %s", connection_id)
        finally:
            heartbeat_task.cancel()
            gateway.on_disconnect(connection_id)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        pass


async def _read_loop(
    ws: WebSocket,
    connection_id: str,
    gateway: PresenceGateway,
    uow_factory: UoWFactoryDep,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except Exception:
            await ws.send_text(error_frame("invalid_payload"))
            continue

        try:
            if msg.type == "ping":
                await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())

            elif msg.type == "join-chat":
                conversation_id = _conversation_id(msg.data)
                async with uow_factory() as uow:
                    await gateway.join(connection_id, conversation_id, uow)
                await ws.send_text(
                    WsOutbound(type="joined", data={"conversation_id": conversation_id}).model_dump_json()
                )

            elif msg.type == "leave-chat":
                conversation_id = _conversation_id(msg.data)
                gateway.leave(connection_id, conversation_id)
                await ws.send_text(
                    WsOutbound(type="left", data={"conversation_id": conversation_id}).model_dump_json()
                )

            elif msg.type == "typing":
                conversation_id = _conversation_id(msg.data)
                await gateway.relay_typing(
                    connection_id, conversation_id, bool(msg.data.get("is_typing", False)),
                )

            else:
                await ws.send_text(error_frame("unknown_type", type=msg.type))

        except AppError as exc:
            await ws.send_text(error_frame(exc.code, exc.detail, request=msg.type))


def _conversation_id(data: dict[str, Any]) -> str:
    conversation_id = data.get("conversation_id")
    if not isinstance(conversation_id, str) or not conversation_id:
        raise ValidationError("conversation_id is required")
    return conversation_id

