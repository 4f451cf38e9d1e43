"""
Real-time WebSocket route.

One connection subscribes to one session channel and receives frames
{"event": name, "data": payload}. Connecting counts as a heartbeat, and
any text the client sends refreshes it. Disconnects are non-fatal: the
client refetches message history when it reconnects.
"""

import asyncio
from typing import Annotated, Optional

from fastapi import APIRouter, Header, Query, WebSocket, WebSocketDisconnect
import structlog

from mediator.api.dependencies import BrokerDep, ParticipantServiceDep
from mediator.core.exceptions import AccessDeniedError, SessionNotFoundError
from mediator.services.realtime import Subscription

log = structlog.get_logger(__name__)

router = APIRouter(tags=["realtime"])

POLICY_VIOLATION = 1008


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    async for frame in subscription:
        await websocket.send_json(frame)


@router.websocket("/sessions/{session_id}/events")
async def session_events(
    websocket: WebSocket,
    session_id: str,
    participants: ParticipantServiceDep,
    broker: BrokerDep,
    user_id: Optional[str] = Query(default=None),
    x_user_id: Annotated[Optional[str], Header()] = None,
):
    uid = (x_user_id or user_id or "").strip()
    if not uid:
        await websocket.close(code=POLICY_VIOLATION)
        return

    try:
        await participants.heartbeat(session_id, uid)
    except (SessionNotFoundError, AccessDeniedError) as e:
        log.info("realtime_connection_rejected", session_id=session_id, reason=e.message)
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = broker.subscribe(session_id, uid)
    sender = asyncio.create_task(_pump(websocket, subscription))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Binary frames carry nothing for us
            if message.get("text") is None:
                continue
            await participants.participant_repo.touch(session_id, uid, participants.clock())
    except WebSocketDisconnect:
        log.info("realtime_client_disconnected", session_id=session_id)
    finally:
        subscription.close()
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            pass
