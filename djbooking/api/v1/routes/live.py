import asyncio
import contextlib
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from jose import JWTError

from djbooking.core.security import verify_access_token
from djbooking.services.realtime import LiveSession, registry, rooms_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live"])


async def _pump(websocket: WebSocket, session: LiveSession) -> None:
    while True:
        message = await session.queue.get()
        await websocket.send_json(message)


async def stop_pump(task: asyncio.Task) -> None:
    """Cancel the sender and collect its outcome; a send on a closed socket is expected here."""
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
        await task


@router.websocket("/ws")
async def live_updates(websocket: WebSocket, token: str = ""):
    """Push channel. Joins the caller's user room, plus the DJ room for DJs."""
    try:
        identity = verify_access_token(token)
    except JWTError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = LiveSession(identity["uid"])
    rooms = rooms_for(identity["uid"], identity["role"])
    for room in rooms:
        registry.join(room, session)
    logger.info("live session %s joined %s", session.id, rooms)

    sender = None
    try:
        # Anything published from here on waits in the queue until the pump starts.
        await websocket.send_json({"event": "connected", "data": {"rooms": rooms}})
        sender = asyncio.create_task(_pump(websocket, session))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        registry.leave_all(session.id)
        if sender:
            await stop_pump(sender)
        logger.info("live session %s left", session.id)
