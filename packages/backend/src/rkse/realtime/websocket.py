"""WebSocket endpoint — delivers relay frames to live clients.

Learn: Each client connects to /ws and gets its own DeliverySession:

    CONNECTED ──client close / hub closed / send failed──> CLOSING ──> CLOSED

Every loop iteration waits on two things at once and handles whichever
finishes first:
1. the next inbound client message (drained and ignored, except close)
2. the next hub message for this client's cursor (sent as a JSON frame)

The task that didn't finish is kept for the next iteration rather than
cancelled, so no inbound message or hub message is ever lost between
iterations.

A session only reads from the hub. Whatever happens to one session
(slow reader, broken socket) never affects the relay or other sessions.
"""

import asyncio
import uuid
from enum import Enum
from typing import Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from rkse.realtime.hub import BroadcastHub, HubClosed, HubConsumer, HubLagged
from rkse.schemas.relay import encode_frame

logger = structlog.get_logger()
router = APIRouter()

# Close codes (RFC 6455)
CLOSE_GOING_AWAY = 1001
CLOSE_INTERNAL_ERROR = 1011


class SessionState(str, Enum):
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


class DeliverySession:
    """Pumps hub messages to one WebSocket client."""

    def __init__(
        self,
        websocket: WebSocket,
        consumer: HubConsumer,
        session_id: Optional[str] = None,
    ):
        self.websocket = websocket
        self.consumer = consumer
        self.session_id = session_id or str(uuid.uuid4())
        self.state = SessionState.CONNECTED
        self.frames_sent = 0
        self.skipped = 0

    async def run(self) -> None:
        """Run until the client leaves, the hub closes, or a send fails."""
        with structlog.contextvars.bound_contextvars(session_id=self.session_id):
            logger.info("session.connected")
            inbound: Optional[asyncio.Task] = None
            outbound: Optional[asyncio.Task] = None
            try:
                while self.state is SessionState.CONNECTED:
                    if inbound is None:
                        inbound = asyncio.create_task(self.websocket.receive())
                    if outbound is None:
                        outbound = asyncio.create_task(self.consumer.recv())

                    done, _ = await asyncio.wait(
                        {inbound, outbound},
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                    if inbound in done:
                        task, inbound = inbound, None
                        await self._on_client_event(task)

                    if outbound in done and self.state is SessionState.CONNECTED:
                        task, outbound = outbound, None
                        await self._on_hub_event(task)
            finally:
                self.consumer.close()
                self.state = SessionState.CLOSED
                logger.info(
                    "session.closed",
                    frames_sent=self.frames_sent,
                    skipped=self.skipped,
                )
                await self._discard(inbound, outbound)

    async def _on_client_event(self, task: asyncio.Task) -> None:
        try:
            message = task.result()
        except (RuntimeError, OSError) as e:
            logger.error("session.receive_failed", error=str(e))
            await self._close(CLOSE_INTERNAL_ERROR)
            return

        if message["type"] == "websocket.disconnect":
            # The ASGI server already answered the client's close frame
            logger.info("session.client_closed", code=message.get("code"))
            self.state = SessionState.CLOSING
        else:
            logger.debug(
                "session.inbound_ignored",
                binary=message.get("bytes") is not None,
            )

    async def _on_hub_event(self, task: asyncio.Task) -> None:
        try:
            message = task.result()
        except HubLagged as e:
            # The client just misses those messages; no gap notice is sent
            self.skipped += e.skipped
            logger.warning("session.lagged", skipped=e.skipped)
            return
        except HubClosed:
            logger.info("session.hub_closed")
            await self._close(CLOSE_GOING_AWAY)
            return

        frame = encode_frame(message)
        try:
            await self.websocket.send_text(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.warning("session.send_failed", error=str(e))
            self.state = SessionState.CLOSED
            return

        self.frames_sent += 1
        logger.debug("session.frame_sent", frame=frame)

    async def _close(self, code: int) -> None:
        self.state = SessionState.CLOSING
        if (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await self.websocket.close(code=code)
            except (RuntimeError, OSError) as e:
                logger.debug("session.close_failed", error=str(e))
        self.state = SessionState.CLOSED

    @staticmethod
    async def _discard(*tasks: Optional[asyncio.Task]) -> None:
        """Cancel unfinished tasks and collect results nobody will read."""
        pending = [t for t in tasks if t is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


@router.websocket("/ws")
async def relay_websocket(websocket: WebSocket):
    """Live relay frames for one client.

    Subscribing before accept() means a client sees every message
    published after its handshake completes.
    """
    hub: BroadcastHub = websocket.app.state.hub
    with hub.subscribe() as consumer:
        await websocket.accept()
        await DeliverySession(websocket, consumer).run()
