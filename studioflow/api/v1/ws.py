"""WebSocket room streaming project broadcasts."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from studioflow.auth.rbac import PROJECTS_READ, require_scopes
from studioflow.core.config import get_config
from studioflow.core.dependencies import get_current_user
from studioflow.core.exceptions import AuthenticationError, AuthorizationError
from studioflow.events.bus import get_event_bus, project_topic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

UNAUTHORIZED_CLOSE_CODE = 4001


@router.websocket("/ws/projects/{project_id}")
async def project_updates(websocket: WebSocket, project_id: int, token: str | None = Query(default=None)) -> None:
    """Join the project's room and forward every broadcast as JSON.

    Browsers cannot set headers on a WebSocket handshake, so the bearer token
    travels as the ``token`` query parameter.
    """
    try:
        if not token:
            raise AuthenticationError("token query parameter is required.")
        user = get_current_user(token=token, settings=get_config())
        require_scopes(user.role, [PROJECTS_READ])
    except (AuthenticationError, AuthorizationError) as exc:
        logger.info(
            "ws.project.denied",
            extra={"event": "ws.project.denied", "project_id": project_id, "error": str(exc)},
        )
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    async def _pump() -> None:
        while True:
            payload = await queue.get()
            await websocket.send_json(payload)

    async def _drain() -> None:
        while True:
            await websocket.receive_text()

    # Subscribed before the handshake completes; released on every exit path.
    unsubscribe = get_event_bus().subscribe(
        project_topic(project_id), lambda _topic, payload: loop.call_soon_threadsafe(queue.put_nowait, payload)
    )
    tasks: set[asyncio.Task] = set()
    try:
        await websocket.accept()
        logger.info(
            "ws.project.joined",
            extra={"event": "ws.project.joined", "project_id": project_id, "user_id": user.user_id},
        )
        tasks = {asyncio.create_task(_pump()), asyncio.create_task(_drain())}
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unsubscribe()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
        exc = task.exception()
        if exc is not None and not isinstance(exc, WebSocketDisconnect):
            logger.warning(
                "ws.project.stream_failed",
                extra={"event": "ws.project.stream_failed", "project_id": project_id, "error": str(exc)},
            )
    logger.info(
        "ws.project.left",
        extra={"event": "ws.project.left", "project_id": project_id, "user_id": user.user_id},
    )
