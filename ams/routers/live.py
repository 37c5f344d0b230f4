import asyncio
import logging
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ams.core.errors import ValidationError
from ams.models.user import User
from ams.services.backend import Backend, Viewer
from ams.services.live_view import ListView

logger = logging.getLogger(__name__)


async def serve_live_view(
    websocket: WebSocket,
    backend: Backend,
    user: User,
    entity: str,
    grid: bool = False,
) -> None:
    """Drive one ListView from websocket messages until the client leaves.

    Client messages:
      {"type": "filters", "filters": {...}}   update one or more dimensions
      {"type": "clear", "key": ..., "partial": false}
      {"type": "reset"}
      {"type": "page", "page": n}
    """
    await websocket.accept()

    outbox: asyncio.Queue = asyncio.Queue()
    view = ListView(backend, entity, Viewer.from_user(user), grid=grid, on_update=outbox.put_nowait)
    sender = asyncio.create_task(_drain(websocket, outbox))
    view.open()
    logger.info("Live %s view opened for user %s", entity, user.id)

    try:
        while True:
            message = await websocket.receive_json()
            try:
                _dispatch(view, message, outbox)
            except ValidationError as exc:
                outbox.put_nowait({"type": "invalid", "detail": exc.message})
    except WebSocketDisconnect:
        logger.info("Live %s view closed for user %s", entity, user.id)
    finally:
        view.close()
        sender.cancel()


def _dispatch(view: ListView, message: Any, outbox: asyncio.Queue) -> None:
    if not isinstance(message, dict):
        raise ValidationError("message must be a JSON object")

    kind = message.get("type")

    if kind == "filters":
        changes = message.get("filters") or {}
        if not isinstance(changes, dict):
            raise ValidationError("filters must be an object")
        view.update(**changes)
    elif kind == "clear":
        view.clear(str(message.get("key")), partial=bool(message.get("partial", False)))
    elif kind == "reset":
        view.reset()
    elif kind == "page":
        try:
            page_number = int(message.get("page"))
        except (TypeError, ValueError) as exc:
            raise ValidationError("page must be an integer") from exc
        page = view.go_to(page_number)
        outbox.put_nowait({"type": "results", "reason": "page", **page.model_dump(mode="json")})
    else:
        raise ValidationError(f"Unknown message type: {kind}")


async def _drain(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        message = await outbox.get()
        await websocket.send_json(message)
