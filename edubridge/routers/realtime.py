"""Change notification streams over chunked HTTP and WebSocket."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse

from ..constants import REALTIME_TABLES
from ..schemas import ChangeEvent
from ..services.realtime import change_feed

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0


def _resolve_tables(requested: list[str] | None) -> list[str]:
    if not requested:
        return list(REALTIME_TABLES)
    unknown = sorted(set(requested) - set(REALTIME_TABLES))
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown table: {', '.join(unknown)}")
    return requested


async def iter_change_lines(
    queue: asyncio.Queue[ChangeEvent],
    *,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Yield one JSON document per event; blank lines keep idle connections open."""

    while not await is_disconnected():
        try:
            event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
        except asyncio.TimeoutError:
            yield "\n"
            continue
        yield event.model_dump_json() + "\n"


@router.get("/realtime/changes")
async def change_stream(request: Request, table: list[str] | None = Query(None)) -> StreamingResponse:
    tables = _resolve_tables(table)
    queue = await change_feed.subscribe(tables)

    async def _body() -> AsyncIterator[str]:
        try:
            async for line in iter_change_lines(queue, is_disconnected=request.is_disconnected):
                yield line
        finally:
            await change_feed.unsubscribe(queue)

    return StreamingResponse(_body(), media_type="application/x-ndjson")


@router.websocket("/ws/changes")
async def change_socket(websocket: WebSocket) -> None:
    """Push change events to the socket; answers ``ping`` with ``pong``."""

    requested = websocket.query_params.getlist("table")
    tables = [name for name in requested if name in REALTIME_TABLES] or list(REALTIME_TABLES)
    queue = await change_feed.subscribe(tables)
    await websocket.accept()
    logger.info("Change socket connected from %s", websocket.client)

    async def _forward() -> None:
        while True:
            event = await queue.get()
            await websocket.send_text(event.model_dump_json())

    forwarder = asyncio.create_task(_forward())
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}

            if isinstance(payload, dict) and (payload.get("type") or "").lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    finally:
        forwarder.cancel()
        await change_feed.unsubscribe(queue)
        logger.info("Change socket disconnected from %s", websocket.client)


__all__ = ["router", "iter_change_lines"]
