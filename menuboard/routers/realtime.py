from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, WebSocket

from menuboard.services.change_feed import MENU_ITEMS_TABLE, EventStream, get_change_feed

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


async def _forward(websocket: WebSocket, stream: EventStream) -> None:
    async for event in stream:
        await websocket.send_json(event.to_payload())


@router.websocket("/realtime/menu-items")
async def menu_items_feed(websocket: WebSocket):
    stream = get_change_feed(websocket.app).open_stream(MENU_ITEMS_TABLE)
    await websocket.accept()
    logger.info("realtime subscriber connected", extra={"table": MENU_ITEMS_TABLE})

    forward = asyncio.create_task(_forward(websocket, stream))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        stream.close()
        forward.cancel()
        try:
            await forward
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("realtime forwarder stopped with an error")
        logger.info("realtime subscriber disconnected", extra={"table": MENU_ITEMS_TABLE})
