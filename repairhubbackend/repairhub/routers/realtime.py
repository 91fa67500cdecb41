# Websocket bridge: one socket per topic. Frames from the client are published
# on the topic, everything published on the topic is forwarded to the client.
import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..deps import channel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

async def _forward(ws: WebSocket, queue: asyncio.Queue):
    while True:
        message = await queue.get()
        await ws.send_json(message)

@router.websocket("/realtime/{topic}")
async def realtime(ws: WebSocket, topic: str):
    await ws.accept()
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = channel.subscribe(topic, queue.put_nowait)
    sender = asyncio.create_task(_forward(ws, queue))
    logger.info("realtime client joined %s", topic)
    try:
        while True:
            message = await ws.receive_json()
            if isinstance(message, dict):
                channel.publish(topic, message)
            else:
                logger.warning("non-object frame on %s dropped", topic)
    except WebSocketDisconnect:
        logger.info("realtime client left %s", topic)
    finally:
        unsubscribe()
        sender.cancel()
