import asyncio
import logging

from fastapi import APIRouter, WebSocket

from evote.notifications import EventBus, QueueSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


async def _forward(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


async def _drain(websocket: WebSocket) -> None:
    # clients only listen; anything they send is ignored until they hang up
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/events")
async def events(websocket: WebSocket) -> None:
    """Push ``{"event": ..., "data": ...}`` frames for every published election event."""
    bus: EventBus = websocket.app.state.notifier
    subscriber = QueueSubscriber(asyncio.get_running_loop())
    bus.subscribe(subscriber)
    try:
        await websocket.accept()
        logger.info("Event stream client connected")
        tasks = {
            asyncio.ensure_future(_forward(websocket, subscriber.queue)),
            asyncio.ensure_future(_drain(websocket)),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Event stream closed: %r", task.exception())
    finally:
        bus.unsubscribe(subscriber)
        logger.info("Event stream client disconnected")
