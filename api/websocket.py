"""
WebSocket 事件串流

每個事件推送一個 text frame（JSON），內容與 SSE 的 data 相同。
比賽不存在時在 handshake 階段以 1008 關閉；
重播歷史事件時佇列塞滿則以 1013（try again later）關閉。
"""
import asyncio
import json

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import logging

from schemas import to_wire
from core.context import MatchContext, get_context
from core.event_hub import QueueSink
from core.exceptions import Rejected, Rejection

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


@router.websocket("/ws/matches/{match_id}")
async def match_event_socket(
    websocket: WebSocket,
    match_id: str,
    ctx: MatchContext = Depends(get_context)
):
    sink = QueueSink(maxsize=ctx.settings.subscriber_queue_size)
    subscription = ctx.open_event_stream(match_id, sink)
    if isinstance(subscription, Rejected):
        if subscription.reason == Rejection.NOT_FOUND:
            await websocket.close(code=1008, reason="Match not found")
        else:
            await websocket.close(code=1013, reason=subscription.detail)
        return

    await websocket.accept()
    logger.info(f"Client {subscription.id} connected to match {match_id} WebSocket")

    async def pump():
        async for event in sink:
            await websocket.send_text(json.dumps(to_wire(event)))

    pump_task = asyncio.create_task(pump())
    try:
        # 只用來偵測斷線；客戶端送來的訊息一律忽略
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        pump_task.cancel()
        await asyncio.gather(pump_task, return_exceptions=True)
        ctx.hub.unsubscribe(match_id, subscription)
        logger.info(f"Client {subscription.id} disconnected from match {match_id}")
