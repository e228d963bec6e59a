"""
Match API Endpoints（公開）

職責：
1. 查詢比賽列表 / 單場比賽
2. 查詢比賽事件紀錄
3. SSE 事件串流：先重播歷史事件，之後即時推送
"""
import json
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
import logging

from schemas import Match, to_wire
from core.context import MatchContext, get_context
from core.event_hub import QueueSink
from core.exceptions import Rejected, Rejection

router = APIRouter(prefix="/matches", tags=["matches"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[Match])
def list_matches(ctx: MatchContext = Depends(get_context)):
    return ctx.list_matches()


@router.get("/{match_id}", response_model=Match)
def get_match(match_id: str, ctx: MatchContext = Depends(get_context)):
    result = ctx.get_match(match_id)
    if isinstance(result, Rejected):
        raise HTTPException(status_code=404, detail="Match not found")
    return result


@router.get("/{match_id}/events")
def get_match_events(match_id: str, ctx: MatchContext = Depends(get_context)) -> List[Dict[str, Any]]:
    """
    取得比賽所有事件（依發生順序）

    格式與串流推送的單一事件相同
    """
    if ctx.store.get(match_id) is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return [to_wire(event) for event in ctx.store.get_events(match_id)]


@router.get("/{match_id}/events/stream")
async def stream_match_events(match_id: str, ctx: MatchContext = Depends(get_context)):
    """
    SSE 事件串流

    格式：
        : connected           （連線建立）
        data: {...}           （每個事件一個 frame）

    比賽已開始或已結束時，會先收到所有歷史事件。
    歷史事件多到塞不進訂閱佇列時回傳 503。
    """
    sink = QueueSink(maxsize=ctx.settings.subscriber_queue_size)
    subscription = ctx.open_event_stream(match_id, sink)
    if isinstance(subscription, Rejected):
        if subscription.reason == Rejection.NOT_FOUND:
            raise HTTPException(status_code=404, detail="Match not found")
        # 歷史事件超過佇列大小，sink 已被關閉
        raise HTTPException(status_code=503, detail=subscription.detail)

    logger.info(f"Client {subscription.id} connected to match {match_id} SSE stream")

    async def event_stream():
        try:
            yield ": connected\n\n"
            async for event in sink:
                yield f"data: {json.dumps(to_wire(event))}\n\n"
        finally:
            ctx.hub.unsubscribe(match_id, subscription)
            logger.info(f"Client {subscription.id} disconnected from match {match_id}")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        }
    )
