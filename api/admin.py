"""
Admin API Endpoints

職責：
1. 建立比賽 / 建立範例比賽
2. 開始、停止比賽
3. 刪除比賽

所有業務邏輯集中在 LifecycleEngine，這裡只負責把 Rejected 轉成 HTTP 錯誤。
開始 / 停止 / 刪除會動到計時器，必須在 event loop 上執行，所以是 async endpoint。
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
import logging

from schemas import Match, MatchCreate
from core.context import MatchContext, get_context
from core.exceptions import Rejected, Rejection

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

SAMPLE_MATCHES = [
    ("Manchester United", "Liverpool"),
    ("Real Madrid", "Barcelona"),
    ("Bayern Munich", "Borussia Dortmund"),
    ("PSG", "Marseille"),
    ("Juventus", "AC Milan"),
]

_REJECTION_STATUS = {
    Rejection.DUPLICATE_ID: 409,
}


def rejection_to_http(rejected: Rejected) -> HTTPException:
    if rejected.reason == Rejection.NOT_FOUND:
        return HTTPException(status_code=404, detail="Match not found")
    return HTTPException(
        status_code=_REJECTION_STATUS.get(rejected.reason, 400),
        detail=rejected.detail
    )


@router.post("/matches", response_model=Match, status_code=201)
def create_match(match_data: MatchCreate, ctx: MatchContext = Depends(get_context)):
    """
    建立比賽

    返回：
        SCHEDULED 狀態、比分 0-0 的 Match
    """
    try:
        return ctx.create_match(match_data.team_a, match_data.team_b)
    except Exception as e:
        logger.error(f"Failed to create match: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/matches/{match_id}/start", response_model=Match)
async def start_match(match_id: str, ctx: MatchContext = Depends(get_context)):
    """
    開始比賽（開始隨機事件與 SSE / WebSocket 推送）

    錯誤：
        404: 比賽不存在
        400: 比賽已經開始或已經結束
    """
    try:
        result = ctx.start_match(match_id)
    except Exception as e:
        logger.error(f"Failed to start match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start match")

    if isinstance(result, Rejected):
        raise rejection_to_http(result)
    return result


@router.post("/matches/{match_id}/stop", response_model=Match)
async def stop_match(match_id: str, ctx: MatchContext = Depends(get_context)):
    """
    停止比賽：取消計時器，進行中的比賽會立即結束（冪等）

    錯誤：
        404: 比賽不存在
    """
    if ctx.store.get(match_id) is None:
        raise HTTPException(status_code=404, detail="Match not found")

    ctx.engine.stop_match(match_id)
    result = ctx.get_match(match_id)
    if isinstance(result, Rejected):
        raise rejection_to_http(result)
    return result


@router.delete("/matches/{match_id}", status_code=204)
async def delete_match(match_id: str, ctx: MatchContext = Depends(get_context)):
    if not ctx.delete_match(match_id):
        raise HTTPException(status_code=404, detail="Match not found")
    logger.info(f"Deleted match {match_id}")
    return Response(status_code=204)


@router.post("/seed", response_model=List[Match], status_code=201)
def seed_matches(ctx: MatchContext = Depends(get_context)):
    """建立範例比賽（測試用）"""
    created = [ctx.create_match(team_a, team_b) for team_a, team_b in SAMPLE_MATCHES]
    logger.info(f"Seeded {len(created)} sample matches")
    return created
