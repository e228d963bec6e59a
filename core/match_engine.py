"""
Match Lifecycle Engine：管理比賽的完整生命週期

職責：
1. 建立比賽（SCHEDULED，比分 0-0）
2. 開始比賽（SCHEDULED -> LIVE），啟動事件計時器與終場計時器
3. 比賽進行中隨機產生事件（進球、犯規、黃紅牌）
4. 結束比賽（LIVE -> ENDED），取消該場比賽所有計時器

原則：
- 唯一的寫入者：比賽狀態與事件紀錄只由這裡透過 StateStore 寫入
- 所有狀態變更經過 MatchStateMachine
- 拒絕以 Rejected 回傳，不往外拋異常
- 計時器裡遇到比賽消失、已結束，一律安靜放棄

計時器模型：
每場 LIVE 的比賽在 self._timers 有一筆 MatchTimers，
裡面是兩個 asyncio.Task：事件迴圈（event_task）與終場計時（end_task）。
"""
import asyncio
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Optional, Union
import logging

from models import EventType, MatchStatus
from schemas import (
    CardEvent,
    FoulEvent,
    GoalEvent,
    Match,
    MatchEndedEvent,
    MatchEvent,
    MatchStartedEvent,
)
from core.event_hub import EventHub
from core.exceptions import (
    InvalidStateTransition,
    MatchNotFound,
    Rejected,
)
from core.state_machine import MatchStateMachine
from core.state_store import StateStore
from services.event_service import (
    CARD_TYPES,
    FOUL_TYPES,
    EventDraw,
    draw_event,
    next_event_delay,
)
from services.naming_service import generate_match_id

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


@dataclass
class MatchTimers:
    """一場比賽正在跑的計時器"""
    event_task: Optional[asyncio.Task] = None
    end_task: Optional[asyncio.Task] = None

    def cancel(self) -> List[asyncio.Task]:
        """
        取消所有計時器（正在執行 cancel 的那個 task 除外）

        返回：
            被取消的 tasks，呼叫端可以 await 它們結束
        """
        current = _current_task()
        cancelled = []
        for task in (self.event_task, self.end_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            cancelled.append(task)
        return cancelled


class LifecycleEngine:
    """比賽生命週期管理器"""

    def __init__(
        self,
        store: StateStore,
        hub: EventHub,
        match_duration_seconds: float = 300,
        event_interval_min_seconds: float = 5,
        event_interval_max_seconds: float = 30,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if event_interval_min_seconds > event_interval_max_seconds:
            raise ValueError("event_interval_min_seconds must not exceed event_interval_max_seconds")

        self._store = store
        self._hub = hub
        self._match_duration = match_duration_seconds
        self._interval_min = event_interval_min_seconds
        self._interval_max = event_interval_max_seconds
        self._rng = rng or random.Random()
        self._clock = clock
        self._timers: Dict[str, MatchTimers] = {}
        # 序列化「讀狀態 -> 檢查 -> 寫入 -> 推送」這一段
        self._lock = RLock()

    # ============ 建立 / 開始 / 結束 ============

    def create_match(self, team_a: str, team_b: str) -> Match:
        """
        建立新比賽（SCHEDULED，比分 0-0）

        Match ID 碰撞機率極低，但仍會檢查唯一性並重新生成
        """
        for _ in range(MAX_ID_ATTEMPTS):
            match = Match(id=generate_match_id(), team_a=team_a, team_b=team_b)
            created = self._store.create(match)
            if not isinstance(created, Rejected):
                logger.info(f"Created match {created.id} - {team_a} vs {team_b}")
                return created
            logger.warning(f"Match id collision detected, regenerating: {match.id}")

        raise RuntimeError(f"Could not allocate a unique match id after {MAX_ID_ATTEMPTS} attempts")

    def start_match(self, match_id: str) -> Union[Match, Rejected]:
        """
        開始比賽（狀態轉換 SCHEDULED -> LIVE）

        流程：
        1. 驗證比賽存在且狀態為 SCHEDULED
        2. 更新狀態與 started_at
        3. 發出 MATCH_STARTED 事件
        4. 啟動事件迴圈與終場計時器

        返回：
            更新後的 Match；被拒絕時回傳 Rejected
            （NOT_FOUND / ALREADY_LIVE / ALREADY_ENDED）

        注意：
            必須在 event loop 內呼叫，計時器會排在目前的 loop 上
        """
        loop = asyncio.get_running_loop()

        with self._lock:
            match = self._store.get(match_id)
            if match is None:
                return Rejected.from_exception(MatchNotFound(match_id))

            try:
                MatchStateMachine.validate(match.status, MatchStatus.LIVE)
            except InvalidStateTransition as e:
                logger.info(f"Rejected start for match {match_id}: {e}")
                return Rejected.from_exception(e)

            now = self._clock()
            match = self._store.update(match_id, status=MatchStatus.LIVE, started_at=now)
            if match is None:
                return Rejected.from_exception(MatchNotFound(match_id))
            self._emit(match_id, MatchStartedEvent(timestamp=now, match_id=match_id))

            timers = MatchTimers()
            self._timers[match_id] = timers
            timers.event_task = loop.create_task(
                self._run_event_loop(match_id), name=f"{match_id}-events"
            )
            timers.end_task = loop.create_task(
                self._run_end_timer(match_id), name=f"{match_id}-end"
            )

        logger.info(f"Started match {match_id}")
        return match

    def end_match(self, match_id: str) -> Union[Match, Rejected]:
        """
        結束比賽（狀態轉換 LIVE -> ENDED）

        終場計時器與手動停止都會走到這裡，可能同時觸發：
        已經 ENDED 的比賽直接回傳現況，不再發事件。

        返回：
            結束後的 Match；比賽不存在回傳 Rejected(NOT_FOUND)，
            尚未開始回傳 Rejected(INVALID_TRANSITION)
        """
        with self._lock:
            match = self._store.get(match_id)
            if match is None:
                self._release_timers(match_id)
                return Rejected.from_exception(MatchNotFound(match_id))

            if match.status == MatchStatus.ENDED:
                return match

            try:
                MatchStateMachine.validate(match.status, MatchStatus.ENDED)
            except InvalidStateTransition as e:
                return Rejected.from_exception(e)

            now = self._clock()
            match = self._store.update(match_id, status=MatchStatus.ENDED, ended_at=now)
            if match is None:
                self._release_timers(match_id)
                return Rejected.from_exception(MatchNotFound(match_id))
            self._emit(
                match_id,
                MatchEndedEvent(timestamp=now, match_id=match_id, score=match.score)
            )
            self._release_timers(match_id)

        logger.info(f"Match {match_id} ended {match.score.a}-{match.score.b}")
        return match

    def stop_match(self, match_id: str) -> None:
        """
        停止比賽：取消所有計時器，進行中的比賽會直接結束

        冪等；對不存在、尚未開始、已結束的比賽都是 no-op
        """
        with self._lock:
            self._release_timers(match_id)
            match = self._store.get(match_id)
            if match is not None and match.status == MatchStatus.LIVE:
                self.end_match(match_id)

    # ============ 事件 ============

    def apply_event(self, match_id: str, draw: EventDraw) -> Optional[MatchEvent]:
        """
        把一次抽籤結果套用到比賽上

        - GOAL：該隊比分 +1，事件帶新比分
        - CARD / FOUL：不影響比分，只帶描述

        返回：
            寫入的事件；比賽不存在或不是 LIVE 時回傳 None
        """
        with self._lock:
            match = self._store.get(match_id)
            if match is None or match.status != MatchStatus.LIVE:
                return None

            now = self._clock()
            if draw.kind == EventType.GOAL:
                score = match.score.add_goal(draw.side)
                if self._store.update(match_id, score=score) is None:
                    return None
                event = GoalEvent(
                    timestamp=now,
                    match_id=match_id,
                    team=draw.side,
                    player=draw.player,
                    score=score,
                    details=f"Goal scored by {draw.player}!"
                )
            elif draw.kind == EventType.CARD:
                card_type = draw.detail or CARD_TYPES[0]
                event = CardEvent(
                    timestamp=now,
                    match_id=match_id,
                    team=draw.side,
                    player=draw.player,
                    details=f"{card_type} for {draw.player}"
                )
            elif draw.kind == EventType.FOUL:
                foul_type = draw.detail or FOUL_TYPES[0]
                event = FoulEvent(
                    timestamp=now,
                    match_id=match_id,
                    team=draw.side,
                    player=draw.player,
                    details=f"{foul_type} by {draw.player}"
                )
            else:
                raise ValueError(f"{draw.kind.value} cannot be drawn as an in-match event")

            return self._emit(match_id, event)

    def _emit(self, match_id: str, event: MatchEvent) -> Optional[MatchEvent]:
        """寫入 StateStore 後推送給 EventHub"""
        recorded = self._store.append_event(match_id, event)
        if recorded is None:
            return None

        self._hub.publish(match_id, recorded)
        logger.info(f"[{match_id}] {recorded.type.value}: {getattr(recorded, 'details', '')}")
        return recorded

    # ============ 計時器 ============

    async def _run_event_loop(self, match_id: str) -> None:
        try:
            while True:
                delay = next_event_delay(self._rng, self._interval_min, self._interval_max)
                await asyncio.sleep(delay)
                # apply_event 會重新確認比賽仍是 LIVE，終場計時器可能已經先觸發
                if self.apply_event(match_id, draw_event(self._rng)) is None:
                    logger.debug(f"[{match_id}] Event loop stopped, match is no longer live")
                    return
        except Exception as e:
            logger.error(f"[{match_id}] Event generation failed: {e}", exc_info=True)

    async def _run_end_timer(self, match_id: str) -> None:
        try:
            await asyncio.sleep(self._match_duration)
            self.end_match(match_id)
        except Exception as e:
            logger.error(f"[{match_id}] End-of-match timer failed: {e}", exc_info=True)

    def _release_timers(self, match_id: str) -> List[asyncio.Task]:
        timers = self._timers.pop(match_id, None)
        if timers is None:
            return []
        return timers.cancel()

    def active_matches(self) -> List[str]:
        """目前有計時器在跑的比賽 ID"""
        with self._lock:
            return list(self._timers)

    async def shutdown(self) -> None:
        """取消所有比賽的計時器並等待它們結束（應用程式關閉時呼叫）"""
        with self._lock:
            cancelled = []
            for match_id in list(self._timers):
                cancelled.extend(self._release_timers(match_id))

        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)
            logger.info(f"Cancelled {len(cancelled)} match timer(s)")
