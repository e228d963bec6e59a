"""
EventHub：把比賽事件推送給所有訂閱者

職責：
1. 管理每場比賽的訂閱者（sink）名單
2. 新事件產生時，依訂閱順序推送給該比賽的所有 sink
3. 新訂閱者加入時，先重播歷史事件，再接上即時推送

Exactly-once 的做法：
- subscribe 在同一把鎖內「取歷史快照 + 登記 sink」，publish 也持有這把鎖，
  所以每個事件不是在快照內，就是在登記完成後才 publish
- 每個 subscription 記錄下一個要收的 seq；快照裡已經重播過的事件，
  之後若再被 publish 會被跳過
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, List, Optional, Protocol, Union
import logging

from models import MatchStatus
from schemas import MatchEvent
from core.exceptions import (
    AlreadyRegistered,
    MatchNotFound,
    NotRegistered,
    Rejected,
    ReplayFailed,
)
from core.state_store import StateStore

logger = logging.getLogger(__name__)


class SinkClosed(Exception):
    """sink 已關閉或塞滿，無法再推送"""
    pass


class Sink(Protocol):
    """訂閱者的推送通道；send 失敗時必須拋出異常"""

    def send(self, event: MatchEvent) -> None:
        ...

    def close(self) -> None:
        ...


class QueueSink:
    """
    以 asyncio.Queue 實作的 sink

    傳輸層（SSE / WebSocket）用 `async for event in sink` 取出事件，
    close() 之後迭代會在取完剩餘事件後結束。
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: MatchEvent) -> None:
        if self._closed:
            raise SinkClosed("Sink is closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            raise SinkClosed(f"Sink queue is full ({self._queue.maxsize})")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # 佇列滿的時候消費端還沒卡在 get()，取完後由 get() 判斷 closed
            pass

    async def get(self) -> Optional[MatchEvent]:
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def __aiter__(self):
        return self

    async def __anext__(self) -> MatchEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


@dataclass(eq=False)
class Subscription:
    """訂閱 handle：一個 sink 綁定一場比賽"""
    match_id: str
    sink: Sink
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    # 下一個應該收到的事件序號
    next_seq: int = 0


class EventHub:
    """比賽事件分發中心"""

    def __init__(self, store: StateStore):
        self._store = store
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = RLock()

    def subscribe(self, match_id: str, sink: Sink) -> Union[Subscription, Rejected]:
        """
        訂閱一場比賽

        流程：
        1. 確認比賽存在
        2. 比賽不是 SCHEDULED 時，依原始順序重播所有歷史事件
        3. 登記 sink，之後的新事件由 publish 推送

        返回：
            Subscription；比賽不存在回傳 Rejected(NOT_FOUND)，
            同一個 sink 重複訂閱回傳 Rejected(ALREADY_REGISTERED)，
            重播途中 sink 失敗回傳 Rejected(REPLAY_FAILED)，此時 sink 已被關閉且不會登記
        """
        with self._lock:
            match = self._store.get(match_id)
            if match is None:
                return Rejected.from_exception(MatchNotFound(match_id))

            subscribers = self._subscribers.get(match_id, [])
            if any(existing.sink is sink for existing in subscribers):
                return Rejected.from_exception(
                    AlreadyRegistered(f"Sink already subscribed to match {match_id}")
                )

            subscription = Subscription(match_id=match_id, sink=sink)

            if match.status != MatchStatus.SCHEDULED:
                for event in self._store.get_events(match_id):
                    if not self._deliver(subscription, event):
                        logger.warning(
                            f"Sink {subscription.id} failed during replay for match {match_id}, not registering"
                        )
                        sink.close()
                        return Rejected.from_exception(
                            ReplayFailed(f"Subscriber could not receive history of match {match_id}")
                        )

            self._subscribers.setdefault(match_id, []).append(subscription)

        logger.info(
            f"Subscription {subscription.id} registered for match {match_id} "
            f"(replayed up to seq {subscription.next_seq - 1})"
        )
        return subscription

    def publish(self, match_id: str, event: MatchEvent) -> int:
        """
        推送事件給這場比賽的所有 sink

        推送失敗（sink 已關閉、佇列塞滿）的 sink 會被移除，
        不影響其他 sink。

        返回：
            實際送達的 sink 數量
        """
        delivered = 0
        with self._lock:
            subscribers = self._subscribers.get(match_id)
            if not subscribers:
                return 0

            for subscription in list(subscribers):
                if self._deliver(subscription, event):
                    delivered += 1
                else:
                    logger.warning(
                        f"Dropping subscription {subscription.id} for match {match_id}"
                    )
                    subscribers.remove(subscription)
                    subscription.sink.close()

            if not subscribers:
                del self._subscribers[match_id]

        return delivered

    def unsubscribe(self, match_id: str, subscription: Subscription) -> Optional[Rejected]:
        """
        取消訂閱（冪等）

        返回：
            None 表示成功移除；不在名單上時回傳 Rejected(NOT_REGISTERED)，狀態不變
        """
        with self._lock:
            subscribers = self._subscribers.get(match_id)
            if not subscribers or subscription not in subscribers:
                return Rejected.from_exception(
                    NotRegistered(f"Subscription {subscription.id} is not registered for match {match_id}")
                )

            subscribers.remove(subscription)
            if not subscribers:
                del self._subscribers[match_id]

        logger.info(f"Subscription {subscription.id} removed from match {match_id}")
        return None

    def subscriber_count(self, match_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(match_id, ()))

    def has_registry(self, match_id: str) -> bool:
        with self._lock:
            return match_id in self._subscribers

    def close_match(self, match_id: str) -> None:
        """關閉並移除這場比賽的所有 sink"""
        with self._lock:
            subscribers = self._subscribers.pop(match_id, [])

        for subscription in subscribers:
            subscription.sink.close()

        if subscribers:
            logger.info(f"Closed {len(subscribers)} subscription(s) for match {match_id}")

    def shutdown(self) -> None:
        with self._lock:
            match_ids = list(self._subscribers)
        for match_id in match_ids:
            self.close_match(match_id)

    @staticmethod
    def _deliver(subscription: Subscription, event: MatchEvent) -> bool:
        """送出一個事件；已經收過的 seq 直接略過。送出失敗回傳 False"""
        if event.seq is not None and event.seq < subscription.next_seq:
            return True

        try:
            subscription.sink.send(event)
        except Exception as e:
            logger.warning(f"Failed to deliver {event.type.value} to subscription {subscription.id}: {e}")
            return False

        if event.seq is not None:
            subscription.next_seq = event.seq + 1
        return True
