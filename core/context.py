"""
MatchContext：一個應用程式一份的核心元件

StateStore、EventHub、LifecycleEngine 在這裡各建立一次，
再以參數傳給 API 層，不使用任何全域 singleton。
"""
import random
from dataclasses import dataclass
from typing import List, Optional, Union

from fastapi.requests import HTTPConnection

from database import Settings, create_session_factory
from schemas import Match
from core.event_hub import EventHub, Sink, Subscription
from core.exceptions import MatchNotFound, Rejected
from core.match_engine import LifecycleEngine
from core.state_store import StateStore


@dataclass
class MatchContext:
    """傳輸層（HTTP / SSE / WebSocket）呼叫核心的入口"""
    settings: Settings
    store: StateStore
    hub: EventHub
    engine: LifecycleEngine

    def create_match(self, team_a: str, team_b: str) -> Match:
        return self.engine.create_match(team_a, team_b)

    def start_match(self, match_id: str) -> Union[Match, Rejected]:
        return self.engine.start_match(match_id)

    def list_matches(self) -> List[Match]:
        return self.store.list()

    def get_match(self, match_id: str) -> Union[Match, Rejected]:
        match = self.store.get(match_id)
        if match is None:
            return Rejected.from_exception(MatchNotFound(match_id))
        return match

    def open_event_stream(self, match_id: str, sink: Sink) -> Union[Subscription, Rejected]:
        return self.hub.subscribe(match_id, sink)

    def delete_match(self, match_id: str) -> bool:
        """停止計時器、關閉所有訂閱，再刪除比賽"""
        self.engine.stop_match(match_id)
        self.hub.close_match(match_id)
        return self.store.delete(match_id)

    async def shutdown(self) -> None:
        await self.engine.shutdown()
        self.hub.shutdown()


def build_context(settings: Settings, rng: Optional[random.Random] = None) -> MatchContext:
    store = StateStore(create_session_factory(settings.database_url))
    hub = EventHub(store)
    engine = LifecycleEngine(
        store,
        hub,
        match_duration_seconds=settings.match_duration_seconds,
        event_interval_min_seconds=settings.event_interval_min_seconds,
        event_interval_max_seconds=settings.event_interval_max_seconds,
        rng=rng,
    )
    return MatchContext(settings=settings, store=store, hub=hub, engine=engine)


def get_context(conn: HTTPConnection) -> MatchContext:
    """
    FastAPI dependency：取得 lifespan 建立的 MatchContext

    HTTP 與 WebSocket endpoint 都可以使用
    """
    return conn.app.state.context
