"""
Pydantic schemas

- Match / Score：比賽快照（不可變，StateStore 每次讀取都回傳新物件）
- MatchEvent：依 type 區分的 tagged union，每種事件只帶自己需要的欄位
- MatchCreate：建立比賽的 request body

對外 JSON 一律使用 camelCase（teamA、matchId...），與前端既有格式相容。
"""
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from models import EventType, MatchStatus, TeamSide


class Score(BaseModel):
    model_config = ConfigDict(frozen=True)

    a: int = Field(default=0, ge=0)
    b: int = Field(default=0, ge=0)

    def add_goal(self, side: TeamSide) -> "Score":
        if side == TeamSide.A:
            return Score(a=self.a + 1, b=self.b)
        return Score(a=self.a, b=self.b + 1)


class Match(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    team_a: str = Field(alias="teamA")
    team_b: str = Field(alias="teamB")
    score: Score = Field(default_factory=Score)
    status: MatchStatus = MatchStatus.SCHEDULED
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")


class MatchCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_a: str = Field(alias="teamA")
    team_b: str = Field(alias="teamB")

    @field_validator("team_a", "team_b")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("teamA and teamB are required")
        return value


# ============ 事件 ============

class _MatchEventBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: datetime
    match_id: str = Field(alias="matchId")
    # StateStore 寫入時指派的序號，只在程式內部使用，不輸出
    seq: Optional[int] = Field(default=None, exclude=True)


class MatchStartedEvent(_MatchEventBase):
    type: Literal[EventType.MATCH_STARTED] = EventType.MATCH_STARTED


class GoalEvent(_MatchEventBase):
    type: Literal[EventType.GOAL] = EventType.GOAL
    team: TeamSide
    player: str
    score: Score
    details: str


class CardEvent(_MatchEventBase):
    type: Literal[EventType.CARD] = EventType.CARD
    team: TeamSide
    player: str
    details: str


class FoulEvent(_MatchEventBase):
    type: Literal[EventType.FOUL] = EventType.FOUL
    team: TeamSide
    player: str
    details: str


class MatchEndedEvent(_MatchEventBase):
    type: Literal[EventType.MATCH_ENDED] = EventType.MATCH_ENDED
    score: Score
    details: str = "Match finished"


MatchEvent = Annotated[
    Union[MatchStartedEvent, GoalEvent, CardEvent, FoulEvent, MatchEndedEvent],
    Field(discriminator="type")
]

match_event_adapter = TypeAdapter(MatchEvent)


def to_wire(event: _MatchEventBase) -> Dict[str, Any]:
    """
    事件的對外格式：{type, timestamp, matchId, team?, player?, score?, details?}

    傳輸層（SSE / WebSocket）直接把這個 dict 序列化成一個 frame。
    """
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)
