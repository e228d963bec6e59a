"""
ORM 資料表與列舉

matches      - 比賽主檔（每場一列）
match_events - 比賽事件紀錄（append-only，自增 id 即為事件序號）
"""
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String

from database import Base


class MatchStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    ENDED = "ended"


class EventType(str, enum.Enum):
    MATCH_STARTED = "match_started"
    GOAL = "goal"
    CARD = "card"
    FOUL = "foul"
    MATCH_ENDED = "match_ended"


class TeamSide(str, enum.Enum):
    A = "A"
    B = "B"


class MatchRecord(Base):
    __tablename__ = "matches"

    # 插入順序，list() 依此排序
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, nullable=False, index=True)
    team_a = Column(String(128), nullable=False)
    team_b = Column(String(128), nullable=False)
    score_a = Column(Integer, nullable=False, default=0)
    score_b = Column(Integer, nullable=False, default=0)
    status = Column(Enum(MatchStatus), nullable=False, default=MatchStatus.SCHEDULED)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)


class MatchEventRecord(Base):
    __tablename__ = "match_events"
    # seq 必須單調遞增，不可重用已刪除的 rowid
    __table_args__ = {"sqlite_autoincrement": True}

    seq = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(
        String(64),
        ForeignKey("matches.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    type = Column(Enum(EventType), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    team = Column(Enum(TeamSide), nullable=True)
    player = Column(String(128), nullable=True)
    score_a = Column(Integer, nullable=True)
    score_b = Column(Integer, nullable=True)
    details = Column(String(256), nullable=True)
