"""
StateStore：比賽與事件紀錄的唯一持有者

職責：
1. 保存比賽（Match）與每場比賽的 append-only 事件紀錄
2. 保證並發安全：讀取不會看到更新到一半的資料，事件依寫入順序排列
3. 不含任何業務規則（狀態轉換是否合法由 LifecycleEngine 負責）

所有操作都經過 @transactional：一個操作 = 一個 transaction，並持有 self._lock。
回傳值一律是 pydantic 快照，呼叫端拿不到 ORM 物件。
"""
from datetime import datetime, timezone
from threading import RLock
from typing import List, Optional, Union
import logging

from sqlalchemy.orm import Session, sessionmaker

from models import MatchRecord, MatchEventRecord
from schemas import Match, MatchEvent, Score, match_event_adapter
from core.exceptions import DuplicateMatch, Rejected
from core.locks import with_match_lock
from database import transactional

logger = logging.getLogger(__name__)

_MATCH_FIELDS = {"team_a", "team_b", "status", "started_at", "ended_at", "score"}


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite 不保存時區，讀回來一律視為 UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_match(record: MatchRecord) -> Match:
    return Match(
        id=record.id,
        team_a=record.team_a,
        team_b=record.team_b,
        score=Score(a=record.score_a, b=record.score_b),
        status=record.status,
        started_at=_as_utc(record.started_at),
        ended_at=_as_utc(record.ended_at),
    )


def _to_event(record: MatchEventRecord) -> MatchEvent:
    data = {
        "type": record.type,
        "timestamp": _as_utc(record.timestamp),
        "match_id": record.match_id,
        "seq": record.seq,
    }
    if record.team is not None:
        data["team"] = record.team
    if record.player is not None:
        data["player"] = record.player
    if record.score_a is not None:
        data["score"] = Score(a=record.score_a, b=record.score_b)
    if record.details is not None:
        data["details"] = record.details
    return match_event_adapter.validate_python(data)


class StateStore:
    """比賽狀態儲存"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._lock = RLock()

    @transactional
    def create(self, db: Session, match: Match) -> Union[Match, Rejected]:
        """
        新增比賽

        返回：
            新增的 Match；id 重複時回傳 Rejected(DUPLICATE_ID)
        """
        if db.query(MatchRecord.pk).filter(MatchRecord.id == match.id).first():
            logger.warning(f"Rejected duplicate match id {match.id}")
            return Rejected.from_exception(DuplicateMatch(match.id))

        record = MatchRecord(
            id=match.id,
            team_a=match.team_a,
            team_b=match.team_b,
            score_a=match.score.a,
            score_b=match.score.b,
            status=match.status,
            started_at=match.started_at,
            ended_at=match.ended_at,
        )
        db.add(record)
        db.flush()
        return _to_match(record)

    @transactional
    def get(self, db: Session, match_id: str) -> Optional[Match]:
        record = db.query(MatchRecord).filter(MatchRecord.id == match_id).first()
        return _to_match(record) if record else None

    @transactional
    def list(self, db: Session) -> List[Match]:
        records = db.query(MatchRecord).order_by(MatchRecord.pk).all()
        return [_to_match(record) for record in records]

    @transactional
    def update(self, db: Session, match_id: str, **fields) -> Optional[Match]:
        """
        把 fields 合併到既有比賽上

        可用欄位：team_a, team_b, status, started_at, ended_at, score (Score)

        返回：
            更新後的 Match；比賽不存在時回傳 None
        """
        unknown = set(fields) - _MATCH_FIELDS
        if unknown:
            raise ValueError(f"Unknown match fields: {sorted(unknown)}")

        record = with_match_lock(match_id, db).first()
        if not record:
            return None

        score = fields.pop("score", None)
        if score is not None:
            record.score_a = score.a
            record.score_b = score.b
        for name, value in fields.items():
            setattr(record, name, value)

        db.flush()
        return _to_match(record)

    @transactional
    def append_event(self, db: Session, match_id: str, event: MatchEvent) -> Optional[MatchEvent]:
        """
        寫入一筆事件

        返回：
            帶有 seq 的事件；比賽不存在時不寫入並回傳 None
        """
        exists = db.query(MatchRecord.pk).filter(MatchRecord.id == match_id).first()
        if not exists:
            return None

        score = getattr(event, "score", None)
        record = MatchEventRecord(
            match_id=match_id,
            type=event.type,
            timestamp=event.timestamp,
            team=getattr(event, "team", None),
            player=getattr(event, "player", None),
            score_a=score.a if score is not None else None,
            score_b=score.b if score is not None else None,
            details=getattr(event, "details", None),
        )
        db.add(record)
        db.flush()
        return event.model_copy(update={"seq": record.seq})

    @transactional
    def get_events(self, db: Session, match_id: str) -> List[MatchEvent]:
        records = (
            db.query(MatchEventRecord)
            .filter(MatchEventRecord.match_id == match_id)
            .order_by(MatchEventRecord.seq)
            .all()
        )
        return [_to_event(record) for record in records]

    @transactional
    def delete(self, db: Session, match_id: str) -> bool:
        db.query(MatchEventRecord).filter(MatchEventRecord.match_id == match_id).delete()
        deleted = db.query(MatchRecord).filter(MatchRecord.id == match_id).delete()
        return deleted > 0

    @transactional
    def clear(self, db: Session) -> None:
        db.query(MatchEventRecord).delete()
        db.query(MatchRecord).delete()
