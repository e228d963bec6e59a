"""
並發控制工具

StateStore 的兩層互斥：
1. Process 內：StateStore 自己的 threading.RLock（由 @transactional 取得）
2. Database：SELECT ... FOR UPDATE 行級鎖（PostgreSQL 等支援的資料庫上生效，
   SQLite 會忽略 FOR UPDATE，此時靠第 1 層就足夠）
"""
from sqlalchemy.orm import Query, Session

from models import MatchRecord


def with_match_lock(match_id: str, db: Session) -> Query:
    """
    鎖定一場比賽（行級鎖）

    使用場景：
    - 讀取後要修改比賽（更新比分、狀態）
    - 需要確保比賽在整個 transaction 期間不被其他請求修改

    範例：
        record = with_match_lock(match_id, db).first()
        if not record:
            return None
        record.score_a += 1

    返回：
        Query object（需要呼叫 .first() 來取得結果）
    """
    return db.query(MatchRecord).filter(
        MatchRecord.id == match_id
    ).with_for_update(nowait=False)
