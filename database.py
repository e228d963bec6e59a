from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import List
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # 預設為 in-memory SQLite：程式重啟後不保留任何比賽
    database_url: str = "sqlite://"

    # 比賽時長與事件間隔（秒）
    match_duration_seconds: float = 300
    event_interval_min_seconds: float = 5
    event_interval_max_seconds: float = 30

    # 每個訂閱者的推送佇列上限，塞滿視為斷線
    subscriber_queue_size: int = 1000

    cors_origins: List[str] = ["http://localhost:5173"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


Base = declarative_base()


def create_db_engine(database_url: str) -> Engine:
    """
    建立 SQLAlchemy Engine

    SQLite 需要特殊設定：
    - connect_args={"check_same_thread": False}：允許 threadpool 內的 endpoint 共用連線
    - in-memory 資料庫必須用 StaticPool，否則每條連線都是一個全新的空資料庫
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(database_url: str) -> sessionmaker:
    """
    建立 Engine、建立資料表，並回傳 session factory

    每個 MatchContext 各自擁有一個 factory（不使用全域 SessionLocal），
    測試可以各自拿到乾淨的資料庫。
    """
    # 匯入 models 以註冊 ORM 資料表
    import models  # noqa: F401

    engine = create_db_engine(database_url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


def transactional(func):
    """
    Transaction decorator：確保 StateStore 操作的原子性

    使用方式：
        class StateStore:
            @transactional
            def some_operation(self, db: Session, ...):
                # 所有 DB 操作都在一個 transaction 內
                db.add(record)
                # 不需要手動 commit，decorator 會處理

    decorator 會：
        - 取得 self._lock（整個 transaction 期間互斥）
        - 從 self._session_factory 開一個 Session，當作第二個參數傳入
        - 成功時 commit，發生異常時 rollback 並重新拋出
        - 結束時關閉 Session

    注意：
        - 被裝飾的 method 所屬物件必須有 _lock 和 _session_factory
        - 呼叫端不需要（也不能）傳入 db
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            db = self._session_factory()
            try:
                result = func(self, db, *args, **kwargs)
                db.commit()
                return result
            except Exception as e:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
                raise
            finally:
                db.close()

    return wrapper
