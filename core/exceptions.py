"""
自定義異常類別與拒絕結果

異常只在核心內部使用（例如 StateMachine 檢查轉換時拋出），
跨出 StateStore / LifecycleEngine / EventHub 邊界時一律包成 Rejected 回傳，
API 層再依 Rejection 轉成 HTTP 狀態碼。
"""
import enum
from dataclasses import dataclass


class MatchTrackerException(Exception):
    """所有比賽追蹤異常的基類"""
    pass


# ============ Match 相關異常 ============

class MatchNotFound(MatchTrackerException):
    """比賽不存在"""
    def __init__(self, match_id):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class DuplicateMatch(MatchTrackerException):
    """比賽 id 已存在"""
    def __init__(self, match_id):
        self.match_id = match_id
        super().__init__(f"Match {match_id} already exists")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(MatchTrackerException):
    """非法的狀態轉換"""
    pass


class MatchAlreadyLive(InvalidStateTransition):
    """比賽已經開始"""
    pass


class MatchAlreadyEnded(InvalidStateTransition):
    """比賽已經結束"""
    pass


# ============ Subscription 相關異常 ============

class AlreadyRegistered(MatchTrackerException):
    """同一個 sink 已經訂閱了這場比賽"""
    pass


class NotRegistered(MatchTrackerException):
    """subscription 不存在（已取消或不屬於這場比賽）"""
    pass


class ReplayFailed(MatchTrackerException):
    """sink 在重播歷史事件時失敗（已關閉或佇列已滿）"""
    pass


# ============ 拒絕結果 ============

class Rejection(str, enum.Enum):
    NOT_FOUND = "not_found"
    DUPLICATE_ID = "duplicate_id"
    ALREADY_LIVE = "already_live"
    ALREADY_ENDED = "already_ended"
    INVALID_TRANSITION = "invalid_transition"
    ALREADY_REGISTERED = "already_registered"
    NOT_REGISTERED = "not_registered"
    REPLAY_FAILED = "replay_failed"


_REASONS = [
    (MatchNotFound, Rejection.NOT_FOUND),
    (DuplicateMatch, Rejection.DUPLICATE_ID),
    (MatchAlreadyLive, Rejection.ALREADY_LIVE),
    (MatchAlreadyEnded, Rejection.ALREADY_ENDED),
    (InvalidStateTransition, Rejection.INVALID_TRANSITION),
    (AlreadyRegistered, Rejection.ALREADY_REGISTERED),
    (NotRegistered, Rejection.NOT_REGISTERED),
    (ReplayFailed, Rejection.REPLAY_FAILED),
]


@dataclass(frozen=True)
class Rejected:
    """
    操作被拒絕的結果

    reason: 給程式判斷的 Rejection
    error: 原始異常（保留訊息，方便 API 層組 error detail）
    """
    reason: Rejection
    error: MatchTrackerException

    @property
    def detail(self) -> str:
        return str(self.error)

    @classmethod
    def from_exception(cls, error: MatchTrackerException) -> "Rejected":
        # 子類別排在父類別前面，第一個符合的就是最精確的原因
        for exc_type, reason in _REASONS:
            if isinstance(error, exc_type):
                return cls(reason=reason, error=error)
        raise TypeError(f"No rejection reason for {type(error).__name__}")
