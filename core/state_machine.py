"""
Match 狀態機：集中管理所有狀態轉換規則

    SCHEDULED ──start──> LIVE ──end──> ENDED

- 只能往前，不能回頭
- ENDED 之後不接受任何轉換
- 只有 LIVE 狀態會有計時器在跑
"""
from models import MatchStatus
from core.exceptions import (
    InvalidStateTransition,
    MatchAlreadyEnded,
    MatchAlreadyLive,
)


class MatchStateMachine:
    """比賽狀態轉換表"""

    TRANSITIONS = {
        MatchStatus.SCHEDULED: {MatchStatus.LIVE},
        MatchStatus.LIVE: {MatchStatus.ENDED},
        MatchStatus.ENDED: set(),
    }

    @classmethod
    def can_transition(cls, current: MatchStatus, target: MatchStatus) -> bool:
        return target in cls.TRANSITIONS[current]

    @classmethod
    def validate(cls, current: MatchStatus, target: MatchStatus) -> None:
        """
        檢查 current -> target 是否合法

        異常：
            MatchAlreadyEnded: 比賽已結束（任何轉換都不允許）
            MatchAlreadyLive: 比賽已開始，又要求開始
            InvalidStateTransition: 其他非法轉換（例如 SCHEDULED -> ENDED）
        """
        if cls.can_transition(current, target):
            return

        if current == MatchStatus.ENDED:
            raise MatchAlreadyEnded("Match has already ended")
        if current == MatchStatus.LIVE and target == MatchStatus.LIVE:
            raise MatchAlreadyLive("Match is already live")
        raise InvalidStateTransition(
            f"Cannot transition match from {current.value} to {target.value}"
        )
