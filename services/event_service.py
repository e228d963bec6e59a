"""
事件產生服務：隨機抽出比賽事件

純計算邏輯，不涉及狀態轉換。所有函式都吃一個 random.Random，
測試可以塞入固定序列，精確控制抽出的事件種類與順序。

機率：
- GOAL 40%
- FOUL 30%
- CARD 30%
"""
import random
from dataclasses import dataclass
from typing import Optional

from models import EventType, TeamSide

PLAYER_NAMES = [
    "Abebe", "Tesfaye", "Kebede", "Girma", "Tadesse",
    "Bekele", "Lemma", "Haile", "Wolde", "Mulugeta",
    "Desta", "Gebre", "Yohannes", "Mengistu", "Getachew",
]

CARD_TYPES = ["Yellow Card", "Red Card"]
FOUL_TYPES = ["Hard tackle", "Hand ball", "Offside", "Dangerous play"]

GOAL_PROBABILITY = 0.4
FOUL_PROBABILITY = 0.3


@dataclass(frozen=True)
class EventDraw:
    """一次抽籤的結果（尚未套用到比賽上）"""
    kind: EventType
    side: TeamSide
    player: str
    # CARD 為牌的種類，FOUL 為犯規種類，GOAL 為 None
    detail: Optional[str] = None


def pick_event_kind(rng: random.Random) -> EventType:
    """
    依固定權重抽出事件種類

    範例（rng.random() 的值 -> 結果）：
        0.10 -> GOAL
        0.55 -> FOUL
        0.90 -> CARD
    """
    roll = rng.random()
    if roll < GOAL_PROBABILITY:
        return EventType.GOAL
    if roll < GOAL_PROBABILITY + FOUL_PROBABILITY:
        return EventType.FOUL
    return EventType.CARD


def pick_side(rng: random.Random) -> TeamSide:
    return TeamSide.A if rng.random() < 0.5 else TeamSide.B


def pick_player(rng: random.Random) -> str:
    return rng.choice(PLAYER_NAMES)


def next_event_delay(rng: random.Random, min_seconds: float, max_seconds: float) -> float:
    """下一個事件的等待秒數，在 [min_seconds, max_seconds] 之間均勻分布"""
    if min_seconds > max_seconds:
        raise ValueError(
            f"min_seconds ({min_seconds}) must not exceed max_seconds ({max_seconds})"
        )
    return rng.uniform(min_seconds, max_seconds)


def draw_event(rng: random.Random) -> EventDraw:
    """
    抽出一個完整的比賽事件

    抽籤順序固定為：種類 -> 隊伍 -> 球員 -> 細節（CARD / FOUL 才有），
    同一個 seed 一定得到同樣的事件序列。
    """
    kind = pick_event_kind(rng)
    side = pick_side(rng)
    player = pick_player(rng)

    detail = None
    if kind == EventType.CARD:
        detail = rng.choice(CARD_TYPES)
    elif kind == EventType.FOUL:
        detail = rng.choice(FOUL_TYPES)

    return EventDraw(kind=kind, side=side, player=player, detail=detail)
