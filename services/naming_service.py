"""
命名服務：生成 Match ID

純計算邏輯，不涉及狀態轉換
"""
import random
import string
import time

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_match_id() -> str:
    """
    生成比賽 ID

    格式：match-<毫秒時間戳>-<9 位 base36 亂碼>
    範例：match-1760875200000-k3j9x0a2b

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 同一毫秒內 36^9 種可能，碰撞機率極低
    """
    millis = int(time.time() * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"match-{millis}-{suffix}"
