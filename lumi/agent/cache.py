import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

DEFAULT_TTL_MS = 30 * 60 * 1000

LOCAL_ENCOURAGEMENTS: Dict[str, List[str]] = {
    "bubble_popped": [
        "微光虽小，但你把它点亮了。",
        "又一颗光球，被你亲手点亮。",
        "今天的你，比昨天更亮一点。",
    ],
    "task_postponed": [
        "允许暂停，也是一种前进。",
        "休息一下，光不会走远。",
        "慢一点也没关系，你还在路上。",
    ],
    "wake_reminder": [
        "累了吗？要不只做一分钟试试？",
        "只做一小步，也算数。",
        "轻轻开始，就已经很好。",
    ],
    "streak_achieved": [
        "坚持本身，就是一种光芒。",
        "这份连续，是你写给自己的信。",
    ],
}
GENERIC_ENCOURAGEMENTS = ["每一步，都算数。", "你一直在发光。"]


@dataclass
class CacheEntry:
    phrase: str
    served_at: float
    expires_at: float


def _build_key(trigger: str, phrase: str) -> str:
    return f"{trigger}:{phrase}"


class EncouragementCache:
    """Process-lifetime record of recently served encouragement phrases."""

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, phrases: Optional[Dict[str, List[str]]] = None) -> None:
        self._store: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._ttl_ms = ttl_ms
        self._phrases = phrases if phrases is not None else LOCAL_ENCOURAGEMENTS

    def _evict_expired(self, now_ms: float) -> None:
        for key in [key for key, entry in self._store.items() if entry.expires_at < now_ms]:
            self._store.pop(key, None)

    async def was_recently_served(self, trigger: str, phrase: str) -> bool:
        async with self._lock:
            self._evict_expired(time.time() * 1000)
            return _build_key(trigger, phrase) in self._store

    async def remember(self, trigger: str, phrase: str) -> None:
        now_ms = time.time() * 1000
        async with self._lock:
            self._store[_build_key(trigger, phrase)] = CacheEntry(phrase=phrase, served_at=now_ms, expires_at=now_ms + self._ttl_ms)

    async def pick_local(self, trigger: str) -> str:
        candidates: Sequence[str] = self._phrases.get(trigger) or GENERIC_ENCOURAGEMENTS
        now_ms = time.time() * 1000
        async with self._lock:
            self._evict_expired(now_ms)
            fresh = [phrase for phrase in candidates if _build_key(trigger, phrase) not in self._store]
            if fresh:
                chosen = fresh[0]
            else:
                chosen = min(candidates, key=lambda phrase: self._store[_build_key(trigger, phrase)].served_at)
            self._store[_build_key(trigger, chosen)] = CacheEntry(phrase=chosen, served_at=now_ms, expires_at=now_ms + self._ttl_ms)
            return chosen
