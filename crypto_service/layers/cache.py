"""
Layer 2 – 缓存层
进程内 TTL 缓存：命中直接返回；过期则通过网关刷新；
刷新失败时只要存在旧条目（无论多旧）就返回旧数据，否则抛出 ProviderError。
条目不会被策略淘汰，跟踪的币种固定且数量很少。
"""

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from crypto_service.exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _make_key(namespace: str, *parts: str) -> str:
    """生成规范化缓存键"""
    raw = ":".join([namespace] + [str(p) for p in parts])
    if len(raw) > 200:
        raw = namespace + ":" + hashlib.md5(raw.encode()).hexdigest()
    return raw


@dataclass
class CacheEntry(Generic[T]):
    payload: T
    fetched_at: float


class CacheLayer:
    """按键存储的过期容忍缓存"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._stale_served = 0

    def _is_fresh(self, entry: CacheEntry, ttl: float) -> bool:
        return self._clock() - entry.fetched_at < ttl

    def _key_lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def get_or_fetch(
        self,
        key: str,
        ttl: float,
        fetch_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """
        读取缓存，必要时刷新

        Args:
            key: 缓存键（由 _make_key 生成）
            ttl: 有效期（秒）
            fetch_fn: 无参协程函数，从数据源拉取新数据

        Raises:
            ProviderError: 刷新失败且没有任何旧条目
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry, ttl):
            self._hits += 1
            logger.debug(f"缓存命中: {key}")
            return entry.payload

        # 同一个键只允许一个刷新在途，其余调用方等待后直接读取新条目
        async with self._key_lock(key):
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry, ttl):
                self._hits += 1
                return entry.payload

            self._misses += 1
            try:
                payload = await fetch_fn()
            except ProviderError as exc:
                if entry is not None:
                    self._stale_served += 1
                    age = self._clock() - entry.fetched_at
                    logger.warning(f"⚠️ 数据源异常，返回过期缓存 {key}（已缓存 {age:.0f}s）: {exc}")
                    return entry.payload
                logger.error(f"❌ 数据源异常且无可用缓存 {key}: {exc}")
                raise

            self._entries[key] = CacheEntry(payload=payload, fetched_at=self._clock())
            logger.debug(f"缓存写入: {key}")
            return payload

    def get(self, key: str) -> Optional[Any]:
        """读取条目内容（不检查 TTL），不存在返回 None"""
        entry = self._entries.get(key)
        return entry.payload if entry is not None else None

    def delete(self, namespace: str, *parts: str) -> int:
        """
        手动删除缓存条目

        只给出 namespace 时删除该命名空间下全部条目，返回删除数量
        """
        if parts:
            key = _make_key(namespace, *parts)
            return 1 if self._entries.pop(key, None) is not None else 0
        prefix = namespace + ":"
        keys = [k for k in self._entries if k == namespace or k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def stats(self) -> dict:
        """返回缓存统计信息"""
        now = self._clock()
        namespaces: Dict[str, int] = {}
        for key in self._entries:
            ns = key.split(":", 1)[0]
            namespaces[ns] = namespaces.get(ns, 0) + 1
        oldest = min((e.fetched_at for e in self._entries.values()), default=None)
        return {
            "entries": len(self._entries),
            "namespaces": namespaces,
            "hits": self._hits,
            "misses": self._misses,
            "stale_served": self._stale_served,
            "oldest_entry_age": None if oldest is None else round(now - oldest, 1),
        }


# ── 模块级别单例 ──────────────────────────────────────────
_cache: Optional[CacheLayer] = None


def get_cache_layer() -> CacheLayer:
    global _cache
    if _cache is None:
        _cache = CacheLayer()
    return _cache
