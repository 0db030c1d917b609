"""
Layer 0 – 请求网关
所有对外 HTTP 请求（价格、详情、历史序列、搜索、合约数据）都经过同一个网关，
保证两次请求之间至少间隔 min_interval 秒，避免被数据源限流或封禁。
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from crypto_service.config import settings
from crypto_service.exceptions import ProviderError

logger = logging.getLogger(__name__)


class RateLimitedGateway:
    """
    全局限速网关

    以上一次请求"完成"的时间为基准计算间隔，不足则挂起调用方补足差值。
    不是令牌桶：没有突发额度，也不区分接口。
    "检查间隔 → 等待 → 发起请求 → 记录完成时间" 整体在锁内执行。
    """

    def __init__(
        self,
        min_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.min_interval = settings.REQUEST_DELAY if min_interval is None else min_interval
        self.timeout = settings.REQUEST_TIMEOUT if timeout is None else timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _wait_turn(self) -> None:
        if self._last_call is None:
            return
        wait_time = self._last_call + self.min_interval - time.monotonic()
        if wait_time > 0:
            logger.debug(f"限速等待 {wait_time * 1000:.0f}ms")
            await asyncio.sleep(wait_time)

    async def fetch(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """发起 GET 请求并返回解析后的 JSON，任何失败均抛出 ProviderError"""
        async with self._lock:
            await self._wait_turn()
            try:
                client = await self._get_client()
                response = await client.get(url, params=params, timeout=timeout or self.timeout)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as exc:
                raise ProviderError(f"请求超时: {url}") from exc
            except httpx.HTTPStatusError as exc:
                code = exc.response.status_code
                raise ProviderError(f"数据源返回 HTTP {code}: {url}", status_code=code) from exc
            except httpx.HTTPError as exc:
                raise ProviderError(f"网络请求失败: {url}: {exc}") from exc
            except ValueError as exc:
                raise ProviderError(f"响应不是合法 JSON: {url}") from exc
            finally:
                self._last_call = time.monotonic()


# ── 模块级别单例 ──────────────────────────────────────────
_gateway: Optional[RateLimitedGateway] = None


def get_gateway() -> RateLimitedGateway:
    global _gateway
    if _gateway is None:
        _gateway = RateLimitedGateway()
    return _gateway


async def close_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None
