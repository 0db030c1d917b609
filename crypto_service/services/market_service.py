"""
行情数据服务
整合数据获取、缓存两层，对外提供统一的行情数据访问接口
"""

import logging
from typing import Dict, List, Optional

from crypto_service.config import settings
from crypto_service.exceptions import NotFoundError, ProviderError
from crypto_service.layers.acquisition import AcquisitionLayer, get_acquisition_layer
from crypto_service.layers.cache import CacheLayer, _make_key, get_cache_layer
from crypto_service.models.market import (
    CoinDetail,
    FuturesMetrics,
    Instrument,
    PriceSnapshot,
    SearchResult,
    Series,
)

logger = logging.getLogger(__name__)

_PRICES_CACHE_NS = "prices"
_DETAIL_CACHE_NS = "detail"
_HISTORY_CACHE_NS = "history"
_FUTURES_CACHE_NS = "futures"


class MarketService:
    """行情数据业务服务"""

    def __init__(
        self,
        acquisition: Optional[AcquisitionLayer] = None,
        cache: Optional[CacheLayer] = None,
        instruments: Optional[List[Instrument]] = None,
    ):
        self._acq = acquisition or get_acquisition_layer()
        self._cache = cache or get_cache_layer()
        self._instruments = list(instruments or settings.TRACKED_INSTRUMENTS)
        self._by_symbol: Dict[str, Instrument] = {i.symbol.upper(): i for i in self._instruments}
        self._by_id: Dict[str, Instrument] = {i.id: i for i in self._instruments}

    # ── 币种 ──────────────────────────────────────────────

    def list_instruments(self) -> List[Instrument]:
        return list(self._instruments)

    def resolve(self, symbol_or_id: str) -> Instrument:
        """按交易代码（不区分大小写）或数据源 id 查找币种"""
        inst = self._by_symbol.get(symbol_or_id.upper()) or self._by_id.get(symbol_or_id)
        if inst is None:
            raise NotFoundError(f"未跟踪的币种: {symbol_or_id}")
        return inst

    # ── 实时价格 ──────────────────────────────────────────

    async def get_price_snapshot(self) -> List[PriceSnapshot]:
        """获取全部跟踪币种的实时价格（短 TTL 缓存）"""
        return await self._cache.get_or_fetch(
            _make_key(_PRICES_CACHE_NS, "all"),
            settings.PRICE_CACHE_TTL,
            lambda: self._acq.fetch_prices(self._instruments),
        )

    async def get_coin_details(self, symbol_or_id: str) -> CoinDetail:
        inst = self.resolve(symbol_or_id)
        return await self._cache.get_or_fetch(
            _make_key(_DETAIL_CACHE_NS, inst.id),
            settings.PRICE_CACHE_TTL,
            lambda: self._acq.fetch_coin_detail(inst.id),
        )

    # ── 历史序列 ──────────────────────────────────────────

    async def get_historical_series(self, symbol_or_id: str, days: int = 7) -> Series:
        """
        获取历史价格 / 成交量序列（按 币种 + 天数 缓存，长 TTL）

        Args:
            symbol_or_id: 交易代码或数据源 id
            days: 时间窗口天数，<= 1 时为小时级数据

        Raises:
            NotFoundError: 未跟踪的币种
            ProviderError: 数据源不可用且无缓存
        """
        inst = self.resolve(symbol_or_id)
        return await self._cache.get_or_fetch(
            _make_key(_HISTORY_CACHE_NS, inst.id, str(days)),
            settings.HISTORY_CACHE_TTL,
            lambda: self._acq.fetch_market_chart(inst.id, days),
        )

    # ── 合约数据 ──────────────────────────────────────────

    async def get_futures_metrics(self, symbol_or_id: str) -> FuturesMetrics:
        """冷启动且数据源不可用时返回 available=False 的空结构，而不是报错"""
        inst = self.resolve(symbol_or_id)
        try:
            return await self._cache.get_or_fetch(
                _make_key(_FUTURES_CACHE_NS, inst.id),
                settings.FUTURES_CACHE_TTL,
                lambda: self._acq.fetch_futures_metrics(inst.symbol),
            )
        except ProviderError as exc:
            logger.warning(f"合约数据不可用（{inst.symbol}）: {exc}")
            return FuturesMetrics.unavailable(inst.symbol)

    # ── 搜索 ──────────────────────────────────────────────

    async def search_coins(self, query: str) -> List[SearchResult]:
        """搜索直接透传到数据源（仍经过限速网关），不缓存"""
        return await self._acq.search_coins(query)


# ── 模块级别单例 ──────────────────────────────────────────
_market_service: Optional[MarketService] = None


def get_market_service() -> MarketService:
    global _market_service
    if _market_service is None:
        _market_service = MarketService()
    return _market_service
