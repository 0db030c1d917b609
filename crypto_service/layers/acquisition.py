"""
Layer 1 – 数据获取层
通过请求网关从 CoinGecko（现货行情）与 Binance（永续合约）拉取原始数据，
统一规范化后向上层提供标准接口。所有失败均以 ProviderError 抛出。
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from crypto_service.config import settings
from crypto_service.exceptions import ProviderError
from crypto_service.layers.gateway import RateLimitedGateway, get_gateway
from crypto_service.layers.processing import ProcessingLayer, get_processing_layer
from crypto_service.models.market import (
    CoinDetail,
    FundingRate,
    FuturesMetrics,
    Instrument,
    LongShortRatio,
    OpenInterest,
    PriceSnapshot,
    SearchResult,
    Series,
)

logger = logging.getLogger(__name__)


def _usd(market_data: Dict[str, Any], field: str) -> Optional[Any]:
    value = market_data.get(field)
    if isinstance(value, dict):
        return value.get(settings.VS_CURRENCY)
    return value


class AcquisitionLayer:
    """数据获取层：封装 CoinGecko / Binance 接口"""

    def __init__(
        self,
        gateway: Optional[RateLimitedGateway] = None,
        processor: Optional[ProcessingLayer] = None,
    ):
        self._gateway = gateway or get_gateway()
        self._proc = processor or get_processing_layer()
        self._coingecko = settings.COINGECKO_BASE_URL.rstrip("/")
        self._binance = settings.BINANCE_FUTURES_BASE_URL.rstrip("/")

    # ── CoinGecko ─────────────────────────────────────────

    async def fetch_prices(self, instruments: Sequence[Instrument]) -> List[PriceSnapshot]:
        """批量获取实时价格、24h 涨跌幅、成交量、市值"""
        currency = settings.VS_CURRENCY
        data = await self._gateway.fetch(
            f"{self._coingecko}/simple/price",
            params={
                "ids": ",".join(i.id for i in instruments),
                "vs_currencies": currency,
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
            },
        )
        if not isinstance(data, dict):
            raise ProviderError("价格接口返回格式异常")
        try:
            snapshots = self._proc.to_snapshots(instruments, data, currency=currency)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(f"价格数据格式异常: {exc}") from exc
        logger.info(f"实时价格获取成功，共 {len(snapshots)} 个币种")
        return snapshots

    async def fetch_coin_detail(self, instrument_id: str) -> CoinDetail:
        """获取单一币种详情"""
        data = await self._gateway.fetch(
            f"{self._coingecko}/coins/{instrument_id}",
            params={
                "localization": "false",
                "tickers": "false",
                "community_data": "false",
                "developer_data": "false",
            },
        )
        try:
            md = data["market_data"]
            return CoinDetail(
                id=data["id"],
                symbol=data["symbol"].upper(),
                name=data["name"],
                price=_usd(md, "current_price"),
                market_cap=_usd(md, "market_cap"),
                volume24h=_usd(md, "total_volume"),
                change24h=md.get("price_change_percentage_24h"),
                change7d=md.get("price_change_percentage_7d"),
                change30d=md.get("price_change_percentage_30d"),
                high24h=_usd(md, "high_24h"),
                low24h=_usd(md, "low_24h"),
                circulating_supply=md.get("circulating_supply"),
                total_supply=md.get("total_supply"),
                ath=_usd(md, "ath"),
                ath_date=_usd(md, "ath_date"),
                atl=_usd(md, "atl"),
                atl_date=_usd(md, "atl_date"),
            )
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            raise ProviderError(f"币种详情格式异常: {instrument_id}: {exc}") from exc

    async def fetch_market_chart(self, instrument_id: str, days: int) -> Series:
        """
        获取历史价格 / 成交量序列

        days <= 1 时请求小时级数据，否则为日级数据（数据源参数）
        """
        logger.info(f"📊 拉取历史数据: {instrument_id}（{days} 天）")
        data = await self._gateway.fetch(
            f"{self._coingecko}/coins/{instrument_id}/market_chart",
            params={
                "vs_currency": settings.VS_CURRENCY,
                "days": days,
                "interval": "hourly" if days <= 1 else "daily",
            },
            timeout=settings.HISTORY_REQUEST_TIMEOUT,
        )
        try:
            raw_prices = data["prices"]
            raw_volumes = data.get("total_volumes", [])
        except (KeyError, TypeError) as exc:
            raise ProviderError(f"历史数据格式异常: {instrument_id}") from exc

        series = self._proc.to_series(instrument_id, days, raw_prices, raw_volumes)
        if not series.prices:
            raise ProviderError(f"历史数据为空: {instrument_id}")
        return series

    async def search_coins(self, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        """按名称 / 代码搜索币种"""
        data = await self._gateway.fetch(f"{self._coingecko}/search", params={"query": query})
        if not isinstance(data, dict):
            raise ProviderError("搜索接口返回格式异常")
        coins = data.get("coins") or []
        try:
            return [
                SearchResult(
                    id=c["id"],
                    symbol=str(c.get("symbol", "")).upper(),
                    name=c.get("name", ""),
                    thumb=c.get("thumb"),
                    market_cap_rank=c.get("market_cap_rank"),
                )
                for c in coins[: limit or settings.SEARCH_RESULT_LIMIT]
                if "id" in c
            ]
        except (AttributeError, TypeError, ValueError) as exc:
            raise ProviderError(f"搜索结果格式异常: {exc}") from exc

    # ── Binance 永续合约 ──────────────────────────────────

    async def fetch_futures_metrics(self, symbol: str) -> FuturesMetrics:
        """
        获取资金费率、持仓量、多空比

        单项失败记为 None；三项全部失败视为数据源不可用，抛出 ProviderError
        """
        pair = f"{symbol.upper()}USDT"
        funding_rate = await self._optional(self._funding_rate, pair)
        open_interest = await self._optional(self._open_interest, pair)
        long_short = await self._optional(self._long_short_ratio, pair)

        if funding_rate is None and open_interest is None and long_short is None:
            raise ProviderError(f"合约数据不可用: {pair}")

        return FuturesMetrics(
            symbol=symbol.upper(),
            funding_rate=funding_rate,
            open_interest=open_interest,
            long_short_ratio=long_short,
            available=True,
        )

    async def _optional(self, fn, pair: str):
        try:
            return await fn(pair)
        except (ProviderError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.info(f"{fn.__name__.strip('_')} 不可用（{pair}）: {exc}")
            return None

    async def _funding_rate(self, pair: str) -> Optional[FundingRate]:
        data = await self._gateway.fetch(
            f"{self._binance}/fapi/v1/fundingRate",
            params={"symbol": pair, "limit": 1},
        )
        if not data:
            return None
        return FundingRate(
            rate=float(data[0]["fundingRate"]) * 100,
            time=int(data[0]["fundingTime"]),
        )

    async def _open_interest(self, pair: str) -> Optional[OpenInterest]:
        data = await self._gateway.fetch(
            f"{self._binance}/fapi/v1/openInterest",
            params={"symbol": pair},
        )
        if not data:
            return None
        return OpenInterest(value=float(data["openInterest"]), symbol=data["symbol"])

    async def _long_short_ratio(self, pair: str) -> Optional[LongShortRatio]:
        data = await self._gateway.fetch(
            f"{self._binance}/futures/data/globalLongShortAccountRatio",
            params={"symbol": pair, "period": "5m", "limit": 1},
        )
        if not data:
            return None
        row = data[0]
        return LongShortRatio(
            ratio=float(row["longShortRatio"]),
            long_account=float(row["longAccount"]),
            short_account=float(row["shortAccount"]),
            timestamp=int(row["timestamp"]),
        )


# ── 模块级别单例 ──────────────────────────────────────────
_acquisition: Optional[AcquisitionLayer] = None


def get_acquisition_layer() -> AcquisitionLayer:
    global _acquisition
    if _acquisition is None:
        _acquisition = AcquisitionLayer()
    return _acquisition
