"""
行情服务单元测试

覆盖范围：
  - 配置模块（默认值、技术指标参数）
  - 数据处理层（排序、去重、清洗、价格快照）
  - 数据获取层（CoinGecko / Binance 响应解析，通过 httpx.MockTransport 模拟）
  - 行情服务 / 技术分析服务（缓存键、未知币种、过期回退）
  - API 响应模型
  - FastAPI 路由（通过 TestClient 测试，无需真实数据源）
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from crypto_service.exceptions import NotFoundError, ProviderError
from crypto_service.layers.acquisition import AcquisitionLayer
from crypto_service.layers.analysis import AnalysisLayer
from crypto_service.layers.cache import CacheLayer
from crypto_service.layers.gateway import RateLimitedGateway
from crypto_service.layers.processing import ProcessingLayer
from crypto_service.models.analysis import OverallSignalType
from crypto_service.models.market import FuturesMetrics, Instrument, Series
from crypto_service.services.market_service import MarketService
from crypto_service.services.technical_service import TechnicalService


# ─────────────────────────────────────────────────────────
# 1. 配置模块测试
# ─────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        from crypto_service.config import CryptoServiceSettings
        s = CryptoServiceSettings()
        assert s.REQUEST_DELAY == pytest.approx(0.5)
        assert s.PRICE_CACHE_TTL == 60
        assert s.HISTORY_CACHE_TTL == 7200
        assert s.FUTURES_CACHE_TTL == 300
        assert len(s.TRACKED_INSTRUMENTS) == 20

    def test_tracked_instruments(self):
        from crypto_service.config import CryptoServiceSettings
        symbols = {i.symbol for i in CryptoServiceSettings().TRACKED_INSTRUMENTS}
        assert {"BTC", "ETH", "MATIC", "FIL"}.issubset(symbols)

    def test_indicator_settings_from_env_fields(self):
        from crypto_service.config import CryptoServiceSettings
        s = CryptoServiceSettings(RSI_PERIOD=7, MA_LONG=100)
        assert s.INDICATORS.rsi_period == 7
        assert s.INDICATORS.ma_long == 100
        assert s.INDICATORS.macd_slow == 26

    def test_volume_and_volatility_settings(self, monkeypatch):
        from crypto_service.config import CryptoServiceSettings
        monkeypatch.setenv("VOLUME_WINDOW", "14")
        monkeypatch.setenv("VOLUME_STRONG_RATIO", "2.0")
        monkeypatch.setenv("VOLUME_WEAK_RATIO", "0.25")
        monkeypatch.setenv("BOLLINGER_HIGH_VOLATILITY", "15")
        params = CryptoServiceSettings().INDICATORS
        assert params.volume_window == 14
        assert params.volume_strong_ratio == 2.0
        assert params.volume_weak_ratio == 0.25
        assert params.bollinger_high_volatility == 15.0

    def test_provider_error_status_optional(self):
        assert ProviderError("down").status_code is None
        assert ProviderError("limited", status_code=429).status_code == 429

    def test_instrument_is_immutable(self):
        inst = Instrument(id="bitcoin", symbol="BTC", name="Bitcoin")
        with pytest.raises(ValidationError):
            inst.symbol = "XBT"


# ─────────────────────────────────────────────────────────
# 2. 数据处理层测试
# ─────────────────────────────────────────────────────────

class TestProcessingLayer:
    def setup_method(self):
        self.proc = ProcessingLayer()

    def test_normalize_empty(self):
        assert self.proc.normalize_points([], "price").empty

    def test_sorts_and_deduplicates(self):
        raw = [[3000, 3.0], [1000, 1.0], [2000, 2.0], [2000, 2.5]]
        df = self.proc.normalize_points(raw, "price")
        assert df["timestamp"].tolist() == [1000, 2000, 3000]
        assert df["price"].tolist() == [1.0, 2.5, 3.0]

    def test_drops_invalid_rows(self):
        raw = [[1000, "1.5"], [2000, None], ["bad", 3.0], [3000], [4000, 4.0]]
        df = self.proc.normalize_points(raw, "price")
        assert df["timestamp"].tolist() == [1000, 4000]
        assert df["price"].tolist() == [1.5, 4.0]

    def test_to_series(self):
        series = self.proc.to_series(
            "bitcoin", 7,
            raw_prices=[[2000, 20.0], [1000, 10.0]],
            raw_volumes=[[1000, 5.0], [2000, 6.0]],
        )
        assert series.price_values() == [10.0, 20.0]
        assert series.volume_values() == [5.0, 6.0]
        assert series.instrument_id == "bitcoin" and series.days == 7

    def test_series_rejects_descending_points(self):
        with pytest.raises(ValidationError):
            Series.model_validate({
                "instrument_id": "bitcoin",
                "days": 1,
                "prices": [{"timestamp": 2, "price": 1.0}, {"timestamp": 1, "price": 2.0}],
            })

    def test_snapshots_follow_tracked_order(self, instruments):
        raw = {"ethereum": {"usd": 2000.0, "usd_24h_change": -1.5}}
        rows = self.proc.to_snapshots(instruments, raw)
        assert [r.symbol for r in rows] == ["BTC", "ETH"]
        assert rows[0].price == 0.0
        assert rows[1].price == 2000.0 and rows[1].change24h == -1.5


# ─────────────────────────────────────────────────────────
# 3. 数据获取层测试
# ─────────────────────────────────────────────────────────

def _acquisition(handler) -> AcquisitionLayer:
    gateway = RateLimitedGateway(min_interval=0, timeout=1.0, transport=httpx.MockTransport(handler))
    return AcquisitionLayer(gateway=gateway, processor=ProcessingLayer())


class TestAcquisitionLayer:
    @pytest.mark.asyncio
    async def test_market_chart(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={
                "prices": [[2000, 11.0], [1000, 10.0]],
                "total_volumes": [[1000, 100.0], [2000, 120.0]],
            })

        series = await _acquisition(handler).fetch_market_chart("bitcoin", 30)
        assert series.price_values() == [10.0, 11.0]
        query = parse_qs(urlparse(str(requests[0].url)).query)
        assert requests[0].url.path.endswith("/coins/bitcoin/market_chart")
        assert query["interval"] == ["daily"]
        assert query["days"] == ["30"]

    @pytest.mark.asyncio
    async def test_market_chart_hourly_for_one_day(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"prices": [[1000, 1.0]], "total_volumes": []})

        await _acquisition(handler).fetch_market_chart("bitcoin", 1)
        assert parse_qs(urlparse(str(requests[0].url)).query)["interval"] == ["hourly"]

    @pytest.mark.asyncio
    async def test_market_chart_malformed(self):
        acq = _acquisition(lambda r: httpx.Response(200, json={"error": "coin not found"}))
        with pytest.raises(ProviderError):
            await acq.fetch_market_chart("bitcoin", 7)

    @pytest.mark.asyncio
    async def test_prices(self, instruments):
        def handler(request):
            return httpx.Response(200, json={
                "bitcoin": {"usd": 50000.0, "usd_24h_change": 2.0, "usd_24h_vol": 1e9, "usd_market_cap": 1e12},
            })

        rows = await _acquisition(handler).fetch_prices(instruments)
        assert rows[0].price == 50000.0 and rows[0].market_cap == 1e12
        assert rows[1].symbol == "ETH" and rows[1].price == 0.0

    @pytest.mark.asyncio
    async def test_coin_detail(self):
        payload = {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "market_data": {
                "current_price": {"usd": 50000.0},
                "market_cap": {"usd": 1e12},
                "total_volume": {"usd": 1e9},
                "price_change_percentage_24h": 1.0,
                "high_24h": {"usd": 51000.0},
                "low_24h": {"usd": 49000.0},
                "ath": {"usd": 69000.0},
                "ath_date": {"usd": "2021-11-10T14:24:11.849Z"},
                "circulating_supply": 19_000_000,
            },
        }
        detail = await _acquisition(lambda r: httpx.Response(200, json=payload)).fetch_coin_detail("bitcoin")
        assert detail.symbol == "BTC"
        assert detail.price == 50000.0
        assert detail.ath_date.startswith("2021-11-10")
        assert detail.total_supply is None

    @pytest.mark.asyncio
    async def test_search_limit(self):
        coins = [{"id": f"coin-{i}", "symbol": f"c{i}", "name": f"Coin {i}"} for i in range(25)]
        results = await _acquisition(lambda r: httpx.Response(200, json={"coins": coins})).search_coins("coin")
        assert len(results) == 10
        assert results[0].symbol == "C0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"bitcoin": {"usd": "n/a"}},
        {"bitcoin": "n/a"},
    ])
    async def test_prices_malformed(self, instruments, payload):
        acq = _acquisition(lambda r: httpx.Response(200, json=payload))
        with pytest.raises(ProviderError):
            await acq.fetch_prices(instruments)

    @pytest.mark.asyncio
    async def test_coin_detail_malformed_value(self):
        payload = {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "market_data": {"current_price": {"usd": "n/a"}},
        }
        acq = _acquisition(lambda r: httpx.Response(200, json=payload))
        with pytest.raises(ProviderError):
            await acq.fetch_coin_detail("bitcoin")

    @pytest.mark.asyncio
    async def test_search_malformed_entry(self):
        acq = _acquisition(lambda r: httpx.Response(200, json={"coins": [{"id": None}]}))
        with pytest.raises(ProviderError):
            await acq.search_coins("btc")

    @pytest.mark.asyncio
    async def test_futures_partial(self):
        def handler(request):
            if request.url.path.endswith("/fundingRate"):
                return httpx.Response(200, json=[{"fundingRate": "0.0001", "fundingTime": 1700000000000}])
            return httpx.Response(404, json={})

        metrics = await _acquisition(handler).fetch_futures_metrics("btc")
        assert metrics.available is True
        assert metrics.symbol == "BTC"
        assert metrics.funding_rate.rate == pytest.approx(0.01)
        assert metrics.open_interest is None and metrics.long_short_ratio is None

    @pytest.mark.asyncio
    async def test_futures_all_missing(self):
        acq = _acquisition(lambda r: httpx.Response(400, json={"msg": "Invalid symbol."}))
        with pytest.raises(ProviderError):
            await acq.fetch_futures_metrics("XMR")


# ─────────────────────────────────────────────────────────
# 4. 服务层测试
# ─────────────────────────────────────────────────────────

class TestMarketService:
    def test_resolve(self, market_service):
        assert market_service.resolve("btc").id == "bitcoin"
        assert market_service.resolve("ethereum").symbol == "ETH"

    @pytest.mark.asyncio
    async def test_unknown_instrument(self, market_service, fake_acquisition):
        with pytest.raises(NotFoundError):
            await market_service.get_historical_series("DOESNOTEXIST", 7)
        fake_acquisition.fetch_market_chart.assert_not_called()

    @pytest.mark.asyncio
    async def test_history_cached_per_window(self, market_service, fake_acquisition):
        await market_service.get_historical_series("BTC", 7)
        await market_service.get_historical_series("bitcoin", 7)
        await market_service.get_historical_series("BTC", 30)
        assert fake_acquisition.fetch_market_chart.await_count == 2

    @pytest.mark.asyncio
    async def test_prices_stale_fallback(self, market_service, fake_acquisition, clock):
        first = await market_service.get_price_snapshot()
        clock.advance(3600)
        fake_acquisition.fetch_prices.side_effect = ProviderError("down")
        assert await market_service.get_price_snapshot() == first
        assert fake_acquisition.fetch_prices.await_count == 2

    @pytest.mark.asyncio
    async def test_prices_cold_failure(self, market_service, fake_acquisition):
        fake_acquisition.fetch_prices.side_effect = ProviderError("down")
        with pytest.raises(ProviderError):
            await market_service.get_price_snapshot()

    @pytest.mark.asyncio
    async def test_futures_cold_failure_returns_unavailable(self, market_service, fake_acquisition):
        fake_acquisition.fetch_futures_metrics.side_effect = ProviderError("down")
        metrics = await market_service.get_futures_metrics("ETH")
        assert metrics == FuturesMetrics.unavailable("ETH")
        fake_acquisition.fetch_futures_metrics.assert_awaited_once_with("ETH")

    @pytest.mark.asyncio
    async def test_malformed_payload_serves_stale(self, instruments, clock):
        payloads = {
            "/simple/price": {"bitcoin": {"usd": 50000.0}, "ethereum": {"usd": 3000.0}},
            "/coins/bitcoin": {
                "id": "bitcoin",
                "symbol": "btc",
                "name": "Bitcoin",
                "market_data": {"current_price": {"usd": 50000.0}},
            },
        }

        def handler(request):
            return httpx.Response(200, json=payloads[request.url.path.replace("/api/v3", "")])

        cache = CacheLayer(clock=clock)
        svc = MarketService(
            acquisition=_acquisition(handler),
            cache=cache,
            instruments=instruments,
        )
        prices = await svc.get_price_snapshot()
        detail = await svc.get_coin_details("BTC")

        clock.advance(120)
        payloads["/simple/price"] = {"bitcoin": {"usd": "n/a"}}
        payloads["/coins/bitcoin"]["market_data"] = {"current_price": {"usd": "n/a"}}

        assert await svc.get_price_snapshot() == prices
        assert await svc.get_coin_details("BTC") == detail
        assert cache.stats()["stale_served"] == 2


class TestTechnicalService:
    @pytest.mark.asyncio
    async def test_get_analysis_uses_default_window(self, market_service, fake_acquisition):
        svc = TechnicalService(analysis=AnalysisLayer(), market=market_service)
        report = await svc.get_analysis("BTC")
        fake_acquisition.fetch_market_chart.assert_awaited_once_with("bitcoin", 30)
        assert report.overall.signal in set(OverallSignalType)
        assert sum(report.overall.breakdown.values()) == 4


# ─────────────────────────────────────────────────────────
# 5. API 响应模型测试
# ─────────────────────────────────────────────────────────

class TestApiResponse:
    def test_ok_dumps_models(self):
        from crypto_service.models.response import ApiResponse
        r = ApiResponse.ok(data=[Instrument(id="bitcoin", symbol="BTC", name="Bitcoin")])
        assert r.success and r.error is None
        assert r.data == [{"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin"}]

    def test_fail(self):
        from crypto_service.models.response import ApiResponse
        r = ApiResponse.fail(error="oops")
        assert not r.success and r.error == "oops"


# ─────────────────────────────────────────────────────────
# 6. HTTP 路由测试（TestClient）
# ─────────────────────────────────────────────────────────

@pytest.fixture
def client(market_service):
    technical = TechnicalService(analysis=AnalysisLayer(), market=market_service)
    with patch("crypto_service.routers.crypto.get_market_service", return_value=market_service), \
         patch("crypto_service.routers.search.get_market_service", return_value=market_service), \
         patch("crypto_service.routers.technical.get_technical_service", return_value=technical):
        from crypto_service.main import app
        with TestClient(app) as c:
            yield c


class TestHealthRoutes:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200 and r.json()["data"]["status"] == "ok"

    def test_root(self, client):
        body = client.get("/").json()
        assert "version" in body and "docs" in body


class TestCryptoRoutes:
    def test_cryptocurrencies(self, client):
        body = client.get("/api/cryptocurrencies").json()
        assert [c["symbol"] for c in body["data"]] == ["BTC", "ETH"]

    def test_prices(self, client):
        r = client.get("/api/crypto/prices")
        assert r.status_code == 200
        assert r.json()["data"][0]["price"] == 100.0

    def test_prices_provider_down(self, client, fake_acquisition):
        fake_acquisition.fetch_prices.side_effect = ProviderError("down")
        r = client.get("/api/crypto/prices")
        assert r.status_code == 502
        assert r.json() == {"success": False, "data": None, "message": "failed", "error": "down"}

    def test_unknown_symbol(self, client):
        assert client.get("/api/crypto/NOPE/history").status_code == 404
        r = client.get("/api/crypto/NOPE/analysis")
        assert r.status_code == 404
        assert r.json()["success"] is False and "NOPE" in r.json()["error"]

    def test_history(self, client):
        r = client.get("/api/crypto/btc/history", params={"days": 14})
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["instrument_id"] == "bitcoin" and data["days"] == 14
        timestamps = [p["timestamp"] for p in data["prices"]]
        assert timestamps == sorted(timestamps)

    def test_history_rejects_bad_window(self, client):
        r = client.get("/api/crypto/BTC/history", params={"days": 0})
        assert r.status_code == 422
        assert r.json()["success"] is False and "days" in r.json()["error"]

    def test_analysis(self, client):
        r = client.get("/api/crypto/ETH/analysis")
        assert r.status_code == 200
        data = r.json()["data"]
        assert set(data["indicators"]) == {"rsi", "macd", "bollinger_bands", "moving_averages", "volume"}
        assert data["overall"]["signal"] in {s.value for s in OverallSignalType}

    def test_futures_unavailable(self, client, fake_acquisition):
        fake_acquisition.fetch_futures_metrics.side_effect = ProviderError("down")
        r = client.get("/api/crypto/BTC/futures")
        assert r.status_code == 200
        assert r.json()["data"]["available"] is False


class TestSearchAndCacheRoutes:
    def test_search_query_too_short(self, client):
        r = client.get("/api/search/coins", params={"query": "b"})
        assert r.status_code == 400 and r.json()["success"] is False

    def test_search(self, client, fake_acquisition):
        r = client.get("/api/search/coins", params={"query": "bit"})
        assert r.status_code == 200
        fake_acquisition.search_coins.assert_awaited_once_with("bit")

    def test_cache_stats_and_clear(self, client):
        stats = client.get("/api/cache/stats").json()
        assert stats["success"] is True and "entries" in stats["data"]
        r = client.post("/api/cache/clear", json={"namespace": "history"})
        assert r.status_code == 200 and "removed" in r.json()["data"]
