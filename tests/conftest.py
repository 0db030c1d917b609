"""测试公共夹具：可控时钟、伪造的数据获取层"""

from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from crypto_service.layers.cache import CacheLayer
from crypto_service.models.market import Instrument, PriceSnapshot
from crypto_service.services.market_service import MarketService
from helpers import make_series, random_walk


class FakeClock:
    """可手动推进的时钟，替代 time.time"""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def instruments() -> List[Instrument]:
    return [
        Instrument(id="bitcoin", symbol="BTC", name="Bitcoin"),
        Instrument(id="ethereum", symbol="ETH", name="Ethereum"),
    ]


@pytest.fixture
def fake_acquisition(instruments):
    acq = MagicMock()
    acq.fetch_prices = AsyncMock(return_value=[
        PriceSnapshot(id=i.id, symbol=i.symbol, name=i.name, price=100.0 + n)
        for n, i in enumerate(instruments)
    ])
    acq.fetch_market_chart = AsyncMock(
        side_effect=lambda instrument_id, days: make_series(
            random_walk(60), instrument_id=instrument_id, days=days
        )
    )
    acq.fetch_coin_detail = AsyncMock()
    acq.fetch_futures_metrics = AsyncMock()
    acq.search_coins = AsyncMock(return_value=[])
    return acq


@pytest.fixture
def market_service(fake_acquisition, instruments, clock) -> MarketService:
    return MarketService(
        acquisition=fake_acquisition,
        cache=CacheLayer(clock=clock),
        instruments=instruments,
    )
