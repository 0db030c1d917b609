"""行情数据模型：币种、价格 / 成交量序列、快照、详情、合约数据"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Instrument(BaseModel):
    """跟踪的币种（启动时定义，不可变）

    id 为数据源（CoinGecko）内部标识，symbol 为交易代码，name 为展示名称
    """

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str
    name: str


class PricePoint(BaseModel):
    timestamp: int      # 毫秒时间戳
    price: float


class VolumePoint(BaseModel):
    timestamp: int
    volume: float


class Series(BaseModel):
    """
    单一币种在一个时间窗口内的价格 / 成交量序列

    两个序列均按时间升序排列，最后一个元素即"当前"。
    """

    instrument_id: str
    days: int
    prices: List[PricePoint]
    volumes: List[VolumePoint] = []

    @field_validator("prices", "volumes")
    @classmethod
    def _check_ascending(cls, points):
        for prev, cur in zip(points, points[1:]):
            if cur.timestamp < prev.timestamp:
                raise ValueError("序列必须按时间升序排列")
        return points

    def price_values(self) -> List[float]:
        return [p.price for p in self.prices]

    def volume_values(self) -> List[float]:
        return [v.volume for v in self.volumes]


class PriceSnapshot(BaseModel):
    """实时价格快照中的一行"""

    id: str
    symbol: str
    name: str
    price: float = 0.0
    change24h: float = 0.0
    volume24h: float = 0.0
    market_cap: float = 0.0


class CoinDetail(BaseModel):
    id: str
    symbol: str
    name: str
    price: Optional[float] = None
    market_cap: Optional[float] = None
    volume24h: Optional[float] = None
    change24h: Optional[float] = None
    change7d: Optional[float] = None
    change30d: Optional[float] = None
    high24h: Optional[float] = None
    low24h: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    ath: Optional[float] = None
    ath_date: Optional[str] = None
    atl: Optional[float] = None
    atl_date: Optional[str] = None


class SearchResult(BaseModel):
    id: str
    symbol: str
    name: str
    thumb: Optional[str] = None
    market_cap_rank: Optional[int] = None


class FundingRate(BaseModel):
    rate: float         # 百分比
    time: int


class OpenInterest(BaseModel):
    value: float
    symbol: str


class LongShortRatio(BaseModel):
    ratio: float
    long_account: float
    short_account: float
    timestamp: int


class FuturesMetrics(BaseModel):
    """永续合约数据，三项指标均可缺失"""

    symbol: str
    funding_rate: Optional[FundingRate] = None
    open_interest: Optional[OpenInterest] = None
    long_short_ratio: Optional[LongShortRatio] = None
    available: bool = False

    @classmethod
    def unavailable(cls, symbol: str) -> "FuturesMetrics":
        return cls(symbol=symbol)
