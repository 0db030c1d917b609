"""
行情服务配置模块
支持从环境变量 / .env 读取配置，技术指标参数集中为不可变结构
"""

from functools import lru_cache
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from crypto_service.models.market import Instrument


# ── 默认跟踪的币种（按市值前 20） ──────────────────────────
_DEFAULT_INSTRUMENTS = [
    ("bitcoin", "BTC", "Bitcoin"),
    ("ethereum", "ETH", "Ethereum"),
    ("binancecoin", "BNB", "Binance Coin"),
    ("ripple", "XRP", "Ripple"),
    ("cardano", "ADA", "Cardano"),
    ("solana", "SOL", "Solana"),
    ("dogecoin", "DOGE", "Dogecoin"),
    ("polkadot", "DOT", "Polkadot"),
    ("matic-network", "MATIC", "Polygon"),
    ("litecoin", "LTC", "Litecoin"),
    ("avalanche-2", "AVAX", "Avalanche"),
    ("chainlink", "LINK", "Chainlink"),
    ("uniswap", "UNI", "Uniswap"),
    ("stellar", "XLM", "Stellar"),
    ("monero", "XMR", "Monero"),
    ("ethereum-classic", "ETC", "Ethereum Classic"),
    ("cosmos", "ATOM", "Cosmos"),
    ("algorand", "ALGO", "Algorand"),
    ("vechain", "VET", "VeChain"),
    ("filecoin", "FIL", "Filecoin"),
]


def _default_instruments() -> List[Instrument]:
    return [Instrument(id=i, symbol=s, name=n) for i, s, n in _DEFAULT_INSTRUMENTS]


class IndicatorSettings(BaseModel):
    """技术指标参数（不可变），构造分析层时传入，测试中可整体替换"""

    model_config = ConfigDict(frozen=True)

    rsi_period: int = 14
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0

    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9

    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    bollinger_high_volatility: float = 10.0   # 带宽（%）高于此值视为高波动

    ma_short: int = 20
    ma_medium: int = 50
    ma_long: int = 200

    volume_window: int = 7
    volume_strong_ratio: float = 1.5
    volume_weak_ratio: float = 0.5


class CryptoServiceSettings(BaseSettings):
    """行情服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── 数据源配置 ─────────────────────────────────────────
    COINGECKO_BASE_URL: str = Field(default="https://api.coingecko.com/api/v3")
    BINANCE_FUTURES_BASE_URL: str = Field(default="https://fapi.binance.com")
    VS_CURRENCY: str = Field(default="usd")
    TRACKED_INSTRUMENTS: List[Instrument] = Field(default_factory=_default_instruments)

    # ── 限速 / 超时配置 ────────────────────────────────────
    REQUEST_DELAY_MS: int = Field(default=500)        # 两次对外请求的最小间隔（毫秒）
    REQUEST_TIMEOUT: float = Field(default=10.0)      # 普通请求超时（秒）
    HISTORY_REQUEST_TIMEOUT: float = Field(default=15.0)
    SEARCH_RESULT_LIMIT: int = Field(default=10)

    # ── 缓存配置 ──────────────────────────────────────────
    PRICE_CACHE_TTL: int = Field(default=60)          # 实时价格 / 详情 TTL（秒）
    HISTORY_CACHE_TTL: int = Field(default=7200)      # 历史序列 TTL
    FUTURES_CACHE_TTL: int = Field(default=300)       # 合约数据 TTL
    ANALYSIS_WINDOW_DAYS: int = Field(default=30)     # 技术分析使用的历史窗口

    # ── 技术指标配置 ──────────────────────────────────────
    RSI_PERIOD: int = Field(default=14)
    RSI_OVERBOUGHT: float = Field(default=70.0)
    RSI_OVERSOLD: float = Field(default=30.0)
    MACD_FAST: int = Field(default=12)
    MACD_SLOW: int = Field(default=26)
    MACD_SIGNAL: int = Field(default=9)
    BOLLINGER_PERIOD: int = Field(default=20)
    BOLLINGER_STD_DEV: float = Field(default=2.0)
    BOLLINGER_HIGH_VOLATILITY: float = Field(default=10.0)  # 带宽百分比阈值
    MA_SHORT: int = Field(default=20)
    MA_MEDIUM: int = Field(default=50)
    MA_LONG: int = Field(default=200)
    VOLUME_WINDOW: int = Field(default=7)
    VOLUME_STRONG_RATIO: float = Field(default=1.5)
    VOLUME_WEAK_RATIO: float = Field(default=0.5)

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")

    @property
    def REQUEST_DELAY(self) -> float:
        return self.REQUEST_DELAY_MS / 1000.0

    @property
    def INDICATORS(self) -> IndicatorSettings:
        return IndicatorSettings(
            rsi_period=self.RSI_PERIOD,
            rsi_overbought=self.RSI_OVERBOUGHT,
            rsi_oversold=self.RSI_OVERSOLD,
            macd_fast=self.MACD_FAST,
            macd_slow=self.MACD_SLOW,
            macd_signal=self.MACD_SIGNAL,
            bollinger_period=self.BOLLINGER_PERIOD,
            bollinger_std_dev=self.BOLLINGER_STD_DEV,
            bollinger_high_volatility=self.BOLLINGER_HIGH_VOLATILITY,
            ma_short=self.MA_SHORT,
            ma_medium=self.MA_MEDIUM,
            ma_long=self.MA_LONG,
            volume_window=self.VOLUME_WINDOW,
            volume_strong_ratio=self.VOLUME_STRONG_RATIO,
            volume_weak_ratio=self.VOLUME_WEAK_RATIO,
        )


@lru_cache
def get_settings() -> CryptoServiceSettings:
    """获取全局配置（单例）"""
    return CryptoServiceSettings()


settings = get_settings()
