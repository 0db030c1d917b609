"""技术指标与综合信号模型"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class Signal(str, Enum):
    """单一指标的结论"""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    NEUTRAL = "NEUTRAL"
    STRONG = "STRONG"
    WEAK = "WEAK"
    NORMAL = "NORMAL"


class OverallSignalType(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


class IndicatorResult(BaseModel):
    signal: Signal = Signal.NEUTRAL
    description: str = ""


class RSIResult(IndicatorResult):
    value: float = 50.0


class MACDResult(IndicatorResult):
    macd_line: float = 0.0
    signal_line: float = 0.0
    histogram: float = 0.0


class BollingerBandsResult(IndicatorResult):
    upper: float = 0.0
    middle: float = 0.0
    lower: float = 0.0
    bandwidth: Optional[float] = None


class MovingAverageTrendResult(IndicatorResult):
    sma_short: float = 0.0
    sma_medium: float = 0.0
    sma_long: float = 0.0
    current_price: Optional[float] = None


class VolumeRatioResult(IndicatorResult):
    current: float = 0.0
    average: float = 0.0
    ratio: Optional[float] = None


class Indicators(BaseModel):
    rsi: RSIResult
    macd: MACDResult
    bollinger_bands: BollingerBandsResult
    moving_averages: MovingAverageTrendResult
    volume: VolumeRatioResult


class OverallSignal(BaseModel):
    """四项方向性指标投票得到的综合信号（每次请求重新计算）"""

    signal: OverallSignalType
    confidence: float
    recommendation: str
    breakdown: Dict[str, int]


class AnalysisReport(BaseModel):
    indicators: Indicators
    overall: OverallSignal
    generated_at: datetime
