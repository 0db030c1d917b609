"""
Layer 4 – 技术分析层
在按时间升序排列的价格 / 成交量序列上计算技术指标：
SMA、EMA、RSI、MACD、布林带、均线趋势、成交量比。

所有计算均为纯函数，数据不足时返回中性结果与说明文字，不抛出异常。
"""

import logging
import math
from typing import List, Optional, Sequence

import pandas as pd

from crypto_service.config import IndicatorSettings, settings
from crypto_service.models.analysis import (
    BollingerBandsResult,
    Indicators,
    MACDResult,
    MovingAverageTrendResult,
    RSIResult,
    Signal,
    VolumeRatioResult,
)
from crypto_service.models.market import Series

logger = logging.getLogger(__name__)


# ── 均线 ──────────────────────────────────────────────────

def sma(values: Sequence[float], period: int) -> List[float]:
    """简单移动平均：长度为 n 的输入产生 n - period + 1 个值"""
    if period <= 0 or len(values) < period:
        return []
    return pd.Series(values, dtype="float64").rolling(window=period).mean().iloc[period - 1:].tolist()


def ema(values: Sequence[float], period: int) -> List[float]:
    """
    指数移动平均

    以前 period 个值的 SMA 作为种子，之后
    ema[i] = (value[i] - ema[i-1]) * 2 / (period + 1) + ema[i-1]
    """
    if period <= 0 or len(values) < period:
        return []
    seed = sum(values[:period]) / period
    seeded = pd.Series([seed] + list(values[period:]), dtype="float64")
    return seeded.ewm(alpha=2 / (period + 1), adjust=False).mean().tolist()


def _wilder_average(values: pd.Series, period: int) -> float:
    """前 period 个值取均值作为种子，其余按 avg = (avg*(period-1) + new) / period 平滑"""
    seed = values.iloc[:period].mean()
    seeded = pd.concat([pd.Series([seed]), values.iloc[period:]], ignore_index=True)
    return float(seeded.ewm(alpha=1 / period, adjust=False).mean().iloc[-1])


class AnalysisLayer:
    """技术分析层：参数在构造时传入，计算过程不持有可变状态"""

    def __init__(self, params: Optional[IndicatorSettings] = None):
        self.params = params or settings.INDICATORS

    # ── RSI ───────────────────────────────────────────────

    def rsi(self, prices: Sequence[float]) -> RSIResult:
        p = self.params
        period = p.rsi_period
        if len(prices) < period + 1:
            return RSIResult(value=50.0, description="Insufficient data for RSI calculation")

        changes = pd.Series(prices, dtype="float64").diff().iloc[1:].reset_index(drop=True)
        gains = changes.clip(lower=0)
        losses = (-changes).clip(lower=0)

        avg_gain = _wilder_average(gains, period)
        avg_loss = _wilder_average(losses, period)

        # avg_loss 为 0 时 RS 取 100，RSI 偏向超买一侧
        rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
        value = 100 - 100 / (1 + rs)

        if value >= p.rsi_overbought:
            signal = Signal.SELL
            description = f"RSI is {value:.2f} (overbought). Price may be due for a correction."
        elif value <= p.rsi_oversold:
            signal = Signal.BUY
            description = f"RSI is {value:.2f} (oversold). Price may be due for a rebound."
        else:
            signal = Signal.HOLD
            description = f"RSI is {value:.2f} (neutral). No strong signal."
        return RSIResult(value=value, signal=signal, description=description)

    # ── MACD ──────────────────────────────────────────────

    def macd(self, prices: Sequence[float]) -> MACDResult:
        p = self.params
        if len(prices) < p.macd_slow + p.macd_signal:
            return MACDResult(description="Insufficient data for MACD calculation")

        fast = ema(prices, p.macd_fast)
        slow = ema(prices, p.macd_slow)

        # 快线比慢线多出 slow - fast 个前导值，对齐到同一时间点后再相减
        offset = p.macd_slow - p.macd_fast
        macd_line = (pd.Series(fast[offset:]) - pd.Series(slow)).tolist()
        signal_line = ema(macd_line, p.macd_signal)

        current_macd = macd_line[-1]
        current_signal = signal_line[-1]
        histogram = current_macd - current_signal

        if current_macd > current_signal and histogram > 0:
            signal = Signal.BUY
            description = "MACD line is above signal line (bullish momentum)."
        elif current_macd < current_signal and histogram < 0:
            signal = Signal.SELL
            description = "MACD line is below signal line (bearish momentum)."
        else:
            signal = Signal.HOLD
            description = "MACD shows neutral momentum."
        return MACDResult(
            macd_line=current_macd,
            signal_line=current_signal,
            histogram=histogram,
            signal=signal,
            description=description,
        )

    # ── 布林带 ────────────────────────────────────────────

    def bollinger_bands(self, prices: Sequence[float]) -> BollingerBandsResult:
        p = self.params
        period = p.bollinger_period
        if len(prices) < period:
            return BollingerBandsResult(description="Insufficient data for Bollinger Bands calculation")

        middle = sma(prices, period)[-1]
        # 总体方差（除以 period），均值取当前 SMA
        window = pd.Series(prices[-period:], dtype="float64")
        std_dev = math.sqrt(float(((window - middle) ** 2).sum()) / period)

        upper = middle + p.bollinger_std_dev * std_dev
        lower = middle - p.bollinger_std_dev * std_dev
        bandwidth = (upper - lower) / middle * 100 if middle else 0.0
        current = prices[-1]

        if current >= upper:
            signal = Signal.SELL
            description = f"Price ({current:.2f}) is at or above upper band (overbought)."
        elif current <= lower:
            signal = Signal.BUY
            description = f"Price ({current:.2f}) is at or below lower band (oversold)."
        else:
            signal = Signal.HOLD
            volatility = "high volatility" if bandwidth > p.bollinger_high_volatility else "low volatility"
            description = f"Price is within bands. Bandwidth: {bandwidth:.2f}% ({volatility})."
        return BollingerBandsResult(
            upper=upper,
            middle=middle,
            lower=lower,
            bandwidth=bandwidth,
            signal=signal,
            description=description,
        )

    # ── 均线趋势 ──────────────────────────────────────────

    def moving_averages(self, prices: Sequence[float]) -> MovingAverageTrendResult:
        p = self.params
        if len(prices) < p.ma_long:
            return MovingAverageTrendResult(description="Insufficient data for moving averages")

        short = sma(prices, p.ma_short)[-1]
        medium = sma(prices, p.ma_medium)[-1]
        long_ = sma(prices, p.ma_long)[-1]
        current = prices[-1]

        if short > medium > long_:
            signal = Signal.BUY
            description = (
                "Strong uptrend: All moving averages aligned bullishly (Golden Cross pattern)."
            )
        elif short < medium < long_:
            signal = Signal.SELL
            description = (
                "Strong downtrend: All moving averages aligned bearishly (Death Cross pattern)."
            )
        elif current > long_:
            signal = Signal.HOLD
            description = (
                f"Price above {p.ma_long}-day MA (long-term uptrend), "
                "but mixed signals on shorter timeframes."
            )
        else:
            signal = Signal.HOLD
            description = "Mixed signals from moving averages. No clear trend."
        return MovingAverageTrendResult(
            sma_short=short,
            sma_medium=medium,
            sma_long=long_,
            current_price=current,
            signal=signal,
            description=description,
        )

    # ── 成交量 ────────────────────────────────────────────

    def volume(self, volumes: Sequence[float]) -> VolumeRatioResult:
        p = self.params
        window = p.volume_window
        if len(volumes) < window:
            return VolumeRatioResult(description="Insufficient volume data")

        recent = list(volumes[-window:])
        current = recent[-1]
        average = sum(recent) / window
        if average <= 0:
            return VolumeRatioResult(
                current=current,
                average=average,
                description="No trading volume in the recent window",
            )

        ratio = current / average
        pct = f"{ratio * 100:.0f}%"
        if ratio > p.volume_strong_ratio:
            signal = Signal.STRONG
            description = f"High volume ({pct} of average). Strong market interest."
        elif ratio < p.volume_weak_ratio:
            signal = Signal.WEAK
            description = f"Low volume ({pct} of average). Weak market interest."
        else:
            signal = Signal.NORMAL
            description = f"Normal volume levels ({pct} of average)."
        return VolumeRatioResult(
            current=current,
            average=average,
            ratio=ratio,
            signal=signal,
            description=description,
        )

    # ── 全量指标 ──────────────────────────────────────────

    def compute_all(self, series: Series) -> Indicators:
        """一次性计算所有指标"""
        prices = series.price_values()
        indicators = Indicators(
            rsi=self.rsi(prices),
            macd=self.macd(prices),
            bollinger_bands=self.bollinger_bands(prices),
            moving_averages=self.moving_averages(prices),
            volume=self.volume(series.volume_values()),
        )
        logger.debug(
            f"指标计算完成: {series.instrument_id}（{len(prices)} 个价格点）"
        )
        return indicators


# ── 模块级别单例 ──────────────────────────────────────────
_analysis: Optional[AnalysisLayer] = None


def get_analysis_layer() -> AnalysisLayer:
    global _analysis
    if _analysis is None:
        _analysis = AnalysisLayer()
    return _analysis
