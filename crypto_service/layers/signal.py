"""
Layer 5 – 信号融合层
RSI / MACD / 布林带 / 均线趋势 四项指标投票得出综合信号。
成交量只作参考，不参与投票。
"""

from typing import Dict, Sequence

from crypto_service.models.analysis import Indicators, OverallSignal, OverallSignalType, Signal

# ≥3 票的分支置信度随票数变化，≥2 票与 HOLD 分支为固定值
_FLAT_CONFIDENCE = 60.0
_HOLD_CONFIDENCE = 50.0

RECOMMENDATIONS: Dict[OverallSignalType, str] = {
    OverallSignalType.STRONG_BUY: (
        "Multiple indicators suggest this is a good buying opportunity. "
        "Consider entering a position."
    ),
    OverallSignalType.BUY: (
        "Some indicators suggest buying. "
        "Consider a smaller position or wait for more confirmation."
    ),
    OverallSignalType.STRONG_SELL: (
        "Multiple indicators suggest selling or avoiding this asset. "
        "Consider exiting positions."
    ),
    OverallSignalType.SELL: (
        "Some indicators suggest selling. "
        "Consider reducing position size or setting stop losses."
    ),
    OverallSignalType.HOLD: (
        "Mixed signals from indicators. "
        "Best to hold current positions and wait for clearer signals."
    ),
}


def fuse_signals(signals: Sequence[Signal]) -> OverallSignal:
    """按优先级顺序匹配决策表：强买 → 买 → 强卖 → 卖 → 持有"""
    buy = sum(1 for s in signals if s == Signal.BUY)
    sell = sum(1 for s in signals if s == Signal.SELL)
    hold = len(signals) - buy - sell
    total = len(signals)

    if buy >= 3:
        kind, confidence = OverallSignalType.STRONG_BUY, buy / total * 100
    elif buy >= 2:
        kind, confidence = OverallSignalType.BUY, _FLAT_CONFIDENCE
    elif sell >= 3:
        kind, confidence = OverallSignalType.STRONG_SELL, sell / total * 100
    elif sell >= 2:
        kind, confidence = OverallSignalType.SELL, _FLAT_CONFIDENCE
    else:
        kind, confidence = OverallSignalType.HOLD, _HOLD_CONFIDENCE

    return OverallSignal(
        signal=kind,
        confidence=confidence,
        recommendation=RECOMMENDATIONS[kind],
        breakdown={"buy": buy, "sell": sell, "hold": hold},
    )


def generate_overall_signal(indicators: Indicators) -> OverallSignal:
    return fuse_signals([
        indicators.rsi.signal,
        indicators.macd.signal,
        indicators.bollinger_bands.signal,
        indicators.moving_averages.signal,
    ])
