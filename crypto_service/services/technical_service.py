"""
技术分析服务
整合分析层 + 信号层，提供技术指标计算的高级接口
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from crypto_service.config import settings
from crypto_service.layers.analysis import AnalysisLayer, get_analysis_layer
from crypto_service.layers.signal import generate_overall_signal
from crypto_service.models.analysis import AnalysisReport
from crypto_service.models.market import Series
from crypto_service.services.market_service import MarketService, get_market_service

logger = logging.getLogger(__name__)


class TechnicalService:
    """技术分析服务"""

    def __init__(
        self,
        analysis: Optional[AnalysisLayer] = None,
        market: Optional[MarketService] = None,
    ):
        self._analysis = analysis or get_analysis_layer()
        self._market = market

    def analyze(self, series: Series) -> AnalysisReport:
        """
        对已获取的序列计算全部指标并生成综合信号

        纯计算，不访问网络和缓存；同一序列多次调用结果一致（generated_at 除外）
        """
        indicators = self._analysis.compute_all(series)
        overall = generate_overall_signal(indicators)
        return AnalysisReport(
            indicators=indicators,
            overall=overall,
            generated_at=datetime.now(tz=timezone.utc),
        )

    async def get_analysis(self, symbol: str, days: Optional[int] = None) -> AnalysisReport:
        """拉取（或读取缓存的）历史序列后进行技术分析"""
        market = self._market or get_market_service()
        series = await market.get_historical_series(symbol, days or settings.ANALYSIS_WINDOW_DAYS)
        report = self.analyze(series)
        logger.info(
            f"技术分析完成: {series.instrument_id} → {report.overall.signal.value} "
            f"（置信度 {report.overall.confidence:.0f}%）"
        )
        return report


# ── 模块级别单例 ──────────────────────────────────────────
_technical_service: Optional[TechnicalService] = None


def get_technical_service() -> TechnicalService:
    global _technical_service
    if _technical_service is None:
        _technical_service = TechnicalService()
    return _technical_service
