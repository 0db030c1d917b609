"""
Layer 3 – 数据处理层
对数据源返回的原始时间序列进行清洗、去重、排序，生成上层可直接使用的 Series。
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from crypto_service.models.market import Instrument, PricePoint, PriceSnapshot, Series, VolumePoint

logger = logging.getLogger(__name__)


class ProcessingLayer:
    """数据处理层：清洗 + 排序 + 标准化"""

    def normalize_points(self, raw: Sequence[Sequence[Any]], value_col: str) -> pd.DataFrame:
        """
        将 [[毫秒时间戳, 数值], ...] 标准化为 DataFrame

        标准列：timestamp, <value_col>
        无效行被丢弃，重复时间戳保留最后一条，结果按时间升序排列。
        """
        if not raw:
            return pd.DataFrame(columns=["timestamp", value_col])

        rows = [list(item)[:2] for item in raw if isinstance(item, (list, tuple)) and len(item) >= 2]
        df = pd.DataFrame(rows, columns=["timestamp", value_col])

        # 类型转换
        df["timestamp"] = pd.to_numeric(df["timestamp"], errors="coerce")
        df[value_col] = pd.to_numeric(df[value_col], errors="coerce")
        df = df.dropna(subset=["timestamp", value_col])
        df["timestamp"] = df["timestamp"].astype("int64")

        # 删除重复时间戳，保留最新数据
        df = df.drop_duplicates(subset=["timestamp"], keep="last")
        df = df.sort_values("timestamp").reset_index(drop=True)

        dropped = len(raw) - len(df)
        if dropped:
            logger.debug(f"序列清洗：丢弃 {dropped} 条无效或重复记录")
        return df

    def to_series(
        self,
        instrument_id: str,
        days: int,
        raw_prices: Sequence[Sequence[Any]],
        raw_volumes: Optional[Sequence[Sequence[Any]]] = None,
    ) -> Series:
        """组装价格 / 成交量序列"""
        prices = self.normalize_points(raw_prices, "price")
        volumes = self.normalize_points(raw_volumes or [], "volume")
        return Series(
            instrument_id=instrument_id,
            days=days,
            prices=[
                PricePoint(timestamp=int(ts), price=float(p))
                for ts, p in zip(prices["timestamp"], prices["price"])
            ],
            volumes=[
                VolumePoint(timestamp=int(ts), volume=float(v))
                for ts, v in zip(volumes["timestamp"], volumes["volume"])
            ],
        )

    def to_snapshots(
        self,
        instruments: Sequence[Instrument],
        raw: Dict[str, Dict[str, Any]],
        currency: str = "usd",
    ) -> List[PriceSnapshot]:
        """按跟踪列表顺序生成价格快照，数据源缺失的币种数值置 0"""
        rows = []
        for inst in instruments:
            data = raw.get(inst.id) or {}
            rows.append(PriceSnapshot(
                id=inst.id,
                symbol=inst.symbol,
                name=inst.name,
                price=data.get(currency) or 0.0,
                change24h=data.get(f"{currency}_24h_change") or 0.0,
                volume24h=data.get(f"{currency}_24h_vol") or 0.0,
                market_cap=data.get(f"{currency}_market_cap") or 0.0,
            ))
        return rows


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
