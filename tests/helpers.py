"""测试用样本数据构造函数"""

import random
from typing import List, Optional, Sequence

from crypto_service.models.market import PricePoint, Series, VolumePoint

DAY_MS = 86_400_000
START_MS = 1_700_000_000_000


def make_series(
    prices: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    instrument_id: str = "bitcoin",
    days: int = 30,
) -> Series:
    """按日间隔生成升序序列，未给出成交量时使用固定值"""
    if volumes is None:
        volumes = [1000.0] * len(prices)
    return Series(
        instrument_id=instrument_id,
        days=days,
        prices=[PricePoint(timestamp=START_MS + i * DAY_MS, price=p) for i, p in enumerate(prices)],
        volumes=[VolumePoint(timestamp=START_MS + i * DAY_MS, volume=v) for i, v in enumerate(volumes)],
    )


def random_walk(n: int, seed: int = 7, start: float = 100.0) -> List[float]:
    rng = random.Random(seed)
    prices, price = [], start
    for _ in range(n):
        price = max(1.0, price * (1 + rng.uniform(-0.03, 0.03)))
        prices.append(price)
    return prices
