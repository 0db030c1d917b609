"""健康检查路由"""

import time

from fastapi import APIRouter

from crypto_service import __version__
from crypto_service.config import settings
from crypto_service.layers.cache import get_cache_layer

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查"""
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Crypto Market Service",
            "instruments": len(settings.TRACKED_INSTRUMENTS),
            "cache": get_cache_layer().stats(),
        },
        "message": "服务运行正常",
    }

