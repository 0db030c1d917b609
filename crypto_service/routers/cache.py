"""
缓存管理路由
GET  /api/cache/stats     - 缓存统计
POST /api/cache/clear     - 清理缓存
"""

from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from crypto_service.models.response import ApiResponse
from crypto_service.layers.cache import get_cache_layer

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


class ClearRequest(BaseModel):
    namespace: str
    key_parts: Optional[List[str]] = None


@router.get("/stats", response_model=ApiResponse)
async def cache_stats():
    """获取缓存统计信息（条目数、命中率、过期回退次数）"""
    return ApiResponse.ok(data=get_cache_layer().stats())


@router.post("/clear", response_model=ApiResponse)
async def clear_cache(body: ClearRequest):
    """清理指定命名空间（或单个键）的缓存条目"""
    parts = body.key_parts or []
    removed = get_cache_layer().delete(body.namespace, *parts)
    return ApiResponse.ok(
        data={"removed": removed},
        message=f"缓存已清理: {':'.join([body.namespace] + parts)}",
    )
