"""
币种搜索路由
GET /api/search/coins?query=  - 按名称 / 代码搜索（透传数据源）
"""

from fastapi import APIRouter, HTTPException, Query, status

from crypto_service.exceptions import ProviderError
from crypto_service.models.response import ApiResponse
from crypto_service.services.market_service import get_market_service

router = APIRouter(prefix="/api/search", tags=["币种搜索"])


@router.get("/coins", response_model=ApiResponse)
async def search_coins(
    query: str = Query(default="", description="搜索关键词，至少 2 个字符"),
):
    """根据关键词搜索币种"""
    if len(query.strip()) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query must be at least 2 characters",
        )
    try:
        results = await get_market_service().search_coins(query.strip())
    except ProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return ApiResponse.ok(data=results)
