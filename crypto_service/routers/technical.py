"""
技术分析路由
GET /api/crypto/{symbol}/analysis  - 技术指标与综合信号
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from crypto_service.exceptions import NotFoundError, ProviderError
from crypto_service.models.response import ApiResponse
from crypto_service.services.technical_service import get_technical_service

router = APIRouter(prefix="/api/crypto", tags=["技术分析"])


@router.get("/{symbol}/analysis", response_model=ApiResponse)
async def get_technical_analysis(
    symbol: str,
    days: Optional[int] = Query(
        default=None, ge=1, le=365, description="分析使用的历史天数，默认 30 天"
    ),
):
    """
    获取币种技术分析

    - 指标：RSI / MACD / 布林带 / 均线趋势 / 成交量
    - 综合信号：前四项投票，成交量不参与
    """
    svc = get_technical_service()
    try:
        report = await svc.get_analysis(symbol, days=days)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except ProviderError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return ApiResponse.ok(data=report)
