"""
行情数据路由
GET /api/cryptocurrencies              - 跟踪的币种列表
GET /api/crypto/prices                 - 全部币种实时价格
GET /api/crypto/{symbol}               - 单一币种详情
GET /api/crypto/{symbol}/history       - 历史价格 / 成交量序列
GET /api/crypto/{symbol}/futures       - 永续合约数据
"""

from fastapi import APIRouter, HTTPException, Query, status

from crypto_service.exceptions import NotFoundError, ProviderError
from crypto_service.models.response import ApiResponse
from crypto_service.services.market_service import get_market_service

router = APIRouter(tags=["行情数据"])

_DEFAULT_DAYS = 7


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_gateway(exc: ProviderError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/api/cryptocurrencies", response_model=ApiResponse)
async def list_cryptocurrencies():
    """获取跟踪的币种列表"""
    return ApiResponse.ok(data=get_market_service().list_instruments())


@router.get("/api/crypto/prices", response_model=ApiResponse)
async def get_prices():
    """获取全部跟踪币种的实时价格"""
    try:
        prices = await get_market_service().get_price_snapshot()
    except ProviderError as exc:
        raise _bad_gateway(exc)
    return ApiResponse.ok(data=prices)


@router.get("/api/crypto/{symbol}", response_model=ApiResponse)
async def get_crypto_details(symbol: str):
    """获取单一币种详情"""
    try:
        detail = await get_market_service().get_coin_details(symbol)
    except NotFoundError as exc:
        raise _not_found(exc)
    except ProviderError as exc:
        raise _bad_gateway(exc)
    return ApiResponse.ok(data=detail)


@router.get("/api/crypto/{symbol}/history", response_model=ApiResponse)
async def get_history(
    symbol: str,
    days: int = Query(default=_DEFAULT_DAYS, ge=1, le=365, description="时间窗口天数，1 天为小时级数据"),
):
    """获取历史价格 / 成交量序列"""
    try:
        series = await get_market_service().get_historical_series(symbol, days)
    except NotFoundError as exc:
        raise _not_found(exc)
    except ProviderError as exc:
        raise _bad_gateway(exc)
    return ApiResponse.ok(data=series)


@router.get("/api/crypto/{symbol}/futures", response_model=ApiResponse)
async def get_futures(symbol: str):
    """获取资金费率、持仓量、多空比"""
    try:
        metrics = await get_market_service().get_futures_metrics(symbol)
    except NotFoundError as exc:
        raise _not_found(exc)
    return ApiResponse.ok(data=metrics)
