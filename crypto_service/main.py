"""
Crypto 行情与技术信号服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn crypto_service.main:app --host 0.0.0.0 --port 3000
    python -m crypto_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crypto_service import __version__
from crypto_service.config import settings
from crypto_service.layers.gateway import close_gateway
from crypto_service.models.response import ApiResponse
from crypto_service.routers import cache, crypto, health, search, technical

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Crypto Market Service v{__version__} 启动中")
    logger.info(f"   跟踪币种  : {len(settings.TRACKED_INSTRUMENTS)} 个")
    logger.info(f"   数据源    : {settings.COINGECKO_BASE_URL}")
    logger.info(f"   请求间隔  : {settings.REQUEST_DELAY_MS}ms")
    logger.info("=" * 60)

    yield

    logger.info("🔄 行情服务正在关闭...")
    await close_gateway()
    logger.info("✅ 行情服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Crypto 行情与技术信号服务",
    description=(
        "加密货币行情数据微服务，提供以下功能：\n"
        "- 📊 实时价格 / 币种详情 / 历史序列\n"
        "- 📈 技术指标分析（RSI / MACD / BOLL / MA / 成交量）与综合信号\n"
        "- 📉 永续合约数据（资金费率 / 持仓量 / 多空比）\n"
        "- 🗄️ 进程内缓存，数据源故障时返回过期数据\n\n"
        "**分层架构**\n"
        "```\n"
        "Gateway Layer      ← 全局限速，串行化对外请求\n"
        "Acquisition Layer  ← 从 CoinGecko / Binance 拉取原始数据\n"
        "Cache Layer        ← TTL 缓存 + 过期回退\n"
        "Processing Layer   ← 数据清洗、排序、标准化\n"
        "Analysis Layer     ← 技术指标计算\n"
        "Signal Layer       ← 多指标投票融合\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """404 / 502 / 400 等业务错误统一为 ApiResponse 结构"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse.fail(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=ApiResponse.fail(error=errors, message="请求参数校验失败").model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ApiResponse.fail(error="内部服务错误", message=str(exc)).model_dump(),
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(crypto.router)
app.include_router(technical.router)
app.include_router(search.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Crypto Market Service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "crypto_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
