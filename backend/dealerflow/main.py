from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dealerflow.api.api_v1.api import api_router as api_v1_router
from dealerflow.core.config import settings
from dealerflow.core.logging_config import setup_logging, get_logger
from dealerflow.services.scheduler import init_scheduler, shutdown_scheduler
from dealerflow.db.init_db import ensure_tables_exist

# 初始化日志系统
setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("🚀 应用启动中...")

    await ensure_tables_exist()
    logger.info("📊 数据库表已就绪")

    init_scheduler()
    yield
    # 关闭时
    logger.info("🛑 应用关闭中...")
    shutdown_scheduler()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="经销商订单履约与库存分配",
    lifespan=lifespan
)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

logger.info(f"注册API v1路由，前缀: {settings.API_V1_STR}")
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": settings.PROJECT_NAME}


@app.get("/health")
async def health():
    return {"status": "ok"}
