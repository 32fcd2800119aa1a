import uvicorn
import logging
import sys
import os
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# 添加当前目录到Python路径
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# 加载 .env 文件 (强制覆盖已存在的环境变量)
from dotenv import load_dotenv

env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)

from app.api.api_v1.api import api_router
from app.core.config import settings
from app.core.exceptions import AnalyticsError
from app.jobs.scheduler import start_scheduler, shutdown_scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    启动: 开启定时报表扫描 (SCHEDULER_ENABLED)
    关闭: 停止调度器
    """
    logger.info(f"Starting {settings.PROJECT_NAME}")
    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Analytics and dashboard engine over business records",
    version="0.1.0",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    """服务层异常 -> HTTP状态码 (422 / 404 / 403 / 409)"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
async def health():
    return {"status": "ok"}


# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=True, timeout_keep_alive=120)
