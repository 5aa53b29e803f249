
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seohub.core.config import settings
from seohub.core.logging import configure_logging
from seohub.api.v1 import api_v1
from seohub.db.session import dispose_engine

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    dispose_engine()   # 关闭时释放连接池


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# 从环境读取前端白名单（逗号分隔）。本地可配：
# BACKEND_CORS_ORIGINS=http://localhost:5173,https://app.local.test:5173
origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(api_v1, prefix=settings.API_PREFIX)


# 根路径探活（Docker 健康检查）
@app.get("/")
def root():
    return {
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "ok": True,
    }
