# 环境变量和配置
# pydantic‑settings 读取 .env = core/config.py

from typing import Optional
from pydantic import SecretStr, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 本机直接跑 uvicorn / celery 时（不走 Docker），才会用到 model_config.env_file=".env"：
# 此时它会读取 backend/.env

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
    )

    # ========= project config =========
    PROJECT_NAME: str = "SEO Content Hub"
    ENVIRONMENT: str = "dev"
    API_PREFIX: str = "/api/v1"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"


    # ========= Database =========
    # - 容器内默认连 docker 网络里的 "db" 服务
    # - 本机工具（psql/脚本）可使用 DATABASE_URL_LOCAL（指向 localhost）
    DATABASE_URL: str = Field(
        default="postgresql+psycopg://seo_user:seo_pass@db:5432/seohub_dev",
        alias="DATABASE_URL",
    )
    DATABASE_URL_LOCAL: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL_LOCAL",
        description="Optional local URL for tools (e.g., psql). Typically '...@localhost:5432/seohub_dev'",
    )


    # ========= celery config =========
    CELERY_BROKER_URL: Optional[str] = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: Optional[str] = None
    CELERY_TIMEZONE: str = "UTC"
    SYNC_TASKS_INLINE: bool = Field(default=False, alias="SYNC_TASKS_INLINE")   # True=所有子任务在当前进程同步执行（调试用）


    # ========= bulk generation config =========
    BULK_DEFAULT_BATCH_SIZE: int = Field(5, ge=1, le=100, alias="BULK_DEFAULT_BATCH_SIZE")
    BULK_BATCH_DELAY_SEC: int = Field(5, ge=0, alias="BULK_BATCH_DELAY_SEC")          # 批与批之间的固定间隔，避免打爆 AI 限流
    BULK_DISPATCH_TICK_SEC: int = Field(10, ge=1, alias="BULK_DISPATCH_TICK_SEC")     # beat 扫 due batch 的频率
    # processing 超过租约还没结束的 batch 视为 worker 已挂：重新排队，超过最大次数则标记失败
    BULK_BATCH_LEASE_SEC: int = Field(900, ge=60, alias="BULK_BATCH_LEASE_SEC")
    BULK_BATCH_MAX_ATTEMPTS: int = Field(3, ge=1, alias="BULK_BATCH_MAX_ATTEMPTS")


    # ========= WooCommerce REST API =========
    WOO_API_VERSION: str = Field("wc/v3", alias="WOO_API_VERSION")
    WOO_CONNECT_TIMEOUT: int = Field(10, ge=1, alias="WOO_CONNECT_TIMEOUT")
    WOO_READ_TIMEOUT: int = Field(30, ge=1, alias="WOO_READ_TIMEOUT")
    WOO_HTTP_RETRIES: int = Field(3, ge=1, alias="WOO_HTTP_RETRIES")
    WOO_HTTP_BACKOFF_MS: int = Field(500, ge=0, alias="WOO_HTTP_BACKOFF_MS")
    WOO_SCAN_PER_PAGE: int = Field(50, ge=1, le=100, alias="WOO_SCAN_PER_PAGE")


    # ========= AI content generation =========
    OPENAI_API_KEY: Optional[SecretStr] = Field(None, alias="OPENAI_API_KEY")
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    GEMINI_API_KEY: Optional[SecretStr] = Field(None, alias="GEMINI_API_KEY")
    GEMINI_BASE_URL: str = Field("https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL")
    GENERATION_TIMEOUT: int = Field(120, ge=5, alias="GENERATION_TIMEOUT")
    GENERATION_TEMPERATURE: float = Field(0.7, ge=0, le=2, alias="GENERATION_TEMPERATURE")
    GENERATION_MAX_TOKENS: int = Field(4000, ge=1, alias="GENERATION_MAX_TOKENS")


settings = Settings()  # 只从环境读取（含 .env）
