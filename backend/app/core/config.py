from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    PROJECT_NAME: str = "订单到收款系统"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置（sqlite:/// 会自动转换为 aiosqlite 驱动）
    DATABASE_URI: str = "sqlite:///./order_to_cash.db"

    # 日志目录
    LOG_DIR: str = "logs"

    # 税率（百分比），创建销售单未指定时使用
    DEFAULT_TAX_RATE: float = Field(default=0, ge=0, le=100, description="默认税率（%）")

    # 单号唯一约束冲突时整笔事务的重试次数
    SEQUENCE_CONFLICT_RETRIES: int = Field(default=1, ge=0, description="单号冲突重试次数")

    # 发票账期（天）。0 表示到期日等于开票日，与现有行为一致，待业务确认
    INVOICE_PAYMENT_TERM_DAYS: int = Field(default=0, ge=0, description="发票账期（天）")

    # 总账过账（开票后尽力而为，失败只记日志）
    LEDGER_POSTING_ENABLED: bool = True
    ACCOUNTS_RECEIVABLE_CODE: str = "1200"
    SALES_REVENUE_CODE: str = "4000"

    class Config:
        case_sensitive = True
        env_file = ".env"

    @property
    def async_database_uri(self) -> str:
        """异步驱动连接串"""
        uri = self.DATABASE_URI
        if uri.startswith("sqlite:///"):
            return "sqlite+aiosqlite:///" + uri[len("sqlite:///"):]
        return uri


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, DATABASE_URI={settings.DATABASE_URI}")
