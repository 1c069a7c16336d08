from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "经销商订单履约系统"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./dealerflow.db"

    # 厂商（EVM）实体编码：分配时从该实体的库存池出库
    MANUFACTURER_CODE: str = Field(default="EVM", description="厂商实体编码")

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # 自动备份配置
    AUTO_BACKUP_ENABLED: bool = True  # 是否启用自动备份
    AUTO_BACKUP_HOUR: int = 3  # 每天备份时间（小时，0-23）
    AUTO_BACKUP_MINUTE: int = 0  # 每天备份时间（分钟，0-59）
    AUTO_BACKUP_KEEP_COUNT: int = 7  # 保留最近多少个自动备份

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, CORS={settings.BACKEND_CORS_ORIGINS}")
