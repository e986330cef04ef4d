"""
应用配置模块

使用 Pydantic Settings 管理所有环境变量和配置。
配置从项目根目录的 .env 文件读取，支持类型验证和默认值。

关键概念：
- BaseSettings: Pydantic 的配置基类，自动从环境变量读取
- computed_field: 计算字段，根据其他字段动态生成
- model_validator: 模型验证器，用于自定义验证逻辑
"""
import warnings  # 用于发出警告
from typing import Annotated, Any, Literal  # 类型注解工具

from pydantic import (
    AnyUrl,  # URL 类型验证
    BeforeValidator,  # 字段验证前的转换器
    HttpUrl,  # HTTP URL 类型验证
    PostgresDsn,  # PostgreSQL 连接字符串验证
    computed_field,  # 计算字段装饰器
    field_validator,  # 字段验证器装饰器
    model_validator,  # 模型验证器装饰器
)
from pydantic_settings import BaseSettings, SettingsConfigDict  # 配置管理
from typing_extensions import Self  # 用于类型注解中引用自身类型


def parse_cors(v: Any) -> list[str] | str:
    """
    解析 CORS 配置值

    支持两种格式：
    1. 逗号分隔的字符串："http://localhost:3000,http://localhost:3001"
    2. 列表格式：["http://localhost:3000", "http://localhost:3001"]

    Raises:
        ValueError: 当输入格式不正确时
    """
    if isinstance(v, str) and not v.startswith("["):
        # 如果是字符串且不是列表格式，按逗号分割
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


# 默认会员等级阈值（累计积分），silver 总是从 0 开始
DEFAULT_TIER_THRESHOLDS: dict[str, int] = {"silver": 0, "gold": 500, "black": 1750}


class Settings(BaseSettings):
    """
    应用配置类

    继承自 BaseSettings，自动从环境变量和 .env 文件读取配置。

    配置来源优先级：
    1. 环境变量（最高优先级）
    2. .env 文件
    3. 代码中的默认值（最低优先级）
    """
    model_config = SettingsConfigDict(
        # 使用项目根目录的 .env 文件（backend/ 目录的上一级）
        env_file="../.env",
        env_ignore_empty=True,  # 忽略空的环境变量
        extra="ignore",  # 忽略未定义的额外字段
    )
    API_V1_STR: str = "/api/v1"  # API 版本前缀
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """获取所有 CORS 允许的源（去除尾部斜杠）"""
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    PROJECT_NAME: str = "VIP Points Ledger"
    SENTRY_DSN: HttpUrl | None = None

    # 管理后台访问令牌（Authorization: Bearer <token>）
    ADMIN_API_TOKEN: str = "changethis"

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""
    # 完整连接串，设置后优先于上面的 POSTGRES_* 配置（例如 sqlite:///./vip.db）
    DATABASE_URL: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(
            PostgresDsn.build(
                scheme="postgresql+psycopg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_SERVER,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
        )

    # Redis 配置（等级变更事件流、定时任务锁）
    REDIS_HOST: str = "localhost"  # Redis 服务器地址
    REDIS_PORT: int = 6379  # Redis 端口
    REDIS_DB: int = 0  # Redis 数据库编号（0-15）
    REDIS_PASSWORD: str | None = None  # Redis 密码（可选）

    # VIP 积分规则配置
    VIP_TIER_THRESHOLDS: dict[str, int] = DEFAULT_TIER_THRESHOLDS
    # 后台修改阈值规则（tier_threshold_<tier>）后的缓存时间
    TIER_THRESHOLD_CACHE_SECONDS: float = 60
    CONSUMPTION_ACTION_TYPE: str = "consumption"  # 消费积分规则的 action_type
    EVENT_CHECKIN_ACTION_TYPE: str = "event_checkin"  # 活动签到积分规则的 action_type
    EVENT_CHECKIN_DEFAULT_POINTS: int = 10  # 未配置签到规则时的默认积分
    POINTS_ROUNDING: Literal["floor", "half_up"] = "floor"  # 积分取整策略，对所有币种一致
    DEFAULT_CURRENCY: str = "EUR"

    # 对账任务（每天 UTC 时间执行）
    RECONCILE_CRON_HOUR: int = 3

    @field_validator("VIP_TIER_THRESHOLDS")
    @classmethod
    def _validate_thresholds(cls, v: dict[str, int]) -> dict[str, int]:
        if not v:
            raise ValueError("VIP_TIER_THRESHOLDS must not be empty")
        if min(v.values()) != 0:
            raise ValueError("VIP_TIER_THRESHOLDS must contain a tier starting at 0")
        return v

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        """
        检查敏感配置是否使用了默认值

        如果配置项使用了默认值 "changethis"，在本地环境会发出警告，
        在其他环境会抛出错误，强制修改。
        """
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                # 本地环境只警告，不阻止运行
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        """确保敏感配置不使用默认值"""
        self._check_default_secret("ADMIN_API_TOKEN", self.ADMIN_API_TOKEN)
        if not self.DATABASE_URL:
            self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)

        return self


# 创建全局配置实例，整个应用共享
settings = Settings()  # type: ignore
