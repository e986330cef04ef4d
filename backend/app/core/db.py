"""
数据库连接模块

管理数据库引擎和会话的创建。
使用 SQLModel 的 create_engine 创建数据库连接池。

重要提示：
- 确保在使用前导入所有模型（app.models），否则建表时会遗漏
- 本项目不维护迁移脚本，表结构由 init_db 通过 metadata.create_all 创建
"""
import logging
from decimal import Decimal

from sqlalchemy import Engine
from sqlmodel import Session, SQLModel, create_engine  # SQLModel 的数据库工具

from app import models  # noqa: F401  注册所有表模型
from app.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """根据连接串创建引擎，SQLite 需要允许跨线程使用连接"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True)


# 创建数据库引擎（连接池）
engine = build_engine(settings.SQLALCHEMY_DATABASE_URI)

# 默认积分规则：消费每 1 EUR 约 0.333333 分（即每 3 EUR 1 分），活动签到每次 10 分
DEFAULT_POINT_RULES: list[dict] = [
    {
        "action_type": settings.CONSUMPTION_ACTION_TYPE,
        "points_per_unit": Decimal("0.333333"),
        "unit": settings.DEFAULT_CURRENCY,
        "unit_size": Decimal("1"),
    },
    {
        "action_type": settings.EVENT_CHECKIN_ACTION_TYPE,
        "points_per_unit": Decimal(settings.EVENT_CHECKIN_DEFAULT_POINTS),
        "unit": "visit",
        "unit_size": Decimal("1"),
    },
]


def init_db(session: Session) -> None:
    """
    初始化数据库

    创建所有表，并为缺失的 action_type 写入默认积分规则。
    已存在的规则保持不变（管理员可能已修改过）。

    Args:
        session: 数据库会话
    """
    from app.crud import point_rules

    SQLModel.metadata.create_all(session.get_bind())

    for rule in DEFAULT_POINT_RULES:
        if point_rules.get_rule(session=session, action_type=rule["action_type"], active_only=False):
            continue
        result = point_rules.create_rule(session=session, **rule)
        logger.info("Seeded point rule %s (%s)", rule["action_type"], result.status.value)
