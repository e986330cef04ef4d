"""
初始数据脚本

创建数据表并写入默认积分规则（消费、活动签到）。
已存在的规则不会被覆盖，重复执行是安全的。

执行时机：在 backend_pre_start 之后、启动 API 之前
"""
import logging

from sqlmodel import Session

from app.core.db import engine, init_db
from app.crud import point_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init() -> int:
    """初始化数据库，返回当前积分规则数量"""
    with Session(engine) as session:
        init_db(session)
        return len(point_rules.list_rules(session=session))


def main() -> None:
    logger.info("Creating initial data")
    count = init()
    logger.info("Initial data created (%d point rules)", count)


if __name__ == "__main__":  # pragma: no cover
    main()
