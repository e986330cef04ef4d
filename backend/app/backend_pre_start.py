"""
启动前依赖检查脚本

在 API、NFC 同步 worker 和调度器启动前，等待数据库和 Redis 就绪。
Docker Compose 启动时依赖容器可能还在初始化，这里按固定间隔重试，
最多等待 5 分钟。

运行方式：
    python -m app.backend_pre_start
    python -m app.backend_pre_start --skip-redis  # 只检查数据库（如运行测试前）
"""
import argparse
import logging

import redis
from sqlalchemy import Engine
from sqlmodel import Session, select
from tenacity import after_log, before_log, retry, stop_after_attempt, wait_fixed

from app.core.db import engine
from app.core.redis import get_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 最大尝试次数：300 次（5 分钟，每秒一次）
wait_seconds = 1


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def wait_for_database(db_engine: Engine) -> None:
    """执行 select(1)，数据库未就绪时抛出异常触发重试"""
    try:
        with Session(db_engine) as session:
            session.exec(select(1))
    except Exception as e:
        logger.error(e)
        raise e


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def wait_for_redis(client: redis.Redis) -> None:
    try:
        client.ping()
    except redis.RedisError as e:
        logger.error(e)
        raise e


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Wait for backing services")
    parser.add_argument("--skip-redis", action="store_true", help="only check the database")
    args = parser.parse_args(argv)

    logger.info("Initializing service")
    wait_for_database(engine)
    if not args.skip_redis:
        wait_for_redis(get_redis())
    logger.info("Service finished initializing")


if __name__ == "__main__":  # pragma: no cover
    main()
