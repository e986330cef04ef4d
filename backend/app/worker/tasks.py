"""
定时任务逻辑
"""

import logging
from dataclasses import dataclass, field
from uuid import uuid4

import redis
from sqlmodel import Session

from app.api.errors import AppError
from app.core.db import engine
from app.core.redis import acquire_lock, get_redis, release_lock
from app.crud import memberships
from app.services.points_service import PointsService

logger = logging.getLogger(__name__)

RECONCILE_LOCK_KEY = "vip:reconcile:lock"
RECONCILE_LOCK_TTL_SECONDS = 60 * 30


@dataclass
class ReconcileReport:
    checked: int = 0
    corrected: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    skipped: bool = False


def reconcile_all_memberships(client: redis.Redis | None = None) -> ReconcileReport:
    """
    每天按积分流水重放全部会员账户，修复部分失败留下的不一致

    多个调度器实例同时运行时，只有拿到 Redis 锁的实例执行。
    """
    client = client or get_redis()
    lock_value = str(uuid4())
    if not acquire_lock(client, RECONCILE_LOCK_KEY, lock_value, ttl_seconds=RECONCILE_LOCK_TTL_SECONDS):
        logger.info("Reconcile task already running, skip this run.")
        return ReconcileReport(skipped=True)

    report = ReconcileReport()
    try:
        with Session(engine) as session:
            user_ids = memberships.list_user_ids(session=session)
            service = PointsService(session)
            for user_id in user_ids:
                report.checked += 1
                try:
                    result = service.reconcile_membership(user_id)
                except AppError as exc:
                    session.rollback()
                    report.failed.append(user_id)
                    logger.error("Failed to reconcile user %s: %s", user_id, exc.message)
                    continue
                if result.corrected:
                    report.corrected.append(user_id)

        logger.info(
            "Reconcile finished: checked=%d corrected=%d failed=%d",
            report.checked,
            len(report.corrected),
            len(report.failed),
        )
        return report
    finally:
        release_lock(client, RECONCILE_LOCK_KEY, lock_value)
