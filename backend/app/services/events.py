"""
等级变更事件

积分接口发现 tier_changed 时把事件写入 Redis Stream，
由 app/worker/nfc_sync_worker.py 异步同步到 NFC 卡。
发布失败只记录日志，不影响已经完成的积分操作。
"""
from __future__ import annotations

import logging

import redis
from sqlmodel import Session

from app.core.redis import tier_change_stream_key
from app.crud import memberships
from app.enums import VipTier

logger = logging.getLogger(__name__)

STREAM_MAXLEN = 10000


def publish_tier_change(
    client: redis.Redis,
    *,
    user_id: int,
    tier: VipTier,
    points_balance: int,
    lifetime_points: int | None = None,
) -> str | None:
    """写入一条等级变更事件，返回消息 ID；Redis 不可用时返回 None"""
    fields = {
        "user_id": str(user_id),
        "tier": VipTier(tier).value,
        "points_balance": str(points_balance),
    }
    if lifetime_points is not None:
        fields["lifetime_points"] = str(lifetime_points)
    try:
        message_id = client.xadd(
            tier_change_stream_key(), fields, maxlen=STREAM_MAXLEN, approximate=True
        )
    except redis.RedisError as exc:
        logger.error("Failed to publish tier change for user %s: %s", user_id, exc)
        return None
    logger.info("Published tier change for user %s -> %s (%s)", user_id, fields["tier"], message_id)
    return message_id


def notify_tier_change(session: Session, client: redis.Redis, user_id: int) -> str | None:
    """读取会员当前账户并发布等级变更事件"""
    membership = memberships.get_membership(session=session, user_id=user_id)
    if membership is None:
        return None
    return publish_tier_change(
        client,
        user_id=user_id,
        tier=VipTier(membership.tier),
        points_balance=membership.points_balance,
        lifetime_points=membership.lifetime_points,
    )
