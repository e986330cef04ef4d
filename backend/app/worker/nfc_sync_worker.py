"""
NFC 同步 Worker

从 Redis Streams 消费等级变更事件，把最新等级和余额写入用户 NFC 卡的 metadata。
同步失败的消息不确认，留在 pending 列表中等待重新投递；
积分操作本身不受同步结果影响。

运行方式：
    python -m app.worker.nfc_sync_worker
"""

import logging
import time

import redis
from sqlmodel import Session

from app.core.db import engine
from app.core.redis import TIER_CHANGE_GROUP, get_redis, tier_change_stream_key
from app.crud import nfc_cards
from app.enums import VipTier
from app.models import utc_now

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def sync_tier_change(session: Session, fields: dict[str, str]) -> int:
    """
    把一条等级变更事件同步到用户的 NFC 卡

    Args:
        session: 数据库会话
        fields: 事件字段（user_id、tier、points_balance、lifetime_points）

    Returns:
        更新的卡片数量
    """
    user_id = int(fields["user_id"])
    patch = {
        "vip_tier": VipTier(fields["tier"]).value,
        "points_balance": int(fields["points_balance"]),
        "synced_at": utc_now().isoformat(),
    }
    if fields.get("lifetime_points") is not None:
        patch["lifetime_points"] = int(fields["lifetime_points"])
    updated = nfc_cards.update_metadata_for_user(session=session, user_id=user_id, patch=patch)
    logger.info("Synced tier %s to %d NFC card(s) of user %s", patch["vip_tier"], updated, user_id)
    return updated


def ensure_group(client: redis.Redis, stream_key: str) -> None:
    """创建消费者组（如果不存在）"""
    try:
        client.xgroup_create(stream_key, TIER_CHANGE_GROUP, id="0", mkstream=True)
    except redis.ResponseError as e:
        if "BUSYGROUP" not in str(e):
            raise


def consume_once(client: redis.Redis, consumer_name: str, *, block_ms: int = 5000) -> int:
    """读取并处理一批消息，返回成功确认的消息数"""
    stream_key = tier_change_stream_key()
    messages = client.xreadgroup(
        TIER_CHANGE_GROUP,
        consumer_name,
        {stream_key: ">"},
        count=10,
        block=block_ms,
    )
    acked = 0
    for _stream, message_list in messages or []:
        for message_id, fields in message_list:
            try:
                with Session(engine) as session:
                    sync_tier_change(session, fields)
            except Exception as e:
                # 不确认消息，等待重新投递
                logger.error(f"Failed to sync message {message_id}: {e}")
                continue
            client.xack(stream_key, TIER_CHANGE_GROUP, message_id)
            acked += 1
    return acked


def run(client: redis.Redis) -> None:
    """持续消费等级变更事件"""
    stream_key = tier_change_stream_key()
    consumer_name = f"nfc_sync_{int(time.time())}"
    ensure_group(client, stream_key)
    logger.info(f"Worker {consumer_name} started, listening to {stream_key}")

    while True:
        try:
            consume_once(client, consumer_name)
        except KeyboardInterrupt:
            logger.info("Worker stopped by user")
            break
        except redis.RedisError as e:
            logger.error(f"Worker error: {e}")
            time.sleep(5)  # 等待 5 秒后重试


def main() -> None:
    """主函数"""
    logger.info("Starting NFC sync worker...")
    run(get_redis())


if __name__ == "__main__":
    main()
