"""
Redis 连接模块

管理 Redis 客户端连接，使用单例模式确保全局只有一个连接实例。
Redis 用于：
- 等级变更事件流（Redis Streams），由 NFC 同步 worker 消费
- 分布式锁（避免多个调度器实例同时执行对账任务）

使用 @lru_cache 装饰器实现单例模式，避免重复创建连接。
"""
from __future__ import annotations

from functools import lru_cache  # 缓存装饰器，用于实现单例模式

import redis  # Redis 客户端库

from app.core.config import settings

TIER_CHANGE_GROUP = "nfc_sync_workers"  # NFC 同步 worker 的消费者组

# 只有持有者才能释放锁（值匹配才删除）
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """
    获取 Redis 客户端实例（单例模式）

    第一次调用时创建连接，后续调用返回缓存的实例。

    配置说明：
    - decode_responses=True: 自动将字节响应解码为字符串
    - 连接参数从 settings 读取
    """
    return redis.Redis(
        host=settings.REDIS_HOST,  # Redis 服务器地址
        port=settings.REDIS_PORT,  # Redis 端口
        db=settings.REDIS_DB,  # Redis 数据库编号（0-15）
        password=settings.REDIS_PASSWORD,  # Redis 密码（可选）
        decode_responses=True,  # 自动解码响应为字符串（而不是字节）
    )


def tier_change_stream_key() -> str:
    """等级变更事件流的 key，按环境区分"""
    return f"vip_tier_changes:{settings.ENVIRONMENT}"


def acquire_lock(client: redis.Redis, key: str, value: str, *, ttl_seconds: int) -> bool:
    """SET NX EX 获取锁，已被占用时返回 False"""
    return bool(client.set(key, value, ex=ttl_seconds, nx=True))


def release_lock(client: redis.Redis, key: str, value: str) -> bool:
    return client.eval(_RELEASE_LOCK_SCRIPT, 1, key, value) == 1
