"""
会员等级计算模块

根据累计积分计算会员等级，是一个确定的单调阶梯函数：
累计积分越高，等级不会越低。

阈值不写死在计算逻辑里，而是以有序的 (min_points, tier) 列表注入，
计算时取不超过累计积分的最高阈值。默认阈值来自配置 VIP_TIER_THRESHOLDS。

管理员可以在后台通过积分规则 tier_threshold_<tier>（points_per_unit 即阈值）
在运行时修改阈值，load_ladder 读取这些规则并带短时缓存，
规则缺失、停用或组合出的阶梯不合法时回退到配置中的阈值。
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from app.core.config import settings
from app.enums import VipTier
from app.models import VIPPointRule

logger = logging.getLogger(__name__)

TIER_THRESHOLD_RULE_PREFIX = "tier_threshold_"


class RuleSource(Protocol):
    def get_rule(self, action_type: str) -> VIPPointRule | None: ...


@dataclass(frozen=True)
class TierThreshold:
    min_points: int
    tier: VipTier


class TierLadder:
    """
    等级阶梯

    构造时校验阈值：不能为空、最低阈值必须为 0、阈值不能重复或为负、
    阈值升高时等级也必须升高（保证单调）。

    使用示例：
        ladder = TierLadder.from_mapping({"silver": 0, "gold": 500, "black": 1750})
        ladder.compute_tier(600)  # VipTier.gold
    """

    def __init__(self, thresholds: Iterable[TierThreshold]) -> None:
        ordered = sorted(thresholds, key=lambda t: t.min_points)
        if not ordered:
            raise ValueError("tier ladder needs at least one threshold")
        if ordered[0].min_points != 0:
            raise ValueError("lowest tier threshold must be 0")
        for lower, higher in zip(ordered, ordered[1:]):
            if lower.min_points == higher.min_points:
                raise ValueError(f"duplicate tier threshold {lower.min_points}")
            if VipTier(lower.tier).rank >= VipTier(higher.tier).rank:
                raise ValueError("tier thresholds must increase with tier rank")
        self._thresholds = tuple(ordered)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> TierLadder:
        return cls(TierThreshold(int(points), VipTier(tier)) for tier, points in mapping.items())

    @property
    def thresholds(self) -> tuple[TierThreshold, ...]:
        return self._thresholds

    @property
    def lowest_tier(self) -> VipTier:
        return self._thresholds[0].tier

    def compute_tier(self, lifetime_points: int) -> VipTier:
        """返回不超过 lifetime_points 的最高阈值对应的等级"""
        if lifetime_points is None or lifetime_points < 0:
            raise ValueError("lifetime_points must be a non-negative integer")
        current = self._thresholds[0]
        for threshold in self._thresholds[1:]:
            if lifetime_points < threshold.min_points:
                break
            current = threshold
        return current.tier

    def next_threshold(self, lifetime_points: int) -> TierThreshold | None:
        """下一个等级的阈值，已是最高等级时返回 None"""
        for threshold in self._thresholds:
            if threshold.min_points > lifetime_points:
                return threshold
        return None

    def next_tier(self, tier: VipTier) -> VipTier | None:
        tiers = [t.tier for t in self._thresholds]
        idx = tiers.index(VipTier(tier))
        return tiers[idx + 1] if idx + 1 < len(tiers) else None

    def points_to_next_tier(self, lifetime_points: int) -> int | None:
        threshold = self.next_threshold(lifetime_points)
        if threshold is None:
            return None
        return threshold.min_points - lifetime_points


def default_ladder() -> TierLadder:
    return TierLadder.from_mapping(settings.VIP_TIER_THRESHOLDS)


def compute_tier(
    lifetime_points: int, thresholds: Iterable[TierThreshold] | None = None
) -> VipTier:
    ladder = TierLadder(thresholds) if thresholds is not None else default_ladder()
    return ladder.compute_tier(lifetime_points)


def threshold_rule_action_type(tier: VipTier | str) -> str:
    return f"{TIER_THRESHOLD_RULE_PREFIX}{VipTier(tier).value}"


def is_threshold_rule(action_type: str) -> bool:
    return action_type.startswith(TIER_THRESHOLD_RULE_PREFIX)


def ladder_from_rules(
    rules: RuleSource, base: Mapping[str, int] | None = None
) -> TierLadder:
    """
    用启用中的 tier_threshold_<tier> 规则覆盖配置阈值

    最低等级始终从 0 开始，不读取规则；阈值按四舍五入取整。
    """
    mapping = dict(base if base is not None else settings.VIP_TIER_THRESHOLDS)
    lowest = min(mapping, key=lambda tier: mapping[tier])
    for tier in mapping:
        if tier == lowest:
            continue
        rule = rules.get_rule(threshold_rule_action_type(tier))
        if rule is not None:
            mapping[tier] = int(
                Decimal(rule.points_per_unit).to_integral_value(rounding=ROUND_HALF_UP)
            )
    try:
        return TierLadder.from_mapping(mapping)
    except ValueError as exc:
        logger.warning("Invalid tier threshold rules %s, using defaults: %s", mapping, exc)
        return TierLadder.from_mapping(base if base is not None else settings.VIP_TIER_THRESHOLDS)


class LadderCache:
    """进程内阈值缓存，修改阈值规则后调用 clear() 立即生效"""

    def __init__(self, ttl_seconds: float) -> None:
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._ladder: TierLadder | None = None
        self._loaded_at = 0.0

    def get(self, rules: RuleSource) -> TierLadder:
        now = time.monotonic()
        with self._lock:
            if self._ladder is not None and now - self._loaded_at < self.ttl_seconds:
                return self._ladder
        ladder = ladder_from_rules(rules)
        with self._lock:
            self._ladder, self._loaded_at = ladder, now
        return ladder

    def clear(self) -> None:
        with self._lock:
            self._ladder = None
            self._loaded_at = 0.0


ladder_cache = LadderCache(settings.TIER_THRESHOLD_CACHE_SECONDS)


def load_ladder(rules: RuleSource) -> TierLadder:
    return ladder_cache.get(rules)
