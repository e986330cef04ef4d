"""
枚举类型定义模块

定义应用中使用的所有枚举类型。
所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum  # 枚举类型，用于定义固定的选项集合


class VipTier(str, Enum):
    """
    VIP 会员等级枚举

    由累计积分（lifetime_points）决定，顺序为：
    - silver: 银卡（入会即获得）
    - gold: 金卡
    - black: 黑卡（最高等级）
    """
    silver = "silver"
    gold = "gold"
    black = "black"

    @property
    def rank(self) -> int:
        """等级序号，用于比较等级高低"""
        return _TIER_ORDER.index(self)


_TIER_ORDER = [VipTier.silver, VipTier.gold, VipTier.black]


class MembershipStatus(str, Enum):
    """
    会员状态枚举

    会员记录从不物理删除，通过状态标记：
    - active: 正常
    - suspended: 暂停
    - cancelled: 已注销
    """
    active = "active"
    suspended = "suspended"
    cancelled = "cancelled"


class PointsSource(str, Enum):
    """
    积分流水来源枚举

    - consumption: 消费获得积分
    - manual_adjustment: 管理员手动调整（可正可负）
    - event_checkin: 活动签到获得积分
    """
    consumption = "consumption"
    manual_adjustment = "manual_adjustment"
    event_checkin = "event_checkin"


class PointsRounding(str, Enum):
    """
    积分取整策略

    - floor: 向下取整（默认）
    - half_up: 四舍五入
    """
    floor = "floor"
    half_up = "half_up"


class RuleStoreStatus(str, Enum):
    """积分规则存储层的操作结果"""
    ok = "ok"
    conflict = "conflict"
    not_found = "not_found"
