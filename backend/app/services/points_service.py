"""
VIP 积分服务

编排积分规则、积分流水、会员账户和等级计算：
收到一个业务事件（消费、签到、管理员手动调整）后，
计算积分 -> 写入流水 -> 原子更新余额 -> 重新计算并保存等级。

失败语义：
- 写流水之前的失败（参数校验、规则不存在、用户不存在）不会留下任何记录
- 流水写入之后的任何失败都会抛出 PartialFailureError，
  表示流水和会员账户不一致，需要通过 reconcile_membership 重放流水修复

本服务不做权限校验，也不负责创建消费记录或同步 NFC 卡，
调用方根据返回的 tier_changed 决定是否触发后续同步。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Any

import sentry_sdk
from sqlmodel import Session

from app.api.errors import (
    MembershipNotFoundError,
    PartialFailureError,
    RuleNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from app.core.config import Settings, settings
from app.crud import memberships, points_log
from app.crud.point_rules import PointRuleStore
from app.enums import PointsRounding, PointsSource, VipTier
from app.models import User, VIPMembership, VIPPointRule, VIPPointsLog
from app.services.tiers import RuleSource, TierLadder, ladder_from_rules

logger = logging.getLogger(__name__)

_ROUNDING_MODES = {
    PointsRounding.floor: ROUND_FLOOR,
    PointsRounding.half_up: ROUND_HALF_UP,
}


@dataclass(frozen=True)
class ConsumptionResult:
    points_awarded: int
    new_balance: int
    new_tier: VipTier
    tier_changed: bool


@dataclass(frozen=True)
class AdjustmentResult:
    success: bool
    new_balance: int
    new_tier: VipTier
    tier_changed: bool


@dataclass(frozen=True)
class ReconcileResult:
    user_id: int
    balance_before: int
    balance_after: int
    lifetime_before: int
    lifetime_after: int
    tier: VipTier
    corrected: bool


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        decimal_value = value
    else:
        try:
            decimal_value = Decimal(str(value))
        except ArithmeticError:
            raise ValidationError(f"Invalid amount: {value!r}")
    if not decimal_value.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return decimal_value


class PointsService:
    """
    积分服务

    Args:
        session: 数据库会话
        rules: 积分规则来源，默认使用绑定当前会话的 PointRuleStore
        ladder: 等级阶梯，默认读取阈值规则，没有规则时使用配置中的阈值
        config: 配置（取整策略、规则 action_type 等）
    """

    def __init__(
        self,
        session: Session,
        *,
        rules: RuleSource | None = None,
        ladder: TierLadder | None = None,
        config: Settings = settings,
    ) -> None:
        self.session = session
        self.rules = rules if rules is not None else PointRuleStore(session)
        self.ladder = ladder if ladder is not None else ladder_from_rules(self.rules)
        self.config = config

    # ------------------------------------------------------------------
    # 业务入口
    # ------------------------------------------------------------------

    def process_consumption(
        self,
        user_id: int,
        amount: Decimal | int | float | str,
        currency: str | None = None,
        consumption_id: int | str | None = None,
    ) -> ConsumptionResult:
        """
        按消费金额发放积分

        积分 = 取整(amount * points_per_unit / unit_size)，取整策略由
        POINTS_ROUNDING 配置决定，对所有币种一致。
        用户尚未开通会员时会自动开通。

        Raises:
            ValidationError: 金额小于等于 0
            RuleNotFoundError: 没有启用中的消费积分规则
            UserNotFoundError: 用户不存在
            PartialFailureError: 流水已写入但余额或等级更新失败
        """
        amount = _to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        currency = currency or self.config.DEFAULT_CURRENCY

        action_type = self.config.CONSUMPTION_ACTION_TYPE
        rule = self.rules.get_rule(action_type)
        if rule is None:
            raise RuleNotFoundError(action_type)

        points = self.calculate_points(amount, rule)
        self._ensure_membership(user_id)

        related_id = str(consumption_id) if consumption_id is not None else None
        entry = points_log.append_log_entry(
            session=self.session,
            user_id=user_id,
            delta_points=points,
            reason=f"Consumption {amount} {currency}",
            source=PointsSource.consumption,
            related_entity_id=related_id,
            metadata={"amount": str(amount), "currency": currency, "consumption_id": related_id},
        )
        new_balance, new_tier, changed = self._apply(entry, points, points)
        logger.info(
            "Awarded %s points to user %s for consumption %s (%s %s)",
            points, user_id, related_id, amount, currency,
        )
        return ConsumptionResult(points, new_balance, new_tier, changed)

    def process_event_checkin(
        self,
        user_id: int,
        event_id: str | None = None,
        checkin_id: str | None = None,
    ) -> ConsumptionResult:
        """活动签到发放固定积分，未配置签到规则时使用 EVENT_CHECKIN_DEFAULT_POINTS"""
        rule = self.rules.get_rule(self.config.EVENT_CHECKIN_ACTION_TYPE)
        if rule is not None:
            points = int(_to_decimal(rule.points_per_unit).to_integral_value(rounding=ROUND_FLOOR))
        else:
            points = self.config.EVENT_CHECKIN_DEFAULT_POINTS

        self._ensure_membership(user_id)
        entry = points_log.append_log_entry(
            session=self.session,
            user_id=user_id,
            delta_points=points,
            reason="Event check-in",
            source=PointsSource.event_checkin,
            related_entity_id=checkin_id,
            metadata={"event_id": event_id, "checkin_id": checkin_id},
        )
        new_balance, new_tier, changed = self._apply(entry, points, points)
        return ConsumptionResult(points, new_balance, new_tier, changed)

    def adjust_points_manually(
        self,
        user_id: int,
        delta_points: int,
        reason: str,
        admin_id: str | None = None,
    ) -> AdjustmentResult:
        """
        管理员手动调整积分

        增加积分时余额和累计积分同时增加；扣减积分只减少余额，
        不减少累计积分（已获得的等级历史不受影响）。余额允许变为负数。

        Raises:
            ValidationError: delta_points 为 0 或 reason 为空
            UserNotFoundError: 用户未开通会员
            PartialFailureError: 流水已写入但余额或等级更新失败
        """
        if isinstance(delta_points, bool) or not isinstance(delta_points, int):
            raise ValidationError("delta_points must be an integer")
        if delta_points == 0:
            raise ValidationError("delta_points must be non-zero")
        if not reason or not reason.strip():
            raise ValidationError("reason must not be empty")

        if memberships.get_membership(session=self.session, user_id=user_id) is None:
            raise MembershipNotFoundError(user_id)

        entry = points_log.append_log_entry(
            session=self.session,
            user_id=user_id,
            delta_points=delta_points,
            reason=reason.strip(),
            source=PointsSource.manual_adjustment,
            related_entity_id=None,
            metadata={"adjusted_by": admin_id},
        )
        new_balance, new_tier, changed = self._apply(entry, delta_points, max(delta_points, 0))
        logger.info(
            "Manual adjustment of %s points for user %s by %s: %s",
            delta_points, user_id, admin_id or "-", reason,
        )
        return AdjustmentResult(True, new_balance, new_tier, changed)

    def recompute_tier(self, user_id: int) -> VipTier:
        """根据当前累计积分重新计算等级，重复调用结果相同"""
        membership = memberships.get_membership(session=self.session, user_id=user_id)
        if membership is None:
            raise MembershipNotFoundError(user_id)
        tier, _ = self._persist_tier(membership)
        return tier

    def reconcile_membership(self, user_id: int) -> ReconcileResult:
        """
        重放流水修复会员账户

        余额 = 全部流水变动之和，累计积分 = 正向变动之和；
        与账户不一致时覆盖账户数值，然后重新计算等级。
        """
        membership = memberships.get_membership(session=self.session, user_id=user_id)
        if membership is None:
            raise MembershipNotFoundError(user_id)
        balance_before = membership.points_balance
        lifetime_before = membership.lifetime_points

        totals = points_log.ledger_totals(session=self.session, user_id=user_id)
        corrected = (totals.balance, totals.lifetime) != (balance_before, lifetime_before)
        if corrected:
            logger.warning(
                "Reconciling user %s: balance %s -> %s, lifetime %s -> %s",
                user_id, balance_before, totals.balance, lifetime_before, totals.lifetime,
            )
            memberships.overwrite_totals(
                session=self.session,
                user_id=user_id,
                points_balance=totals.balance,
                lifetime_points=totals.lifetime,
            )
            self.session.refresh(membership)

        tier, _ = self._persist_tier(membership)
        return ReconcileResult(
            user_id=user_id,
            balance_before=balance_before,
            balance_after=totals.balance,
            lifetime_before=lifetime_before,
            lifetime_after=totals.lifetime,
            tier=tier,
            corrected=corrected,
        )

    # ------------------------------------------------------------------
    # 内部步骤
    # ------------------------------------------------------------------

    def calculate_points(self, amount: Decimal, rule: VIPPointRule) -> int:
        raw = amount * _to_decimal(rule.points_per_unit) / _to_decimal(rule.unit_size)
        mode = _ROUNDING_MODES[PointsRounding(self.config.POINTS_ROUNDING)]
        return int(raw.to_integral_value(rounding=mode))

    def _ensure_membership(self, user_id: int) -> VIPMembership:
        membership = memberships.get_membership(session=self.session, user_id=user_id)
        if membership is not None:
            return membership
        if self.session.get(User, user_id) is None:
            raise UserNotFoundError(user_id)
        logger.info("Enrolling user %s into VIP program", user_id)
        return memberships.create_membership(
            session=self.session, user_id=user_id, tier=self.ladder.lowest_tier
        )

    def _apply(
        self, entry: VIPPointsLog, delta_points: int, delta_lifetime: int
    ) -> tuple[int, VipTier, bool]:
        """流水写入之后的步骤：更新余额、重算等级，任何失败都转为 PartialFailureError"""
        user_id, entry_id = entry.user_id, entry.id
        step = "balance update"
        try:
            membership = memberships.apply_balance_delta(
                session=self.session,
                user_id=user_id,
                delta_points=delta_points,
                delta_lifetime=delta_lifetime,
            )
            if membership is None:
                raise MembershipNotFoundError(user_id)
            step = "tier update"
            new_tier, changed = self._persist_tier(membership)
            return membership.points_balance, new_tier, changed
        except Exception as exc:
            self.session.rollback()
            logger.error(
                "Ledger entry %s for user %s written but %s failed: %s",
                entry_id, user_id, step, exc,
            )
            sentry_sdk.capture_exception(exc)
            raise PartialFailureError(user_id=user_id, log_entry_id=entry_id, step=step) from exc

    def _persist_tier(self, membership: VIPMembership) -> tuple[VipTier, bool]:
        user_id, lifetime = membership.user_id, membership.lifetime_points
        current = VipTier(membership.tier)
        computed = self.ladder.compute_tier(lifetime)
        if computed == current:
            return computed, False
        written = memberships.set_tier_if_unchanged(
            session=self.session, user_id=user_id, tier=computed, lifetime_points=lifetime
        )
        if not written:
            # 累计积分已被其他请求推进，等级由那个请求写入并通知
            logger.info("Skip stale tier write for user %s (lifetime %s)", user_id, lifetime)
            return computed, False
        logger.info(
            "User %s tier %s -> %s (lifetime %s)", user_id, current.value, computed.value, lifetime
        )
        return computed, True
