"""积分规则 CRUD 操作

写操作返回 RuleResult，由调用方根据 status 决定如何处理冲突或不存在，
存储层不通过抛异常表达唯一键冲突。
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.api.errors import ValidationError
from app.enums import RuleStoreStatus
from app.models import VIPPointRule, utc_now

_UPDATABLE_FIELDS = ("points_per_unit", "unit", "unit_size", "is_active")


@dataclass(frozen=True)
class RuleResult:
    status: RuleStoreStatus
    rule: VIPPointRule | None = None

    @property
    def ok(self) -> bool:
        return self.status is RuleStoreStatus.ok


def _validate_amounts(points_per_unit: Any, unit_size: Any) -> None:
    if points_per_unit is not None and Decimal(points_per_unit) <= 0:
        raise ValidationError("points_per_unit must be greater than 0")
    if unit_size is not None and Decimal(unit_size) <= 0:
        raise ValidationError("unit_size must be greater than 0")


def get_rule(
    *, session: Session, action_type: str, active_only: bool = True
) -> VIPPointRule | None:
    """根据 action_type 查询规则，默认只返回启用中的规则"""
    stmt = select(VIPPointRule).where(VIPPointRule.action_type == action_type)
    if active_only:
        stmt = stmt.where(VIPPointRule.is_active == True)  # noqa: E712
    return session.exec(stmt).first()


def list_rules(*, session: Session, active_only: bool = False) -> list[VIPPointRule]:
    stmt = select(VIPPointRule).order_by(VIPPointRule.action_type)
    if active_only:
        stmt = stmt.where(VIPPointRule.is_active == True)  # noqa: E712
    return list(session.exec(stmt).all())


def create_rule(
    *,
    session: Session,
    action_type: str,
    points_per_unit: Decimal,
    unit: str,
    unit_size: Decimal = Decimal("1"),
    is_active: bool = True,
) -> RuleResult:
    """创建积分规则，action_type 已存在时返回 conflict（不覆盖）"""
    _validate_amounts(points_per_unit, unit_size)
    if get_rule(session=session, action_type=action_type, active_only=False):
        return RuleResult(RuleStoreStatus.conflict)

    rule = VIPPointRule(
        action_type=action_type,
        points_per_unit=Decimal(points_per_unit),
        unit=unit,
        unit_size=Decimal(unit_size),
        is_active=is_active,
    )
    session.add(rule)
    try:
        session.commit()
    except IntegrityError:
        # 并发创建同一 action_type
        session.rollback()
        return RuleResult(RuleStoreStatus.conflict)
    session.refresh(rule)
    return RuleResult(RuleStoreStatus.ok, rule)


def update_rule(
    *, session: Session, action_type: str, fields: dict[str, Any]
) -> RuleResult:
    """原地更新规则，规则不存在时返回 not_found"""
    updates = {k: v for k, v in fields.items() if k in _UPDATABLE_FIELDS and v is not None}
    if not updates:
        raise ValidationError("No fields to update")
    _validate_amounts(updates.get("points_per_unit"), updates.get("unit_size"))

    rule = get_rule(session=session, action_type=action_type, active_only=False)
    if not rule:
        return RuleResult(RuleStoreStatus.not_found)

    for key, value in updates.items():
        setattr(rule, key, value)
    rule.updated_at = utc_now()
    session.add(rule)
    session.commit()
    session.refresh(rule)
    return RuleResult(RuleStoreStatus.ok, rule)


def upsert_rule(
    *,
    session: Session,
    action_type: str,
    points_per_unit: Decimal,
    unit: str,
    unit_size: Decimal = Decimal("1"),
    is_active: bool = True,
) -> RuleResult:
    """存在则更新，不存在则创建"""
    result = create_rule(
        session=session,
        action_type=action_type,
        points_per_unit=points_per_unit,
        unit=unit,
        unit_size=unit_size,
        is_active=is_active,
    )
    if result.status is not RuleStoreStatus.conflict:
        return result
    return update_rule(
        session=session,
        action_type=action_type,
        fields={
            "points_per_unit": points_per_unit,
            "unit": unit,
            "unit_size": unit_size,
            "is_active": is_active,
        },
    )


def set_rule_active(*, session: Session, action_type: str, is_active: bool) -> RuleResult:
    """启用或停用规则（规则从不删除）"""
    return update_rule(session=session, action_type=action_type, fields={"is_active": is_active})


class PointRuleStore:
    """
    绑定到会话的规则存储，作为依赖注入给 PointsService

    测试可以替换为任意实现了 get_rule(action_type) 的对象。
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_rule(self, action_type: str) -> VIPPointRule | None:
        return get_rule(session=self.session, action_type=action_type)
