"""VIP 会员账户 CRUD 操作

余额和累计积分只允许通过 apply_balance_delta 修改：
它是一条 "在当前值上加 X" 的 UPDATE 语句，不经过应用层的先读后写，
因此同一用户的并发请求不会丢失更新。
"""
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from app.api.errors import MembershipNotFoundError, ValidationError
from app.enums import MembershipStatus, VipTier
from app.models import VIPMembership, utc_now


def get_membership(*, session: Session, user_id: int) -> VIPMembership | None:
    stmt = select(VIPMembership).where(VIPMembership.user_id == user_id)
    return session.exec(stmt).first()


def list_memberships(
    *,
    session: Session,
    tier: VipTier | None = None,
    status: MembershipStatus | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[VIPMembership]:
    """按累计积分倒序（排行榜顺序）查询会员"""
    stmt = select(VIPMembership)
    if tier is not None:
        stmt = stmt.where(VIPMembership.tier == tier)
    if status is not None:
        stmt = stmt.where(VIPMembership.status == status)
    stmt = (
        stmt.order_by(VIPMembership.lifetime_points.desc(), VIPMembership.id)
        .offset(offset)
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def create_membership(
    *, session: Session, user_id: int, tier: VipTier = VipTier.silver
) -> VIPMembership:
    """为用户开通会员，已开通时直接返回现有记录"""
    existing = get_membership(session=session, user_id=user_id)
    if existing:
        return existing

    membership = VIPMembership(user_id=user_id, tier=tier)
    session.add(membership)
    try:
        session.commit()
    except IntegrityError:
        # 并发开通，另一请求已经写入
        session.rollback()
        existing = get_membership(session=session, user_id=user_id)
        if existing is None:
            raise
        return existing
    session.refresh(membership)
    return membership


def apply_balance_delta(
    *, session: Session, user_id: int, delta_points: int, delta_lifetime: int
) -> VIPMembership | None:
    """
    原子地给余额和累计积分加上增量，返回更新后的账户

    返回值是 UPDATE ... RETURNING 得到的快照（未加入会话），
    不会被之后其他请求的更新覆盖。会员不存在时返回 None。
    """
    stmt = (
        update(VIPMembership)
        .where(VIPMembership.user_id == user_id)
        .values(
            points_balance=VIPMembership.points_balance + delta_points,
            lifetime_points=VIPMembership.lifetime_points + delta_lifetime,
            updated_at=utc_now(),
        )
        .returning(
            VIPMembership.id,
            VIPMembership.points_balance,
            VIPMembership.lifetime_points,
            VIPMembership.tier,
            VIPMembership.status,
        )
        .execution_options(synchronize_session=False)
    )
    row = session.exec(stmt).first()  # type: ignore[call-overload]
    session.commit()
    if row is None:
        return None
    return VIPMembership(
        id=row.id,
        user_id=user_id,
        points_balance=row.points_balance,
        lifetime_points=row.lifetime_points,
        tier=row.tier,
        status=row.status,
    )


def set_tier_if_unchanged(
    *, session: Session, user_id: int, tier: VipTier, lifetime_points: int
) -> bool:
    """
    仅当累计积分仍等于计算等级时看到的值才写入等级

    另一请求已经推进了累计积分时放弃写入，由那个请求写入它自己的计算结果。
    """
    stmt = (
        update(VIPMembership)
        .where(
            VIPMembership.user_id == user_id,
            VIPMembership.lifetime_points == lifetime_points,
        )
        .values(tier=tier, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)  # type: ignore[call-overload]
    session.commit()
    return result.rowcount > 0


def update_membership(
    *,
    session: Session,
    user_id: int,
    tier: VipTier | None = None,
    status: MembershipStatus | None = None,
) -> VIPMembership:
    """管理员修改等级或状态"""
    if tier is None and status is None:
        raise ValidationError("No fields to update")
    membership = get_membership(session=session, user_id=user_id)
    if not membership:
        raise MembershipNotFoundError(user_id)
    if tier is not None:
        membership.tier = tier
    if status is not None:
        membership.status = status
    membership.updated_at = utc_now()
    session.add(membership)
    session.commit()
    session.refresh(membership)
    return membership


def overwrite_totals(
    *, session: Session, user_id: int, points_balance: int, lifetime_points: int
) -> None:
    """对账专用：用流水重放结果覆盖账户数值"""
    stmt = (
        update(VIPMembership)
        .where(VIPMembership.user_id == user_id)
        .values(
            points_balance=points_balance,
            lifetime_points=lifetime_points,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    session.exec(stmt)  # type: ignore[call-overload]
    session.commit()


def count_memberships(
    *,
    session: Session,
    tier: VipTier | None = None,
    status: MembershipStatus | None = None,
) -> int:
    stmt = select(func.count()).select_from(VIPMembership)
    if tier is not None:
        stmt = stmt.where(VIPMembership.tier == tier)
    if status is not None:
        stmt = stmt.where(VIPMembership.status == status)
    return session.exec(stmt).one()


def list_user_ids(*, session: Session) -> list[int]:
    """全部会员的用户 ID（对账任务使用）"""
    return list(session.exec(select(VIPMembership.user_id).order_by(VIPMembership.user_id)).all())
