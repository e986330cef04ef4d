"""等级权益 CRUD 操作"""
from sqlmodel import Session, select

from app.api.errors import NotFoundError, ValidationError
from app.enums import VipTier
from app.models import VIPTierBenefit, utc_now


def list_benefits(
    *, session: Session, tier: VipTier | None = None, active_only: bool = True
) -> list[VIPTierBenefit]:
    stmt = select(VIPTierBenefit)
    if tier is not None:
        stmt = stmt.where(VIPTierBenefit.tier_name == tier)
    if active_only:
        stmt = stmt.where(VIPTierBenefit.is_active == True)  # noqa: E712
    rows = session.exec(stmt.order_by(VIPTierBenefit.created_at, VIPTierBenefit.id)).all()
    # 按等级高低排序，同等级内保持创建顺序
    return sorted(rows, key=lambda b: VipTier(b.tier_name).rank)


def create(
    *,
    session: Session,
    tier_name: VipTier,
    title: str,
    description: str | None = None,
    is_active: bool = True,
) -> VIPTierBenefit:
    benefit = VIPTierBenefit(
        tier_name=tier_name, title=title, description=description, is_active=is_active
    )
    session.add(benefit)
    session.commit()
    session.refresh(benefit)
    return benefit


def get(*, session: Session, benefit_id: int) -> VIPTierBenefit:
    benefit = session.get(VIPTierBenefit, benefit_id)
    if not benefit:
        raise NotFoundError(f"Tier benefit not found: {benefit_id}", code=404104)
    return benefit


def update(
    *,
    session: Session,
    benefit_id: int,
    title: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
) -> VIPTierBenefit:
    if title is None and description is None and is_active is None:
        raise ValidationError("No fields to update")
    benefit = get(session=session, benefit_id=benefit_id)
    if title is not None:
        benefit.title = title
    if description is not None:
        benefit.description = description
    if is_active is not None:
        benefit.is_active = is_active
    benefit.updated_at = utc_now()
    session.add(benefit)
    session.commit()
    session.refresh(benefit)
    return benefit


def count_by_tier(*, session: Session) -> dict[str, int]:
    """每个等级启用中的权益数量"""
    counts = {tier.value: 0 for tier in VipTier}
    for benefit in list_benefits(session=session):
        counts[VipTier(benefit.tier_name).value] += 1
    return counts
