"""消费记录 CRUD 操作

消费记录由调用方在发放积分前创建，积分服务不会修改或删除它们。
"""
from decimal import Decimal

from sqlmodel import Session, func, select

from app.models import VIPConsumption


def create(
    *,
    session: Session,
    user_id: int,
    amount: Decimal,
    currency: str,
    event_id: str | None = None,
    description: str | None = None,
) -> VIPConsumption:
    consumption = VIPConsumption(
        user_id=user_id,
        amount=amount,
        currency=currency,
        event_id=event_id,
        description=description,
    )
    session.add(consumption)
    session.commit()
    session.refresh(consumption)
    return consumption


def list_consumptions(
    *,
    session: Session,
    user_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[VIPConsumption], int]:
    """按时间倒序查询消费记录，返回 (记录列表, 总数)"""
    count_stmt = select(func.count()).select_from(VIPConsumption)
    stmt = select(VIPConsumption)
    if user_id is not None:
        count_stmt = count_stmt.where(VIPConsumption.user_id == user_id)
        stmt = stmt.where(VIPConsumption.user_id == user_id)
    count = session.exec(count_stmt).one()
    stmt = (
        stmt.order_by(VIPConsumption.created_at.desc(), VIPConsumption.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(session.exec(stmt).all()), count
