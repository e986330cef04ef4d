"""积分流水 CRUD 操作（只追加）"""
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case
from sqlmodel import Session, func, select

from app.enums import PointsSource
from app.models import VIPPointsLog


@dataclass(frozen=True)
class LedgerTotals:
    """按流水重放得到的余额和累计积分"""
    balance: int
    lifetime: int
    entries: int


def append_log_entry(
    *,
    session: Session,
    user_id: int,
    delta_points: int,
    reason: str,
    source: PointsSource,
    related_entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> VIPPointsLog:
    """写入一条流水并立即提交，存储错误直接抛出"""
    entry = VIPPointsLog(
        user_id=user_id,
        delta_points=delta_points,
        reason=reason,
        source=source,
        related_entity_id=related_entity_id,
        meta=metadata or {},
    )
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry


def _filtered(stmt, user_id: int | None, source: PointsSource | None):
    if user_id is not None:
        stmt = stmt.where(VIPPointsLog.user_id == user_id)
    if source is not None:
        stmt = stmt.where(VIPPointsLog.source == source)
    return stmt


def list_log_entries(
    *,
    session: Session,
    user_id: int | None = None,
    source: PointsSource | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[VIPPointsLog]:
    """按时间倒序查询流水"""
    stmt = _filtered(select(VIPPointsLog), user_id, source)
    stmt = (
        stmt.order_by(VIPPointsLog.created_at.desc(), VIPPointsLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def count_log_entries(
    *, session: Session, user_id: int | None = None, source: PointsSource | None = None
) -> int:
    stmt = _filtered(select(func.count()).select_from(VIPPointsLog), user_id, source)
    return session.exec(stmt).one()


def ledger_totals(*, session: Session, user_id: int) -> LedgerTotals:
    """重放某用户全部流水：余额为所有变动之和，累计积分只计正向变动"""
    positive = case((VIPPointsLog.delta_points > 0, VIPPointsLog.delta_points), else_=0)
    stmt = select(
        func.coalesce(func.sum(VIPPointsLog.delta_points), 0),
        func.coalesce(func.sum(positive), 0),
        func.count(),
    ).where(VIPPointsLog.user_id == user_id)
    balance, lifetime, entries = session.exec(stmt).one()
    return LedgerTotals(balance=int(balance), lifetime=int(lifetime), entries=int(entries))


def summary_by_source(*, session: Session, user_id: int) -> list[dict[str, Any]]:
    """按来源汇总流水条数和积分"""
    total = func.sum(VIPPointsLog.delta_points)
    stmt = (
        select(VIPPointsLog.source, func.count(), total)
        .where(VIPPointsLog.user_id == user_id)
        .group_by(VIPPointsLog.source)
        .order_by(total.desc())
    )
    return [
        {"source": source, "transaction_count": int(count), "total_points": int(points or 0)}
        for source, count, points in session.exec(stmt).all()
    ]
