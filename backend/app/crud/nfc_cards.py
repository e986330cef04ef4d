"""NFC 卡 CRUD 操作"""
from typing import Any

from sqlmodel import Session, select

from app.api.errors import ConflictError
from app.models import NFCCard, utc_now


def create(
    *, session: Session, card_uid: str, user_id: int, meta: dict[str, Any] | None = None
) -> NFCCard:
    existing = session.exec(select(NFCCard).where(NFCCard.card_uid == card_uid)).first()
    if existing:
        raise ConflictError(f"NFC card already registered: {card_uid}")
    card = NFCCard(card_uid=card_uid, user_id=user_id, meta=meta or {})
    session.add(card)
    session.commit()
    session.refresh(card)
    return card


def list_for_user(*, session: Session, user_id: int, active_only: bool = True) -> list[NFCCard]:
    stmt = select(NFCCard).where(NFCCard.user_id == user_id)
    if active_only:
        stmt = stmt.where(NFCCard.is_active == True)  # noqa: E712
    return list(session.exec(stmt.order_by(NFCCard.id)).all())


def update_metadata_for_user(*, session: Session, user_id: int, patch: dict[str, Any]) -> int:
    """把 patch 合并进用户所有启用卡片的 metadata，返回更新的卡片数"""
    cards = list_for_user(session=session, user_id=user_id)
    now = utc_now()
    for card in cards:
        # JSON 列需要整体重新赋值才会被标记为已修改
        card.meta = {**(card.meta or {}), **patch}
        card.updated_at = now
        session.add(card)
    session.commit()
    return len(cards)
