"""用户 CRUD 操作"""
from sqlmodel import Session, select

from app.api.errors import ConflictError
from app.models import User


def get_by_email(*, session: Session, email: str) -> User | None:
    """根据邮箱查询用户"""
    statement = select(User).where(User.email == email)
    return session.exec(statement).first()


def create(*, session: Session, name: str, email: str) -> User:
    """创建新用户，邮箱重复时抛出 ConflictError"""
    if get_by_email(session=session, email=email):
        raise ConflictError(f"User already exists: {email}")
    user = User(name=name, email=email)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
