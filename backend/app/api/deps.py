"""
FastAPI 依赖注入模块

提供可复用的依赖项，用于路由处理函数中。
FastAPI 的依赖注入系统会自动处理这些依赖的创建和注入。

关键概念：
- Depends: FastAPI 的依赖注入装饰器
- Generator: 用于创建需要清理的资源（如数据库会话）
- Header: 从请求头提取管理令牌
"""
import secrets  # 常量时间比较，避免时序攻击
from collections.abc import Generator  # 生成器类型，用于资源管理
from typing import Annotated  # 类型注解，用于依赖注入

from fastapi import Depends, Header  # FastAPI 核心功能
from sqlmodel import Session  # 数据库会话

from app.api.errors import unauthorized
from app.core.config import settings
from app.core.db import engine
from app.crud.point_rules import PointRuleStore
from app.services.points_service import PointsService
from app.services.tiers import load_ladder


def get_db() -> Generator[Session, None, None]:
    """
    获取数据库会话（依赖注入）

    这是一个生成器函数，使用 yield 确保会话在使用后自动关闭。
    FastAPI 会在请求处理完成后自动调用生成器的清理逻辑。

    Yields:
        Session: 数据库会话对象
    """
    with Session(engine) as session:
        yield session  # yield 确保会话在请求结束后自动关闭


# 类型别名，简化依赖注入的写法
SessionDep = Annotated[Session, Depends(get_db)]  # 数据库会话依赖


def require_admin(authorization: str | None = Header(default=None)) -> str:
    """
    校验管理令牌（依赖注入）

    管理接口要求请求头 Authorization: Bearer <ADMIN_API_TOKEN>。
    积分服务本身不做权限校验，这里是唯一的管理入口闸门。

    Returns:
        str: 管理令牌（校验通过）

    Raises:
        AppError: 令牌缺失或错误时返回 401
    """
    if not authorization:
        raise unauthorized()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise unauthorized()
    if not secrets.compare_digest(token.strip(), settings.ADMIN_API_TOKEN):
        raise unauthorized()
    return token


AdminDep = Annotated[str, Depends(require_admin)]


def get_points_service(session: SessionDep) -> PointsService:
    """积分服务绑定到当前请求的数据库会话，等级阈值取后台规则（带缓存）"""
    rules = PointRuleStore(session)
    return PointsService(session, rules=rules, ladder=load_ladder(rules))


PointsServiceDep = Annotated[PointsService, Depends(get_points_service)]
