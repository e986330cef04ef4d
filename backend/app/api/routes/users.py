"""
用户路由模块

会员以用户为前提，这里只提供创建用户的管理接口。
"""
from fastapi import APIRouter

from app import crud
from app.api.deps import AdminDep, SessionDep
from app.api.schemas import ApiEnvelope, UserCreateRequest, UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=ApiEnvelope)
def create_user(body: UserCreateRequest, session: SessionDep, _: AdminDep) -> ApiEnvelope:
    """
    创建用户（管理接口）

    请求路径: POST /api/v1/users

    Raises:
        ConflictError: 邮箱已被使用
    """
    user = crud.users.create(session=session, name=body.name, email=body.email)
    return ApiEnvelope(data=UserPublic.model_validate(user))
