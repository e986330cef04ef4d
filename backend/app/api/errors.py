"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器。

错误分类：
- ValidationError: 调用方数据不满足前置条件（金额非正、原因为空、变动为 0）
- RuleNotFoundError / UserNotFoundError / MembershipNotFoundError: 引用的实体不存在
- ConflictError: 唯一键重复（如重复创建积分规则）
- PartialFailureError: 流水已写入但余额更新失败，需要人工关注并对账
"""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """
    应用自定义异常类

    包含：
    - code: 业务错误码（用于前端区分不同错误）
    - message: 错误消息
    - status_code: HTTP 状态码
    - data: 附加数据（可选）

    使用示例：
        raise AppError(code=400101, message="Amount must be greater than 0", status_code=400)
    """

    def __init__(
        self,
        *,
        code: int,
        message: str,
        status_code: int = 400,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.data = data


class ValidationError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(code=400101, message=message, status_code=400)


class NotFoundError(AppError):
    def __init__(self, message: str, *, code: int = 404100) -> None:
        super().__init__(code=code, message=message, status_code=404)


class RuleNotFoundError(NotFoundError):
    def __init__(self, action_type: str) -> None:
        super().__init__(f"Point rule not found: {action_type}", code=404101)
        self.action_type = action_type


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}", code=404102)
        self.user_id = user_id


class MembershipNotFoundError(UserNotFoundError):
    """用户存在但未开通 VIP 会员，对积分服务而言等同于用户不存在"""

    def __init__(self, user_id: int) -> None:
        NotFoundError.__init__(self, f"VIP membership not found: {user_id}", code=404103)
        self.user_id = user_id


class ConflictError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(code=409101, message=message, status_code=409)


class PartialFailureError(AppError):
    """
    积分流水已写入，但余额或等级更新失败

    这是唯一需要运维介入的错误：流水与会员账户不一致。
    恢复方式是重放流水对账（PointsService.reconcile_membership），
    而不是单独重试失败的步骤（盲目重试会重复发放积分）。
    """

    def __init__(self, *, user_id: int, log_entry_id: int | None, step: str) -> None:
        super().__init__(
            code=500101,
            message=f"Points ledger entry written but {step} failed; reconciliation required",
            status_code=500,
            data={"user_id": user_id, "log_entry_id": log_entry_id, "step": step},
        )
        self.user_id = user_id
        self.log_entry_id = log_entry_id
        self.step = step


def unauthorized() -> AppError:
    """创建"未授权"异常（管理接口令牌缺失或错误）"""
    return AppError(code=401001, message="Unauthorized", status_code=401)
