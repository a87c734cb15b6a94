"""
Order Service - リクエスト元の識別

認証は上流の BFF が行い、検証済みのユーザー ID とロールを
X-User-Id / X-User-Role ヘッダーで転送してくる。
このサービスはヘッダーを信頼し、認可（所有者 / 管理者）だけを判断する。
"""

from fastapi import Depends, Header
from pydantic import BaseModel

from .errors import Forbidden, Unauthenticated


class Requester(BaseModel):
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="user"),
) -> Requester:
    if not x_user_id:
        raise Unauthenticated("Not authorized to access this route")
    return Requester(id=x_user_id, role=x_user_role)


async def require_admin(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_admin:
        raise Forbidden(f"User role {requester.role} is not authorized to access this route")
    return requester
