from fastapi import APIRouter, Depends

from api.routes.auth import get_auth_context
from core.dependencies import RoleManagerDep
from schemas.common import DataResponse
from schemas.user import AuthContext, RoleInfo

router = APIRouter(prefix="/api/roles", tags=["Role"])


@router.get("/me", response_model=DataResponse[RoleInfo], summary="Resolve the caller's role")
def get_my_role(
    role_manager: RoleManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    """Return the caller's role, school, supervisor flag and capabilities."""
    return {"data": role_manager.describe(ctx.user_id)}
