"""LLM provider settings routes.

Users may store their own provider API keys; keys are never returned.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from api.routes.auth import get_auth_context
from core.dependencies import LLMManagerDep
from schemas.common import DataResponse
from schemas.settings import ProviderStatus, SaveApiKeyRequest
from schemas.user import AuthContext

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get(
    "/api-keys",
    response_model=DataResponse[List[ProviderStatus]],
    summary="List provider key status",
)
def list_api_keys(
    llm_manager: LLMManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": llm_manager.list_provider_statuses(ctx.user_id)}


@router.get(
    "/api-keys/{provider}",
    response_model=DataResponse[ProviderStatus],
    summary="Check a provider key",
)
def check_api_key(
    provider: str,
    llm_manager: LLMManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    return {"data": llm_manager.provider_status(ctx.user_id, provider)}


@router.put(
    "/api-keys",
    response_model=DataResponse[ProviderStatus],
    summary="Save a provider key",
)
def save_api_key(
    req: SaveApiKeyRequest,
    llm_manager: LLMManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    llm_manager.save_provider_setting(ctx.user_id, req.provider, req.api_key, model=req.model)
    return {
        "data": llm_manager.provider_status(ctx.user_id, req.provider),
        "message": "API key saved",
    }


@router.delete(
    "/api-keys/{provider}",
    response_model=DataResponse[Optional[dict]],
    summary="Delete a provider key",
)
def delete_api_key(
    provider: str,
    llm_manager: LLMManagerDep,
    ctx: AuthContext = Depends(get_auth_context),
) -> dict:
    llm_manager.delete_provider_setting(ctx.user_id, provider)
    return {"data": None, "message": "API key deleted"}
