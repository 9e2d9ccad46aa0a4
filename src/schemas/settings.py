from typing import Optional

from pydantic import BaseModel, Field


class SaveApiKeyRequest(BaseModel):
    provider: str
    api_key: str = Field(min_length=1)
    model: Optional[str] = None


class ProviderStatus(BaseModel):
    provider: str
    has_api_key: bool
    source: str = Field(description="'user', 'preset' or 'none'")
    model: Optional[str] = None
