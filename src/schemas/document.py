from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class DocumentInfo(BaseModel):
    id: int
    owner_id: str
    school_id: Optional[str] = None
    filename: str
    content_type: Optional[str] = None
    size: int
    processing_status: str
    meta_info: Dict[str, Any] = Field(default_factory=dict)
    upload_time: str
