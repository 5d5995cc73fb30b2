from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ApiError(BaseModel):
    """Standard error payload."""

    error: str
    detail: Optional[str] = None


class ResourceOut(BaseModel):
    """A stored asset as reported by the sandbox."""

    public_id: str
    resource_type: str
    size_bytes: int = 0
    original_filename: Optional[str] = None
    remote_url: Optional[str] = None
    sha1: Optional[str] = None
    created_at: str


class UploadOut(ResourceOut):
    """Result of a verified signed upload."""

    signature: str
    fields: Dict[str, str] = Field(default_factory=dict)


class ResourceListOut(BaseModel):
    resources: List[ResourceOut] = Field(default_factory=list)


class DeleteOut(BaseModel):
    deleted: Dict[str, str] = Field(default_factory=dict)
