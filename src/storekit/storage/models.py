from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class UploadOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')
    content_type: Optional[str] = Field(None, description="MIME type stored with the object; empty lets the backend decide.")
    metadata: Optional[dict[str, str]] = Field(None, description="User metadata attached to the object.")


class DownloadOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')
    version_id: Optional[str] = Field(None, description="Specific object version to fetch; empty means latest.")


class UploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)
    etag: str = Field(..., description="Backend identity token for the stored object.")
    version_id: str = Field("", description="Version ID, empty when the bucket is not versioned.")
    size: int = Field(..., ge=0, description="Bytes stored.")
    last_modified: str = Field(..., description="ISO-8601 timestamp.")


class ObjectInfo(BaseModel):
    model_config = ConfigDict(frozen=True)
    key: str
    size: int = Field(..., ge=0)
    last_modified: str = Field(..., description="ISO-8601 timestamp.")
    etag: str = ""
    content_type: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
