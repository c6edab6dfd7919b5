from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateLinkRequest(BaseModel):
    object_key: str = Field(..., min_length=1)
    bucket: str | None = None
    endpoint: str | None = None
    expires_in_seconds: int = 0
    max_downloads: int | None = Field(default=None, ge=0)
    download_filename: str | None = None


class CreateLinkResponse(BaseModel):
    id: str
    url: str
    expires_at: datetime
    max_downloads: int | None = None


class DownloadLinkRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    object_key: str
    bucket: str | None = None
    endpoint: str | None = None
    expires_at: datetime
    max_downloads: int | None = None
    downloads_served: int
    created_at: datetime
    download_filename: str | None = None
    is_expired: bool
    download_url: str


class ListLinksResponse(BaseModel):
    links: list[DownloadLinkRead]
    total: int


class DeleteResponse(BaseModel):
    success: bool
    message: str


class CleanupResponse(BaseModel):
    deleted_count: int
    evicted_count: int
