from pydantic import BaseModel


class BucketRead(BaseModel):
    name: str
    location: str
    creation_date: str
    storage_class: str
    extranet_endpoint: str
    intranet_endpoint: str


class ListBucketsResponse(BaseModel):
    buckets: list[BucketRead]


class ObjectRead(BaseModel):
    key: str
    last_modified: str
    size: int
    storage_class: str


class ListObjectsResponse(BaseModel):
    objects: list[ObjectRead]
    is_truncated: bool
    next_continuation_token: str | None = None
