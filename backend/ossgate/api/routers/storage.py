from fastapi import APIRouter, Depends, Query

from ossgate.api.deps import get_current_operator, get_oss_client
from ossgate.schemas import ListBucketsResponse, ListObjectsResponse
from ossgate.services.oss_client import OssClient

router = APIRouter(tags=["storage"], dependencies=[Depends(get_current_operator)])


@router.get("/buckets", response_model=ListBucketsResponse)
async def list_buckets(client: OssClient = Depends(get_oss_client)) -> ListBucketsResponse:
    return await client.list_buckets()


@router.get("/objects", response_model=ListObjectsResponse)
async def list_objects(
    bucket: str = Query(...),
    prefix: str | None = None,
    continuation_token: str | None = Query(default=None, alias="continuation-token"),
    client: OssClient = Depends(get_oss_client),
) -> ListObjectsResponse:
    return await client.list_objects(bucket, prefix, continuation_token)
