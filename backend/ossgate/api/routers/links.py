from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ossgate.api.deps import get_current_operator, get_db, get_link_service
from ossgate.models import DownloadLink
from ossgate.schemas import (
    CleanupResponse,
    CreateLinkRequest,
    CreateLinkResponse,
    DeleteResponse,
    DownloadLinkRead,
    ListLinksResponse,
    OperatorRead,
)
from ossgate.services.links import LinkService

router = APIRouter(tags=["links"], dependencies=[Depends(get_current_operator)])


def _to_read(link: DownloadLink, service: LinkService) -> DownloadLinkRead:
    return DownloadLinkRead.model_validate(
        {
            "id": link.id,
            "object_key": link.object_key,
            "bucket": link.bucket,
            "endpoint": link.endpoint,
            "expires_at": link.expires_at,
            "max_downloads": link.max_downloads,
            "downloads_served": link.downloads_served,
            "created_at": link.created_at,
            "download_filename": link.download_filename,
            "is_expired": link.is_expired(),
            "download_url": service.public_url(link.id),
        }
    )


@router.post("/sign", response_model=CreateLinkResponse)
async def create_signed_link(
    payload: CreateLinkRequest,
    session: AsyncSession = Depends(get_db),
    service: LinkService = Depends(get_link_service),
) -> CreateLinkResponse:
    issued = await service.issue(session, payload)
    return CreateLinkResponse(
        id=issued.ticket.id,
        url=issued.url,
        expires_at=issued.ticket.expires_at,
        max_downloads=issued.ticket.max_downloads,
    )


@router.get("/links", response_model=ListLinksResponse)
async def list_links(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db),
    service: LinkService = Depends(get_link_service),
) -> ListLinksResponse:
    links = await service.list_links(session, limit=limit, offset=offset)
    items = [_to_read(link, service) for link in links]
    return ListLinksResponse(links=items, total=len(items))


@router.get("/links/{link_id}", response_model=DownloadLinkRead)
async def get_link_info(
    link_id: str,
    session: AsyncSession = Depends(get_db),
    service: LinkService = Depends(get_link_service),
) -> DownloadLinkRead:
    link = await service.get_link(session, link_id)
    return _to_read(link, service)


@router.delete("/links/{link_id}", response_model=DeleteResponse)
async def delete_link(
    link_id: str,
    session: AsyncSession = Depends(get_db),
    service: LinkService = Depends(get_link_service),
) -> DeleteResponse:
    if await service.delete(session, link_id):
        return DeleteResponse(success=True, message="Link deleted successfully")
    return DeleteResponse(success=False, message="Link not found")


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired_links(
    session: AsyncSession = Depends(get_db),
    service: LinkService = Depends(get_link_service),
) -> CleanupResponse:
    result = await service.cleanup(session)
    return CleanupResponse(
        deleted_count=result.deleted_count,
        evicted_count=result.evicted_count,
    )
