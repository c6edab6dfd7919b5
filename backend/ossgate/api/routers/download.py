from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ossgate.api.deps import get_db, get_link_service
from ossgate.services.links import LinkService


def build_router(download_prefix: str) -> APIRouter:
    """Public redemption routes live under the configurable download prefix."""
    router = APIRouter(prefix=f"/{download_prefix}" if download_prefix else "", tags=["download"])

    @router.get("/{ticket_id}", name="resolve_download")
    async def resolve_download(
        ticket_id: str,
        session: AsyncSession = Depends(get_db),
        service: LinkService = Depends(get_link_service),
    ) -> RedirectResponse:
        signed = await service.resolve(session, ticket_id)
        return RedirectResponse(signed.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    return router
