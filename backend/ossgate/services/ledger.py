from datetime import datetime, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ossgate.models import DownloadLink


async def create_link(
    session: AsyncSession,
    *,
    link_id: str,
    object_key: str,
    bucket: str | None,
    expires_at: datetime,
    max_downloads: int | None,
    download_filename: str | None,
    endpoint: str | None,
    created_at: datetime | None = None,
) -> DownloadLink:
    link = DownloadLink(
        id=link_id,
        object_key=object_key,
        bucket=bucket,
        endpoint=endpoint,
        expires_at=expires_at,
        max_downloads=max_downloads,
        downloads_served=0,
        download_filename=download_filename,
        created_at=created_at or datetime.now(timezone.utc),
    )
    session.add(link)
    await session.commit()
    return link


async def get_link(session: AsyncSession, link_id: str) -> DownloadLink | None:
    return await session.get(DownloadLink, link_id)


async def increment_downloads(session: AsyncSession, link_id: str) -> None:
    stmt = (
        update(DownloadLink)
        .where(DownloadLink.id == link_id)
        .values(downloads_served=DownloadLink.downloads_served + 1)
    )
    await session.execute(stmt)
    await session.commit()


async def list_links(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[DownloadLink]:
    stmt = (
        select(DownloadLink)
        .order_by(DownloadLink.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_live_links(session: AsyncSession, now: datetime | None = None) -> list[DownloadLink]:
    now = now or datetime.now(timezone.utc)
    stmt = select(DownloadLink).where(
        DownloadLink.expires_at >= now,
        or_(
            DownloadLink.max_downloads.is_(None),
            DownloadLink.downloads_served < DownloadLink.max_downloads,
        ),
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def delete_link(session: AsyncSession, link_id: str) -> bool:
    result = await session.execute(delete(DownloadLink).where(DownloadLink.id == link_id))
    await session.commit()
    return result.rowcount > 0


async def delete_expired_or_exhausted(session: AsyncSession, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    stmt = delete(DownloadLink).where(
        or_(
            DownloadLink.expires_at < now,
            (DownloadLink.max_downloads.is_not(None))
            & (DownloadLink.downloads_served >= DownloadLink.max_downloads),
        )
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount
