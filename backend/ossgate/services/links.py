from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ossgate.core.config import Settings, get_settings
from ossgate.core.errors import BadRequest, Internal, LinkError, NotFound
from ossgate.db.session import get_session_factory
from ossgate.models import DownloadLink
from ossgate.models.download_link import as_utc
from ossgate.schemas import CreateLinkRequest
from ossgate.services import ledger
from ossgate.services.signing import SignedUrl, build_signed_url
from ossgate.services.tickets import DownloadTicket, TicketStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedLink:
    ticket: DownloadTicket
    url: str


@dataclass(frozen=True)
class CleanupResult:
    deleted_count: int
    evicted_count: int


def normalize_ticket_id(raw: str) -> str:
    try:
        return str(UUID(raw))
    except ValueError:
        raise NotFound() from None


def ticket_from_link(link: DownloadLink) -> DownloadTicket:
    return DownloadTicket(
        id=link.id,
        object_key=link.object_key,
        expires_at=as_utc(link.expires_at),
        bucket_override=link.bucket,
        endpoint_override=link.endpoint,
        max_downloads=link.max_downloads,
        downloads_served=link.downloads_served,
        download_filename=link.download_filename,
        created_at=as_utc(link.created_at),
    )


class LinkService:
    """Issues download tickets and redeems them into signed OSS URLs."""

    def __init__(
        self,
        store: TicketStore,
        settings: Settings | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self._session_factory = session_factory or get_session_factory()

    def public_url(self, ticket_id: str) -> str:
        return self.settings.download_url_for(ticket_id)

    async def issue(self, session: AsyncSession, payload: CreateLinkRequest) -> IssuedLink:
        object_key = payload.object_key.strip()
        if not object_key:
            raise BadRequest("Object key cannot be empty")

        ttl = payload.expires_in_seconds
        if ttl is None or ttl <= 0:
            ttl = self.settings.default_expiry_secs

        now = datetime.now(timezone.utc)
        try:
            expires_at = now + timedelta(seconds=ttl)
        except OverflowError:
            raise BadRequest("Expiry is too far in the future") from None

        ticket = DownloadTicket(
            id=str(uuid4()),
            object_key=object_key,
            expires_at=expires_at,
            bucket_override=payload.bucket or None,
            endpoint_override=payload.endpoint or None,
            max_downloads=payload.max_downloads,
            download_filename=payload.download_filename or None,
            created_at=now,
        )

        # The ledger row must exist before the ticket becomes redeemable.
        try:
            await ledger.create_link(
                session,
                link_id=ticket.id,
                object_key=ticket.object_key,
                bucket=ticket.bucket_override,
                expires_at=ticket.expires_at,
                max_downloads=ticket.max_downloads,
                download_filename=ticket.download_filename,
                endpoint=ticket.endpoint_override,
                created_at=ticket.created_at,
            )
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to record download link for %s", object_key)
            raise Internal("Failed to record download link") from exc

        await self.store.insert(ticket)
        logger.info(
            "Issued download link %s for %s (expires %s, max downloads %s)",
            ticket.id,
            ticket.object_key,
            ticket.expires_at.isoformat(),
            ticket.max_downloads,
        )
        return IssuedLink(ticket=ticket, url=self.public_url(ticket.id))

    async def resolve(self, session: AsyncSession, raw_ticket_id: str) -> SignedUrl:
        ticket_id = normalize_ticket_id(raw_ticket_id)
        try:
            redeemed = await self.store.redeem(ticket_id)
        except LinkError as exc:
            logger.info("Redemption of %s refused: %s", ticket_id, exc.message)
            raise

        await self._mirror_increment(session, ticket_id)

        # The slot stays consumed even if signing fails below.
        ticket = await self.store.get(ticket_id) or redeemed
        try:
            signed = build_signed_url(
                self.settings,
                ticket.object_key,
                ticket.expires_at,
                bucket_override=ticket.bucket_override,
                endpoint_override=ticket.endpoint_override,
                download_filename=ticket.download_filename,
            )
        except LinkError:
            logger.exception("Could not sign URL for download link %s", ticket_id)
            raise

        logger.info(
            "Redeemed download link %s (%d/%s)",
            ticket_id,
            ticket.downloads_served,
            ticket.max_downloads if ticket.max_downloads is not None else "unlimited",
        )
        return signed

    async def _mirror_increment(self, session: AsyncSession, ticket_id: str) -> None:
        try:
            await ledger.increment_downloads(session, ticket_id)
        except SQLAlchemyError:
            await session.rollback()
            logger.warning("Ledger increment failed for %s; cache stays authoritative", ticket_id, exc_info=True)

    async def list_links(self, session: AsyncSession, limit: int = 50, offset: int = 0) -> list[DownloadLink]:
        try:
            return await ledger.list_links(session, limit=limit, offset=offset)
        except SQLAlchemyError as exc:
            logger.exception("Failed to list download links")
            raise Internal("Failed to list download links") from exc

    async def get_link(self, session: AsyncSession, raw_ticket_id: str) -> DownloadLink:
        ticket_id = normalize_ticket_id(raw_ticket_id)
        try:
            link = await ledger.get_link(session, ticket_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load download link %s", ticket_id)
            raise Internal("Failed to load download link") from exc
        if link is None:
            raise NotFound()
        return link

    async def delete(self, session: AsyncSession, raw_ticket_id: str) -> bool:
        try:
            ticket_id = normalize_ticket_id(raw_ticket_id)
        except NotFound:
            return False
        try:
            deleted = await ledger.delete_link(session, ticket_id)
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Failed to delete download link %s", ticket_id)
            raise Internal("Failed to delete download link") from exc
        evicted = await self.store.remove(ticket_id)
        if deleted or evicted:
            logger.info("Deleted download link %s", ticket_id)
        return deleted or evicted

    async def cleanup(self, session: AsyncSession | None = None) -> CleanupResult:
        """Sweep expired or exhausted tickets out of both stores.

        Each store evaluates the predicate against its own copy; they are
        not required to agree.
        """
        now = datetime.now(timezone.utc)
        evicted = await self.store.sweep(now)
        try:
            if session is None:
                async with self._session_factory() as own_session:
                    deleted = await ledger.delete_expired_or_exhausted(own_session, now)
            else:
                deleted = await ledger.delete_expired_or_exhausted(session, now)
        except SQLAlchemyError as exc:
            logger.exception("Ledger sweep failed")
            raise Internal("Failed to clean up download links") from exc

        if deleted or evicted:
            logger.info("Cleanup removed %d ledger rows and %d cached tickets", deleted, evicted)
        return CleanupResult(deleted_count=deleted, evicted_count=evicted)

    async def restore_from_ledger(self) -> int:
        """Reload live tickets from the ledger into an empty cache after a restart."""
        async with self._session_factory() as session:
            links = await ledger.list_live_links(session)
        for link in links:
            await self.store.insert(ticket_from_link(link))
        if links:
            logger.info("Restored %d live download links from the ledger", len(links))
        return len(links)
