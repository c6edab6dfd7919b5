"""In-memory ticket cache; the admission-control source of truth for redemptions."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from ossgate.core.errors import Gone, NotFound, QuotaExceeded


@dataclass
class DownloadTicket:
    id: str
    object_key: str
    expires_at: datetime
    bucket_override: str | None = None
    endpoint_override: str | None = None
    max_downloads: int | None = None
    downloads_served: int = 0
    download_filename: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_time_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def is_exhausted(self) -> bool:
        return self.max_downloads is not None and self.downloads_served >= self.max_downloads

    def is_expired(self, now: datetime) -> bool:
        return self.is_time_expired(now) or self.is_exhausted()


class ReadWriteLock:
    """Asyncio readers-writer lock; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._waiting_writers == 0)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._waiting_writers -= 1
                # A cancelled writer may have been the only thing holding readers back.
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class TicketStore:
    """Ticket id -> DownloadTicket, guarded by one coarse readers-writer lock.

    Callers only ever receive copies; ``downloads_served`` changes solely
    inside :meth:`redeem` while the write lock is held.
    """

    def __init__(self) -> None:
        self._tickets: dict[str, DownloadTicket] = {}
        self._lock = ReadWriteLock()

    async def insert(self, ticket: DownloadTicket) -> None:
        async with self._lock.write():
            self._tickets[ticket.id] = replace(ticket)

    async def get(self, ticket_id: str) -> DownloadTicket | None:
        async with self._lock.read():
            ticket = self._tickets.get(ticket_id)
            return replace(ticket) if ticket else None

    async def snapshot(self) -> list[DownloadTicket]:
        async with self._lock.read():
            return [replace(ticket) for ticket in self._tickets.values()]

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._tickets)

    async def redeem(self, ticket_id: str, now: datetime | None = None) -> DownloadTicket:
        """Check expiry and quota, then consume one download slot.

        The whole check-then-increment sequence runs under the write lock so
        two concurrent redemptions can never both take the last slot.
        """
        now = now or datetime.now(timezone.utc)
        async with self._lock.write():
            ticket = self._tickets.get(ticket_id)
            if ticket is None:
                raise NotFound()
            if ticket.is_time_expired(now):
                raise Gone()
            if ticket.is_exhausted():
                raise QuotaExceeded()
            ticket.downloads_served += 1
            return replace(ticket)

    async def remove(self, ticket_id: str) -> bool:
        async with self._lock.write():
            return self._tickets.pop(ticket_id, None) is not None

    async def sweep(self, now: datetime | None = None) -> int:
        """Evict every expired or exhausted ticket; returns how many were dropped."""
        now = now or datetime.now(timezone.utc)
        async with self._lock.write():
            stale = [tid for tid, ticket in self._tickets.items() if ticket.is_expired(now)]
            for tid in stale:
                del self._tickets[tid]
            return len(stale)
