from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ossgate.db.base import Base


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DownloadLink(Base):
    """Ledger row mirroring one issued download ticket."""

    __tablename__ = "download_links"
    __table_args__ = (
        Index("idx_download_links_expires_at", "expires_at"),
        Index("idx_download_links_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    bucket: Mapped[str | None] = mapped_column(Text, nullable=True)
    endpoint: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_downloads: Mapped[int | None] = mapped_column(Integer, nullable=True)
    downloads_served: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    download_filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if as_utc(self.expires_at) < now:
            return True
        return self.max_downloads is not None and self.downloads_served >= self.max_downloads

    def __repr__(self) -> str:  # pragma: no cover
        return f"DownloadLink(id={self.id!r}, object_key={self.object_key!r})"
