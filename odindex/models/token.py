"""OneDrive OAuth token storage model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from odindex.models.base import Base


class OdAuthToken(Base):
    """A single persisted token entry, addressed by key.

    Entries whose ``expires_at`` has passed are treated as absent.
    """

    __tablename__ = "od_auth_tokens"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text(), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
