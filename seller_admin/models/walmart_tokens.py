"""Walmart Marketplace OAuth token storage model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class WalmartToken(Base, TimestampMixin):
    """One row per seller account holding encrypted Walmart OAuth tokens.

    access_token and refresh_token hold cipher blobs, never plaintext.
    expires_at is derived from expires_in at write time.
    """

    __tablename__ = "walmart_tokens"
    __table_args__ = (
        Index("idx_walmart_tokens_seller_id", "seller_id"),
        Index("idx_walmart_tokens_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_type: Mapped[str] = mapped_column(
        String(50), default="Bearer", server_default="Bearer", nullable=False
    )
    expires_in: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<WalmartToken(id={self.id}, user_id={self.user_id!r})>"
