"""Database models for the seller admin backend."""

from .base import Base, TimestampMixin, utcnow
from .walmart_tokens import WalmartToken

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utcnow",
    # Models
    "WalmartToken",
]
