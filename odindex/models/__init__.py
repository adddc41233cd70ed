"""Database models for the OneDrive index gateway."""

from .base import Base
from .token import OdAuthToken

__all__ = [
    "Base",
    "OdAuthToken",
]
