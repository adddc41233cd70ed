"""Pydantic schemas for the OneDrive index gateway."""

from .tokens import TokenSubmission

__all__ = [
    "TokenSubmission",
]
