"""Pydantic schemas for token submission."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenSubmission(BaseModel):
    """Token pair posted by the OAuth setup flow, with both tokens obfuscated.

    ``accessTokenExpiry`` is the access token lifetime in seconds.
    """

    model_config = ConfigDict(populate_by_name=True)

    obfuscated_access_token: str | None = Field(default=None, alias="obfuscatedAccessToken")
    access_token_expiry: int | None = Field(default=None, alias="accessTokenExpiry", gt=0)
    obfuscated_refresh_token: str | None = Field(default=None, alias="obfuscatedRefreshToken")
