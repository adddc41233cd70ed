"""OAuth setup endpoints used to connect the OneDrive account."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from odindex.api.deps import get_oauth_client
from odindex.services.oauth import OAuthNotConfiguredError, OAuthTokenError, OneDriveOAuthClient

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/authorize", status_code=status.HTTP_302_FOUND)
async def oauth_authorize(
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
) -> RedirectResponse:
    """Redirect the user to the Microsoft consent page."""

    try:
        authorize_url = oauth_client.build_authorize_url()
    except OAuthNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    return RedirectResponse(authorize_url, status_code=status.HTTP_302_FOUND)


@router.get("/callback")
async def oauth_callback(
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = Query(default=None),
    oauth_client: OneDriveOAuthClient = Depends(get_oauth_client),
) -> dict[str, str]:
    """Handle the OAuth callback by exchanging the code for tokens."""

    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error_description or error)
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code")

    try:
        await oauth_client.exchange_code(code)
    except OAuthNotConfiguredError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except OAuthTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to exchange authorization code",
        ) from exc

    return {"message": "OK"}
