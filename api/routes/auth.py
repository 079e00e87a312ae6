"""OAuth install routes for the Shopify store.

Implements:
- GET / - Redirects to the shop's authorize URL
- GET /auth/callback - Exchanges the authorization code and stores the token

The access token is stored encrypted and read back on every API call.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from api.services import SyncServices, get_services
from connectors.shopify.shopify_oauth import OAuthError
from core.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def install(services: SyncServices = Depends(get_services)):
    """Start the install flow."""
    if services.oauth is None:
        return PlainTextResponse("OAuth is not configured", status_code=503)
    return RedirectResponse(services.oauth.authorization_url(), status_code=302)


@router.get("/auth/callback")
async def auth_callback(
    code: Optional[str] = Query(None),
    services: SyncServices = Depends(get_services),
):
    """Complete the install flow."""
    if not code:
        return PlainTextResponse("Missing authorization code", status_code=400)
    if services.oauth is None:
        return PlainTextResponse("OAuth is not configured", status_code=503)

    try:
        await services.oauth.complete_install(code)
    except OAuthError as e:
        logger.error(f"OAuth callback error: {e}")
        return PlainTextResponse("Authentication failed", status_code=500)

    return HTMLResponse("<h3>Installation complete! You can close this tab.</h3>")
