from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from seller_bridge.api.deps import get_auth_service
from seller_bridge.core.config import Settings, get_settings
from seller_bridge.core.exceptions import BridgeException, MissingAuthorizationCodeError, NotConfiguredError
from seller_bridge.services.auth import AuthService
import logging
logger = logging.getLogger("auth")
router = APIRouter()


def _frontend_redirect(frontend_url: str, **params: str) -> RedirectResponse:
    url = frontend_url
    if params:
        separator = "&" if "?" in frontend_url else "?"
        url = f"{frontend_url}{separator}{urlencode(params)}"
    return RedirectResponse(url, status_code=302)


@router.get("/initiate")
async def initiate(request: Request, auth_service: AuthService = Depends(get_auth_service)):
    # Daraz must send the seller back to this backend, not to the frontend
    redirect_uri = str(request.url_for("auth_callback"))
    return RedirectResponse(auth_service.build_authorize_url(redirect_uri), status_code=302)


@router.get("/callback", name="auth_callback")
async def callback(
    code: Optional[str] = Query(None),
    auth_service: AuthService = Depends(get_auth_service),
    config: Settings = Depends(get_settings),
):
    if not code:
        raise MissingAuthorizationCodeError()
    if not config.is_configured:
        raise NotConfiguredError()

    try:
        credential = await auth_service.exchange(code)
    except BridgeException as e:
        logger.error(f"Failed to exchange code for token: {e.detail}")
        return _frontend_redirect(config.frontend_url, auth_error=e.detail)

    logger.info(f"Seller {credential.id} connected, redirecting to frontend")
    return _frontend_redirect(config.frontend_url)
