import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from pydantic import SecretStr

from seller_bridge.core.config import Settings
from seller_bridge.core.exceptions import MissingAuthorizationCodeError, NotConfiguredError
from seller_bridge.external.daraz import DarazClient
from seller_bridge.schemas.account import AccountCredential
from seller_bridge.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class AuthService:
    """Connects seller accounts through the Daraz OAuth authorization-code flow."""

    def __init__(self, client: DarazClient, store: CredentialStore, config: Settings):
        self.client = client
        self.store = store
        self.config = config

    def build_authorize_url(self, redirect_uri: str) -> str:
        if not self.config.app_key:
            raise NotConfiguredError("App Key is not configured on the backend.")
        params = {
            "response_type": "code",
            "force_auth": "true",
            "redirect_uri": redirect_uri,
            "client_id": self.config.app_key,
        }
        return f"{self.config.daraz_auth_url}?{urlencode(params)}"

    async def exchange(self, code: Optional[str]) -> AccountCredential:
        if not code:
            raise MissingAuthorizationCodeError()
        if not self.config.is_configured:
            raise NotConfiguredError()

        token = await self.client.create_token(code)
        seller = token.seller
        credential = AccountCredential(
            id=seller.seller_id,
            display_name=seller.short_code,
            logo_url=self.config.daraz_logo_url,
            access_token=SecretStr(token.access_token),
            refresh_token=SecretStr(token.refresh_token),
            access_token_expire_at=datetime.now(timezone.utc) + timedelta(seconds=token.expires_in),
        )
        self.store.put(credential.id, credential)
        logger.info("Successfully added account: %s", seller.short_code)
        return credential
