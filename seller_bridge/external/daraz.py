# seller_bridge/external/daraz.py
import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError as SchemaValidationError
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from seller_bridge.core.config import Settings, settings as default_settings
from seller_bridge.core.exceptions import (
    AccountNotFoundError,
    MalformedResponseError,
    MarketplaceLogicError,
    NoValidTokenError,
    NotConfiguredError,
    RefreshFailedError,
    TransportError,
)
from seller_bridge.schemas.account import AccountCredential
from seller_bridge.schemas.daraz import DarazEnvelope, TokenData
from seller_bridge.services.credential_store import CredentialStore
from seller_bridge.utils.signing import SIGN_METHOD, RequestSigner

logger = logging.getLogger(__name__)

TOKEN_CREATE_PATH = "/auth/token/create"
TOKEN_REFRESH_PATH = "/auth/token/refresh"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"


def now_millis() -> str:
    return str(int(time.time() * 1000))


def to_param_value(value: Any) -> str:
    """Renders a business parameter the way Daraz expects it on the wire."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_retryable(exc: BaseException) -> bool:
    # network failures and 5xx only, a 4xx will not get better by asking again
    return isinstance(exc, TransportError) and (exc.http_status is None or exc.http_status >= 500)


class DarazClient:
    """
    Signed access to the Daraz open platform.

    Every business call is signed over the protocol parameters plus the
    business parameters. Where those travel depends on the HTTP method:
    GET sends everything in the query string, POST keeps the protocol
    parameters and the signature in the query string and form-encodes
    the business parameters in the body.
    """

    def __init__(
        self,
        store: CredentialStore,
        config: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.config = config
        self.base_url = config.daraz_api_base_url.rstrip("/")
        self._transport = transport
        self._refresh_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        store.add_delete_listener(self._forget_account)

    def _forget_account(self, account_id: str) -> None:
        self._refresh_locks.pop(account_id, None)

    def _signer(self) -> RequestSigner:
        if not self.config.is_configured:
            raise NotConfiguredError()
        return RequestSigner(self.config.app_secret)

    async def _send_once(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, str]],
        form: Optional[Mapping[str, str]],
    ) -> DarazEnvelope:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": FORM_CONTENT_TYPE} if form is not None else None
        try:
            async with httpx.AsyncClient(
                timeout=self.config.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=query, data=form, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Daraz API timeout for %s %s", method, path)
            raise TransportError(f"Daraz API request to {path} timed out") from e
        except httpx.RequestError as e:
            logger.exception("Request error for %s %s", method, path)
            raise TransportError(f"Daraz API request to {path} failed") from e

        logger.debug("Daraz response (%s %s): status=%s", method, path, response.status_code)

        if not response.is_success:
            logger.error(
                "Daraz API HTTP Error %s for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text,
            )
            raise TransportError(
                f"Daraz API request failed with status {response.status_code}",
                http_status=response.status_code,
            )

        try:
            envelope = DarazEnvelope.model_validate(response.json())
        except ValueError as e:
            # json decode errors and pydantic validation errors both land here
            raise MalformedResponseError(f"unexpected envelope from {path}") from e

        if not envelope.ok:
            logger.error("Daraz API Logic Error for %s: code=%s message=%s", path, envelope.code, envelope.message)
            raise MarketplaceLogicError(envelope.message, provider_code=envelope.code)
        return envelope

    async def _send(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, str]] = None,
        form: Optional[Mapping[str, str]] = None,
    ) -> DarazEnvelope:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.retry_backoff_min,
                max=self.config.retry_backoff_max,
            ),
            stop=stop_after_attempt(self.config.retry_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send_once(method, path, query, form)

    async def _token_request(self, path: str, params: Dict[str, str]) -> TokenData:
        signed = dict(params)
        signed["sign"] = self._signer().sign(path, params)
        envelope = await self._send("POST", path, form=signed)
        try:
            return TokenData.model_validate(envelope.data)
        except SchemaValidationError as e:
            logger.error("Token response from %s is missing fields: %s", path, e.errors(include_input=False))
            raise MalformedResponseError(f"token response from {path} is missing expected fields") from e

    async def create_token(self, code: str) -> TokenData:
        self._signer()
        params = {
            "app_key": self.config.app_key,
            "app_secret": self.config.app_secret,
            "sign_method": SIGN_METHOD,
            "timestamp": now_millis(),
            "code": code,
        }
        return await self._token_request(TOKEN_CREATE_PATH, params)

    async def refresh_token(self, refresh_token: str) -> TokenData:
        self._signer()
        params = {
            "app_key": self.config.app_key,
            "app_secret": self.config.app_secret,
            "sign_method": SIGN_METHOD,
            "timestamp": now_millis(),
            "refresh_token": refresh_token,
        }
        return await self._token_request(TOKEN_REFRESH_PATH, params)

    def _is_expiring(self, credential: AccountCredential) -> bool:
        margin = timedelta(seconds=self.config.token_refresh_margin_seconds)
        return credential.access_token_expire_at - margin <= datetime.now(timezone.utc)

    async def refresh_access_token(self, account_id: str) -> AccountCredential:
        async with self._refresh_locks[account_id]:
            credential = self.store.get(account_id)
            # another caller may have refreshed while we waited for the lock
            if not self._is_expiring(credential):
                return credential
            logger.info("Access token for account %s is expiring, refreshing", account_id)
            try:
                token = await self.refresh_token(credential.refresh_token.get_secret_value())
            except (MarketplaceLogicError, MalformedResponseError) as e:
                raise RefreshFailedError(account_id, e.detail) from e
            self.store.update_tokens(
                account_id,
                access_token=token.access_token,
                refresh_token=token.refresh_token,
                access_token_expire_at=datetime.now(timezone.utc) + timedelta(seconds=token.expires_in),
            )
            return self.store.get(account_id)

    async def _credential_for(self, account_id: str) -> AccountCredential:
        try:
            credential = self.store.get(account_id)
            if not credential.access_token.get_secret_value():
                raise NoValidTokenError(account_id)
            if self.config.auto_refresh_tokens and self._is_expiring(credential):
                credential = await self.refresh_access_token(account_id)
        except AccountNotFoundError:
            raise NoValidTokenError(account_id) from None
        return credential

    async def call(
        self,
        path: str,
        account_id: str,
        business_params: Optional[Mapping[str, Any]] = None,
        method: str = "GET",
    ) -> Any:
        """
        Performs a signed call on behalf of one connected seller.

        Args:
            path (str): API path, e.g. "/orders/get"
            account_id (str): seller id of a connected account
            business_params (Mapping[str, Any]): call specific parameters, values are sent as strings, booleans as "true"/"false" and None as "null"
            method (str): "GET" or "POST"

        Returns:
            the envelope's `data`

        Raises:
            NoValidTokenError: the account is not connected
            TransportError: network failure or non-2xx status
            MarketplaceLogicError: Daraz rejected the call
        """
        method = method.upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"Unsupported HTTP method: {method}")

        signer = self._signer()
        credential = await self._credential_for(account_id)

        business = {key: to_param_value(value) for key, value in (business_params or {}).items()}
        protocol = {
            "app_key": self.config.app_key,
            "access_token": credential.access_token.get_secret_value(),
            "sign_method": SIGN_METHOD,
            "timestamp": now_millis(),
        }
        signature = signer.sign(path, {**protocol, **business})
        query = {**protocol, "sign": signature}

        if method == "POST":
            envelope = await self._send("POST", path, query=query, form=business)
        else:
            envelope = await self._send("GET", path, query={**query, **business})
        return envelope.data
