import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import SecretStr

from seller_bridge.core.exceptions import AccountNotFoundError
from seller_bridge.schemas.account import AccountCredential, PublicAccount
from seller_bridge.utils.crypto_helper import EncryptionHelper

logger = logging.getLogger(__name__)


@dataclass
class _StoredAccount:
    public: PublicAccount
    access_token: str  # ciphertext
    refresh_token: str  # ciphertext
    access_token_expire_at: datetime


class CredentialStore:
    """
    Process-lifetime map of seller id -> credentials.

    Every operation takes the same lock, so a token exchange writing an entry can
    never interleave with a fan-out reading the account list. Tokens are kept
    encrypted and are only decrypted by `get`.
    """

    def __init__(self, encryption: Optional[EncryptionHelper] = None):
        self._accounts: Dict[str, _StoredAccount] = {}
        self._lock = threading.RLock()
        self._crypto = encryption or EncryptionHelper()
        self._delete_listeners: List[Callable[[str], None]] = []

    def put(self, account_id: str, credential: AccountCredential) -> None:
        if credential.id != account_id:
            raise ValueError(f"credential id {credential.id} does not match key {account_id}")
        record = _StoredAccount(
            public=credential.to_public(),
            access_token=self._crypto.encrypt(credential.access_token.get_secret_value()),
            refresh_token=self._crypto.encrypt(credential.refresh_token.get_secret_value()),
            access_token_expire_at=credential.access_token_expire_at,
        )
        with self._lock:
            replaced = account_id in self._accounts
            self._accounts[account_id] = record
        logger.info("%s account %s (%s)", "Replaced" if replaced else "Stored", account_id, credential.display_name)

    def get(self, account_id: str) -> AccountCredential:
        with self._lock:
            record = self._accounts.get(account_id)
        if record is None:
            raise AccountNotFoundError(account_id)
        return AccountCredential(
            id=record.public.id,
            display_name=record.public.display_name,
            logo_url=record.public.logo_url,
            access_token=SecretStr(self._crypto.decrypt(record.access_token)),
            refresh_token=SecretStr(self._crypto.decrypt(record.refresh_token)),
            access_token_expire_at=record.access_token_expire_at,
        )

    def update_tokens(
        self,
        account_id: str,
        access_token: str,
        refresh_token: str,
        access_token_expire_at: datetime,
    ) -> None:
        with self._lock:
            record = self._accounts.get(account_id)
            if record is None:
                raise AccountNotFoundError(account_id)
            record.access_token = self._crypto.encrypt(access_token)
            record.refresh_token = self._crypto.encrypt(refresh_token)
            record.access_token_expire_at = access_token_expire_at
        logger.info("Refreshed tokens for account %s", account_id)

    def delete(self, account_id: str) -> bool:
        with self._lock:
            existed = self._accounts.pop(account_id, None) is not None
        if existed:
            logger.info("Disconnected account %s", account_id)
            for listener in list(self._delete_listeners):
                listener(account_id)
        return existed

    def add_delete_listener(self, listener: Callable[[str], None]) -> None:
        """Registers a callback run with the account id after each successful delete."""
        with self._lock:
            self._delete_listeners.append(listener)

    def list_public(self) -> List[PublicAccount]:
        with self._lock:
            return [record.public.model_copy() for record in self._accounts.values()]

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._accounts

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
