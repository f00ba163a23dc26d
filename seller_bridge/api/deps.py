from functools import lru_cache

from fastapi import Depends

from seller_bridge.core.config import Settings, get_settings
from seller_bridge.external.daraz import DarazClient
from seller_bridge.services.aggregator import AccountAggregator
from seller_bridge.services.auth import AuthService
from seller_bridge.services.credential_store import CredentialStore
from seller_bridge.services.fulfillment import FulfillmentService
from seller_bridge.utils.crypto_helper import EncryptionHelper


@lru_cache
def get_credential_store() -> CredentialStore:
    # one store for the lifetime of the process
    return CredentialStore(EncryptionHelper(get_settings().token_encryption_key))


@lru_cache
def get_daraz_client() -> DarazClient:
    # shared so concurrent requests serialize token refreshes per account
    return DarazClient(get_credential_store(), get_settings())


def get_auth_service(
    client: DarazClient = Depends(get_daraz_client),
    store: CredentialStore = Depends(get_credential_store),
    config: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(client, store, config)


def get_aggregator(
    client: DarazClient = Depends(get_daraz_client),
    store: CredentialStore = Depends(get_credential_store),
    config: Settings = Depends(get_settings),
) -> AccountAggregator:
    return AccountAggregator(client, store, config)


def get_fulfillment_service(client: DarazClient = Depends(get_daraz_client)) -> FulfillmentService:
    return FulfillmentService(client)
