from fastapi import APIRouter, Depends
from seller_bridge.api.deps import get_credential_store
from seller_bridge.core.config import Settings, get_settings
from seller_bridge.services.credential_store import CredentialStore

router = APIRouter()


@router.get("")
async def health(store: CredentialStore = Depends(get_credential_store), config: Settings = Depends(get_settings)):
    return {"status": "ok", "configured": config.is_configured, "accounts": len(store)}
