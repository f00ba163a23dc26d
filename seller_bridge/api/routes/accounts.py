from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from seller_bridge.api.deps import get_credential_store
from seller_bridge.core.exceptions import ValidationError
from seller_bridge.schemas.account import DisconnectRequest, DisconnectResponse, PublicAccount
from seller_bridge.services.credential_store import CredentialStore

router = APIRouter()


@router.get("", response_model=List[PublicAccount])
async def list_accounts(store: CredentialStore = Depends(get_credential_store)):
    return store.list_public()


@router.post("/disconnect", response_model=DisconnectResponse, response_model_exclude_none=True)
async def disconnect_account(body: DisconnectRequest, store: CredentialStore = Depends(get_credential_store)):
    if not body.account_id:
        raise ValidationError("Missing accountId")
    if not store.delete(body.account_id):
        return JSONResponse(status_code=404, content={"success": False, "message": "Account not found"})
    return DisconnectResponse(success=True)
