from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, SecretStr
from pydantic.alias_generators import to_camel


class PublicAccount(BaseModel):
    """What the outside world may know about a connected seller."""
    id: str
    display_name: str
    logo_url: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountCredential(BaseModel):
    id: str
    display_name: str
    logo_url: str
    access_token: SecretStr
    refresh_token: SecretStr
    access_token_expire_at: datetime

    def to_public(self) -> PublicAccount:
        return PublicAccount(id=self.id, display_name=self.display_name, logo_url=self.logo_url)


class DisconnectRequest(BaseModel):
    account_id: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DisconnectResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class PackRequest(BaseModel):
    order_item_ids: Optional[List[Union[int, str]]] = None
    account_id: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
