from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

SUCCESS_CODE = "0"


class DarazEnvelope(BaseModel):
    """Uniform wrapper around every Daraz API response."""
    code: str
    message: Optional[str] = None
    data: Optional[Any] = None
    request_id: Optional[str] = None

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS_CODE


class CountryUserInfo(BaseModel):
    seller_id: str
    short_code: str
    country: Optional[str] = None
    user_id: Optional[str] = None

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class TokenData(BaseModel):
    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_in: int
    refresh_expires_in: Optional[int] = None
    country_user_info: List[CountryUserInfo] = Field(min_length=1)

    model_config = ConfigDict(extra="ignore")

    @property
    def seller(self) -> CountryUserInfo:
        return self.country_user_info[0]
