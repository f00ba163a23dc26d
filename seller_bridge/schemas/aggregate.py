from typing import Any, Dict, List

from pydantic import BaseModel

from seller_bridge.schemas.account import PublicAccount


class AccountFailure(BaseModel):
    account: PublicAccount
    kind: str
    message: str


class AggregateResult(BaseModel):
    records: List[Dict[str, Any]] = []
    failures: List[AccountFailure] = []

    @property
    def failed_account_ids(self) -> List[str]:
        return [failure.account.id for failure in self.failures]
