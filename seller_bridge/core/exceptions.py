# exceptions.py
from typing import Optional


class BridgeException(Exception):
    """Base class for every error the bridge surfaces to its callers."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotConfiguredError(BridgeException):
    def __init__(self, detail: str = "Backend is not configured with App credentials."):
        super().__init__(status_code=500, detail=detail)


class ValidationError(BridgeException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class MissingAuthorizationCodeError(ValidationError):
    def __init__(self):
        super().__init__(detail="Authorization code is missing.")


class AccountNotFoundError(BridgeException):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(status_code=404, detail=f"Account {account_id} not found")


class NoValidTokenError(BridgeException):
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(status_code=500, detail=f"No valid token for account {account_id}")


class ExternalServiceException(BridgeException):
    """Base class for failures talking to the Daraz API."""
    def __init__(self, detail: str, status_code: int = 500):
        super().__init__(status_code=status_code, detail=detail)


class MarketplaceLogicError(ExternalServiceException):
    """Daraz answered with an envelope whose code is not "0"."""
    def __init__(self, message: Optional[str], provider_code: Optional[str] = None):
        self.provider_code = provider_code
        self.provider_message = message or "Unknown error from Daraz API"
        super().__init__(detail=f"Daraz API Error: {self.provider_message}")


class TransportError(ExternalServiceException):
    """Network failure, timeout or non-2xx HTTP status."""
    def __init__(self, detail: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(detail=detail)


class MalformedResponseError(ExternalServiceException):
    def __init__(self, detail: str):
        super().__init__(detail=f"Malformed Daraz response: {detail}")


class RefreshFailedError(ExternalServiceException):
    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        super().__init__(detail=f"Failed to refresh token for account {account_id}: {reason}")


class AggregateFailedError(BridgeException):
    """One account failed while fanning a call out across all accounts."""
    def __init__(self, account_id: str, cause: BridgeException):
        self.account_id = account_id
        self.cause = cause
        super().__init__(status_code=500, detail=cause.detail)
