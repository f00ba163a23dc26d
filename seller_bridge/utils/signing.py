import hashlib
import hmac
from typing import Mapping

SIGN_METHOD = "sha256"


def build_string_to_sign(path: str, params: Mapping[str, str]) -> str:
    """
    Canonical form Daraz signs: the request path followed by every
    parameter as key+value, keys in ascending order, no separators.
    """
    concatenated = "".join(f"{key}{params[key]}" for key in sorted(params))
    return f"{path}{concatenated}"


def sign_request(path: str, params: Mapping[str, str], secret: str) -> str:
    """
    Computes the Daraz request signature.

    Args:
        path (str): API path, e.g. "/auth/token/create"
        params (Mapping[str, str]): every parameter that will be sent, protocol and business
        secret (str): app secret used as the HMAC key

    Returns:
        str: uppercase hex HMAC-SHA256 digest
    """
    string_to_sign = build_string_to_sign(path, params)
    digest = hmac.new(
        secret.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest.upper()


class RequestSigner:
    """Holds the app secret and signs with it. The secret is never handed back."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret must not be empty")
        self.__secret = secret

    def sign(self, path: str, params: Mapping[str, str]) -> str:
        return sign_request(path, params, self.__secret)

    def __repr__(self) -> str:
        return "RequestSigner(secret=***)"
