"""Asyncio client for the Para API with AWS4 request signing."""

__version__ = "0.1.0"

from .auth import AWS4Signer, Credentials, SignableRequest, sign
from .client import ParaClient
from .exceptions import (
    ParaAccessDeniedError,
    ParaClientError,
    ParaError,
    ParaInvalidRequestError,
    ParaNotFoundError,
    ParaServerError,
)
from .keycache import DerivedKeyCache
from .session import TokenSession

__all__ = [
    "ParaClient",
    "AWS4Signer",
    "Credentials",
    "SignableRequest",
    "sign",
    "DerivedKeyCache",
    "TokenSession",
    "ParaError",
    "ParaClientError",
    "ParaServerError",
    "ParaNotFoundError",
    "ParaAccessDeniedError",
    "ParaInvalidRequestError",
]
