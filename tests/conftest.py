import base64
import collections
import json
from unittest.mock import AsyncMock, Mock

import pytest

from para_client.auth import AWS4Signer
from para_client.client import ParaClient


def _make_token(payload: dict | None = None, middle: str | None = None) -> str:
    """Builds a compact three-segment token with the given payload."""
    if middle is None:
        raw = json.dumps(payload or {}).encode()
        middle = base64.urlsafe_b64encode(raw).decode().rstrip("=")
    return f"eyJhbGciOiJIUzI1NiJ9.{middle}.c2lnbmF0dXJl"


class MockClient(ParaClient):
    def __init__(self, access_key: str, secret_key: str | None, endpoint: str):
        super().__init__(
            access_key=access_key,
            secret_key=secret_key,
            endpoint=endpoint,
            signer=AWS4Signer(),
        )
        self._responses = collections.deque()
        self.requests = []

    async def _send(self, method, url, headers, data):
        self.requests.append(
            {
                "method": method,
                "url": str(url),
                "headers": dict(headers),
                "data": data,
            }
        )
        if not self._responses:
            raise ValueError("No more responses available in the mock client.")
        response = self._responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    def add_response(self, body: dict | str | bytes | None = None, status: int = 200):
        if body is None:
            raw = b""
        elif isinstance(body, bytes):
            raw = body
        elif isinstance(body, str):
            raw = body.encode("utf-8")
        else:
            raw = json.dumps(body).encode("utf-8")

        def text(encoding="utf-8", errors="strict"):
            return raw.decode(encoding, errors)

        amock = AsyncMock()
        amock.status = status
        amock.text.side_effect = text
        amock.close = Mock()
        self._responses.append(amock)
        return amock

    def add_error(self, error: Exception):
        self._responses.append(error)


@pytest.fixture
def mock_client():
    return MockClient(
        access_key="app:myapp",
        secret_key="test-secret-key",
        endpoint="https://paraio.example.com",
    )


@pytest.fixture
def anonymous_client():
    return MockClient(
        access_key="app:myapp",
        secret_key=None,
        endpoint="https://paraio.example.com",
    )


@pytest.fixture
def make_token():
    return _make_token
