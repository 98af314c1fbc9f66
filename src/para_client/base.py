import asyncio
import configparser
import json
import logging
import os
import pathlib
from typing import Any, Self

import aiohttp
from yarl import URL

from .auth import AWS4Signer, Credentials, SignableRequest
from .exceptions import (
    ParaAccessDeniedError,
    ParaClientError,
    ParaError,
    ParaInvalidRequestError,
    ParaNotFoundError,
    ParaServerError,
)
from .session import AuthMode, TokenSession, select_auth_mode
from .urlparsing import (
    DEFAULT_API_PATH,
    DEFAULT_ENDPOINT,
    JWT_PATH,
    build_query,
    get_full_path,
    get_host,
    normalize_api_path,
    uri_encode_path,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "para"
USER_AGENT = "Para client for Python"
JSON_CONTENT_TYPE = "application/json; charset=UTF-8"
DEFAULT_REQUEST_TIMEOUT = 120.0

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def has_user_and_jwt(result: Any) -> bool:
    return (
        isinstance(result, dict)
        and bool(result.get("user"))
        and isinstance(result.get("jwt"), dict)
    )


class _ParaClientBase:
    def __init__(
        self,
        access_key: str,
        secret_key: str | None = None,
        endpoint: URL | str = DEFAULT_ENDPOINT,
        api_path: str = DEFAULT_API_PATH,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        signer: AWS4Signer | None = None,
    ):
        if not secret_key or not secret_key.strip():
            logger.warning(
                "Secret key not provided. Make sure you call 'sign_in()' first."
            )
        self.access_key = access_key
        self.secret_key = secret_key
        self.endpoint_url = URL(endpoint or DEFAULT_ENDPOINT)
        self.api_path = normalize_api_path(api_path)
        self.request_timeout = request_timeout

        self.signer = signer or AWS4Signer()
        self.token_session = TokenSession()
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(
        cls,
        profile_name: str = "default",
        config_path: str | pathlib.Path | None = None,
    ) -> Self:
        if config_path is None:
            config_path = pathlib.Path.home() / ".para" / "config"
        else:
            config_path = pathlib.Path(config_path)

        # Config file may or may not exist
        config_data = {}
        if config_path.exists():
            config = configparser.ConfigParser()
            config.read(config_path)
            if profile_name in config:
                config_data = dict(config[profile_name])

        # Config file takes precedence over the environment
        access_key = config_data.get("access_key") or os.environ.get("PARA_ACCESS_KEY")
        secret_key = config_data.get("secret_key") or os.environ.get("PARA_SECRET_KEY")
        endpoint = (
            config_data.get("endpoint")
            or os.environ.get("PARA_ENDPOINT")
            or DEFAULT_ENDPOINT
        )
        api_path = (
            config_data.get("api_path")
            or os.environ.get("PARA_API_PATH")
            or DEFAULT_API_PATH
        )

        if not access_key:
            raise ValueError(
                f"access_key not found for profile '{profile_name}' "
                f"in {config_path} or PARA_ACCESS_KEY"
            )

        request_timeout = float(
            config_data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
        )

        return cls(
            access_key,
            secret_key,
            endpoint=endpoint,
            api_path=api_path,
            request_timeout=request_timeout,
        )

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.access_key, self.secret_key)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    def get_full_path(self, resource_path: str | None) -> str:
        return get_full_path(self.api_path, resource_path)

    async def refresh_token(self) -> bool:
        """Refreshes a held JWT once its refresh time has come.

        Returns True only when a new token was stored.
        """
        if not self.token_session.can_refresh():
            return False

        try:
            result = await self.invoke_get(JWT_PATH)
        except TRANSPORT_ERRORS as e:
            logger.debug("Token refresh did not complete: %s", e)
            return False
        except ParaError as e:
            logger.debug("Token refresh rejected: %s", e)
            self.token_session.clear()
            return False

        if not has_user_and_jwt(result):
            self.token_session.clear()
            return False

        self.token_session.store_jwt(result["jwt"])
        return True

    def _parse_error_response(self, status: int, response_text: str) -> ParaError:
        payload = None
        try:
            payload = json.loads(response_text)
        except json.JSONDecodeError:
            pass

        if isinstance(payload, dict) and payload.get("code"):
            error_code = str(payload["code"])
            message = payload.get("message") or "error"
        else:
            error_code = None
            message = response_text or "ParaClient request failed."

        logger.error("%s - %s", message, error_code or status)

        if status == 404:
            return ParaNotFoundError(message, payload=payload)
        elif status in (401, 403):
            return ParaAccessDeniedError(message, status_code=status, payload=payload)
        elif status == 400:
            return ParaInvalidRequestError(message, payload=payload)
        elif 400 <= status < 500:
            return ParaClientError(message, status, error_code, payload)
        else:
            return ParaServerError(message, status, error_code, payload)

    def _prepare_request(
        self,
        method: str,
        resource_path: str | None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        entity: Any = None,
    ) -> SignableRequest:
        if not self.access_key or not self.access_key.strip():
            raise ValueError(f"Blank access key: {method} {resource_path}")

        path = uri_encode_path(self.get_full_path(resource_path))
        query = build_query(params)
        if query:
            path += "?" + query

        request = SignableRequest(
            method=method,
            host=get_host(self.endpoint_url),
            path=path,
            headers=dict(headers) if headers else {},
            service=SERVICE_NAME,
        )
        if entity is not None:
            request.body = json.dumps(entity).encode("utf-8")
            request.headers["Content-Type"] = JSON_CONTENT_TYPE
        return request

    def _authenticate(self, request: SignableRequest):
        mode = select_auth_mode(
            self.secret_key, self.token_session.token, request.headers
        )
        logger.debug("%s %s authenticated as %s", request.method, request.path, mode)

        if mode is AuthMode.BEARER:
            request.headers["Authorization"] = f"Bearer {self.token_session.token}"
        elif mode is AuthMode.SIGNED:
            self.signer.sign(request, self.credentials)
        elif mode is AuthMode.ANONYMOUS:
            request.headers["Authorization"] = f"Anonymous {self.access_key}"

    async def _make_request(
        self,
        method: str,
        resource_path: str | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        entity: Any = None,
    ) -> aiohttp.ClientResponse:
        request = self._prepare_request(method, resource_path, headers, params, entity)

        # the refresh call itself must not trigger another refresh
        if self.token_session and not (method == "GET" and resource_path == JWT_PATH):
            await self.refresh_token()

        self._authenticate(request)
        request.headers["User-Agent"] = USER_AGENT

        url = URL(str(self.endpoint_url.origin()) + request.path, encoded=True)
        response = await self._send(method, url, request.headers, request.body)

        if not (200 <= response.status < 300 or response.status == 304):
            error_text = await self._read_text(response)
            raise self._parse_error_response(response.status, error_text)

        return response

    async def _send(
        self,
        method: str,
        url: URL,
        headers: dict[str, str],
        data: bytes | None,
    ) -> aiohttp.ClientResponse:
        await self._ensure_session()
        return await self._session.request(
            method=method,
            url=url,
            headers=headers,
            data=data,
        )

    async def _read_text(self, response: aiohttp.ClientResponse) -> str:
        # undecodable bytes become U+FFFD, the body then fails JSON parsing
        try:
            return await response.text(errors="replace")
        finally:
            response.close()

    async def _read_entity(self, response: aiohttp.ClientResponse) -> Any:
        text = await self._read_text(response)
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    async def invoke_signed_request(
        self,
        method: str,
        resource_path: str | None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        entity: Any = None,
    ) -> Any:
        response = await self._make_request(
            method, resource_path, headers=headers, params=params, entity=entity
        )
        return await self._read_entity(response)

    async def invoke_get(
        self, resource_path: str | None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.invoke_signed_request("GET", resource_path, params=params)

    async def invoke_post(self, resource_path: str | None, entity: Any = None) -> Any:
        return await self.invoke_signed_request("POST", resource_path, entity=entity)

    async def invoke_put(self, resource_path: str | None, entity: Any = None) -> Any:
        return await self.invoke_signed_request("PUT", resource_path, entity=entity)

    async def invoke_patch(self, resource_path: str | None, entity: Any = None) -> Any:
        return await self.invoke_signed_request("PATCH", resource_path, entity=entity)

    async def invoke_delete(
        self, resource_path: str | None, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.invoke_signed_request("DELETE", resource_path, params=params)

    async def get_server_version(self) -> str:
        result = await self.invoke_get("")
        version = result.get("version") if isinstance(result, dict) else None
        return version or "unknown"
