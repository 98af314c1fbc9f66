import urllib.parse
from collections.abc import Mapping
from typing import Any

from yarl import URL

from .auth import uri_encode

DEFAULT_ENDPOINT = "https://paraio.com"
DEFAULT_API_PATH = "/v1/"
JWT_PATH = "/jwt_auth"


def normalize_api_path(api_path: str | None) -> str:
    api_path = api_path or DEFAULT_API_PATH
    if not api_path.endswith("/"):
        api_path += "/"
    return api_path


def get_full_path(api_path: str, resource_path: str | None) -> str:
    """Resolves a resource path against the API path.

    The JWT endpoint is not versioned: it sits next to the first segment of
    the API path, e.g. ``/api/v1/`` resolves it to ``/api/jwt_auth``.
    """
    if resource_path and resource_path.startswith(JWT_PATH):
        if api_path.count("/") > 2:
            return api_path[: api_path.index("/", 1)] + resource_path
        return resource_path

    if not resource_path:
        resource_path = ""
    elif resource_path.startswith("/"):
        resource_path = resource_path[1:]
    return api_path + resource_path


def get_host(endpoint_url: URL) -> str:
    """Host header value for an endpoint, with the port when it is not default."""
    if not endpoint_url.host:
        raise ValueError(f"Invalid endpoint URL '{endpoint_url}': no host")
    if endpoint_url.port and not endpoint_url.is_default_port():
        return f"{endpoint_url.host}:{endpoint_url.port}"
    return endpoint_url.host


def uri_encode_path(path: str | None) -> str:
    """Percent-encodes every path segment, keeping the slashes."""
    if not path or not isinstance(path, str):
        return ""
    return urllib.parse.quote(path, safe="/")


def _param_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(params: Mapping[str, Any] | None) -> str:
    """Encodes request parameters, keeping every value of list parameters.

    ``None`` becomes an empty value and an empty list drops the parameter.
    """
    if not params:
        return ""

    pairs = []
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _param_value(item)) for item in value)
        else:
            pairs.append((key, _param_value(value)))

    return "&".join(f"{uri_encode(k)}={uri_encode(v)}" for k, v in pairs)
