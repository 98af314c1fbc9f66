"""AWS Signature Version 4 request signing for the Para API."""

import dataclasses
import datetime as dt
import email.utils
import hashlib
import hmac
import os
import re
import urllib.parse
from typing import Self

from .keycache import DerivedKeyCache

ALGORITHM = "AWS4-HMAC-SHA256"
DEFAULT_REGION = "us-east-1"
DEFAULT_PROVIDER_DOMAIN = "amazonaws.com"
DEFAULT_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
S3_DEFAULT_EXPIRES = "86400"

# http://docs.aws.amazon.com/general/latest/gr/rande.html
_SINGLE_REGION_SERVICES = frozenset(
    ["cloudfront", "ls", "route53", "iam", "importexport", "sts"]
)


@dataclasses.dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str | None = None
    session_token: str | None = None

    @classmethod
    def from_env(cls, prefix: str = "AWS") -> Self:
        env = os.environ
        access_key = env.get(f"{prefix}_ACCESS_KEY_ID") or env.get(
            f"{prefix}_ACCESS_KEY", ""
        )
        secret_key = env.get(f"{prefix}_SECRET_ACCESS_KEY") or env.get(
            f"{prefix}_SECRET_KEY"
        )
        return cls(access_key, secret_key, env.get(f"{prefix}_SESSION_TOKEN"))


@dataclasses.dataclass
class SignableRequest:
    """An HTTP request as seen by the signer.

    ``path`` may carry a query string. Header names are matched
    case-insensitively. The signer mutates the request in place.
    """

    method: str | None = None
    host: str | None = None
    path: str = "/"
    headers: dict[str, str] = dataclasses.field(default_factory=dict)
    body: bytes | str | None = None
    service: str | None = None
    region: str | None = None
    sign_query: bool = False
    do_not_modify_headers: bool = False


def _find_header(headers: dict[str, str], name: str) -> str | None:
    name = name.lower()
    for key in headers:
        if key.lower() == name:
            return key
    return None


def _pop_header(headers: dict[str, str], name: str):
    for key in [k for k in headers if k.lower() == name.lower()]:
        del headers[key]


def _to_bytes(body: bytes | str | None) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def uri_encode(value: str) -> str:
    # quote() leaves only A-Za-z0-9 and "-_.~" unescaped, so !'()* are escaped
    return urllib.parse.quote(str(value), safe="")


def canonical_path(path: str) -> str:
    path = re.sub(r"/{2,}", "/", path or "")
    if not path.startswith("/"):
        path = "/" + path
    return urllib.parse.urljoin("/", path) or "/"


def canonical_query(query_string: str) -> str:
    """Only the first value of a multi-valued parameter is signed."""
    if not query_string:
        return ""

    params: dict[str, str] = {}
    for key, value in urllib.parse.parse_qsl(query_string, keep_blank_values=True):
        params.setdefault(key, value)

    return "&".join(
        f"{uri_encode(key)}={uri_encode(params[key])}" for key in sorted(params)
    )


def canonical_headers(headers: dict[str, str]) -> str:
    lines = []
    for name in sorted(headers, key=str.lower):
        value = re.sub(r"\s+", " ", str(headers[name]).strip())
        lines.append(f"{name.lower()}:{value}")
    return "\n".join(lines)


def signed_headers(headers: dict[str, str]) -> str:
    return ";".join(sorted(name.lower() for name in headers))


def canonicalize(
    method: str,
    path: str,
    query_string: str,
    headers: dict[str, str],
    payload_hash: str,
) -> str:
    return "\n".join(
        [
            method,
            canonical_path(path),
            canonical_query(query_string),
            canonical_headers(headers) + "\n",
            signed_headers(headers),
            payload_hash,
        ]
    )


class AWS4Signer:
    def __init__(
        self,
        key_cache: DerivedKeyCache | None = None,
        provider_domain: str = DEFAULT_PROVIDER_DOMAIN,
        default_region: str = DEFAULT_REGION,
    ):
        self.key_cache = key_cache if key_cache is not None else DerivedKeyCache()
        self.provider_domain = provider_domain
        self.default_region = default_region
        self._host_pattern = re.compile(
            rf"^([^.]+)\.?([^.]*)\.{re.escape(provider_domain)}$"
        )

    def _sha256_hash(self, data: bytes | str) -> str:
        return hashlib.sha256(_to_bytes(data)).hexdigest()

    def _hmac_sha256(self, key: bytes, data: str) -> bytes:
        return hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()

    def _derive_signing_key(
        self, secret_key: str, date_stamp: str, region: str, service: str
    ) -> bytes:
        k_date = self._hmac_sha256(f"AWS4{secret_key}".encode(), date_stamp)
        k_region = self._hmac_sha256(k_date, region)
        k_service = self._hmac_sha256(k_region, service)
        k_signing = self._hmac_sha256(k_service, "aws4_request")
        return k_signing

    def _get_signature_key(
        self, secret_key: str, date_stamp: str, region: str, service: str
    ) -> bytes:
        return self.key_cache.get_or_compute(
            secret_key, date_stamp, region, service, self._derive_signing_key
        )

    def match_host(self, host: str | None) -> tuple[str, str]:
        """Returns (service, region) parsed from the host, empty when unknown."""
        match = self._host_pattern.match(host or "")
        if match is None:
            return "", ""
        return match.group(1), match.group(2)

    def is_single_region(self, service: str, region: str) -> bool:
        if service in ("s3", "sdb") and region == "us-east-1":
            return True
        return service in _SINGLE_REGION_SERVICES

    def create_host(self, service: str, region: str) -> str:
        if self.is_single_region(service, region):
            region_part = ""
        elif service == "s3" and region != "us-east-1":
            region_part = f"-{region}"
        else:
            region_part = f".{region}"
        # SES lives on the "email" subdomain
        service_part = "email" if service == "ses" else service
        return f"{service_part}{region_part}.{self.provider_domain}"

    def _get_timestamp(self, headers: dict[str, str]) -> str:
        date_key = _find_header(headers, "Date")
        if date_key is not None:
            value = headers[date_key]
            try:
                now = email.utils.parsedate_to_datetime(value)
            except (TypeError, ValueError):
                # ISO 8601, e.g. "2015-01-01T00:00:00Z"
                now = dt.datetime.fromisoformat(value)
            if now.tzinfo is None:
                now = now.replace(tzinfo=dt.UTC)
        else:
            now = dt.datetime.now(dt.UTC)
        return now.astimezone(dt.UTC).strftime("%Y%m%dT%H%M%SZ")

    def _create_string_to_sign(
        self, timestamp: str, credential_scope: str, canonical_request: str
    ) -> str:
        return "\n".join(
            [
                ALGORITHM,
                timestamp,
                credential_scope,
                self._sha256_hash(canonical_request),
            ]
        )

    def canonical_string(self, request: SignableRequest, service: str) -> str:
        path, _, query_string = (request.path or "/").partition("?")
        if service == "s3" and request.sign_query:
            payload_hash = UNSIGNED_PAYLOAD
        else:
            payload_hash = self._sha256_hash(request.body or b"")

        return canonicalize(
            request.method or "GET",
            path,
            query_string,
            request.headers,
            payload_hash,
        )

    def _signature(
        self,
        request: SignableRequest,
        credentials: Credentials,
        timestamp: str,
        region: str,
        service: str,
    ) -> str:
        date_stamp = timestamp[:8]
        credential_scope = f"{date_stamp}/{region}/{service}/aws4_request"
        string_to_sign = self._create_string_to_sign(
            timestamp, credential_scope, self.canonical_string(request, service)
        )
        signing_key = self._get_signature_key(
            credentials.secret_access_key, date_stamp, region, service
        )
        return hmac.new(
            signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def sign(
        self, request: SignableRequest, credentials: Credentials | None = None
    ) -> SignableRequest:
        if credentials is None:
            credentials = Credentials.from_env()
        if not credentials.access_key_id or not credentials.access_key_id.strip():
            raise ValueError("Blank access key: cannot sign request")
        if not credentials.secret_access_key:
            raise ValueError(
                f"No secret key for access key '{credentials.access_key_id}'"
            )

        headers = request.headers
        host_key = _find_header(headers, "Host")
        host = request.host or (headers[host_key] if host_key else None)

        host_service, host_region = self.match_host(host)
        service = request.service or host_service
        region = request.region or host_region or self.default_region
        # SES is reached through the "email" host but signed as "ses"
        if service == "email":
            service = "ses"

        if not request.method and request.body:
            request.method = "POST"

        if not host:
            if not service:
                raise ValueError(
                    "Cannot determine request host: no host, Host header or service"
                )
            host = self.create_host(service, region)
        if host_key is None:
            headers["Host"] = host
        if not request.host:
            request.host = host

        if request.sign_query:
            self._sign_query(request, credentials, region, service)
        else:
            self._sign_headers(request, credentials, region, service)
        return request

    def _sign_headers(
        self,
        request: SignableRequest,
        credentials: Credentials,
        region: str,
        service: str,
    ):
        headers = request.headers
        body = request.body

        if not request.do_not_modify_headers:
            if body and _find_header(headers, "Content-Type") is None:
                headers["Content-Type"] = DEFAULT_CONTENT_TYPE
            if body and _find_header(headers, "Content-Length") is None:
                headers["Content-Length"] = str(len(_to_bytes(body)))
            if credentials.session_token:
                headers["X-Amz-Security-Token"] = credentials.session_token
            if service == "s3":
                headers["X-Amz-Content-Sha256"] = self._sha256_hash(body or b"")

        date_key = _find_header(headers, "X-Amz-Date")
        if date_key is not None:
            timestamp = headers[date_key]
        else:
            timestamp = self._get_timestamp(headers)
            if not request.do_not_modify_headers:
                headers["X-Amz-Date"] = timestamp

        _pop_header(headers, "Authorization")
        signature = self._signature(request, credentials, timestamp, region, service)
        credential_scope = f"{timestamp[:8]}/{region}/{service}/aws4_request"
        headers["Authorization"] = (
            f"{ALGORITHM} "
            f"Credential={credentials.access_key_id}/{credential_scope}, "
            f"SignedHeaders={signed_headers(headers)}, "
            f"Signature={signature}"
        )

    def _sign_query(
        self,
        request: SignableRequest,
        credentials: Credentials,
        region: str,
        service: str,
    ):
        path, _, query_string = (request.path or "/").partition("?")
        query: dict[str, list[str]] = {}
        for key, value in urllib.parse.parse_qsl(query_string, keep_blank_values=True):
            query.setdefault(key, []).append(value)

        if credentials.session_token:
            query["X-Amz-Security-Token"] = [credentials.session_token]
        if service == "s3" and "X-Amz-Expires" not in query:
            query["X-Amz-Expires"] = [S3_DEFAULT_EXPIRES]

        if "X-Amz-Date" in query:
            timestamp = query["X-Amz-Date"][0]
        else:
            timestamp = self._get_timestamp(request.headers)
            query["X-Amz-Date"] = [timestamp]

        credential_scope = f"{timestamp[:8]}/{region}/{service}/aws4_request"
        query["X-Amz-Algorithm"] = [ALGORITHM]
        query["X-Amz-Credential"] = [f"{credentials.access_key_id}/{credential_scope}"]
        query["X-Amz-SignedHeaders"] = [signed_headers(request.headers)]

        request.path = path + "?" + encode_query(query)
        signature = self._signature(request, credentials, timestamp, region, service)
        request.path += f"&X-Amz-Signature={signature}"


def encode_query(query: dict[str, list[str]]) -> str:
    return "&".join(
        f"{uri_encode(key)}={uri_encode(value)}"
        for key, values in query.items()
        for value in values
    )


def sign(
    request: SignableRequest, credentials: Credentials | None = None
) -> SignableRequest:
    """Signs a request with a throwaway signer and its own key cache."""
    return AWS4Signer().sign(request, credentials)
