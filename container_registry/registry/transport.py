"""
HTTP transport for registry access.

Sessions are built per (skip TLS verification, use proxy, extra) combination
and reused for the lifetime of the factory. Every session applies the
redirect policy in ``should_strip_authorization``: registries that store
blobs in S3 or Azure Blob storage redirect pulls to pre-signed URLs, and
those backends reject a request that carries both a signed URL and an
Authorization header.
"""

import json
import logging
import threading
from typing import Dict, FrozenSet, Mapping, Optional, Tuple
from urllib.parse import urlparse

import requests

from container_registry.logging_config import TRACE_REQUESTS

from .exceptions import RegistryConfigurationError, RegistryValidationError
from .models import HttpProxyProperties, RegistryConfiguration

logger = logging.getLogger(__name__)

USER_AGENT = "container-registry-client/0.1.0"

AUTHORIZATION_HEADER = "Authorization"
BASIC_AUTH_PREFIX = "Basic"
CUSTOM_REGISTRY_KEY = "custom-registry"
PRESIGNED_URL_MARKERS = ("X-Amz-Credential",)
AZURE_REGISTRY_DOMAINS = ("azurecr.io", "blob.core.windows.net")
REDIRECT_STRIP_METHODS = ("GET", "HEAD")

# Docker Hub labels JSON as application/octet-stream, GHCR as text/plain
JSON_COMPATIBLE_MEDIA_TYPES = (
    "application/json",
    "application/octet-stream",
    "binary/octet-stream",
    "text/plain",
)

CacheKey = Tuple[bool, bool, FrozenSet[Tuple[str, str]]]


def _get_header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    for key, value in (headers or {}).items():
        if key.lower() == name.lower():
            return value
    return None


def _host_in_domains(host: str, domains) -> bool:
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def should_strip_authorization(
    method: str,
    target_url: str,
    current_headers: Optional[Mapping[str, str]],
    extra: Optional[Mapping[str, str]],
) -> bool:
    """
    Decide whether a redirect must be followed without Authorization headers.

    Only GET and HEAD redirects are affected. Authorization is dropped when the
    target is a pre-signed S3 URL, when an Azure registry or blob domain is
    reached with Basic credentials, or when the target host contains the
    ``custom-registry`` marker from the registry's extra settings.

    Args:
        method: Method of the request that received the redirect
        target_url: Redirect location
        current_headers: Headers of the request that received the redirect
        extra: Registry specific extra settings

    Returns:
        True if the Authorization header has to be removed
    """
    if not method or method.upper() not in REDIRECT_STRIP_METHODS:
        return False

    target = urlparse(target_url)
    if any(marker in target.query for marker in PRESIGNED_URL_MARKERS):
        return True

    host = (target.hostname or "").lower()
    authorization = _get_header(current_headers, AUTHORIZATION_HEADER) or ""
    if _host_in_domains(host, AZURE_REGISTRY_DOMAINS) and authorization.startswith(
        BASIC_AUTH_PREFIX
    ):
        return True

    custom_registry = (extra or {}).get(CUSTOM_REGISTRY_KEY)
    if custom_registry and custom_registry.lower() in host:
        return True

    return False


def mask_authorization(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy of the headers safe for logging."""
    masked = {}
    for key, value in (headers or {}).items():
        if key.lower() == AUTHORIZATION_HEADER.lower() and value:
            scheme = value.split(" ", 1)[0]
            masked[key] = f"{scheme} ****"
        else:
            masked[key] = value
    return masked


def read_json(response: requests.Response):
    """
    Decode a JSON response body, tolerating registries that mislabel it.

    Raises:
        RegistryValidationError: If the media type can not carry JSON or the
            body does not decode
    """
    content_type = response.headers.get("Content-Type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type and not (
        media_type.endswith("+json") or media_type in JSON_COMPATIBLE_MEDIA_TYPES
    ):
        raise RegistryValidationError(
            f"Unexpected media type {media_type!r} from {response.url}"
        )
    try:
        return json.loads(response.content)
    except ValueError as e:
        raise RegistryValidationError(f"Invalid JSON body from {response.url}: {e}") from e


def _trace_response(response: requests.Response, *args, **kwargs):
    request = response.request
    logger.debug(
        f"{request.method} {request.url} -> {response.status_code} "
        f"headers={mask_authorization(request.headers)}"
    )


class RegistrySession(requests.Session):
    """requests session applying the registry redirect policy"""

    def __init__(self, extra: Optional[Mapping[str, str]] = None):
        super().__init__()
        self.extra = dict(extra or {})
        self.headers.update({"User-Agent": USER_AGENT})
        if TRACE_REQUESTS:
            self.hooks["response"].append(_trace_response)

    def rebuild_auth(self, prepared_request, response):
        """Drop Authorization on redirects matched by should_strip_authorization."""
        # No super(): a host change alone keeps Authorization, only the strip rules remove it
        previous = response.request
        if should_strip_authorization(
            previous.method, prepared_request.url, previous.headers, self.extra
        ):
            logger.debug(
                f"Dropping Authorization header on {previous.method} redirect "
                f"to {urlparse(prepared_request.url).hostname}"
            )
            prepared_request.headers.pop(AUTHORIZATION_HEADER, None)
            previous.headers.pop(AUTHORIZATION_HEADER, None)


class HttpClientFactory:
    """
    Builds and caches registry sessions.

    One session is created per distinct (skip_ssl, use_proxy, extra) key. The
    key space is bounded by the number of registry configurations, so cached
    sessions are never evicted.
    """

    def __init__(self, http_proxy: Optional[HttpProxyProperties] = None):
        self.http_proxy = http_proxy or HttpProxyProperties()
        self._clients: Dict[CacheKey, RegistrySession] = {}
        self._lock = threading.Lock()

    @staticmethod
    def cache_key(
        skip_ssl: bool, use_proxy: bool, extra: Optional[Mapping[str, str]]
    ) -> CacheKey:
        return bool(skip_ssl), bool(use_proxy), frozenset((extra or {}).items())

    def get_client(
        self,
        skip_ssl: bool = False,
        use_proxy: bool = False,
        extra: Optional[Mapping[str, str]] = None,
    ) -> RegistrySession:
        """
        Return the cached session for the given settings, creating it once.

        Raises:
            RegistryConfigurationError: If a proxy is requested but none is configured
        """
        key = self.cache_key(skip_ssl, use_proxy, extra)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._create_client(skip_ssl, use_proxy, extra)
                self._clients[key] = client
            return client

    def client_for(self, configuration: RegistryConfiguration) -> RegistrySession:
        return self.get_client(
            configuration.disable_ssl_verification,
            configuration.use_http_proxy,
            configuration.extra,
        )

    def _create_client(
        self, skip_ssl: bool, use_proxy: bool, extra: Optional[Mapping[str, str]]
    ) -> RegistrySession:
        session = RegistrySession(extra)
        # Proxy routing comes from configuration only, never from the environment
        session.trust_env = False

        if skip_ssl:
            session.verify = False
            logger.warning("Creating registry session with TLS verification disabled")

        if use_proxy:
            if not self.http_proxy.enabled:
                logger.error("Registry configuration uses an HTTP proxy but none is configured")
                raise RegistryConfigurationError(
                    "Registry configuration uses an HTTP proxy but none is configured"
                )
            session.proxies.update(
                {"http": self.http_proxy.url, "https": self.http_proxy.url}
            )

        logger.info(
            f"Created registry session (disable_ssl={skip_ssl}, "
            f"http_proxy={use_proxy}, extra_keys={sorted((extra or {}).keys())})"
        )
        return session

    def close(self):
        """Close every cached session"""
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()
