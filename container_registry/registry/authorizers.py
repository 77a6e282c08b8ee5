"""
Registry authorizers.

One authorizer per AuthorizationType, each turning a registry configuration
and a repository into the HTTP headers that authorize a pull. Authorizers are
looked up through an AuthorizerRegistry; a new scheme is added by writing one
RegistryAuthorizer subclass and registering it.
"""

import base64
import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import (
    AuthorizationError,
    RegistryError,
    TransportError,
    UnsupportedAuthorizationType,
)
from .image import ImageReference
from .models import AuthorizationType, RegistryConfiguration
from .transport import AUTHORIZATION_HEADER, HttpClientFactory, read_json

logger = logging.getLogger(__name__)

# extra[...] keys
REGISTRY_AUTH_URI_KEY = "registryAuthUri"
AWS_REGION_KEY = "region"
AWS_REGISTRY_IDS_KEY = "registryIds"

CATALOG_SCOPE = "registry:catalog:*"
BEARER_SCHEME = "bearer"
DEFAULT_TIMEOUT = 30

_CHALLENGE_PARAM_PATTERN = re.compile(r'([A-Za-z_][\w-]*)=(?:"([^"]*)"|([^,\s]*))')

Headers = Dict[str, str]


def basic_authorization(user: str, secret: str) -> str:
    """Authorization header value for HTTP Basic credentials."""
    encoded = base64.b64encode(f"{user}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


def repository_scope(repository: Optional[str]) -> str:
    """Token scope for pulling ``repository``, or for the catalog when None."""
    return f"repository:{repository}:pull" if repository else CATALOG_SCOPE


def parse_www_authenticate(header: str) -> Tuple[str, Dict[str, str]]:
    """
    Split a ``WWW-Authenticate`` challenge into its scheme and parameters.

    Example:
        parse_www_authenticate(
            'Bearer realm="https://auth.docker.io/token",service="registry.docker.io"'
        )
        # -> ("Bearer", {"realm": "https://auth.docker.io/token",
        #                "service": "registry.docker.io"})
    """
    scheme, _, params = (header or "").strip().partition(" ")
    parsed = {}
    for match in _CHALLENGE_PARAM_PATTERN.finditer(params):
        key, quoted, bare = match.groups()
        parsed[key] = quoted if quoted is not None else bare
    return scheme, parsed


def discover_token_service(
    session: requests.Session, registry_host: str, timeout: float = DEFAULT_TIMEOUT
) -> Optional[Tuple[str, Optional[str]]]:
    """
    Probe ``https://<registry_host>/v2/`` for a Bearer challenge.

    Returns:
        (realm, service) from the challenge, or None when the registry does not
        answer 401 with a Bearer ``WWW-Authenticate`` header

    Raises:
        TransportError: If the registry can not be reached
    """
    url = f"https://{registry_host}/v2/"
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(url, str(e)) from e

    if response.status_code != 401:
        logger.debug(f"{url} answered {response.status_code}, no token service")
        return None

    www_authenticate = response.headers.get("WWW-Authenticate")
    if not www_authenticate:
        return None
    logger.info(f"WWW-Authenticate: {www_authenticate} for container registry {registry_host}")

    scheme, params = parse_www_authenticate(www_authenticate)
    if scheme.lower() != BEARER_SCHEME or not params.get("realm"):
        logger.warning(
            f"Invalid WWW-Authenticate: {www_authenticate} for container registry {registry_host}"
        )
        return None
    return params["realm"], params.get("service")


def token_service_uri(realm: str, service: Optional[str]) -> str:
    """Token endpoint template as stored in extra[registryAuthUri]."""
    query = urlencode({"service": service}) + "&" if service else ""
    separator = "&" if urlparse(realm).query else "?"
    return f"{realm}{separator}{query}scope=repository:{{repository}}:pull"


class RegistryAuthorizer(ABC):
    """Produces authorization headers for one AuthorizationType"""

    auth_type: AuthorizationType

    def authorize(
        self, image: ImageReference, configuration: RegistryConfiguration
    ) -> Headers:
        """
        Authorize pulling ``image`` from the configured registry.

        Raises:
            AuthorizationError: If no headers can be obtained
        """
        return self.authorize_repository(configuration, image.repository)

    @abstractmethod
    def authorize_repository(
        self, configuration: RegistryConfiguration, repository: Optional[str]
    ) -> Headers:
        """Authorize pulling ``repository``; None targets the registry itself."""
        ...


class AnonymousAuthorizer(RegistryAuthorizer):
    auth_type = AuthorizationType.ANONYMOUS

    def authorize_repository(self, configuration, repository):
        return {}


class BasicAuthAuthorizer(RegistryAuthorizer):
    auth_type = AuthorizationType.BASICAUTH

    def authorize_repository(self, configuration, repository):
        credentials = configuration.credentials
        if credentials is None:
            raise AuthorizationError(
                configuration.registry_host,
                "basic authorization requires a user and a secret",
                repository,
            )
        return {AUTHORIZATION_HEADER: basic_authorization(*credentials)}


class DockerOAuth2Authorizer(RegistryAuthorizer):
    """
    Distribution token flow.

    The token endpoint is extra[registryAuthUri] when configured, otherwise it
    is discovered from the registry's Bearer challenge. Tokens are scoped to a
    single repository and are requested again on every call.
    """

    auth_type = AuthorizationType.DOCKEROAUTH2

    def __init__(self, client_factory: HttpClientFactory, timeout: float = DEFAULT_TIMEOUT):
        self.client_factory = client_factory
        self.timeout = timeout

    def authorize_repository(self, configuration, repository):
        registry_host = configuration.registry_host
        try:
            session = self.client_factory.client_for(configuration)
            token_url, params = self._token_request(session, configuration, repository)
        except AuthorizationError:
            raise
        except RegistryError as e:
            raise AuthorizationError(registry_host, str(e), repository) from e

        logger.debug(f"Requesting token from {token_url} (scope={params.get('scope')})")
        try:
            response = session.get(
                token_url,
                params=params,
                auth=configuration.credentials,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthorizationError(
                registry_host, f"token request to {token_url} failed: {e}", repository
            ) from e

        if not response.ok:
            raise AuthorizationError(
                registry_host,
                f"token service {token_url} returned {response.status_code}",
                repository,
            )

        try:
            body = read_json(response)
        except RegistryError as e:
            raise AuthorizationError(registry_host, str(e), repository) from e

        token = None
        if isinstance(body, dict):
            token = body.get("token") or body.get("access_token")
        if not token:
            raise AuthorizationError(
                registry_host, "token response carries no token", repository
            )
        return {AUTHORIZATION_HEADER: f"Bearer {token}"}

    def _token_request(self, session, configuration, repository):
        explicit_uri = configuration.extra.get(REGISTRY_AUTH_URI_KEY)
        if explicit_uri:
            parsed = urlparse(explicit_uri)
            params = dict(parse_qsl(parsed.query))
            token_url = urlunparse(parsed._replace(query=""))
        else:
            challenge = discover_token_service(
                session, configuration.registry_host, self.timeout
            )
            if challenge is None:
                raise AuthorizationError(
                    configuration.registry_host,
                    "registry did not answer with a Bearer challenge",
                    repository,
                )
            token_url, service = challenge
            params = {"service": service} if service else {}

        params["scope"] = repository_scope(repository)
        return token_url, params


class AwsEcrAuthorizer(RegistryAuthorizer):
    """
    AWS ECR authorization.

    user/secret are used as the AWS access key pair (the boto3 default
    credential chain applies when they are absent), extra[region] is required
    and extra[registryIds] optionally narrows the token to a comma separated
    list of registry ids.
    """

    auth_type = AuthorizationType.AWSECR

    def __init__(self, ecr_client_factory: Optional[Callable] = None):
        self._ecr_client_factory = ecr_client_factory

    def _create_ecr_client(self, **kwargs):
        factory = self._ecr_client_factory or boto3.client
        return factory("ecr", **kwargs)

    def authorize_repository(self, configuration, repository):
        registry_host = configuration.registry_host
        region = configuration.extra.get(AWS_REGION_KEY)
        if not region:
            raise AuthorizationError(
                registry_host, "AWS ECR requires extra[region]", repository
            )

        client_kwargs = {"region_name": region}
        if configuration.credentials:
            access_key, secret_key = configuration.credentials
            client_kwargs["aws_access_key_id"] = access_key
            client_kwargs["aws_secret_access_key"] = secret_key

        request = {}
        registry_ids = [
            registry_id.strip()
            for registry_id in configuration.extra.get(AWS_REGISTRY_IDS_KEY, "").split(",")
            if registry_id.strip()
        ]
        if registry_ids:
            request["registryIds"] = registry_ids

        try:
            ecr_client = self._create_ecr_client(**client_kwargs)
            response = ecr_client.get_authorization_token(**request)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"ECR GetAuthorizationToken failed for {registry_host}: {e}")
            raise AuthorizationError(
                registry_host, f"GetAuthorizationToken failed: {e}", repository
            ) from e

        authorization_data = self._select_authorization_data(
            response.get("authorizationData") or [], registry_host
        )
        if authorization_data is None:
            raise AuthorizationError(
                registry_host, "no authorization data in ECR response", repository
            )

        try:
            decoded = base64.b64decode(authorization_data["authorizationToken"])
            user, password = decoded.decode("utf-8").split(":", 1)
        except (KeyError, TypeError, ValueError) as e:
            raise AuthorizationError(
                registry_host, "malformed ECR authorization token", repository
            ) from e

        logger.debug(f"Retrieved ECR authorization token for {registry_host}")
        return {AUTHORIZATION_HEADER: basic_authorization(user, password)}

    @staticmethod
    def _select_authorization_data(entries, registry_host: str):
        for entry in entries:
            endpoint = urlparse(entry.get("proxyEndpoint") or "").netloc
            if endpoint == registry_host:
                return entry
        return entries[0] if entries else None


class AuthorizerRegistry:
    """Lookup table from AuthorizationType to authorizer"""

    def __init__(self, authorizers: Iterable[RegistryAuthorizer] = ()):
        self._authorizers: Dict[AuthorizationType, RegistryAuthorizer] = {}
        for authorizer in authorizers:
            self.register(authorizer)

    @classmethod
    def default(
        cls, client_factory: HttpClientFactory, timeout: float = DEFAULT_TIMEOUT
    ) -> "AuthorizerRegistry":
        """Registry with the anonymous, basic, Docker OAuth2 and AWS ECR authorizers."""
        return cls(
            [
                AnonymousAuthorizer(),
                BasicAuthAuthorizer(),
                DockerOAuth2Authorizer(client_factory, timeout),
                AwsEcrAuthorizer(),
            ]
        )

    def register(self, authorizer: RegistryAuthorizer):
        self._authorizers[authorizer.auth_type] = authorizer

    def get(
        self, auth_type: Optional[AuthorizationType], registry_host: Optional[str] = None
    ) -> RegistryAuthorizer:
        """
        Raises:
            UnsupportedAuthorizationType: If no authorizer is registered for auth_type
        """
        authorizer = self._authorizers.get(auth_type)
        if authorizer is None:
            raise UnsupportedAuthorizationType(
                auth_type.value if isinstance(auth_type, AuthorizationType) else auth_type,
                registry_host,
            )
        return authorizer

    def __contains__(self, auth_type) -> bool:
        return auth_type in self._authorizers
