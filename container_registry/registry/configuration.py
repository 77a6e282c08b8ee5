"""
Registry configuration store.

Configurations come from two sources: explicit properties (YAML) and a
mounted ``.dockerconfigjson`` pull secret. Both are merged per registry host,
explicit values winning, and the result is looked up by host at request time.
"""

import base64
import binascii
import json
import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from .authorizers import REGISTRY_AUTH_URI_KEY, discover_token_service, token_service_uri
from .exceptions import RegistryError, RegistryNotConfigured
from .models import (
    DOCKER_HUB_HOST,
    AuthorizationType,
    RegistryConfiguration,
    RegistryProperties,
)
from .transport import HttpClientFactory

logger = logging.getLogger(__name__)

# Default docker-server values written by `kubectl create secret docker-registry`
DOCKER_HUB_SECRET_SERVERS = ("https://index.docker.io/v1/", "docker.io")


def merge_configuration(
    explicit: RegistryConfiguration, secret: RegistryConfiguration
) -> RegistryConfiguration:
    """
    Merge two configurations of the same registry host.

    Non-empty explicit user, secret, authorization type and manifest media type
    override the secret ones. TLS and proxy flags always come from the explicit
    configuration. Extra maps are unioned with explicit keys winning.
    """
    explicit_fields = explicit.model_fields_set
    manifest_media_type = (
        explicit.manifest_media_type
        if "manifest_media_type" in explicit_fields and explicit.manifest_media_type
        else secret.manifest_media_type
    )
    return RegistryConfiguration(
        registry_host=secret.registry_host,
        user=explicit.user or secret.user,
        secret=explicit.secret or secret.secret,
        authorization_type=explicit.authorization_type or secret.authorization_type,
        manifest_media_type=manifest_media_type,
        disable_ssl_verification=explicit.disable_ssl_verification,
        use_http_proxy=explicit.use_http_proxy,
        extra={**secret.extra, **explicit.extra},
    )


def merge_configurations(
    explicit: Mapping[str, RegistryConfiguration],
    secret: Mapping[str, RegistryConfiguration],
) -> Dict[str, RegistryConfiguration]:
    """Merge two host-keyed configuration maps; hosts in one map pass through."""
    merged = dict(secret)
    for registry_host, configuration in explicit.items():
        if registry_host in merged:
            merged[registry_host] = merge_configuration(configuration, merged[registry_host])
        else:
            merged[registry_host] = configuration
    return merged


class RegistryConfigurationStore:
    """Read-only registry configurations keyed by registry host"""

    def __init__(self, configurations: Iterable[RegistryConfiguration] = ()):
        self._configurations: Dict[str, RegistryConfiguration] = {}
        for configuration in configurations:
            self._configurations[configuration.registry_host] = configuration

    @classmethod
    def from_properties(
        cls,
        properties: RegistryProperties,
        secret_configurations: Optional[Mapping[str, RegistryConfiguration]] = None,
    ) -> "RegistryConfigurationStore":
        """
        Build the store from explicit properties and optional secret configurations.

        Properties are keyed by arbitrary names; they are re-keyed by registry
        host before being merged with the secret configurations.
        """
        explicit = {
            configuration.registry_host: configuration
            for configuration in properties.registry_configurations.values()
        }
        merged = merge_configurations(explicit, secret_configurations or {})
        store = cls(merged.values())
        logger.info(f"Registry configurations: {store}")
        return store

    def get(self, registry_host: str) -> RegistryConfiguration:
        """
        Raises:
            RegistryNotConfigured: If no configuration exists for registry_host
        """
        configuration = self._configurations.get(registry_host)
        if configuration is None:
            logger.error(f"Could not find a registry configuration for: {registry_host}")
            raise RegistryNotConfigured(registry_host)
        return configuration

    def hosts(self) -> List[str]:
        return sorted(self._configurations)

    def __contains__(self, registry_host) -> bool:
        return registry_host in self._configurations

    def __iter__(self) -> Iterator[RegistryConfiguration]:
        return iter(self._configurations.values())

    def __len__(self) -> int:
        return len(self._configurations)

    def __repr__(self) -> str:
        entries = ", ".join(
            f"{c.registry_host}={c.authorization_type.value if c.authorization_type else None}"
            for c in self._configurations.values()
        )
        return f"RegistryConfigurationStore({entries})"


class DockerConfigJsonConverter:
    """
    Converts a ``.dockerconfigjson`` pull secret into registry configurations.

    The secret format is::

        {"auths": {"demo.goharbor.io": {"username": "admin",
                                        "password": "Harbor12345",
                                        "auth": "YWRtaW46SGFyYm9yMTIzNDU="}}}

    Each host is probed for a Bearer challenge. A challenge makes the entry a
    dockeroauth2 configuration with the discovered token endpoint; otherwise
    it is anonymous without credentials and basicauth with them.
    """

    def __init__(self, properties: RegistryProperties, client_factory: HttpClientFactory):
        self.replace_default_docker_registry_server = (
            properties.replace_default_docker_registry_server
        )
        self.timeout = properties.timeout
        self.client_factory = client_factory
        self._http_proxy_per_host = {
            configuration.registry_host: configuration.use_http_proxy
            for configuration in properties.registry_configurations.values()
        }

    def convert(self, dockerconfigjson: Optional[str]) -> Dict[str, RegistryConfiguration]:
        """
        Args:
            dockerconfigjson: Secret content

        Returns:
            Registry configurations keyed by host; empty when the content is
            blank or malformed
        """
        if not dockerconfigjson or not dockerconfigjson.strip():
            return {}

        try:
            auths = json.loads(dockerconfigjson).get("auths")
            if not isinstance(auths, dict):
                raise ValueError("missing 'auths' object")
        except (ValueError, AttributeError) as e:
            logger.error(f"Failed to parse the secrets in dockerconfigjson: {e}")
            return {}

        configurations = {}
        for server, entry in auths.items():
            registry_host = self.replace_default_docker_registry_server_url(server)
            user, secret = self._credentials(entry if isinstance(entry, dict) else {})

            token_uri = self.get_docker_token_service_uri(registry_host)
            if token_uri:
                authorization_type = AuthorizationType.DOCKEROAUTH2
                extra = {REGISTRY_AUTH_URI_KEY: token_uri}
            else:
                authorization_type = (
                    AuthorizationType.BASICAUTH if user or secret else AuthorizationType.ANONYMOUS
                )
                extra = {}

            configuration = RegistryConfiguration(
                registry_host=registry_host,
                user=user,
                secret=secret,
                authorization_type=authorization_type,
                extra=extra,
            )
            logger.info(f"Registry configuration from secret: {configuration!r}")
            configurations[registry_host] = configuration
        return configurations

    def replace_default_docker_registry_server_url(self, server: str) -> str:
        """Fold the Docker Hub defaults of pull secrets into registry-1.docker.io."""
        if self.replace_default_docker_registry_server and server in DOCKER_HUB_SECRET_SERVERS:
            return DOCKER_HUB_HOST
        return server

    def get_docker_token_service_uri(self, registry_host: str) -> Optional[str]:
        """
        Best effort discovery of the token endpoint from the registry's 401 challenge.

        Returns:
            Token endpoint template, or None when the registry does not offer one
        """
        try:
            session = self.client_factory.get_client(
                skip_ssl=True,
                use_proxy=self._http_proxy_per_host.get(registry_host, False),
            )
            challenge = discover_token_service(session, registry_host, self.timeout)
        except RegistryError as e:
            logger.warning(f"Token service discovery failed for {registry_host}: {e}")
            return None

        if challenge is None:
            return None
        realm, service = challenge
        return token_service_uri(realm, service)

    @staticmethod
    def _credentials(entry: Mapping):
        user = entry.get("username") or None
        secret = entry.get("password") or None
        auth = entry.get("auth")
        if auth and not (user and secret):
            try:
                decoded_user, _, decoded_secret = (
                    base64.b64decode(auth).decode("utf-8").partition(":")
                )
            except (binascii.Error, UnicodeDecodeError, ValueError):
                logger.warning("Ignoring undecodable 'auth' entry in dockerconfigjson")
            else:
                user = user or decoded_user or None
                secret = secret or decoded_secret or None
        return user, secret
