import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException

from container_registry.logging_config import StructuredLogContext

from .authorizers import AuthorizerRegistry
from .configuration import RegistryConfigurationStore
from .exceptions import (
    RegistryResponseError,
    RegistryValidationError,
    TransportError,
    UnsupportedManifestMediaType,
)
from .image import ImageReference
from .models import (
    SUPPORTED_MANIFEST_MEDIA_TYPES,
    CatalogResponse,
    ManifestResponse,
    RegistryConfiguration,
    RegistryProperties,
    TagsResponse,
)
from .parser import ImageReferenceParser
from .transport import HttpClientFactory, read_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryRequestContext:
    """Everything needed to issue authorized requests for one image"""

    image: ImageReference
    configuration: RegistryConfiguration
    auth_headers: Dict[str, str]
    session: requests.Session

    @property
    def base_url(self) -> str:
        return f"https://{self.image.registry_host}/v2"


class RegistryService:
    """Registry HTTP API V2 client resolving credentials per registry host"""

    def __init__(
        self,
        store: RegistryConfigurationStore,
        parser: Optional[ImageReferenceParser] = None,
        authorizers: Optional[AuthorizerRegistry] = None,
        client_factory: Optional[HttpClientFactory] = None,
        timeout: float = 30,
    ):
        self.store = store
        self.parser = parser or ImageReferenceParser()
        self.client_factory = client_factory or HttpClientFactory()
        self.authorizers = authorizers or AuthorizerRegistry.default(
            self.client_factory, timeout
        )
        self.timeout = timeout

    @classmethod
    def from_properties(
        cls,
        properties: RegistryProperties,
        store: Optional[RegistryConfigurationStore] = None,
        client_factory: Optional[HttpClientFactory] = None,
    ) -> "RegistryService":
        """Wire parser, transport and authorizers from RegistryProperties"""
        client_factory = client_factory or HttpClientFactory(properties.http_proxy)
        return cls(
            store=store or RegistryConfigurationStore.from_properties(properties),
            parser=ImageReferenceParser(
                properties.default_registry_host,
                properties.default_repository_tag,
                properties.official_repository_namespace,
            ),
            authorizers=AuthorizerRegistry.default(client_factory, properties.timeout),
            client_factory=client_factory,
            timeout=properties.timeout,
        )

    def resolve(self, image_name: str) -> RegistryRequestContext:
        """
        Parse an image name and authorize access to its repository

        Raises:
            InvalidImageReference: If the image name is malformed
            RegistryNotConfigured: If the image's registry has no configuration
            UnsupportedAuthorizationType: If the configured type has no authorizer
            AuthorizationError: If authorization fails
        """
        image = self.parser.parse(image_name)
        configuration = self.store.get(image.registry_host)
        authorizer = self.authorizers.get(
            configuration.authorization_type, configuration.registry_host
        )
        auth_headers = authorizer.authorize(image, configuration)
        session = self.client_factory.client_for(configuration)
        return RegistryRequestContext(image, configuration, auth_headers, session)

    def get_manifest(self, context: RegistryRequestContext) -> ManifestResponse:
        """
        Get the image manifest in the registry's configured media type

        Raises:
            UnsupportedManifestMediaType: If the media type is neither OCI nor Docker v2
            TransportError: If the registry can not be reached
            RegistryResponseError: If the registry answers non-2xx
            RegistryValidationError: If the response doesn't match schema
        """
        media_type = context.configuration.manifest_media_type
        if media_type not in SUPPORTED_MANIFEST_MEDIA_TYPES:
            logger.error(f"Not supported image manifest media type: {media_type}")
            raise UnsupportedManifestMediaType(media_type)

        image = context.image
        url = f"{context.base_url}/{image.repository}/manifests/{image.reference}"
        response = self._get(context, url, headers={"Accept": media_type})
        self._raise_for_status(response, url)

        try:
            return ManifestResponse.model_validate(read_json(response))
        except ValidationError as e:
            logger.error(f"Invalid manifest response for {image.canonical_name}: {e}")
            raise RegistryValidationError(f"Invalid manifest format: {e}") from e

    def get_blob(self, context: RegistryRequestContext, digest: str) -> Optional[bytes]:
        """
        Get blob content by digest

        Args:
            context: Resolved request context
            digest: Content digest (e.g., "sha256:abc123...")

        Returns:
            Raw blob content, or None when the registry answers non-2xx

        Raises:
            TransportError: If the registry can not be reached
        """
        url = f"{context.base_url}/{context.image.repository}/blobs/{digest}"
        response = self._get(context, url)
        if not response.ok:
            logger.warning(
                f"Blob {digest} not available: {response.status_code} "
                f"{StructuredLogContext(image=context.image.canonical_name, url=url)}"
            )
            return None
        return response.content

    def get_tags(self, registry_name: str, repository_name: str) -> List[str]:
        """
        List all tags of a repository

        Args:
            registry_name: Registry host, as configured (e.g., "demo.goharbor.io")
            repository_name: Repository name (e.g., "library/nginx")

        Returns:
            Tag names; empty when the repository has none
        """
        context = self._registry_context(registry_name, repository_name)
        url = f"https://{registry_name}/v2/{repository_name}/tags/list"
        logger.debug(f"Fetching tags from: {url}")
        response = self._get(context, url)
        self._raise_for_status(response, url)

        try:
            tags = TagsResponse.model_validate(read_json(response))
        except ValidationError as e:
            logger.error(f"Invalid tags response for {repository_name}: {e}")
            raise RegistryValidationError(f"Invalid tags format: {e}") from e
        return tags.tags or []

    def get_repositories(self, registry_name: str) -> dict:
        """
        List all repositories in the catalog

        Returns:
            Catalog body, carrying at least "repositories"
        """
        context = self._registry_context(registry_name, None)
        url = f"https://{registry_name}/v2/_catalog"
        response = self._get(context, url)
        self._raise_for_status(response, url)

        body = read_json(response)
        try:
            CatalogResponse.model_validate(body)
        except ValidationError as e:
            logger.error(f"Invalid catalog response from {registry_name}: {e}")
            raise RegistryValidationError(f"Invalid catalog format: {e}") from e
        return body

    def _registry_context(
        self, registry_name: str, repository: Optional[str]
    ) -> "_NamedRequestContext":
        configuration = self.store.get(registry_name)
        authorizer = self.authorizers.get(
            configuration.authorization_type, configuration.registry_host
        )
        auth_headers = authorizer.authorize_repository(configuration, repository)
        session = self.client_factory.client_for(configuration)
        return _NamedRequestContext(configuration, auth_headers, session)

    def _get(self, context, url: str, headers: Optional[Dict[str, str]] = None):
        request_headers = {**context.auth_headers, **(headers or {})}
        try:
            return context.session.get(url, headers=request_headers, timeout=self.timeout)
        except RequestException as e:
            logger.error(
                f"Request failed: {e} "
                f"{StructuredLogContext(registry=context.configuration.registry_host, url=url)}"
            )
            raise TransportError(url, str(e)) from e

    @staticmethod
    def _raise_for_status(response: requests.Response, url: str):
        if not response.ok:
            logger.error(f"Registry returned {response.status_code} for {url}")
            raise RegistryResponseError(url, response.status_code, response.text)

    def close(self):
        """Close the cached sessions"""
        self.client_factory.close()

    def __enter__(self):
        return self

    def __exit__(self, exec_type, exec_val, exec_tb):
        self.close()


@dataclass(frozen=True)
class _NamedRequestContext:
    configuration: RegistryConfiguration
    auth_headers: Dict[str, str]
    session: requests.Session
