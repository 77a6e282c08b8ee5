"""
Registry-related exceptions

Provides a hierarchy of exceptions for the different failure modes of image
reference parsing, registry authorization and Registry HTTP API V2 access,
enabling precise error handling in client code.
"""

from typing import Optional


class RegistryError(Exception):
    """Base exception for registry operations"""

    pass


class InvalidImageReference(RegistryError):
    """Image name field violates its grammar"""

    def __init__(self, field: str, value: Optional[str], reason: str = ""):
        self.field = field
        self.value = value
        message = f"Invalid {field.replace('_', ' ')}: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class RegistryConfigurationError(RegistryError):
    """Registry or transport configuration is unusable"""

    pass


class RegistryNotConfigured(RegistryConfigurationError):
    """No registry configuration matches the requested host"""

    def __init__(self, registry_host: str):
        self.registry_host = registry_host
        super().__init__(f"Could not find a registry configuration for: {registry_host}")


class UnsupportedAuthorizationType(RegistryError):
    """No authorizer is registered for the configured authorization type"""

    def __init__(self, authorization_type, registry_host: Optional[str] = None):
        self.authorization_type = authorization_type
        self.registry_host = registry_host
        message = f"Could not find a registry authorizer of type: {authorization_type}"
        if registry_host:
            message += f" (registry: {registry_host})"
        super().__init__(message)


class AuthorizationError(RegistryError):
    """Authorizer failed to produce authorization headers"""

    def __init__(
        self,
        registry_host: str,
        reason: str,
        repository: Optional[str] = None,
    ):
        self.registry_host = registry_host
        self.repository = repository
        self.reason = reason
        target = f"{registry_host}/{repository}" if repository else registry_host
        super().__init__(f"Authorization failed for {target}: {reason}")


class UnsupportedManifestMediaType(RegistryError):
    """Configured manifest media type is neither OCI nor Docker v2"""

    def __init__(self, media_type: Optional[str]):
        self.media_type = media_type
        super().__init__(f"Not supported image manifest media type: {media_type}")


class TransportError(RegistryError):
    """Registry could not be reached (network, TLS or proxy failure)"""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Request to {url} failed: {reason}")


class RegistryResponseError(RegistryError):
    """Registry answered with a non-2xx status"""

    def __init__(self, url: str, status_code: int, body: str = ""):
        self.url = url
        self.status_code = status_code
        message = f"Registry returned {status_code} for {url}"
        if body:
            message += f": {body[:200]}"
        super().__init__(message)


class RegistryValidationError(RegistryError):
    """Response validation failed"""

    pass


class ImageMetadataError(RegistryError):
    """Image manifest or config blob lacks the expected metadata"""

    pass
