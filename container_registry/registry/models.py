from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOCKER_HUB_HOST = "registry-1.docker.io"
DEFAULT_TAG = "latest"
DEFAULT_OFFICIAL_NAMESPACE = "library"

OCI_IMAGE_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
DOCKER_IMAGE_MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
SUPPORTED_MANIFEST_MEDIA_TYPES = (
    OCI_IMAGE_MANIFEST_MEDIA_TYPE,
    DOCKER_IMAGE_MANIFEST_MEDIA_TYPE,
)


def _to_kebab(name: str) -> str:
    return name.replace("_", "-")


class AuthorizationType(str, Enum):
    """Registry authorization schemes."""

    ANONYMOUS = "anonymous"
    # Azure Container Registry, Artifactory/JFrog
    BASICAUTH = "basicauth"
    # Docker Hub, Harbor and other distribution token services
    DOCKEROAUTH2 = "dockeroauth2"
    # user/secret are the AWS access/secret keys, extra[region] is required
    AWSECR = "awsecr"


class RegistryConfiguration(BaseModel):
    """Access settings for one container registry, keyed by registry host"""

    model_config = ConfigDict(
        alias_generator=_to_kebab, populate_by_name=True, frozen=True
    )

    registry_host: str = Field(..., min_length=1)
    user: Optional[str] = None
    secret: Optional[str] = Field(default=None, repr=False)
    authorization_type: Optional[AuthorizationType] = None
    manifest_media_type: str = DOCKER_IMAGE_MANIFEST_MEDIA_TYPE
    disable_ssl_verification: bool = False
    use_http_proxy: bool = False
    extra: Dict[str, str] = Field(default_factory=dict)

    @field_validator("extra", mode="before")
    @classmethod
    def stringify_extra(cls, v):
        if v is None:
            return {}
        if not isinstance(v, Mapping):
            raise ValueError(f"extra must be a mapping, got {type(v).__name__}")
        # blank YAML values mean the key is unset
        return {str(key): str(value) for key, value in v.items() if value is not None}

    @property
    def credentials(self) -> Optional[Tuple[str, str]]:
        if self.user and self.secret:
            return self.user, self.secret
        return None


class HttpProxyProperties(BaseModel):
    """Single HTTP proxy shared by every registry that opts into it"""

    host: Optional[str] = None
    port: int = Field(default=8080, gt=0, le=65535)

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class RegistryProperties(BaseModel):
    """Registry client configuration"""

    model_config = ConfigDict(alias_generator=_to_kebab, populate_by_name=True)

    default_registry_host: str = DOCKER_HUB_HOST
    default_repository_tag: str = DEFAULT_TAG
    official_repository_namespace: str = DEFAULT_OFFICIAL_NAMESPACE
    replace_default_docker_registry_server: bool = True
    timeout: float = Field(default=30, gt=0)
    http_proxy: HttpProxyProperties = Field(default_factory=HttpProxyProperties)
    registry_configurations: Dict[str, RegistryConfiguration] = Field(
        default_factory=dict
    )


class CatalogResponse(BaseModel):
    """OCI registry catalog response"""

    model_config = ConfigDict(extra="allow")

    repositories: List[str]


class TagsResponse(BaseModel):
    """OCI registry tags list response"""

    model_config = ConfigDict(extra="allow")

    name: str
    # distribution returns null for a repository without tags
    tags: Optional[List[str]] = None


class ManifestLayer(BaseModel):
    """OCI manifest layer"""

    model_config = ConfigDict(extra="allow")

    mediaType: str
    digest: str
    size: int


class ManifestConfig(BaseModel):
    """OCI manifest config"""

    model_config = ConfigDict(extra="allow")

    mediaType: Optional[str] = None
    digest: Optional[str] = None
    size: Optional[int] = None


class ManifestResponse(BaseModel):
    """OCI or Docker v2 image manifest"""

    model_config = ConfigDict(extra="allow")

    schemaVersion: int
    mediaType: Optional[str] = None
    config: Optional[ManifestConfig] = None
    layers: List[ManifestLayer] = Field(default_factory=list)
    annotations: Optional[Dict[str, str]] = None
