"""Validated container image reference."""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from . import grammar
from .exceptions import InvalidImageReference


class ReferenceType(str, Enum):
    """What the reference part of an image name points at."""

    TAG = "tag"
    DIGEST = "digest"


class ImageReference(BaseModel):
    """
    Structured image name: registry host, repository and one of tag or digest.

    Every field is checked against its grammar at construction time and the
    instance is frozen afterwards. A reference carries exactly one of ``tag``
    or ``digest``.

    Example:
        ImageReference(
            hostname="registry-1.docker.io",
            namespace=("library",),
            repository_name="nginx",
            tag="latest",
        ).canonical_name
        # -> "registry-1.docker.io/library/nginx:latest"
    """

    model_config = ConfigDict(frozen=True)

    hostname: str
    port: Optional[str] = None
    namespace: Tuple[str, ...] = ()
    repository_name: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @field_validator("hostname")
    @classmethod
    def check_hostname(cls, v):
        return grammar.validate_hostname(v)

    @field_validator("port")
    @classmethod
    def check_port(cls, v):
        return grammar.validate_port(v) if v is not None else None

    @field_validator("namespace", mode="before")
    @classmethod
    def check_namespace(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split("/") if v else []
        return tuple(grammar.validate_namespace_component(c) for c in v)

    @field_validator("repository_name")
    @classmethod
    def check_repository_name(cls, v):
        return grammar.validate_repository_name(v)

    @field_validator("tag")
    @classmethod
    def check_tag(cls, v):
        return grammar.validate_tag(v) if v is not None else None

    @field_validator("digest")
    @classmethod
    def check_digest(cls, v):
        return grammar.validate_digest(v) if v is not None else None

    @model_validator(mode="after")
    def check_single_reference(self):
        if self.tag is not None and self.digest is not None:
            raise InvalidImageReference(
                "tag", self.tag, f"can not be combined with digest {self.digest}"
            )
        if self.tag is None and self.digest is None:
            raise InvalidImageReference("reference", None, "a tag or a digest is required")
        return self

    @property
    def registry_host(self) -> str:
        """Registry address as ``hostname[:port]``."""
        return f"{self.hostname}:{self.port}" if self.port else self.hostname

    @property
    def repository_namespace(self) -> Optional[str]:
        return "/".join(self.namespace) if self.namespace else None

    @property
    def repository(self) -> str:
        """Namespace-qualified repository name without tag or digest."""
        if self.namespace:
            return f"{self.repository_namespace}/{self.repository_name}"
        return self.repository_name

    @property
    def reference(self) -> str:
        return self.tag if self.tag is not None else self.digest

    @property
    def reference_type(self) -> ReferenceType:
        return ReferenceType.TAG if self.tag is not None else ReferenceType.DIGEST

    @property
    def canonical_name(self) -> str:
        separator = ":" if self.reference_type is ReferenceType.TAG else "@"
        return f"{self.registry_host}/{self.repository}{separator}{self.reference}"

    def with_tag(self, tag: str) -> "ImageReference":
        """Return a copy pointing at ``tag``; refused while a digest is set."""
        if self.digest is not None:
            raise InvalidImageReference(
                "tag", tag, f"reference already has digest {self.digest}"
            )
        return self._replace(tag=tag)

    def with_digest(self, digest: str) -> "ImageReference":
        """Return a copy pointing at ``digest``; refused while a tag is set."""
        if self.tag is not None:
            raise InvalidImageReference(
                "digest", digest, f"reference already has tag {self.tag}"
            )
        return self._replace(digest=digest)

    def _replace(self, **changes) -> "ImageReference":
        return type(self)(**{**self.model_dump(), **changes})

    def __str__(self) -> str:
        return self.canonical_name
