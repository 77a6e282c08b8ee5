"""
Image name parser.

The image name grammar (https://github.com/distribution/reference) does not
tell a registry host apart from the first repository path component. The
parser therefore reproduces the heuristic of the Docker reference
normalization: the first path component is a registry host only when it
contains a "." or a ":" or is exactly "localhost". A namespace component
containing a dot is read as a host; that is the upstream behavior too.
"""

import logging

from . import grammar
from .exceptions import InvalidImageReference
from .image import ImageReference
from .models import DEFAULT_OFFICIAL_NAMESPACE, DEFAULT_TAG, DOCKER_HUB_HOST

logger = logging.getLogger(__name__)

LOCALHOST_DOMAIN = "localhost"
LEGACY_DEFAULT_DOMAIN = "index.docker.io"
PLAIN_DOCKER_IO_DOMAIN = "docker.io"

SLASH_SEPARATOR = "/"
PORT_SEPARATOR = ":"
PERIOD_SEPARATOR = "."
TAG_SEPARATOR = ":"
DIGEST_SEPARATOR = "@"


class ImageReferenceParser:
    """Turns ``[host[:port]/][namespace/]*name[:tag|@digest]`` into an ImageReference"""

    def __init__(
        self,
        default_registry_host: str = DOCKER_HUB_HOST,
        default_tag: str = DEFAULT_TAG,
        official_namespace: str = DEFAULT_OFFICIAL_NAMESPACE,
    ):
        self.default_registry_host = default_registry_host
        self.default_tag = default_tag
        self.official_namespace = official_namespace

    def parse(self, image_name: str) -> ImageReference:
        """
        Parse an image name, applying the registry, namespace and tag defaults.

        Args:
            image_name: Raw image name (e.g., "nginx", "quay.io/org/app@sha256:...")

        Returns:
            Validated ImageReference

        Raises:
            InvalidImageReference: On the first field that violates its grammar
        """
        if not isinstance(image_name, str) or not image_name.strip():
            raise InvalidImageReference("image_name", image_name, "empty image name")

        registry_host, remainder = self._split_registry_host(image_name)

        host_and_port = registry_host.split(PORT_SEPARATOR)
        if len(host_and_port) > 2:
            raise InvalidImageReference(
                "registry_host", registry_host, "more than one port separator"
            )
        hostname = grammar.validate_hostname(host_and_port[0])
        port = grammar.validate_port(host_and_port[1]) if len(host_and_port) == 2 else None

        path_components = remainder.split(SLASH_SEPARATOR)
        namespace = tuple(
            grammar.validate_namespace_component(component)
            for component in path_components[:-1]
        )

        name_and_reference = path_components[-1]
        tag = None
        digest = None
        if DIGEST_SEPARATOR in name_and_reference:
            parts = name_and_reference.split(DIGEST_SEPARATOR)
            if len(parts) != 2:
                raise InvalidImageReference(
                    "repository_name", name_and_reference, "more than one '@'"
                )
            repository_name = grammar.validate_repository_name(parts[0])
            digest = grammar.validate_digest(parts[1])
        elif TAG_SEPARATOR in name_and_reference:
            parts = name_and_reference.split(TAG_SEPARATOR)
            if len(parts) != 2:
                raise InvalidImageReference(
                    "repository_name", name_and_reference, "more than one ':'"
                )
            repository_name = grammar.validate_repository_name(parts[0])
            tag = grammar.validate_tag(parts[1])
        else:
            repository_name = grammar.validate_repository_name(name_and_reference)
            tag = self.default_tag

        image = ImageReference(
            hostname=hostname,
            port=port,
            namespace=namespace,
            repository_name=repository_name,
            tag=tag,
            digest=digest,
        )
        logger.debug(f"Parsed image name {image_name!r} as {image.canonical_name}")
        return image

    def _split_registry_host(self, image_name: str):
        """
        Split the image name into (registry host, repository remainder).

        Applies the default registry host, folds the legacy Docker Hub aliases
        into it and prefixes bare Docker Hub names with the official namespace.
        """
        i = image_name.find(SLASH_SEPARATOR)
        prefix = image_name[:i] if i != -1 else image_name
        looks_like_host = (
            PERIOD_SEPARATOR in prefix
            or PORT_SEPARATOR in prefix
            or prefix == LOCALHOST_DOMAIN
        )

        if i == -1 or not looks_like_host:
            registry_host = self.default_registry_host
            remainder = image_name
        else:
            registry_host = prefix
            remainder = image_name[i + 1 :]

        if registry_host in (LEGACY_DEFAULT_DOMAIN, PLAIN_DOCKER_IO_DOMAIN):
            registry_host = self.default_registry_host

        if (
            registry_host == self.default_registry_host
            and SLASH_SEPARATOR not in remainder
        ):
            remainder = f"{self.official_namespace}{SLASH_SEPARATOR}{remainder}"

        return registry_host, remainder
