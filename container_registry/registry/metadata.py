"""Image label lookup: manifest, then config blob, then ``config.Labels``."""

import json
import logging
from typing import Dict

from .client import RegistryService
from .exceptions import ImageMetadataError

logger = logging.getLogger(__name__)


class ImageMetadataResolver:
    """Reads the labels baked into an image's config blob"""

    def __init__(self, registry_service: RegistryService):
        self.registry_service = registry_service

    def get_image_labels(self, image_name: str) -> Dict[str, str]:
        """
        Get the labels of an image without pulling its layers

        Args:
            image_name: Image name (e.g., "springcloud/spring-cloud-dataflow-server:2.9.0")

        Returns:
            Image labels; empty when the config carries none

        Raises:
            ImageMetadataError: If the image name is blank or the manifest or
                config blob lacks the expected content
        """
        if not image_name or not image_name.strip():
            raise ImageMetadataError("Image name must not be blank")

        context = self.registry_service.resolve(image_name)
        manifest = self.registry_service.get_manifest(context)

        config_digest = manifest.config.digest if manifest.config else None
        if not config_digest:
            logger.error(f"Missing config digest in manifest of {image_name}")
            raise ImageMetadataError(f"Missing manifest config digest for image: {image_name}")

        blob = self.registry_service.get_blob(context, config_digest)
        if blob is None:
            raise ImageMetadataError(
                f"Missing config blob {config_digest} for image: {image_name}"
            )

        try:
            config_blob = json.loads(blob)
        except ValueError as e:
            raise ImageMetadataError(f"Invalid config blob for image {image_name}: {e}") from e

        config = config_blob.get("config") if isinstance(config_blob, dict) else None
        if not isinstance(config, dict):
            logger.error(f"Config blob of {image_name} has no config object")
            raise ImageMetadataError(f"Missing config in config blob of image: {image_name}")

        labels = config.get("Labels") or {}
        if not isinstance(labels, dict):
            logger.error(f"Config blob of {image_name} has non-object Labels")
            raise ImageMetadataError(f"Invalid Labels in config blob of image: {image_name}")
        logger.debug(f"Found {len(labels)} labels for {image_name}")
        return {str(key): str(value) for key, value in labels.items()}
