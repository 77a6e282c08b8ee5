"""
Registry client settings.

Explicit registry configurations are read from a YAML file, pull secrets from
a mounted ``.dockerconfigjson`` file. Both locations default to environment
variables so the client can run unchanged inside a pod.

Example configuration file:

    default-registry-host: registry-1.docker.io
    timeout: 30
    http-proxy:
      host: proxy.internal
      port: 3128
    registry-configurations:
      harbor:
        registry-host: demo.goharbor.io
        authorization-type: dockeroauth2
        user: admin
        secret: Harbor12345
        use-http-proxy: true
"""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from container_registry.logging_config import configure_module_logging
from container_registry.registry.client import RegistryService
from container_registry.registry.configuration import (
    DockerConfigJsonConverter,
    RegistryConfigurationStore,
)
from container_registry.registry.exceptions import RegistryConfigurationError
from container_registry.registry.models import RegistryProperties
from container_registry.registry.transport import HttpClientFactory

logger = configure_module_logging("settings")

# Environment variables
CONFIG_PATH = os.getenv("CONTAINER_REGISTRY_CONFIG")
DOCKERCONFIGJSON_PATH = os.getenv("CONTAINER_REGISTRY_DOCKERCONFIGJSON")


def load_registry_properties(path: Optional[Union[str, Path]] = None) -> RegistryProperties:
    """
    Load RegistryProperties from a YAML file.

    Args:
        path: YAML file path (default: $CONTAINER_REGISTRY_CONFIG); no path
            yields the defaults

    Returns:
        Validated RegistryProperties

    Raises:
        RegistryConfigurationError: If the file can not be read, is malformed
            or does not match the properties schema
    """
    path = path or CONFIG_PATH
    if not path:
        logger.debug("No registry configuration file, using defaults")
        return RegistryProperties()

    logger.info(f"Loading registry configuration from {path}")
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return RegistryProperties.model_validate(data)
    except OSError as e:
        logger.error(f"Failed to read registry configuration {path}: {e}")
        raise RegistryConfigurationError(f"Can not read {path}: {e}") from e
    except yaml.YAMLError as e:
        logger.error(f"Malformed registry configuration {path}: {e}")
        raise RegistryConfigurationError(f"Malformed YAML in {path}: {e}") from e
    except ValidationError as e:
        logger.error(f"Invalid registry configuration {path}: {e}")
        raise RegistryConfigurationError(f"Invalid registry configuration in {path}: {e}") from e


def load_dockerconfigjson(path: Optional[Union[str, Path]] = None) -> Optional[str]:
    """
    Read a mounted ``.dockerconfigjson`` secret.

    Args:
        path: Secret file path (default: $CONTAINER_REGISTRY_DOCKERCONFIGJSON)

    Returns:
        Secret content, or None when no path is given or the file is missing
    """
    path = path or DOCKERCONFIGJSON_PATH
    if not path:
        return None

    secret_file = Path(path)
    if not secret_file.is_file():
        logger.warning(f"dockerconfigjson secret not found: {secret_file}")
        return None
    return secret_file.read_text()


def build_service(
    properties: Optional[RegistryProperties] = None,
    dockerconfigjson: Optional[str] = None,
) -> RegistryService:
    """
    Wire a RegistryService from properties and an optional pull secret.

    Args:
        properties: Registry properties (default: load_registry_properties())
        dockerconfigjson: Pull secret content (default: load_dockerconfigjson())

    Returns:
        RegistryService over the merged registry configurations
    """
    if properties is None:
        properties = load_registry_properties()
    if dockerconfigjson is None:
        dockerconfigjson = load_dockerconfigjson()

    client_factory = HttpClientFactory(properties.http_proxy)
    secret_configurations = {}
    if dockerconfigjson:
        converter = DockerConfigJsonConverter(properties, client_factory)
        secret_configurations = converter.convert(dockerconfigjson)

    store = RegistryConfigurationStore.from_properties(properties, secret_configurations)
    return RegistryService.from_properties(properties, store, client_factory)
