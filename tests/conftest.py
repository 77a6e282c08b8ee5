"""Shared fixtures for tests."""

from unittest.mock import MagicMock

import pytest
import requests

from container_registry.registry.configuration import RegistryConfigurationStore
from container_registry.registry.models import AuthorizationType, RegistryConfiguration
from container_registry.registry.transport import HttpClientFactory
from tests.fixtures.http_responses import build_response


@pytest.fixture
def make_response():
    """Factory fixture for requests.Response objects."""
    return build_response


@pytest.fixture
def mock_session():
    """Session double returned by the client factory."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def mock_client_factory(mock_session):
    """HttpClientFactory double always handing out mock_session."""
    factory = MagicMock(spec=HttpClientFactory)
    factory.client_for.return_value = mock_session
    factory.get_client.return_value = mock_session
    return factory


@pytest.fixture
def anonymous_configuration() -> RegistryConfiguration:
    return RegistryConfiguration(
        registry_host="localhost:5000",
        authorization_type=AuthorizationType.ANONYMOUS,
    )


@pytest.fixture
def basic_configuration() -> RegistryConfiguration:
    return RegistryConfiguration(
        registry_host="scdf.azurecr.io",
        user="scdf",
        secret="azure-secret",
        authorization_type=AuthorizationType.BASICAUTH,
    )


@pytest.fixture
def oauth2_configuration() -> RegistryConfiguration:
    return RegistryConfiguration(
        registry_host="registry-1.docker.io",
        user="hubuser",
        secret="hubpassword",
        authorization_type=AuthorizationType.DOCKEROAUTH2,
    )


@pytest.fixture
def configuration_store(
    anonymous_configuration, basic_configuration, oauth2_configuration
) -> RegistryConfigurationStore:
    return RegistryConfigurationStore(
        [anonymous_configuration, basic_configuration, oauth2_configuration]
    )
