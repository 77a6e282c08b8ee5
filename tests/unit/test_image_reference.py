"""Tests for the ImageReference value object."""

import pytest
from pydantic import ValidationError

from container_registry.registry.exceptions import InvalidImageReference
from container_registry.registry.image import ImageReference, ReferenceType
from tests.fixtures.sample_data import IMAGE_DIGEST


@pytest.fixture
def nginx_reference() -> ImageReference:
    return ImageReference(
        hostname="registry-1.docker.io",
        namespace=("library",),
        repository_name="nginx",
        tag="latest",
    )


class TestImageReferenceConstruction:
    """Tests for ImageReference validation."""

    def test_tag_reference(self, nginx_reference):
        """Test the derived properties of a tag reference."""
        assert nginx_reference.registry_host == "registry-1.docker.io"
        assert nginx_reference.repository_namespace == "library"
        assert nginx_reference.repository == "library/nginx"
        assert nginx_reference.reference == "latest"
        assert nginx_reference.reference_type is ReferenceType.TAG
        assert nginx_reference.canonical_name == "registry-1.docker.io/library/nginx:latest"

    def test_digest_reference_with_port(self):
        """Test the derived properties of a digest reference with a port."""
        image = ImageReference(
            hostname="localhost",
            port="5000",
            namespace="org/team",
            repository_name="app",
            digest=IMAGE_DIGEST,
        )
        assert image.registry_host == "localhost:5000"
        assert image.namespace == ("org", "team")
        assert image.repository == "org/team/app"
        assert image.reference_type is ReferenceType.DIGEST
        assert image.canonical_name == f"localhost:5000/org/team/app@{IMAGE_DIGEST}"
        assert str(image) == image.canonical_name

    def test_reference_without_namespace(self):
        image = ImageReference(hostname="quay.io", repository_name="app", tag="1.0")
        assert image.namespace == ()
        assert image.repository_namespace is None
        assert image.repository == "app"

    def test_tag_and_digest_are_exclusive(self):
        """Test that a reference can not carry both a tag and a digest."""
        with pytest.raises(InvalidImageReference) as exc_info:
            ImageReference(
                hostname="quay.io", repository_name="app", tag="1.0", digest=IMAGE_DIGEST
            )
        assert exc_info.value.field == "tag"

    def test_tag_or_digest_is_required(self):
        with pytest.raises(InvalidImageReference) as exc_info:
            ImageReference(hostname="quay.io", repository_name="app")
        assert exc_info.value.field == "reference"

    def test_invalid_field_names_the_field(self):
        """Test that the first invalid field surfaces as InvalidImageReference."""
        with pytest.raises(InvalidImageReference) as exc_info:
            ImageReference(hostname="quay.io", port="80bla", repository_name="app", tag="1")
        assert exc_info.value.field == "registry_port"
        assert exc_info.value.value == "80bla"

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            ImageReference(hostname="quay.io", tag="1.0")

    def test_reference_is_frozen(self, nginx_reference):
        with pytest.raises(ValidationError):
            nginx_reference.tag = "stable"


class TestImageReferenceCopies:
    """Tests for with_tag and with_digest."""

    def test_with_tag(self, nginx_reference):
        retagged = nginx_reference.with_tag("1.25")
        assert retagged.tag == "1.25"
        assert nginx_reference.tag == "latest"

    def test_with_digest_on_tag_reference_fails(self, nginx_reference):
        """Test that switching a tag reference to a digest is refused."""
        with pytest.raises(InvalidImageReference):
            nginx_reference.with_digest(IMAGE_DIGEST)
        assert nginx_reference.tag == "latest"
        assert nginx_reference.digest is None

    def test_with_tag_on_digest_reference_fails(self):
        image = ImageReference(hostname="quay.io", repository_name="app", digest=IMAGE_DIGEST)
        with pytest.raises(InvalidImageReference):
            image.with_tag("1.0")
        assert image.digest == IMAGE_DIGEST

    def test_with_tag_validates(self, nginx_reference):
        with pytest.raises(InvalidImageReference):
            nginx_reference.with_tag("-bad")

    def test_equal_references(self, nginx_reference):
        same = ImageReference(
            hostname="registry-1.docker.io",
            namespace=["library"],
            repository_name="nginx",
            tag="latest",
        )
        assert same == nginx_reference
        assert hash(same) == hash(nginx_reference)
