"""
Image name grammar.

Regular expressions for every field of a container image reference, following
the Docker distribution reference grammar. Each validator returns the value
unchanged or raises InvalidImageReference naming the field and the value.
"""

import re

from .exceptions import InvalidImageReference

HOSTNAME_PATTERN = re.compile(
    r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9])\.)*"
    r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9\-]*[A-Za-z0-9])$"
)
IP_PATTERN = re.compile(
    r"^(([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])\.){3}"
    r"([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])$"
)
PORT_PATTERN = re.compile(
    r"^([0-9]{1,4}|[1-5][0-9]{4}|6[0-4][0-9]{3}|65[0-4][0-9]{2}"
    r"|655[0-2][0-9]|6553[0-5])$"
)
NAMESPACE_COMPONENT_PATTERN = re.compile(r"^[a-z0-9]+([._\-][a-z0-9]+)*$")
# Unique within its namespace, 2 to 255 characters
REPOSITORY_NAME_PATTERN = re.compile(r"^[a-z0-9\-_]{2,255}$")
# ASCII, may not start with a period or a dash, at most 128 characters
TAG_PATTERN = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9\-_.]{0,127}$")
DIGEST_PATTERN = re.compile(
    r"^[A-Za-z][A-Za-z0-9]*([\-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$"
)


def _matches(pattern: re.Pattern, value) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def is_hostname(value: str) -> bool:
    """True for a DNS hostname or an IPv4 literal."""
    return _matches(HOSTNAME_PATTERN, value) or _matches(IP_PATTERN, value)


def validate_hostname(value: str) -> str:
    if not is_hostname(value):
        raise InvalidImageReference("registry_hostname", value)
    return value


def validate_port(value: str) -> str:
    if not _matches(PORT_PATTERN, value):
        raise InvalidImageReference("registry_port", value)
    return value


def validate_namespace_component(value: str) -> str:
    if not _matches(NAMESPACE_COMPONENT_PATTERN, value):
        raise InvalidImageReference("namespace_component", value)
    return value


def validate_repository_name(value: str) -> str:
    if not _matches(REPOSITORY_NAME_PATTERN, value):
        raise InvalidImageReference("repository_name", value)
    return value


def validate_tag(value: str) -> str:
    if not _matches(TAG_PATTERN, value):
        raise InvalidImageReference("tag", value)
    return value


def validate_digest(value: str) -> str:
    if not _matches(DIGEST_PATTERN, value):
        raise InvalidImageReference("digest", value)
    return value
