from __future__ import annotations

from enum import Enum
from typing import Optional, Type, TypeVar

E = TypeVar("E", bound=Enum)


class HttpMethod(str, Enum):
    """HTTP verbs understood by the dispatcher."""

    DELETE = "DELETE"
    GET = "GET"
    POST = "POST"
    PUT = "PUT"


class ResourceType(str, Enum):
    """Asset families addressed in API and delivery URLs."""

    IMAGE = "image"
    RAW = "raw"
    VIDEO = "video"
    AUTO = "auto"


class DeliveryType(str, Enum):
    """Storage / delivery types (URL `action` segment)."""

    UPLOAD = "upload"
    PRIVATE = "private"
    AUTHENTICATED = "authenticated"
    FETCH = "fetch"


def to_api_param(member: Enum) -> str:
    """Return the wire string for an enum member."""

    return str(member.value)


def parse_api_param(
    enum_cls: Type[E], s: Optional[str], default: Optional[E] = None
) -> Optional[E]:
    """Map a wire string back to an enum member.

    Unknown or empty strings yield `default` instead of raising, so API
    payloads carrying newer values do not break older clients.
    """

    if not s:
        return default
    for member in enum_cls:
        if member.value == s:
            return member
    return default
