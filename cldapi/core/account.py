from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import unquote, urlsplit

from cldapi.core.exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class Account:
    """Cloud account credentials.

    Security notes:
    - The secret is excluded from repr() so it never lands in logs or tracebacks.
    - Immutable; safe to share between threads.

    """

    cloud: str
    api_key: str
    api_secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.cloud:
            raise ConfigurationError("Cloud name must be specified in Account!")
        if not self.api_key:
            raise ConfigurationError("API key must be specified in Account!")
        if not self.api_secret:
            raise ConfigurationError("API secret must be specified in Account!")


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    """Result of parsing a `cloudinary://` connection string."""

    account: Account
    private_cdn: bool = False
    secure_distribution: str = ""


def parse_cloudinary_url(url: str) -> ConnectionSettings:
    """Parse `cloudinary://<key>:<secret>@<cloud>[/<secure_distribution>]`.

    A non-root path turns on the private CDN and names its host.
    """

    if not url:
        raise ConfigurationError("Valid cloudinary init string must be provided!")

    parts = urlsplit(url)
    if not parts.hostname:
        raise ConfigurationError("Cloud name must be specified as host name in URL!")

    # urlsplit lowercases hostname; cloud names are case-sensitive.
    netloc = parts.netloc.rsplit("@", 1)
    cloud = netloc[-1]
    if len(netloc) != 2 or ":" not in netloc[0]:
        raise ConfigurationError("API key and secret must be specified as user info in URL!")

    key, secret = netloc[0].split(":", 1)
    account = Account(cloud=cloud, api_key=unquote(key), api_secret=unquote(secret))

    path = parts.path or ""
    private_cdn = bool(path) and path != "/"
    return ConnectionSettings(
        account=account,
        private_cdn=private_cdn,
        secure_distribution=path.lstrip("/") if private_cdn else "",
    )
