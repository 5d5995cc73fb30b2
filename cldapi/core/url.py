from __future__ import annotations

from dataclasses import dataclass, replace
from urllib.parse import quote

from cldapi.core.exceptions import ConfigurationError

ADDR_API = "api.cloudinary.com"
ADDR_RES = "res.cloudinary.com"
API_VERSION = "v1_1"


@dataclass(frozen=True, slots=True)
class Url:
    """Immutable builder for API and delivery URLs.

    Every setter returns a new Url, so partially configured builders can be
    shared and extended freely.

    Examples:
      Url("demo").cloudinary_addr(ADDR_API).api_version("v1_1")
          .resource_type("image").action("upload").build_url()
      -> https://api.cloudinary.com/v1_1/demo/image/upload

    """

    cloud_name: str
    use_ssl: bool = True
    use_private_cdn: bool = False
    distribution: str = ""
    addr: str = ADDR_RES
    version: str = ""
    rtype: str = ""
    act: str = ""

    def private_cdn(self, flag: bool) -> "Url":
        return replace(self, use_private_cdn=bool(flag))

    def secure(self, flag: bool) -> "Url":
        return replace(self, use_ssl=bool(flag))

    def secure_distribution(self, host: str) -> "Url":
        return replace(self, distribution=(host or "").strip("/"))

    def cloudinary_addr(self, host: str) -> "Url":
        return replace(self, addr=host)

    def api_version(self, version: str) -> "Url":
        return replace(self, version=version)

    def resource_type(self, rtype: str) -> "Url":
        return replace(self, rtype=str(getattr(rtype, "value", rtype)))

    def action(self, act: str) -> "Url":
        return replace(self, act=str(getattr(act, "value", act)))

    def build_url(self, source: str = "") -> str:
        """Render the URL. `source` (public id or path) is appended last."""

        if not self.cloud_name:
            raise ConfigurationError("Cloud name must be specified in Url!")

        scheme = "https" if self.use_ssl else "http"
        if self.use_private_cdn and self.addr == ADDR_RES:
            # Private CDN hosts are per account; the cloud name is in the host.
            host = self.distribution or f"{self.cloud_name}-{ADDR_RES}"
            segments = [self.rtype, self.act]
        else:
            host = self.addr
            segments = [self.version, self.cloud_name, self.rtype, self.act]

        if source:
            segments.append(quote(source, safe="/:._-"))
        path = "/".join(s.strip("/") for s in segments if s)
        return f"{scheme}://{host}/{path}" if path else f"{scheme}://{host}"
