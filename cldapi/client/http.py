from __future__ import annotations

import http.client
import json
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from cldapi.core.exceptions import MultipartReadError, TransportError


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Returned for every status code the server answers with, 4xx/5xx included.

    Security notes:
    - Treat `body_bytes` as untrusted.

    """

    status: int
    headers: Mapping[str, str]
    body_bytes: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""

        lname = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lname:
                return v
        return default

    def text(self) -> str:
        return self.body_bytes.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode body as JSON."""

        return json.loads(self.body_bytes.decode("utf-8", errors="strict"))


def _collect_headers(msg: Any) -> Dict[str, str]:
    """Flatten a header message; repeated headers are joined with ", "."""

    out: Dict[str, str] = {}
    if msg is None:
        return out
    for k, v in msg.items():
        out[k] = f"{out[k]}, {v}" if k in out else v
    return out


def _unwrap_read_error(err: BaseException) -> Optional[MultipartReadError]:
    """Find a MultipartReadError that urllib wrapped while sending the body."""

    seen: object = err
    while isinstance(seen, BaseException):
        if isinstance(seen, MultipartReadError):
            return seen
        seen = seen.reason if isinstance(seen, URLError) else seen.__cause__
    return None


def do_request(req: Request, *, timeout: Optional[float] = None) -> HttpResponse:
    """Execute a request.

    - HTTP error statuses are returned, not raised.
    - Connection failures and malformed responses raise TransportError.
    - A failing upload stream raises MultipartReadError.

    Security notes:
    - Uses default SSL context (verification ON).

    """

    kwargs: dict = {"context": ssl.create_default_context()}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        with urlopen(req, **kwargs) as resp:
            body = resp.read()
            headers = _collect_headers(resp.headers)
            return HttpResponse(status=int(resp.status), headers=headers, body_bytes=body)
    except HTTPError as e:
        try:
            body = e.read() if hasattr(e, "read") else b""
        finally:
            e.close()
        headers = _collect_headers(getattr(e, "headers", None))
        return HttpResponse(
            status=int(getattr(e, "code", 0) or 0), headers=headers, body_bytes=body
        )
    except URLError as e:
        read_err = _unwrap_read_error(e)
        if read_err is not None:
            raise read_err
        raise TransportError(f"network error: {e.reason}", reason=e.reason) from e
    except MultipartReadError:
        raise
    except (socket.timeout, TimeoutError, ConnectionError, http.client.HTTPException) as e:
        raise TransportError(f"network error: {e}", reason=e) from e
