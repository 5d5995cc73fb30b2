from __future__ import annotations

import base64
import io
import json
import re
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Tuple
from urllib.parse import parse_qs, urlsplit

import pytest

from cldapi.client import Api
from cldapi.core.account import Account
from cldapi.core.exceptions import ConfigurationError, MultipartReadError, TransportError
from cldapi.core.multipart import HTTP_BOUNDARY, FileDescription
from cldapi.core.signing import verify_signature

ACCOUNT = Account(cloud="demo", api_key="key1", api_secret="secret1")


class _Recorder:
    def __init__(self) -> None:
        self.requests: List[Dict[str, Any]] = []
        self.status = 200
        self.body = b'{"ok": true}'
        self.base_url = ""
        self.extra_headers: List[Tuple[str, str]] = []


def _read_body(handler: BaseHTTPRequestHandler) -> bytes:
    if handler.headers.get("Transfer-Encoding", "").lower() == "chunked":
        out = b""
        while True:
            size = int(handler.rfile.readline().strip(), 16)
            if size == 0:
                handler.rfile.readline()
                return out
            out += handler.rfile.read(size)
            handler.rfile.readline()
    length = int(handler.headers.get("Content-Length") or 0)
    return handler.rfile.read(length) if length else b""


@pytest.fixture
def server():
    rec = _Recorder()

    class _Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: Any) -> None:
            pass

        def _handle(self) -> None:
            try:
                body = _read_body(self)
            except (ValueError, OSError):
                return
            rec.requests.append(
                {
                    "method": self.command,
                    "path": self.path,
                    "headers": {k.lower(): v for k, v in self.headers.items()},
                    "body": body,
                }
            )
            self.send_response(rec.status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(rec.body)))
            for name, value in rec.extra_headers:
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(rec.body)

        do_GET = do_POST = do_PUT = do_DELETE = _handle

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    rec.base_url = f"http://127.0.0.1:{httpd.server_address[1]}"
    try:
        yield rec
    finally:
        httpd.shutdown()
        httpd.server_close()


def _fields(body: bytes) -> Dict[str, bytes]:
    out = {}
    for seg in body.split(f"--{HTTP_BOUNDARY}".encode())[1:-1]:
        head, content = seg[2:-2].split(b"\r\n\r\n", 1)
        name = re.search(rb'name="([^"]*)"', head).group(1).decode()
        out[name] = content
    return out


def _api(**kw) -> Api:
    return Api(ACCOUNT, use_ssl=False, clock=lambda: 1700000000.0, **kw)


def test_signed_upload_sends_multipart_without_basic_auth(server):
    api = _api()
    r = api.call(
        "POST",
        server.base_url + "/v1_1/demo/image/upload",
        {"public_id": "sample", "folder": ""},
        FileDescription.from_stream(io.BytesIO(b"\x00\x01binary"), "a.bin"),
    )

    assert r.status == 200
    assert r.json() == {"ok": True}

    req = server.requests[-1]
    assert req["method"] == "POST"
    assert req["headers"]["content-type"] == f"multipart/form-data; boundary={HTTP_BOUNDARY}"
    assert "authorization" not in req["headers"]
    assert int(req["headers"]["content-length"]) == len(req["body"])

    fields = _fields(req["body"])
    assert fields["file"] == b"\x00\x01binary"
    assert "folder" not in fields
    assert fields["timestamp"] == b"1700000000"
    assert fields["api_key"] == b"key1"
    assert b"secret1" not in req["body"]

    text = {k: v.decode() for k, v in fields.items() if k != "file"}
    assert verify_signature(text, "secret1", text["signature"])


def test_upload_helper_targets_versioned_upload_url(server):
    api = _api(api_host=server.base_url.split("://", 1)[1])
    api.upload(FileDescription.remote("https://example.com/x.png"), {"tags": ["a", "b"]})

    req = server.requests[-1]
    assert req["path"] == "/v1_1/demo/image/upload"
    fields = _fields(req["body"])
    assert fields["file"] == b"https://example.com/x.png"
    assert fields["tags"] == b"a,b"


def test_post_with_empty_params_is_still_signed(server):
    _api().call("POST", server.base_url + "/x", {})
    fields = _fields(server.requests[-1]["body"])
    assert set(fields) == {"api_key", "signature", "timestamp"}


def test_non_upload_calls_use_basic_auth_and_query_string(server):
    api = _api()
    url = server.base_url + "/v1_1/demo/resources/image"
    r = api.call("GET", url, {"max_results": 10, "x": ""})

    assert r.ok
    req = server.requests[-1]
    expected = "Basic " + base64.b64encode(b"key1:secret1").decode("ascii")
    assert req["headers"]["authorization"] == expected
    assert parse_qs(urlsplit(req["path"]).query) == {"max_results": ["10"]}
    assert req["body"] == b""


def test_delete_params_go_to_query_and_put_params_to_form_body(server):
    api = _api()
    api.call("DELETE", server.base_url + "/res?a=1", {"public_ids": ["p1", "p2"]})
    assert parse_qs(urlsplit(server.requests[-1]["path"]).query) == {
        "a": ["1"],
        "public_ids": ["p1,p2"],
    }

    api.call("PUT", server.base_url + "/res", {"tag": "t"})
    req = server.requests[-1]
    assert req["headers"]["content-type"] == "application/x-www-form-urlencoded"
    assert req["body"] == b"tag=t"
    assert req["headers"]["authorization"].startswith("Basic ")


def test_post_without_params_uses_basic_auth(server):
    _api().call("POST", server.base_url + "/x")
    req = server.requests[-1]
    assert req["headers"]["authorization"].startswith("Basic ")
    assert "multipart" not in req["headers"].get("content-type", "")


@pytest.mark.parametrize("status", [400, 401, 404, 500])
def test_http_errors_are_returned_not_raised(server, status):
    server.status = status
    server.body = json.dumps({"error": {"message": "nope"}}).encode()

    r = _api().call("GET", server.base_url + "/x")
    assert r.status == status
    assert not r.ok
    assert r.json()["error"]["message"] == "nope"
    assert r.header("content-type") == "application/json"

    r2 = _api().call("POST", server.base_url + "/x", {"a": "1"})
    assert r2.status == status


def test_unreachable_host_raises_transport_error():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()

    with pytest.raises(TransportError):
        _api(timeout=5).call("GET", f"http://127.0.0.1:{port}/x")


def test_stream_failure_propagates_as_io_error(server):
    class _Broken(io.RawIOBase):
        def readable(self):
            return True

        def read(self, size=-1):
            raise OSError("device gone")

    fd = FileDescription.from_stream(_Broken(), "f")
    with pytest.raises(MultipartReadError):
        _api().call("POST", server.base_url + "/x", {"a": "1"}, fd)


def test_file_without_signed_upload_is_rejected(server):
    with pytest.raises(ValueError):
        _api().call("GET", server.base_url + "/x", None, FileDescription.remote("http://x"))
    assert server.requests == []


def test_bad_construction_fails_fast():
    with pytest.raises(ConfigurationError):
        Api(None)
    with pytest.raises(ConfigurationError):
        Api.from_url("")
    with pytest.raises(ValueError):
        _api().call("PATCH", "http://127.0.0.1/x")


def test_from_url_and_url_properties():
    api = Api.from_url("cloudinary://k:s@demo/cdn.example.com")
    assert api.private_cdn is True
    assert api.url_img_up.build_url("x.jpg") == "https://cdn.example.com/image/upload/x.jpg"
    assert api.api_url_img_up_v.build_url() == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert api.api_url_img_up.build_url() == "https://api.cloudinary.com/demo/image/upload"
    assert api.api_url_v.build_url() == "https://api.cloudinary.com/v1_1/demo"


def test_repeated_response_headers_are_kept(server):
    server.extra_headers = [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]
    r = _api().call("GET", server.base_url + "/x")
    assert r.header("set-cookie") == "a=1, b=2"


@pytest.fixture
def garbage_server():
    """Raw socket server that answers every connection with a non-HTTP line."""

    srv = socket.socket()
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)

    def _serve() -> None:
        try:
            conn, _ = srv.accept()
        except OSError:
            return
        with conn:
            conn.recv(65536)
            conn.sendall(b"GARBAGE\r\n\r\n")

    t = threading.Thread(target=_serve, daemon=True)
    t.start()
    try:
        yield f"http://127.0.0.1:{srv.getsockname()[1]}"
    finally:
        srv.close()
        t.join(timeout=5)


def test_malformed_response_raises_transport_error(garbage_server):
    with pytest.raises(TransportError) as ei:
        _api(timeout=5).call("GET", garbage_server + "/x")
    assert ei.value.reason is not None


def test_file_param_is_rejected_before_sending(server):
    with pytest.raises(ValueError):
        _api().call(
            "POST",
            server.base_url + "/x",
            {"file": "https://example.com/a.png"},
            FileDescription.remote("https://example.com/b.png"),
        )
    assert server.requests == []
