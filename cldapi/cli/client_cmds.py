from __future__ import annotations

import argparse
import json
import sys
from typing import Dict, List, Optional

from cldapi.client import Api, HttpResponse, build_upload_form
from cldapi.core.account import parse_cloudinary_url
from cldapi.core.exceptions import ConfigurationError, TransportError
from cldapi.core.multipart import FileDescription
from cldapi.core.params import HttpMethod, ResourceType
from cldapi.utils.json_safe import to_jsonable


def _print_json(obj: object) -> None:
    """Print JSON to stdout."""
    print(json.dumps(obj, indent=2, sort_keys=True, default=to_jsonable))


def parse_kv(items: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated `key=value` arguments."""

    out: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"expected key=value, got: {item!r}")
        out[key] = value
    return out


def build_api(args: argparse.Namespace) -> Api:
    """Create an Api from the global CLI options.

    Security notes:
    - The connection string is read from --cloudinary-url or CLOUDINARY_URL
      only; it is never echoed back.

    """

    settings = parse_cloudinary_url(args.cloudinary_url or "")
    return Api(
        settings.account,
        use_ssl=not args.insecure,
        private_cdn=settings.private_cdn,
        secure_distribution=settings.secure_distribution,
        api_host=args.api_host,
        timeout=args.timeout,
    )


def _emit_response(r: HttpResponse) -> int:
    if r.status >= 400:
        print(f"HTTP {r.status}: {r.text()}", file=sys.stderr)
        return 2
    try:
        _print_json(r.json())
    except ValueError:
        print(r.text())
    return 0


def cmd_upload(args: argparse.Namespace) -> int:
    """Signed upload of a local file or remote URL."""

    api = build_api(args)
    params = parse_kv(args.param)
    try:
        if args.remote:
            fd = FileDescription.remote(args.file)
            r = api.upload(fd, params, resource_type=args.resource_type)
        else:
            with FileDescription.from_path(args.file) as fd:
                r = api.upload(fd, params, resource_type=args.resource_type)
    except TransportError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return _emit_response(r)


def cmd_call(args: argparse.Namespace) -> int:
    """Raw API call. Relative paths are resolved against the versioned API URL."""

    api = build_api(args)
    target = args.path
    if "://" not in target:
        target = api.api_url_v.build_url().rstrip("/") + "/" + target.lstrip("/")

    params = parse_kv(args.param) if args.param else None
    if args.method == HttpMethod.POST.value and params is None and args.signed:
        params = {}
    try:
        r = api.call(args.method, target, params)
    except TransportError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return _emit_response(r)


def cmd_upload_form(args: argparse.Namespace) -> int:
    """Print an HTML file input wired for direct signed uploads."""

    api = build_api(args)
    print(
        build_upload_form(
            api,
            args.field,
            resource_type=args.resource_type,
            params=parse_kv(args.param),
            html_options=parse_kv(args.html),
        )
    )
    return 0


def register_client_commands(sub: argparse._SubParsersAction) -> None:
    """Register the commands that talk to the remote API."""

    resource_types = [r.value for r in ResourceType]

    up = sub.add_parser("upload", help="Signed upload of a file")
    up.add_argument("file", help="Local file path, or remote URL with --remote")
    up.add_argument("--remote", action="store_true", help="Let the API fetch the file itself")
    up.add_argument("--param", action="append", help="Upload parameter key=value (repeatable)")
    up.add_argument("--resource-type", default="image", choices=resource_types)
    up.set_defaults(func=cmd_upload)

    call = sub.add_parser("call", help="Raw API call (Basic auth unless signed POST)")
    call.add_argument("method", choices=[m.value for m in HttpMethod], type=str.upper)
    call.add_argument("path", help="Path under the versioned API URL, or absolute URL")
    call.add_argument("--param", action="append", help="Request parameter key=value (repeatable)")
    call.add_argument(
        "--signed", action="store_true", help="POST as a signed multipart call even without params"
    )
    call.set_defaults(func=cmd_call)

    form = sub.add_parser("upload-form", help="Render an HTML direct-upload input")
    form.add_argument("field", help="Form field that receives the upload result")
    form.add_argument("--param", action="append", help="Upload parameter key=value (repeatable)")
    form.add_argument("--html", action="append", help="Extra HTML attribute key=value")
    form.add_argument("--resource-type", default="image", choices=resource_types)
    form.set_defaults(func=cmd_upload_form)
