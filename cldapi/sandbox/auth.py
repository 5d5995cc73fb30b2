from __future__ import annotations

import base64
import binascii
import hmac
from typing import Mapping, Optional, Tuple

from cldapi.core.account import Account
from cldapi.core.signing import UNSIGNED_KEYS, verify_signature

# Form fields that never take part in the upload signature.
UNSIGNED_UPLOAD_FIELDS = UNSIGNED_KEYS | {"file"}


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Decode an `Authorization: Basic ...` header into (key, secret)."""

    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "basic" or not token:
        return None
    try:
        raw = base64.b64decode(token.strip().encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    key, sep, secret = raw.partition(":")
    if not sep:
        return None
    return key, secret


def check_basic_auth(header: Optional[str], account: Account) -> bool:
    """Return True if the header carries this account's key and secret.

    Security notes:
    - Both halves are compared in constant time, even when the key differs.

    """

    creds = parse_basic_auth(header)
    if creds is None:
        return False
    key_ok = hmac.compare_digest(creds[0].encode("utf-8"), account.api_key.encode("utf-8"))
    secret_ok = hmac.compare_digest(creds[1].encode("utf-8"), account.api_secret.encode("utf-8"))
    return key_ok and secret_ok


def check_upload_signature(
    fields: Mapping[str, str], account: Account, *, now: int, max_skew_sec: int
) -> Optional[str]:
    """Validate the signed fields of an upload.

    Returns None when valid, otherwise a short machine-readable reason.
    """

    api_key = fields.get("api_key")
    if not api_key:
        return "missing_api_key"
    if not hmac.compare_digest(api_key.encode("utf-8"), account.api_key.encode("utf-8")):
        return "invalid_api_key"

    ts_raw = fields.get("timestamp", "")
    try:
        ts = int(ts_raw)
    except ValueError:
        return "missing_timestamp"
    if abs(now - ts) > max_skew_sec:
        return "stale_request"

    signed = {k: v for k, v in fields.items() if k not in UNSIGNED_UPLOAD_FIELDS}
    if not verify_signature(signed, account.api_secret, fields.get("signature", "")):
        return "invalid_signature"
    return None
