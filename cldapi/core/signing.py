"""Request signing for the upload API.

signature = hex(DIGEST(sign_base + api_secret))

Security notes:
- SHA-1 is the wire default because the remote API verifies with it.
- A new hash context is created per call; hash objects are never shared
  between threads.
"""
from __future__ import annotations

import hmac
from enum import Enum
from typing import Any, Mapping, Union

from cryptography.hazmat.primitives import hashes

from cldapi.core.canonical import canonicalize_params

# Keys injected by finalization that are never part of the sign base.
UNSIGNED_KEYS = frozenset({"signature", "api_key"})


class SignatureAlgorithm(str, Enum):
    SHA1 = "sha1"
    SHA256 = "sha256"


_HASHES = {
    SignatureAlgorithm.SHA1: hashes.SHA1,
    SignatureAlgorithm.SHA256: hashes.SHA256,
}


def _resolve_algorithm(algorithm: Union[str, SignatureAlgorithm]) -> SignatureAlgorithm:
    try:
        return SignatureAlgorithm(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported signature algorithm: {algorithm}") from None


def compute_hex_digest(
    data: str, algorithm: Union[str, SignatureAlgorithm] = SignatureAlgorithm.SHA1
) -> str:
    """Digest the UTF-8 bytes of `data` and return lowercase hex."""

    algo = _resolve_algorithm(algorithm)
    ctx = hashes.Hash(_HASHES[algo]())
    ctx.update(data.encode("utf-8"))
    return ctx.finalize().hex()


def api_sign_request(
    params: Mapping[str, Any],
    api_secret: str,
    algorithm: Union[str, SignatureAlgorithm] = SignatureAlgorithm.SHA1,
) -> str:
    """Sign a parameter set with the account secret.

    The secret is appended to the sign base without a delimiter.
    """

    return compute_hex_digest(canonicalize_params(params) + api_secret, algorithm)


def verify_signature(
    params: Mapping[str, Any],
    api_secret: str,
    signature: str,
    algorithm: Union[str, SignatureAlgorithm] = SignatureAlgorithm.SHA1,
) -> bool:
    """Check a signature against `params` minus `signature` and `api_key`.

    Security notes:
    - Constant-time comparison.

    """

    if not signature:
        return False
    to_sign = {k: v for k, v in params.items() if k not in UNSIGNED_KEYS}
    expected = api_sign_request(to_sign, api_secret, algorithm)
    return hmac.compare_digest(expected.encode("ascii"), signature.lower().encode("utf-8"))
