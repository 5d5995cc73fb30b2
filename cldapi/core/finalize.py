from __future__ import annotations

import time
from typing import Any, Dict, Mapping, Optional, Union

from cldapi.core.account import Account
from cldapi.core.signing import SignatureAlgorithm, api_sign_request

# Keys owned by finalization; a caller-supplied set must not carry them.
FINALIZED_KEYS = ("timestamp", "signature", "api_key")


def current_timestamp() -> str:
    """Current UNIX time in whole seconds, as a decimal string."""

    return str(int(time.time()))


def finalize_upload_params(
    params: Mapping[str, Any],
    account: Account,
    *,
    timestamp: Optional[str] = None,
    algorithm: Union[str, SignatureAlgorithm] = SignatureAlgorithm.SHA1,
) -> Dict[str, Any]:
    """Return a new, signed copy of an upload parameter set.

    Order of computation:
    1) `timestamp` is added,
    2) the set (timestamp included) is signed into `signature`,
    3) `api_key` is added.

    The input mapping is not modified. Passing an already finalized set
    raises ValueError, so a set can only be signed once.

    Security notes:
    - The secret only contributes to the digest; it is never copied into
      the returned parameters.

    """

    already = [k for k in FINALIZED_KEYS if k in params]
    if already:
        raise ValueError(f"parameters already finalized: {', '.join(already)}")

    out: Dict[str, Any] = dict(params)
    out["timestamp"] = str(timestamp) if timestamp is not None else current_timestamp()
    out["signature"] = api_sign_request(out, account.api_secret, algorithm)
    out["api_key"] = account.api_key
    return {k: out[k] for k in sorted(out)}
