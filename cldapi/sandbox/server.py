from __future__ import annotations

import hashlib
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException
from starlette.datastructures import UploadFile
from starlette.requests import Request

from cldapi.core.account import Account
from cldapi.core.params import ResourceType, parse_api_param
from cldapi.core.url import API_VERSION
from cldapi.sandbox.auth import check_basic_auth, check_upload_signature
from cldapi.sandbox.middleware import AccessLogMiddleware
from cldapi.sandbox.models import DeleteOut, ResourceListOut, ResourceOut, UploadOut

log = logging.getLogger("cldapi.sandbox")


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    """Configuration for the sandbox service."""

    max_skew_sec: int = 3600
    max_upload_bytes: int = 25 * 1024 * 1024


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad input."""

    raw = os.environ.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def load_sandbox_config() -> SandboxConfig:
    return SandboxConfig(
        max_skew_sec=_env_int("CLDAPI_SANDBOX_MAX_SKEW_SEC", 3600),
        max_upload_bytes=_env_int("CLDAPI_SANDBOX_MAX_UPLOAD_BYTES", 25 * 1024 * 1024),
    )


class ResourceStore:
    """In-memory asset index keyed by (resource_type, public_id)."""

    def __init__(self) -> None:
        self._items: Dict[tuple, ResourceOut] = {}
        self._lock = Lock()

    def put(self, res: ResourceOut) -> None:
        with self._lock:
            self._items[(res.resource_type, res.public_id)] = res

    def list(self, resource_type: str) -> List[ResourceOut]:
        with self._lock:
            return sorted(
                (r for (rt, _), r in self._items.items() if rt == resource_type),
                key=lambda r: r.public_id,
            )

    def delete(self, resource_type: str, public_id: str) -> bool:
        with self._lock:
            return self._items.pop((resource_type, public_id), None) is not None


def create_app(
    account: Account,
    *,
    config: Optional[SandboxConfig] = None,
    clock=time.time,
) -> FastAPI:
    """Create a local emulation of the upload/admin API for one account.

    - Uploads must be signed exactly as the real API expects.
    - Admin routes require HTTP Basic auth with the account key/secret.

    """

    cfg = config or load_sandbox_config()
    store = ResourceStore()

    log.setLevel(os.environ.get("CLDAPI_LOG_LEVEL", "INFO").upper())

    app = FastAPI(title="cldapi sandbox", version="0.1")
    app.state.cfg = cfg
    app.state.store = store
    app.add_middleware(AccessLogMiddleware)

    def _check_cloud(api_version: str, cloud: str) -> None:
        if api_version != API_VERSION or cloud != account.cloud:
            raise HTTPException(status_code=404, detail="unknown_cloud")

    def _check_resource_type(resource_type: str) -> str:
        rt = parse_api_param(ResourceType, resource_type)
        if rt is None:
            raise HTTPException(status_code=400, detail="invalid_resource_type")
        return rt.value

    def require_basic_auth(
        request: Request, authorization: Optional[str] = Header(default=None)
    ) -> None:
        request.state.auth_mode = "basic"
        if not check_basic_auth(authorization, account):
            raise HTTPException(
                status_code=401,
                detail="unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="cldapi"'},
            )

    @app.get("/health")
    def health() -> Dict[str, object]:
        return {"ok": True, "cloud": account.cloud}

    @app.post("/{api_version}/{cloud}/{resource_type}/upload", response_model=UploadOut)
    async def upload(
        request: Request, api_version: str, cloud: str, resource_type: str
    ) -> UploadOut:
        request.state.auth_mode = "signed"
        _check_cloud(api_version, cloud)
        rtype = _check_resource_type(resource_type)

        form = await request.form()
        fields: Dict[str, str] = {}
        upload_file: Optional[UploadFile] = None
        try:
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    upload_file = value
                else:
                    fields[key] = value

            reason = check_upload_signature(
                fields, account, now=int(clock()), max_skew_sec=cfg.max_skew_sec
            )
            if reason is not None:
                raise HTTPException(status_code=401, detail=reason)

            data = b""
            if upload_file is not None:
                data = await upload_file.read(cfg.max_upload_bytes + 1)
                if len(data) > cfg.max_upload_bytes:
                    raise HTTPException(status_code=413, detail="file_too_large")
            elif not fields.get("file"):
                raise HTTPException(status_code=400, detail="missing_file")
        finally:
            await form.close()

        res = UploadOut(
            public_id=fields.get("public_id") or uuid4().hex[:20],
            resource_type=rtype,
            size_bytes=len(data),
            original_filename=upload_file.filename if upload_file is not None else None,
            remote_url=fields.get("file") if upload_file is None else None,
            sha1=hashlib.sha1(data).hexdigest() if upload_file is not None else None,
            created_at=datetime.now(timezone.utc).isoformat(),
            signature=fields["signature"],
            fields={k: v for k, v in fields.items() if k not in {"file", "api_key"}},
        )
        store.put(ResourceOut(**res.model_dump(include=set(ResourceOut.model_fields))))
        return res

    @app.get(
        "/{api_version}/{cloud}/resources/{resource_type}",
        response_model=ResourceListOut,
        dependencies=[Depends(require_basic_auth)],
    )
    def list_resources(api_version: str, cloud: str, resource_type: str) -> ResourceListOut:
        _check_cloud(api_version, cloud)
        return ResourceListOut(resources=store.list(_check_resource_type(resource_type)))

    @app.delete(
        "/{api_version}/{cloud}/resources/{resource_type}/upload",
        response_model=DeleteOut,
        dependencies=[Depends(require_basic_auth)],
    )
    def delete_resources(
        api_version: str, cloud: str, resource_type: str, public_ids: str = ""
    ) -> DeleteOut:
        _check_cloud(api_version, cloud)
        rtype = _check_resource_type(resource_type)
        ids = [p.strip() for p in public_ids.split(",") if p.strip()]
        if not ids:
            raise HTTPException(status_code=400, detail="missing_public_ids")
        return DeleteOut(
            deleted={pid: "deleted" if store.delete(rtype, pid) else "not_found" for pid in ids}
        )

    return app
