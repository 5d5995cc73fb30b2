from __future__ import annotations

import html
import json
from typing import Any, Mapping, Optional, Union

from cldapi.client.api import Api
from cldapi.core.params import ResourceType
from cldapi.utils.json_safe import to_jsonable


def build_upload_form(
    api: Api,
    field: str,
    resource_type: Union[str, ResourceType] = ResourceType.IMAGE,
    params: Optional[Mapping[str, Any]] = None,
    html_options: Optional[Mapping[str, str]] = None,
) -> str:
    """Render an `<input type='file'>` for direct browser uploads.

    The finalized (signed) parameters are embedded as JSON in
    `data-form-data`, so the browser can post straight to the upload API.

    Security notes:
    - The signature is computed here; the secret is not embedded.
    - All attribute values are HTML-escaped.

    """

    finalized = api.finalize_upload_params(params or {})
    url = api.api_url_img_up_v.resource_type(resource_type).build_url()
    form_data = json.dumps(to_jsonable(finalized), sort_keys=True, separators=(",", ":"))
    options = dict(html_options or {})

    css = "cloudinary-fileupload"
    if options.get("class"):
        css += " " + options["class"]

    attrs = [
        ("type", "file"),
        ("name", "file"),
        ("data-url", url),
        ("data-form-data", form_data),
        ("data-cloudinary-field", field),
        ("class", css),
    ]
    attrs.extend((k, v) for k, v in options.items() if k != "class")

    rendered = " ".join(f"{k}='{html.escape(str(v), quote=True)}'" for k, v in attrs)
    return f"<input {rendered}/>"
