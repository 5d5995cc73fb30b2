"""HTTP client for the media API.

Security notes:
- Treat server responses as untrusted input.
- Avoid printing or logging credentials, signatures or raw file bytes.
"""

from .api import Api  # noqa: F401
from .forms import build_upload_form  # noqa: F401
from .http import HttpResponse, do_request  # noqa: F401
