"""Signing, canonicalization and multipart encoding.

Nothing in this package performs I/O except reading caller-supplied upload
streams.
"""

from .account import Account, ConnectionSettings, parse_cloudinary_url
from .canonical import canonicalize_params, clean_params, param_to_str
from .exceptions import CldApiError, ConfigurationError, MultipartReadError, TransportError
from .finalize import current_timestamp, finalize_upload_params
from .multipart import CHUNK_SIZE, HTTP_BOUNDARY, FileDescription, MultipartEncoder
from .params import DeliveryType, HttpMethod, ResourceType, parse_api_param, to_api_param
from .signing import SignatureAlgorithm, api_sign_request, compute_hex_digest, verify_signature
from .url import ADDR_API, ADDR_RES, API_VERSION, Url

__all__ = [
    "Account",
    "ConnectionSettings",
    "parse_cloudinary_url",
    "param_to_str",
    "clean_params",
    "canonicalize_params",
    "CldApiError",
    "ConfigurationError",
    "TransportError",
    "MultipartReadError",
    "current_timestamp",
    "finalize_upload_params",
    "HTTP_BOUNDARY",
    "CHUNK_SIZE",
    "FileDescription",
    "MultipartEncoder",
    "HttpMethod",
    "ResourceType",
    "DeliveryType",
    "to_api_param",
    "parse_api_param",
    "SignatureAlgorithm",
    "compute_hex_digest",
    "api_sign_request",
    "verify_signature",
    "ADDR_API",
    "ADDR_RES",
    "API_VERSION",
    "Url",
]
