"""OpenAM REST API client and user operations."""

from openam_api.auth.api_client import (
    OpenAMApiClient,
    RequestOptions,
    build_url,
    merge_options,
    sanitize_token,
    encode_header_value,
)
from openam_api.auth.hooks import UserCreateHooks, PRE_USER_CREATE, POST_USER_CREATE
from openam_api.auth.users import UserOperations, OperationResult

__all__ = [
    # API client
    "OpenAMApiClient",
    "RequestOptions",
    "build_url",
    "merge_options",
    "sanitize_token",
    "encode_header_value",
    # User operations
    "UserOperations",
    "OperationResult",
    # Hooks
    "UserCreateHooks",
    "PRE_USER_CREATE",
    "POST_USER_CREATE",
]
