"""
OpenAM user operations.

Each operation is a stateless request/response round trip: identity inputs
are sanitized, the configured operation fragment is merged with the
per-call headers and body, and the request is delegated to
:class:`OpenAMApiClient`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from openam_api.auth.api_client import (
    OpenAMApiClient,
    encode_header_value,
    merge_options,
    sanitize_token,
)
from openam_api.auth.hooks import UserCreateHooks, UserRecord
from openam_api.errors import AccountLockedError, InvalidCredentialsError, OpenAMError
from openam_api.utils.uri_template import TemplateError

logger = logging.getLogger(__name__)

ACCOUNT_LOCKED_MESSAGE = "account has been locked"
AUTHENTICATION_FAILED_MESSAGE = "authentication failed"


@dataclass
class OperationResult:
    """Outcome of an operation: either a value or the error that prevented it."""

    value: Any = None
    error: Optional[Union[OpenAMError, TemplateError]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: Any) -> Any:
        """Return the value, or ``default`` if the operation failed."""
        return self.value if self.ok else default


class UserOperations:
    """
    Catalog of OpenAM user operations.

    ``authenticate`` raises classified errors to the caller. The lookup
    operations (``validate_token``, ``get_user_attributes``, ``logout``)
    log failures and return a sentinel instead; use :meth:`run_operation`
    to get at the underlying error.
    """

    def __init__(self, client: OpenAMApiClient, hooks: Optional[UserCreateHooks] = None):
        """
        Initialize user operations.

        Args:
            client: Configured OpenAM API client
            hooks: User-create extension points
        """
        self.client = client
        self.config = client.config
        self.hooks = hooks or UserCreateHooks()

    def run_operation(
        self,
        name: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> OperationResult:
        """
        Run a configured operation without collapsing failures.

        Args:
            name: Operation name in the configuration (e.g. ``isValidToken``)
            params: URI template parameters
            headers: Operation headers, merged over the configured ones
            body: Request body, merged over the configured one
            options: Caller request options, merged last

        Returns:
            OperationResult with the decoded response or the classified error

        Raises:
            UnknownOperationError: If the operation is not configured
        """
        api_options = self.config.operation(name).to_options()

        request_options: Dict[str, Any] = {
            "uri_template_options": dict(params or {}),
            "headers": dict(headers or {}),
        }
        if body is not None:
            request_options["body"] = body

        try:
            merged = merge_options(api_options, request_options, options)
            return OperationResult(value=self.client.execute(merged))
        except (OpenAMError, TemplateError) as e:
            return OperationResult(error=e)

    def authenticate(
        self,
        username: str,
        password: str,
        realm: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Authenticate a user with OpenAM.

        Args:
            username: Username, sent MIME-encoded in X-OpenAM-Username
            password: Password, sent MIME-encoded in X-OpenAM-Password
            realm: Optional authentication realm
            options: Additional request options, e.g. extra headers

        Returns:
            OpenAM response, normally ``{"tokenId": ..., "successUrl": ...}``

        Raises:
            AccountLockedError: If OpenAM reports the account as locked
            InvalidCredentialsError: If OpenAM rejects the credentials
            OpenAMError: On any other classified failure
        """
        headers = {
            "X-OpenAM-Username": encode_header_value(username),
            "X-OpenAM-Password": encode_header_value(password),
        }
        result = self.run_operation("authenticate", {"realm": realm}, headers, options=options)
        if result.ok:
            return result.value

        error = result.error
        if isinstance(error, OpenAMError):
            message = error.message.lower()
            if ACCOUNT_LOCKED_MESSAGE in message:
                logger.warning("Authentication refused: account locked")
                raise AccountLockedError(error) from error
            if AUTHENTICATION_FAILED_MESSAGE in message:
                logger.warning("Authentication refused: invalid credentials")
                raise InvalidCredentialsError(error) from error

        self.client.log_failure("Error authenticating user", error)
        raise error

    def validate_token(self, token: str, options: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Validate an auth token with OpenAM.

        Args:
            token: Auth token (quotes and form-encoded spaces are cleaned up)
            options: Additional request options, e.g. proxy headers

        Returns:
            OpenAM session validation response, or False on failure
        """
        token = sanitize_token(token)
        result = self.run_operation(
            "isValidToken",
            {"token": token},
            {"authToken": token},
            {"_action": "validate"},
            options,
        )
        if not result.ok:
            self.client.log_failure("Error validating auth token", result.error)
            return False
        return result.value

    def get_user_attributes(
        self,
        username: str,
        token: str,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Get user attributes from OpenAM.

        Returns:
            User attributes, or None on failure
        """
        token = sanitize_token(token)
        result = self.run_operation(
            "attributes",
            {"username": username, "token": token},
            {"authToken": token},
            options=options,
        )
        if not result.ok:
            self.client.log_failure("Error getting user attributes", result.error)
            return None
        return result.value

    def logout(self, token: str, options: Optional[Mapping[str, Any]] = None) -> bool:
        """
        Invalidate an OpenAM session.

        Returns:
            True if OpenAM accepted the logout, False on failure
        """
        token = sanitize_token(token)
        result = self.run_operation(
            "logout",
            {"token": token},
            {"authToken": token},
            {"_action": "logout"},
            options,
        )
        if not result.ok:
            self.client.log_failure("Error logging out", result.error)
            return False
        return True

    def user_create(
        self,
        profile: Dict[str, Any],
        credentials: Optional[Dict[str, Any]] = None,
        provider: Optional[Dict[str, Any]] = None,
        activate: bool = True,
    ) -> Any:
        """
        Run the user creation workflow.

        Pre-create hooks may rewrite the record before creation and
        post-create hooks see the final record. No remote user is created:
        OpenAM user provisioning is not wired up, so the result is None.

        Returns:
            None once the workflow has run, False if a hook failed
        """
        user: UserRecord = {
            "profile": profile,
            "credentials": credentials or {},
            "provider": provider,
            "activate": activate,
            "already_registered": False,
            "skip_register": False,
        }

        try:
            user = self.hooks.run_pre_create(user)

            openam_user = None
            self.client.debug(openam_user, "response")

            user = self.hooks.run_post_create(user)

            logger.info(f"created user: {user['profile'].get('email')}")
            return openam_user
        except Exception as e:
            self.client.log_failure("Unable to create user", e)
            return False
