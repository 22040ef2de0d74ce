"""
Tests for OpenAM user operations.
"""

import base64
import logging

import httpx
import pytest

from openam_api.auth.api_client import OpenAMApiClient
from openam_api.auth.users import OperationResult, UserOperations
from openam_api.config import OpenAMConfig
from openam_api.errors import (
    AccountLockedError,
    ErrorKind,
    HttpStatusError,
    InvalidCredentialsError,
    TransportError,
    UnknownOperationError,
)

BASE_URL = "https://openam.example.com/openam"


def _error_records(caplog):
    return [r for r in caplog.records if r.levelno >= logging.ERROR]


class TestAuthenticate:
    """Test user authentication."""

    def test_success(self, make_operations, make_transport):
        """Test that credentials travel MIME-encoded in the OpenAM headers."""
        session = {"tokenId": "AQIC5w", "successUrl": "/openam/console"}
        transport = make_transport(200, json_body=session)
        operations = make_operations(transport)

        assert operations.authenticate("jürgen", "s3cret") == session

        request = transport.last_request
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/json/authenticate"
        username = request.headers["X-OpenAM-Username"]
        assert username.startswith("=?UTF-8?B?")
        assert base64.b64decode(username[10:-2]) == "jürgen".encode("utf-8")
        assert request.headers["X-OpenAM-Password"] == "=?UTF-8?B?czNjcmV0?="
        assert request.content == b""

    def test_realm_in_query(self, make_operations, make_transport):
        """Test that the realm is sent as a query parameter."""
        transport = make_transport(200, json_body={"tokenId": "x"})
        make_operations(transport).authenticate("demo", "changeit", realm="/customers")

        assert str(transport.last_request.url) == f"{BASE_URL}/json/authenticate?realm=%2Fcustomers"

    def test_account_locked(self, make_operations, make_transport):
        """Test that a locked-account message is classified."""
        body = {"code": 401, "reason": "Unauthorized", "message": "Your account has been locked."}
        operations = make_operations(make_transport(401, json_body=body))

        with pytest.raises(AccountLockedError) as exc_info:
            operations.authenticate("demo", "wrong")

        assert exc_info.value.kind is ErrorKind.ACCOUNT_LOCKED
        assert exc_info.value.http_status == 401
        assert isinstance(exc_info.value.cause, HttpStatusError)

    def test_invalid_credentials(self, make_operations, make_transport):
        """Test that an authentication-failed message is classified."""
        body = {"code": 401, "reason": "Unauthorized", "message": "Authentication Failed"}
        operations = make_operations(make_transport(401, json_body=body))

        with pytest.raises(InvalidCredentialsError) as exc_info:
            operations.authenticate("demo", "wrong")

        assert exc_info.value.kind is ErrorKind.INVALID_CREDENTIALS

    def test_other_failure_reraised_unchanged(self, make_operations, make_transport):
        """Test that other failures re-raise the same classified error."""
        transport = make_transport(500, text="Internal Server Error")
        operations = make_operations(transport)
        expected = operations.run_operation("authenticate", {"realm": None}).error

        with pytest.raises(HttpStatusError) as exc_info:
            operations.authenticate("demo", "changeit")

        assert type(exc_info.value) is HttpStatusError
        assert exc_info.value.kind is ErrorKind.SERVER_ERROR
        assert exc_info.value.message == expected.message == "Internal Server Error"
        assert exc_info.value.http_status == expected.http_status == 500
        assert isinstance(exc_info.value.cause, httpx.HTTPStatusError)

    def test_other_failure_is_same_object(self, make_operations, make_transport, monkeypatch):
        """Test that authenticate raises the very error the operation returned."""
        operations = make_operations(make_transport(200))
        error = HttpStatusError(502, "Bad Gateway")
        monkeypatch.setattr(operations, "run_operation", lambda *args, **kwargs: OperationResult(error=error))

        with pytest.raises(HttpStatusError) as exc_info:
            operations.authenticate("demo", "changeit")

        assert exc_info.value is error
        assert exc_info.value.kind is ErrorKind.UNKNOWN

    def test_transport_failure_reraised(self, make_operations, failing_transport):
        """Test that transport failures reach the caller."""
        with pytest.raises(TransportError):
            make_operations(failing_transport).authenticate("demo", "changeit")


class TestValidateToken:
    """Test auth token validation."""

    def test_end_to_end(self, make_transport):
        """Test the validate request built from a minimal operation config."""
        config = OpenAMConfig.from_mapping({
            "openam_api_url": BASE_URL,
            "operations": {
                "isValidToken": {
                    "method": "POST",
                    "uriTemplate": "/json/sessions/{token}",
                    "headers": {},
                    "body": None,
                },
            },
        })
        transport = make_transport(200, json_body={"valid": True, "uid": "demo"})
        operations = UserOperations(OpenAMApiClient(config, transport=transport))

        assert operations.validate_token('abc "123" ') == {"valid": True, "uid": "demo"}

        request = transport.last_request
        assert request.method == "POST"
        assert request.url.raw_path == b"/openam/json/sessions/abc+123+"
        assert request.headers["authToken"] == "abc+123+"
        assert transport.last_json() == {"_action": "validate"}

    def test_caller_options_merged_last(self, make_operations, make_transport):
        """Test that caller options add headers without dropping authToken."""
        transport = make_transport(200, json_body={"valid": True})
        make_operations(transport).validate_token("abc", {"headers": {"X-Forwarded-For": "10.0.0.1"}})

        assert transport.last_request.headers["X-Forwarded-For"] == "10.0.0.1"
        assert transport.last_request.headers["authToken"] == "abc"

    def test_empty_token_sent_as_is(self, make_operations, make_transport):
        """Test that a whitespace token is sanitized to empty and still sent."""
        transport = make_transport(401, json_body={"code": 401})
        operations = make_operations(transport)

        assert operations.validate_token("   ") is False
        assert transport.last_request.url.raw_path == b"/openam/json/sessions/"
        assert transport.last_request.headers["authToken"] == ""

    def test_failure_returns_false_and_logs_once(self, make_operations, failing_transport, caplog):
        """Test that failures are swallowed, logged once, and yield False."""
        operations = make_operations(failing_transport)

        with caplog.at_level(logging.ERROR):
            assert operations.validate_token("abc") is False

        errors = _error_records(caplog)
        assert len(errors) == 1
        assert "Error validating auth token" in errors[0].getMessage()

    def test_non_ascii_token_returns_false(self, make_operations, make_transport, caplog):
        """Test that a token that cannot go into a header is a logged failure."""
        transport = make_transport(200, json_body={"valid": True})

        with caplog.at_level(logging.ERROR):
            assert make_operations(transport).validate_token("abcé") is False

        assert transport.requests == []
        errors = _error_records(caplog)
        assert len(errors) == 1
        assert errors[0].error_kind == ErrorKind.TRANSPORT_ERROR.value


class TestGetUserAttributes:
    """Test user attribute lookup."""

    def test_success(self, make_operations, make_transport):
        """Test that attributes are fetched with the session token."""
        attributes = {"username": "demo", "mail": ["demo@example.com"]}
        transport = make_transport(200, json_body=attributes)

        assert make_operations(transport).get_user_attributes("demo", '"AQIC 5w"') == attributes

        request = transport.last_request
        assert request.method == "GET"
        assert str(request.url) == f"{BASE_URL}/json/users/demo"
        assert request.headers["authToken"] == "AQIC+5w"

    @pytest.mark.parametrize("status", [401, 404, 500])
    def test_failure_returns_none(self, make_operations, make_transport, caplog, status):
        """Test that HTTP failures yield None and are logged once."""
        operations = make_operations(make_transport(status, text="error"))

        with caplog.at_level(logging.ERROR):
            assert operations.get_user_attributes("demo", "abc") is None

        assert len(_error_records(caplog)) == 1

    def test_transport_failure_returns_none(self, make_operations, failing_transport, caplog):
        """Test that transport failures yield None and are logged once."""
        with caplog.at_level(logging.ERROR):
            assert make_operations(failing_transport).get_user_attributes("demo", "abc") is None

        assert len(_error_records(caplog)) == 1

    def test_non_ascii_token_returns_none(self, make_operations, make_transport, caplog):
        """Test that a token that cannot go into a header yields None."""
        transport = make_transport(200, json_body={"username": "demo"})

        with caplog.at_level(logging.ERROR):
            assert make_operations(transport).get_user_attributes("demo", "tök") is None

        assert transport.requests == []
        assert len(_error_records(caplog)) == 1

    def test_template_error_swallowed(self, make_operations, make_transport, caplog):
        """Test that a template needing an unknown parameter is logged, not raised."""
        cfg = OpenAMConfig.from_mapping({
            "openam_api_url": BASE_URL,
            "operations": {"attributes": {"method": "GET", "uri": "/json{/realm}/users/{username}"}},
        })
        transport = make_transport(200, json_body={})

        with caplog.at_level(logging.ERROR):
            assert make_operations(transport, cfg).get_user_attributes("demo", "abc") is None

        assert transport.requests == []
        assert len(_error_records(caplog)) == 1


class TestLogout:
    """Test session logout."""

    def test_success_with_empty_body(self, make_operations, make_transport):
        """Test that logout succeeds on a no-content response."""
        transport = make_transport(204)

        assert make_operations(transport).logout("abc def") is True

        request = transport.last_request
        assert request.method == "POST"
        assert request.url.raw_path == b"/openam/json/sessions/abc+def"
        assert request.headers["authToken"] == "abc+def"
        assert transport.last_json() == {"_action": "logout"}

    def test_failure_returns_false_and_logs_once(self, make_operations, failing_transport, caplog):
        """Test that failures are swallowed, logged once, and yield False."""
        with caplog.at_level(logging.ERROR):
            assert make_operations(failing_transport).logout("abc") is False

        errors = _error_records(caplog)
        assert len(errors) == 1
        assert "Error logging out" in errors[0].getMessage()

    def test_non_ascii_token_returns_false(self, make_operations, make_transport, caplog):
        """Test that a token that cannot go into a header yields False."""
        transport = make_transport(204)

        with caplog.at_level(logging.ERROR):
            assert make_operations(transport).logout("tök") is False

        assert transport.requests == []
        assert len(_error_records(caplog)) == 1


class TestRunOperation:
    """Test the non-collapsing operation form."""

    def test_error_recoverable(self, make_operations, make_transport):
        """Test that the classified error is kept in the result."""
        result = make_operations(make_transport(404, text="Not Found")).run_operation(
            "attributes", {"username": "ghost"}
        )

        assert not result.ok
        assert result.error.kind is ErrorKind.NOT_FOUND
        assert result.unwrap_or("fallback") == "fallback"

    def test_value(self, make_operations, make_transport):
        """Test a successful result."""
        result = make_operations(make_transport(200, json_body={"a": 1})).run_operation(
            "attributes", {"username": "demo"}
        )

        assert result == OperationResult(value={"a": 1})
        assert result.unwrap_or(None) == {"a": 1}

    def test_unknown_operation(self, make_operations, make_transport):
        """Test that an unconfigured operation name raises."""
        with pytest.raises(UnknownOperationError, match="createUser"):
            make_operations(make_transport(200)).run_operation("createUser")

    def test_configured_body_merged(self, make_transport):
        """Test that a configured body is deep-merged with the operation body."""
        config = OpenAMConfig.from_mapping({
            "openam_api_url": BASE_URL,
            "operations": {
                "isValidToken": {
                    "method": "POST",
                    "uri": "/json/sessions/{token}",
                    "body": {"refresh": False},
                    "headers": {"Accept-API-Version": "resource=2.0"},
                },
            },
        })
        transport = make_transport(200, json_body={"valid": True})
        UserOperations(OpenAMApiClient(config, transport=transport)).validate_token("abc")

        assert transport.last_json() == {"refresh": False, "_action": "validate"}
        assert transport.last_request.headers["Accept-API-Version"] == "resource=2.0"
