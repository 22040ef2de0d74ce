"""
HTTP client for the OpenAM REST API.

Builds requests from declarative option mappings (URI template, template
parameters, headers, body), executes them with httpx and classifies the
outcome into the :mod:`openam_api.errors` taxonomy.
"""

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from openam_api.config import OpenAMConfig
from openam_api.errors import HttpStatusError, TransportError
from openam_api.utils.merge import merge_deep
from openam_api.utils.uri_template import expand

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

Body = Union[Mapping[str, Any], list, str, bytes, None]


@dataclass
class RequestOptions:
    """A fully merged request, ready to be sent."""

    http_method: str
    uri: str
    uri_template_options: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    timeout: Optional[float] = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "RequestOptions":
        """Build request options from a merged option tree."""
        if "http_method" not in options or "uri" not in options:
            raise ValueError("Request options need both 'http_method' and 'uri'")

        timeout = options.get("timeout")
        return cls(
            http_method=str(options["http_method"]).upper(),
            uri=options["uri"],
            uri_template_options=dict(options.get("uri_template_options") or {}),
            headers={k: str(v) for k, v in (options.get("headers") or {}).items()},
            body=options.get("body"),
            timeout=float(timeout) if timeout is not None else None,
        )

    def encoded_body(self) -> Optional[bytes]:
        """Serialize the body for the wire (mappings and lists become JSON)."""
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


def build_url(base_url: str, uri_template: str, params: Mapping[str, Any]) -> str:
    """
    Expand a URI template and join it to the API base URL.

    Raises:
        TemplateError: If a placeholder has no supplied value
    """
    uri = expand(uri_template, params)
    if not uri:
        return base_url
    return f"{base_url.rstrip('/')}/{uri.lstrip('/')}"


def merge_options(defaults: Optional[Mapping[str, Any]], *overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Deep-merge request options; later arguments win on conflicting scalars."""
    return merge_deep(defaults, *overrides)


def sanitize_token(raw: str) -> str:
    """
    Normalize an OpenAM token received from a browser cookie or header.

    Spaces are turned back into ``+`` (form-decoded tokens), double quotes
    are stripped (quoted cookie values) and surrounding whitespace trimmed.
    """
    if not raw or not raw.strip():
        return ""
    return raw.replace(" ", "+").replace('"', "").strip()


def encode_header_value(raw: str) -> str:
    """
    Encode a value as a MIME encoded-word (RFC 2047, base64).

    The whole value is encoded as a single word. ``email.header`` folds
    long values into several words, which OpenAM does not reassemble.
    """
    payload = base64.b64encode(raw.encode("utf-8")).decode("ascii")
    return f"=?UTF-8?B?{payload}?="


class OpenAMApiClient:
    """
    Client for the OpenAM REST API.

    This client handles:
    - URL building from URI templates
    - Merging client defaults with per-request options
    - One synchronous HTTP call per request, no retries
    - Classification of HTTP and transport failures
    """

    def __init__(
        self,
        config: OpenAMConfig,
        transport: Optional[httpx.BaseTransport] = None,
        error_logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize OpenAM API client.

        Args:
            config: OpenAM configuration (base URL, timeout, debug flags)
            transport: Optional httpx transport (e.g. a mock transport in tests)
            error_logger: Logger receiving operation failures
        """
        self.config = config
        self._transport = transport
        self._error_logger = error_logger or logging.getLogger("openam_api")

        logger.info(f"OpenAM API client initialized for {config.base_url}")

    def debug(self, data: Any, kind: str = "response") -> None:
        """Emit debugging data when the matching debug flag is enabled."""
        enabled = {
            "response": self.config.debug_response,
            "exception": self.config.debug_exception,
        }.get(kind, False)
        if enabled:
            logger.debug(f"OpenAM {kind}: {data!r}")

    def log_failure(self, message: str, error: BaseException) -> None:
        """
        Log an operation failure.

        Never raises: a broken log handler must not turn a handled failure
        into an unhandled one.
        """
        try:
            self.debug(error, "exception")
            extra = {"error_kind": getattr(getattr(error, "kind", None), "value", None)}
            self._error_logger.error(f"{message} - {error}", extra=extra)
        except Exception:
            pass

    def request_url(self, options: RequestOptions) -> str:
        """Build the absolute request URL for the given options."""
        return build_url(self.config.base_url, options.uri, options.uri_template_options)

    def prepare(self, options: Mapping[str, Any]) -> RequestOptions:
        """Merge client defaults under the request options."""
        defaults = {
            "timeout": self.config.timeout,
            "headers": dict(DEFAULT_HEADERS),
        }
        return RequestOptions.from_mapping(merge_options(defaults, options))

    def execute(self, options: Mapping[str, Any]) -> Any:
        """
        Execute one request against the OpenAM API.

        Args:
            options: Request options (http_method, uri, uri_template_options,
                headers, body, timeout)

        Returns:
            Decoded JSON body, or None for empty or non-JSON bodies

        Raises:
            TemplateError: If the URI template cannot be expanded
            HttpStatusError: On a non-2xx response
            TransportError: If the request could not be built or no response
                was received
        """
        request = self.prepare(options)
        url = self.request_url(request)

        logger.debug(f"OpenAM request: {request.http_method} {url}")

        with httpx.Client(
            transport=self._transport,
            verify=self.config.verify_ssl,
            follow_redirects=False,
        ) as client:
            try:
                outgoing = client.build_request(
                    request.http_method,
                    url,
                    headers=request.headers,
                    content=request.encoded_body(),
                    timeout=request.timeout,
                )
            except (UnicodeEncodeError, httpx.InvalidURL, TypeError) as e:
                # header values must be ASCII; bodies must be JSON serializable
                raise TransportError(f"Cannot build {request.http_method} {url}: {e}", e) from e

            try:
                response = client.send(outgoing)
            except httpx.TransportError as e:
                raise TransportError(f"{request.http_method} {url} failed: {e}", e) from e

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        """Classify the response status and decode the body."""
        if not response.is_success:
            message = response.text or response.reason_phrase
            cause = httpx.HTTPStatusError(
                f"{response.status_code} {response.reason_phrase}",
                request=response.request,
                response=response,
            )
            raise HttpStatusError(response.status_code, message, cause)

        self.debug(response.text, "response")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(
                f"OpenAM returned a non-JSON body for {response.request.method} {response.request.url}"
            )
            return None

