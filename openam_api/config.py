"""
Configuration management for the OpenAM API client.

This module handles loading and validating configuration from environment
variables and an optional JSON operations file, and provides the default
OpenAM REST operation templates.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from openam_api.errors import UnknownOperationError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD")

_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def _flag(value: Any, default: bool = False) -> bool:
    """Read a boolean setting that may arrive as a string ('false', '0')."""
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


@dataclass(frozen=True)
class OperationConfig:
    """Static request fragment for one named OpenAM operation."""

    name: str
    http_method: str
    uri: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    uri_template_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Stored mappings are read-only; callers get copies through to_options()
        object.__setattr__(self, "http_method", self.http_method.upper())
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(
            self, "uri_template_options", MappingProxyType(dict(self.uri_template_options))
        )

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "OperationConfig":
        """Build an operation from a config mapping (``method`` or ``http_method`` accepted)."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Operation '{name}' must be a mapping, got {type(data).__name__}")

        method = data.get("http_method") or data.get("method")
        uri = data.get("uri") or data.get("uriTemplate") or data.get("uri_template")
        if not method or not uri:
            raise ValueError(f"Operation '{name}' needs both a method and a uri")
        if not isinstance(method, str) or not isinstance(uri, str):
            raise ValueError(f"Operation '{name}' method and uri must be strings")
        for key in ("headers", "uri_template_options"):
            if not isinstance(data.get(key) or {}, Mapping):
                raise ValueError(f"Operation '{name}' {key} must be a mapping")

        return cls(
            name=name,
            http_method=method,
            uri=uri,
            headers=data.get("headers") or {},
            body=data.get("body"),
            uri_template_options=data.get("uri_template_options") or {},
        )

    def to_options(self) -> Dict[str, Any]:
        """Return a fresh request options mapping for this operation."""
        options: Dict[str, Any] = {
            "http_method": self.http_method,
            "uri": self.uri,
            "uri_template_options": dict(self.uri_template_options),
            "headers": dict(self.headers),
        }
        if self.body is not None:
            options["body"] = copy.deepcopy(self.body)
        return options


DEFAULT_OPERATIONS: Mapping[str, OperationConfig] = MappingProxyType({
    "authenticate": OperationConfig(
        name="authenticate",
        http_method="POST",
        uri="/json/authenticate{?realm}",
    ),
    "isValidToken": OperationConfig(
        name="isValidToken",
        http_method="POST",
        uri="/json/sessions/{token}",
    ),
    "attributes": OperationConfig(
        name="attributes",
        http_method="GET",
        uri="/json/users/{username}",
    ),
    "logout": OperationConfig(
        name="logout",
        http_method="POST",
        uri="/json/sessions/{token}",
    ),
})


def load_operations(
    data: Optional[Mapping[str, Mapping[str, Any]]],
    defaults: Mapping[str, OperationConfig] = DEFAULT_OPERATIONS,
) -> Mapping[str, OperationConfig]:
    """Overlay configured operations on the defaults, key by key."""
    if data is not None and not isinstance(data, Mapping):
        raise ValueError(f"Operations must be a mapping of name to operation, got {type(data).__name__}")

    operations = dict(defaults)
    for name, operation in (data or {}).items():
        operations[name] = OperationConfig.from_mapping(name, operation)
    return MappingProxyType(operations)


@dataclass(frozen=True)
class OpenAMConfig:
    """OpenAM API client configuration."""

    base_url: str
    timeout: float = 30.0

    # Service account credentials. Not sent by any operation here; carried for
    # host applications that authenticate as a service user, e.g.
    # operations.authenticate(config.username, config.password)
    username: Optional[str] = None
    password: Optional[str] = None

    verify_ssl: bool = True

    # Debugging
    debug_response: bool = False
    debug_exception: bool = False

    operations: Mapping[str, OperationConfig] = field(default_factory=lambda: DEFAULT_OPERATIONS)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OpenAMConfig":
        """Build configuration from a plain settings mapping."""
        base_url = data.get("openam_api_url")
        if not base_url:
            raise ValueError("Missing required OpenAM configuration: openam_api_url")

        return cls(
            base_url=base_url,
            timeout=float(data.get("openam_api_timeout", 30.0)),
            username=data.get("openam_api_username"),
            password=data.get("openam_api_password"),
            verify_ssl=_flag(data.get("verify_ssl"), True),
            debug_response=_flag(data.get("debug_response")),
            debug_exception=_flag(data.get("debug_exception")),
            operations=load_operations(data.get("operations")),
            log_level=data.get("log_level", "INFO"),
            log_format=data.get("log_format", "json"),
            log_file=data.get("log_file"),
        )

    @classmethod
    def from_env(cls) -> "OpenAMConfig":
        """Load configuration from environment variables."""
        base_url = os.getenv("OPENAM_API_URL")
        if not base_url:
            raise ValueError(
                "Missing required OpenAM configuration. Please set OPENAM_API_URL"
            )

        operations_file = os.getenv("OPENAM_OPERATIONS_FILE")
        operations_data = None
        if operations_file:
            path = Path(operations_file)
            try:
                operations_data = json.loads(path.read_text())
            except (OSError, json.JSONDecodeError) as e:
                raise ValueError(f"Cannot load operations file {path}: {e}") from e
            if not isinstance(operations_data, dict):
                raise ValueError(f"Operations file {path} must be a JSON object of name to operation")
            logger.info(f"Loaded {len(operations_data)} operation(s) from {path}")

        return cls(
            base_url=base_url,
            timeout=float(os.getenv("OPENAM_API_TIMEOUT", "30")),
            username=os.getenv("OPENAM_API_USERNAME"),
            password=os.getenv("OPENAM_API_PASSWORD"),
            verify_ssl=_env_flag("OPENAM_VERIFY_SSL", "true"),
            debug_response=_env_flag("OPENAM_DEBUG_RESPONSE"),
            debug_exception=_env_flag("OPENAM_DEBUG_EXCEPTION"),
            operations=load_operations(operations_data),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            log_file=os.getenv("LOG_FILE"),
        )

    def operation(self, name: str) -> OperationConfig:
        """Get the configured operation by name."""
        try:
            return self.operations[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    def validate(self) -> None:
        """Validate configuration and raise errors for invalid settings."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid OpenAM API URL: {self.base_url}")

        if not self.base_url.startswith("https://"):
            logger.warning(
                f"OpenAM API URL is not using HTTPS, credentials travel in clear: {self.base_url}"
            )

        if self.timeout <= 0:
            raise ValueError(f"Invalid timeout: {self.timeout}")

        for name, operation in self.operations.items():
            if operation.http_method not in HTTP_METHODS:
                raise ValueError(
                    f"Invalid HTTP method for operation '{name}': {operation.http_method}"
                )

        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid log format: {self.log_format}. Must be one of: json, text")


# Global config instance
_config: Optional[OpenAMConfig] = None


def get_config() -> OpenAMConfig:
    """Get the global configuration instance, loading it if necessary."""
    global _config
    if _config is None:
        _config = OpenAMConfig.from_env()
        _config.validate()
    return _config


def reload_config() -> OpenAMConfig:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = None
    return get_config()
