"""Python client for the OpenAM identity provider REST API."""

__version__ = "0.1.0"
