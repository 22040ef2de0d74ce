"""
Command line entry point for the OpenAM API client.

Loads configuration from the environment, sets up logging and runs one
user operation, printing the JSON result on stdout.

Usage:
    openam-api authenticate alice --realm /customers
    openam-api validate "$TOKEN"
    openam-api attributes alice "$TOKEN"
    openam-api logout "$TOKEN"
"""

import argparse
import getpass
import json
import logging
import os
import sys
from typing import List, Optional

import httpx

from openam_api.auth.api_client import OpenAMApiClient
from openam_api.auth.users import UserOperations
from openam_api.config import OpenAMConfig
from openam_api.errors import OpenAMError
from openam_api.utils.logging_config import setup_logging
from openam_api.utils.uri_template import TemplateError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def create_user_operations(
    config: OpenAMConfig,
    transport: Optional[httpx.BaseTransport] = None,
) -> UserOperations:
    """
    Wire an API client and the user operations from configuration.

    Args:
        config: Validated OpenAM configuration
        transport: Optional httpx transport

    Returns:
        Ready-to-use UserOperations
    """
    client = OpenAMApiClient(config, transport=transport)
    return UserOperations(client)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="openam-api", description="OpenAM REST API client")
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("authenticate", help="Authenticate a user and print the session")
    auth.add_argument("username")
    auth.add_argument("--password", default=os.environ.get("OPENAM_PASSWORD"))
    auth.add_argument("--realm", default=None)

    validate = sub.add_parser("validate", help="Validate a session token")
    validate.add_argument("token")

    attributes = sub.add_parser("attributes", help="Fetch a user's attributes")
    attributes.add_argument("username")
    attributes.add_argument("token")

    logout = sub.add_parser("logout", help="Invalidate a session token")
    logout.add_argument("token")

    return parser


def run(args: argparse.Namespace, operations: UserOperations) -> int:
    """Run the selected command and print its result."""
    if args.command == "authenticate":
        password = args.password or getpass.getpass("Password: ")
        try:
            result = operations.authenticate(args.username, password, realm=args.realm)
        except OpenAMError as e:
            print(json.dumps({"error": e.kind.value, "message": e.message}))
            return EXIT_FAILED
    elif args.command == "validate":
        result = operations.validate_token(args.token)
    elif args.command == "attributes":
        result = operations.get_user_attributes(args.username, args.token)
    else:
        result = operations.logout(args.token)

    print(json.dumps(result, indent=2))
    return EXIT_FAILED if result is False or result is None else EXIT_OK


def main(argv: Optional[List[str]] = None, transport: Optional[httpx.BaseTransport] = None) -> int:
    """Main entry point for the command line."""
    args = build_parser().parse_args(argv)

    try:
        config = OpenAMConfig.from_env()
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    setup_logging(
        level=config.log_level,
        format_type=config.log_format,
        log_file=config.log_file,
    )

    try:
        return run(args, create_user_operations(config, transport))
    except TemplateError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
