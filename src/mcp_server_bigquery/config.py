"""
Process configuration for the MCP BigQuery server.

The configuration is built once at startup from the command line (with
environment fallbacks), validated, and then passed explicitly to the
components that need it.
"""
import argparse
import json
import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from mcp_server_bigquery.env_utils import get_location_from_env, get_project_id_from_env
from mcp_server_bigquery.errors import ConfigError

logger = logging.getLogger("mcp-server-bigquery")

DEFAULT_LOCATION = "us-central1"

PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
LOCATION_PATTERN = re.compile(r"^[a-z]+-[a-z]+\d+$")

USAGE = (
    "Usage: mcp-server-bigquery --project-id <project-id> "
    "[--location <location>] [--key-file <path-to-key-file>] [--minimal]"
)


@dataclass(frozen=True)
class WarehouseIdentity:
    """The BigQuery project and location every request runs against."""

    project_id: str
    location: Optional[str] = DEFAULT_LOCATION

    def validate(self) -> None:
        if not PROJECT_ID_PATTERN.match(self.project_id):
            raise ConfigError("Invalid project ID format")
        if self.location and not LOCATION_PATTERN.match(self.location):
            raise ConfigError("Invalid location format")


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration.

    Attributes:
        identity: Project and location used for all BigQuery calls.
        key_file: Optional path to a service account key file.
        extended: Serve the extended variant (prompts, resource metadata,
            sample queries and dataset-hinted table qualification).
    """

    identity: WarehouseIdentity
    key_file: Optional[str] = None
    extended: bool = True

    @property
    def project_id(self) -> str:
        return self.identity.project_id

    @property
    def location(self) -> Optional[str]:
        return self.identity.location


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises ConfigError instead of exiting."""

    def error(self, message):
        raise ConfigError(f"{message}\n{USAGE}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="mcp-server-bigquery",
        description="MCP BigQuery Server",
        allow_abbrev=False,
        add_help=False,
    )
    parser.add_argument(
        "--project-id",
        help="Google Cloud project ID (falls back to PROJECT_ID)",
    )
    parser.add_argument(
        "--location",
        help=f"BigQuery location/region (falls back to LOCATION, default: {DEFAULT_LOCATION})",
    )
    parser.add_argument(
        "--key-file",
        help="Path to a service account key file",
    )
    parser.add_argument(
        "--minimal",
        action="store_true",
        help="Serve only resources and tools, without prompts or dataset-hinted table qualification",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> ServerConfig:
    """
    Parse command-line arguments into a ServerConfig.

    Args:
        argv: Argument list, defaults to sys.argv[1:]

    Returns:
        The parsed, not yet validated, configuration

    Raises:
        ConfigError: On unknown arguments, missing values or a missing project ID
    """
    args = build_parser().parse_args(argv)

    project_id = args.project_id or get_project_id_from_env()
    if not project_id:
        raise ConfigError(f"Missing required argument: --project-id\n{USAGE}")

    location = args.location or get_location_from_env() or DEFAULT_LOCATION

    return ServerConfig(
        identity=WarehouseIdentity(project_id=project_id, location=location),
        key_file=args.key_file,
        extended=not args.minimal,
    )


def validate_key_file(path: str) -> None:
    """
    Check that ``path`` is a readable service account key file.

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON, or not a
            service account key with a project ID
    """
    if not os.path.isfile(path) or not os.access(path, os.R_OK):
        raise ConfigError(f"Service account key file not accessible: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            key_data = json.load(f)
    except json.JSONDecodeError:
        raise ConfigError("Service account key file is not valid JSON")
    except OSError as e:
        raise ConfigError(f"Service account key file not accessible: {path} ({e})")

    if (
        not isinstance(key_data, dict)
        or key_data.get("type") != "service_account"
        or not key_data.get("project_id")
    ):
        raise ConfigError("Invalid service account key file format")


def validate_config(config: ServerConfig) -> None:
    """Validate the key file and the warehouse identity, raising ConfigError."""
    if config.key_file:
        validate_key_file(config.key_file)
    config.identity.validate()
