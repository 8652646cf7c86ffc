"""
Environment lookups and credential selection for the BigQuery MCP server.

Credentials come from, in order: the ``--key-file`` flag, a service account
key named by GOOGLE_APPLICATION_CREDENTIALS, or Application Default
Credentials resolved by the BigQuery client itself.
"""
import json
import logging
import os
from typing import Optional

from google.oauth2 import service_account

logger = logging.getLogger("mcp-server-bigquery")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def get_env_or_default(env_var: str, default=None):
    """Return a non-empty environment variable, or ``default``."""
    value = os.environ.get(env_var)
    if value:
        logger.info(f"Using environment variable {env_var}={value}")
    return value or default


def get_project_id_from_env():
    return get_env_or_default("PROJECT_ID")


def get_location_from_env():
    return get_env_or_default("LOCATION")


def get_credentials_path_from_env():
    return get_env_or_default("GOOGLE_APPLICATION_CREDENTIALS")


def is_service_account_key(path: str) -> bool:
    """True if ``path`` is a readable JSON file of type ``service_account``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            key_data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return False
    return isinstance(key_data, dict) and key_data.get("type") == "service_account"


def load_credentials_from_file(path: str) -> service_account.Credentials:
    """
    Load service account credentials scoped to cloud-platform.

    Raises:
        FileNotFoundError: If the key file doesn't exist
    """
    if not path or not os.path.exists(path):
        raise FileNotFoundError(f"Service account key file not found: {path}")

    creds = service_account.Credentials.from_service_account_file(
        path,
        scopes=[CLOUD_PLATFORM_SCOPE],
    )
    logger.info(f"Loaded credentials for service account: {creds.service_account_email}")
    return creds


def resolve_credentials(key_file: Optional[str] = None) -> Optional[service_account.Credentials]:
    """
    Pick the credentials the BigQuery client should use.

    Args:
        key_file: Key file given on the command line, if any

    Returns:
        Service account credentials, or None to let the client fall back to
        Application Default Credentials
    """
    if key_file:
        logger.info(f"Using service account key file: {key_file}")
        return load_credentials_from_file(key_file)

    env_path = get_credentials_path_from_env()
    if env_path and is_service_account_key(env_path):
        logger.info(f"Using service account key from GOOGLE_APPLICATION_CREDENTIALS: {env_path}")
        return load_credentials_from_file(env_path)

    logger.info("Using Application Default Credentials")
    return None
