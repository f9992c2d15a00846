"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.bitwarden.com/public"
DEFAULT_AUTH_URL = "https://identity.bitwarden.com/connect/token"
DEFAULT_REQUEST_TIMEOUT = 10.0


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)
        else:
            if secret_value:
                logger.info("Loaded %s from /run/secrets", secret_name)
                return secret_value

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.info("Loaded %s from environment", env_var)
            return secret_value

    return None


def _first_env(*names: str) -> Optional[str]:
    """Return the first non-empty environment variable among names."""
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Organization API credentials
    client_id: str
    client_secret: str

    # Endpoints
    api_url: str = DEFAULT_API_URL
    auth_url: str = DEFAULT_AUTH_URL

    # HTTP
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        self.api_url = self.api_url.rstrip("/")
        self.auth_url = self.auth_url.rstrip("/")

    def __repr__(self) -> str:
        return (
            f"AppConfig(client_id={self.client_id!r}, client_secret='***', "
            f"api_url={self.api_url!r}, auth_url={self.auth_url!r}, "
            f"request_timeout={self.request_timeout!r}, log_level={self.log_level!r})"
        )


def load_settings(
    *,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
    api_url: Optional[str] = None,
    auth_url: Optional[str] = None,
    request_timeout: Optional[float] = None,
    log_level: Optional[str] = None,
) -> AppConfig:
    """Load application settings from environment and /run/secrets.

    Keyword arguments that are not None (command-line flags) take precedence
    over the environment.

    Environment:
        BITWARDEN_CLIENT_ID: Organization API client id (required)
        BITWARDEN_CLIENT_SECRET: Organization API client secret (required,
            /run/secrets/bitwarden_client_secret takes priority)
        BITWARDEN_API_URL: API base URL
        BITWARDEN_AUTHENTICATION_URL / BITWARDEN_AUTH_URL: Token endpoint
        BITWARDEN_REQUEST_TIMEOUT: Request timeout in seconds
        BWSYNC_LOG_LEVEL: Logging level name

    Raises:
        RuntimeError: A required value is missing or a value is malformed
    """
    client_id = client_id or _first_env("BITWARDEN_CLIENT_ID")
    if not client_id:
        raise RuntimeError(
            "Missing Bitwarden client_id. Set the BITWARDEN_CLIENT_ID environment variable. "
            "If it is already set, ensure the value is not empty."
        )

    client_secret = client_secret or _load_secret_from_file("bitwarden_client_secret", "BITWARDEN_CLIENT_SECRET")
    if not client_secret:
        raise RuntimeError(
            "Missing Bitwarden client_secret. Provide it via /run/secrets/bitwarden_client_secret "
            "or the BITWARDEN_CLIENT_SECRET environment variable."
        )

    api_url = api_url or _first_env("BITWARDEN_API_URL") or DEFAULT_API_URL
    auth_url = auth_url or _first_env("BITWARDEN_AUTHENTICATION_URL", "BITWARDEN_AUTH_URL") or DEFAULT_AUTH_URL

    if request_timeout is None:
        request_timeout = DEFAULT_REQUEST_TIMEOUT
        timeout_str = _first_env("BITWARDEN_REQUEST_TIMEOUT")
        if timeout_str:
            try:
                request_timeout = float(timeout_str)
            except ValueError:
                raise RuntimeError(f"BITWARDEN_REQUEST_TIMEOUT must be a number, got {timeout_str!r}")
    if request_timeout <= 0:
        raise RuntimeError("BITWARDEN_REQUEST_TIMEOUT must be positive")

    log_level = (log_level or _first_env("BWSYNC_LOG_LEVEL") or "INFO").upper()

    config = AppConfig(
        client_id=client_id,
        client_secret=client_secret,
        api_url=api_url,
        auth_url=auth_url,
        request_timeout=request_timeout,
        log_level=log_level,
    )
    logger.info("Settings loaded: client_id=%s; api_url=%s; auth_url=%s", client_id, config.api_url, config.auth_url)
    return config
