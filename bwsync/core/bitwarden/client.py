"""Low-level HTTP client for the Bitwarden Public API.

Executes one authenticated request/response exchange. Status codes are passed
through untouched; classifying them is up to the resource services.
"""
from __future__ import annotations
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import requests

from .context import OperationContext, ensure_context
from .exceptions import TransportError
from .session import AuthSession, REQUEST_TIMEOUT

if TYPE_CHECKING:
    from bwsync.config.settings import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.bitwarden.com/public"
CONTENT_TYPE = "application/json"


class BitwardenClient:
    """HTTP transport for the Bitwarden Public API.

    Features:
    - Bearer token injection through the shared AuthSession
    - JSON request bodies
    - Network failures reported as TransportError
    - No retries and no status interpretation (a 401 reaches the caller)

    Usage:
        session = AuthSession(client_id, client_secret)
        client = BitwardenClient("https://api.bitwarden.com/public", session)
        status, body = client.send("GET", "/groups/abc")
    """

    def __init__(
        self,
        base_url: str,
        session: AuthSession,
        *,
        http: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            base_url: API base URL (e.g. https://api.bitwarden.com/public)
            session: Authentication session shared across clients
            http: requests session used for resource requests
            timeout: Request timeout in seconds
        """
        self.base_url = (base_url or DEFAULT_API_URL).rstrip("/")
        self.session = session
        self.timeout = timeout
        self._http = http or requests.Session()

    def send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        ctx: Optional[OperationContext] = None,
    ) -> Tuple[int, bytes]:
        """Execute a single authenticated request.

        Args:
            method: HTTP verb
            path: Endpoint path relative to base_url (e.g. "/groups")
            body: JSON-serializable payload
            ctx: Operation context for cancellation and deadline

        Returns:
            (status code, raw response body)

        Raises:
            AuthError: No credential could be obtained
            TransportError: Network-level failure
            OperationCancelledError: ctx was cancelled before dispatch
        """
        ctx = ensure_context(ctx)
        result, _ = self._send(method, path, body, ctx)
        return result

    def send_with_token(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        ctx: Optional[OperationContext] = None,
    ) -> Tuple[Tuple[int, bytes], str]:
        """Like send(), also returning the access token the request carried."""
        return self._send(method, path, body, ensure_context(ctx))

    def _send(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        ctx: OperationContext,
    ) -> Tuple[Tuple[int, bytes], str]:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": CONTENT_TYPE, "Accept": CONTENT_TYPE}
        token = self.session.authorize(headers, ctx)

        data = json.dumps(body) if body is not None else None

        ctx.raise_if_cancelled()
        logger.debug("%s %s", method, url)
        try:
            resp = self._http.request(
                method,
                url,
                data=data,
                headers=headers,
                timeout=ctx.timeout_for(self.timeout),
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise TransportError(exc, url) from exc

        logger.debug("%s %s -> %s", method, url, resp.status_code)
        return (resp.status_code, resp.content), token


def create_client(config: "AppConfig", *, http: Optional[requests.Session] = None) -> BitwardenClient:
    """Build an AuthSession and a BitwardenClient from settings.

    Both share one requests session so connections are pooled.

    Args:
        config: Loaded application settings
        http: Optional requests session (tests)

    Returns:
        BitwardenClient bound to a fresh AuthSession
    """
    http = http or requests.Session()
    session = AuthSession(
        config.client_id,
        config.client_secret,
        config.auth_url,
        http=http,
        timeout=config.request_timeout,
    )
    logger.debug(
        "Creating Bitwarden API client (client_id=%s, api_url=%s, auth_url=%s, client_secret=***)",
        config.client_id,
        config.api_url,
        config.auth_url,
    )
    return BitwardenClient(config.api_url, session, http=http, timeout=config.request_timeout)
