"""OAuth2 client-credentials session for the Bitwarden Public API.

Owns the bearer credential: acquisition, caching, and refresh. A single
``AuthSession`` is shared by every client in the process, so refreshes are
single-flight: concurrent callers that find no valid credential all wait on
one in-flight token request and receive its result, success or failure.

Usage:
    session = AuthSession("organization.abc", "s3cret")
    client = BitwardenClient("https://api.bitwarden.com/public", session)
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, MutableMapping, Optional

import requests

from .context import OperationContext, ensure_context
from .exceptions import AuthError, OperationCancelledError

logger = logging.getLogger(__name__)

DEFAULT_AUTH_URL = "https://identity.bitwarden.com/connect/token"
TOKEN_SCOPE = "api.organization"
REQUEST_TIMEOUT = 10

# Refresh slightly before the server-side expiry
EXPIRY_MARGIN = timedelta(seconds=10)
# Used when the token endpoint omits expires_in
DEFAULT_TOKEN_TTL = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    """Bearer token and the instant it stops being usable."""

    access_token: str = field(repr=False)
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None, margin: timedelta = EXPIRY_MARGIN) -> bool:
        """Return True while the token is usable for at least ``margin``."""
        now = now or _utcnow()
        return now < self.expires_at - margin


class AuthSession:
    """Client-credentials token manager with single-flight refresh.

    Features:
    - Lazy acquisition on first use, no background refresh
    - Refresh when the cached token is expired or within EXPIRY_MARGIN of expiry
    - Concurrent refreshes collapse into one token request
    - Failures are never cached; the next call retries on its own
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_url: str = DEFAULT_AUTH_URL,
        *,
        http: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the session.

        Args:
            client_id: Organization API client id (``organization.<uuid>``)
            client_secret: Organization API client secret
            auth_url: Token endpoint URL
            http: requests session used for the token request
            timeout: Token request timeout in seconds
            clock: Callable returning the current aware datetime (tests)
        """
        self.client_id = client_id
        self._client_secret = client_secret
        self.auth_url = auth_url
        self.timeout = timeout
        self._http = http or requests.Session()
        self._clock = clock or _utcnow

        self._lock = threading.Lock()
        self._credential: Optional[Credential] = None
        self._inflight: Optional[Future] = None

    def credential(self, ctx: Optional[OperationContext] = None) -> Credential:
        """Return a valid credential, refreshing it if necessary.

        Args:
            ctx: Operation context for cancellation and deadline

        Returns:
            Credential valid for at least EXPIRY_MARGIN

        Raises:
            AuthError: Token acquisition failed
            OperationCancelledError: ctx was cancelled before a credential was available
        """
        ctx = ensure_context(ctx)
        ctx.raise_if_cancelled()

        with self._lock:
            cached = self._credential
            if cached is not None and cached.is_valid(self._clock()):
                return cached
            flight = self._inflight
            leader = flight is None
            if leader:
                flight = Future()
                self._inflight = flight

        if leader:
            self._refresh(flight, ctx)
        else:
            logger.debug("Token refresh already in flight, waiting for it")
        return self._wait(flight, ctx)

    def authorize(self, headers: MutableMapping[str, str], ctx: Optional[OperationContext] = None) -> str:
        """Attach the current bearer token to ``headers``.

        Returns:
            The access token that was attached, for use with invalidate()
        """
        credential = self.credential(ctx)
        headers["Authorization"] = f"Bearer {credential.access_token}"
        return credential.access_token

    def invalidate(self, access_token: Optional[str] = None) -> None:
        """Drop the cached credential so the next call fetches a new one.

        Args:
            access_token: Only drop the cache if it still holds this token. A
                concurrent caller may already have replaced it.
        """
        with self._lock:
            cached = self._credential
            if cached is None:
                return
            if access_token is None or cached.access_token == access_token:
                logger.info("Discarding cached access token")
                self._credential = None

    def _refresh(self, flight: Future, ctx: OperationContext) -> None:
        try:
            credential = self._request_token(ctx)
        except BaseException as exc:
            # Waiters must never be left on an unresolved future
            with self._lock:
                self._inflight = None
            flight.set_exception(exc)
            if not isinstance(exc, Exception):
                raise
            return

        with self._lock:
            self._credential = credential
            self._inflight = None
        flight.set_result(credential)

    def _wait(self, flight: Future, ctx: OperationContext) -> Credential:
        try:
            return flight.result(timeout=ctx.remaining())
        except FutureTimeoutError:
            raise OperationCancelledError("Timed out waiting for token refresh")

    def _request_token(self, ctx: OperationContext) -> Credential:
        """Perform the client-credentials grant against the token endpoint."""
        data = {
            "grant_type": "client_credentials",
            "scope": TOKEN_SCOPE,
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }
        logger.debug("Requesting access token from %s for client %s", self.auth_url, self.client_id)
        try:
            resp = self._http.post(
                self.auth_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=ctx.timeout_for(self.timeout),
            )
        except requests.RequestException as exc:
            logger.error("Token request to %s failed: %s", self.auth_url, exc)
            raise AuthError(exc) from exc

        if not 200 <= resp.status_code < 300:
            logger.error("Token endpoint returned HTTP %s", resp.status_code)
            raise AuthError(f"token endpoint returned {resp.status_code}: {resp.text}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthError(f"malformed token response: {exc}") from exc

        if not isinstance(payload, dict):
            raise AuthError("malformed token response: expected a JSON object")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("token response missing access_token")

        expires_in = payload.get("expires_in", DEFAULT_TOKEN_TTL)
        if isinstance(expires_in, bool):
            raise AuthError(f"invalid expires_in in token response: {expires_in!r}")
        try:
            ttl = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise AuthError(f"invalid expires_in in token response: {expires_in!r}") from exc

        expires_at = self._clock() + timedelta(seconds=ttl)
        logger.info("Obtained access token for %s (expires in %ss)", self.client_id, ttl)
        return Credential(access_token=access_token, expires_at=expires_at)
