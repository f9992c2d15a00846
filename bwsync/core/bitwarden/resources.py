"""Resource client capability and shared response handling.

``ResourceClient`` is the operation set every per-type service offers
(GroupService, MemberService). The services do not share a base class; the
helpers below are plain functions they both call.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional, Protocol, TypeVar

from .client import BitwardenClient
from .context import OperationContext, ensure_context
from .exceptions import APIError, NotFoundError, SerializationError

logger = logging.getLogger(__name__)

R = TypeVar("R")


class ResourceClient(Protocol[R]):
    """Create/get/update/delete for one resource type."""

    resource_type: str

    def create(self, record: R, ctx: Optional[OperationContext] = None) -> R: ...

    def get(self, resource_id: str, ctx: Optional[OperationContext] = None) -> R: ...

    def update(self, resource_id: str, record: R, ctx: Optional[OperationContext] = None) -> R: ...

    def delete(self, resource_id: str, ctx: Optional[OperationContext] = None) -> None: ...


def request(
    client: BitwardenClient,
    method: str,
    path: str,
    body: Optional[Dict[str, Any]] = None,
    ctx: Optional[OperationContext] = None,
    *,
    not_found: bool = True,
) -> bytes:
    """Send a request and classify the response.

    A 401 invalidates the rejected token and the request is retried once with
    a fresh one; a second 401 surfaces as APIError.

    Args:
        client: Transport to send through
        method: HTTP verb
        path: Endpoint path
        body: JSON payload
        ctx: Operation context
        not_found: Map HTTP 404 to NotFoundError (otherwise APIError)

    Returns:
        Raw body of the 2xx response

    Raises:
        NotFoundError: HTTP 404 when not_found is set
        APIError: Any other non-2xx status
        TransportError, AuthError, OperationCancelledError: From the transport
    """
    ctx = ensure_context(ctx)
    (status, content), token = client.send_with_token(method, path, body, ctx)
    if status == 401:
        logger.warning("%s %s rejected the access token, refreshing and retrying once", method, path)
        client.session.invalidate(token)
        status, content = client.send(method, path, body, ctx)

    endpoint = f"{client.base_url}{path}"
    text = content.decode("utf-8", errors="replace") if content else ""
    if status == 404 and not_found:
        raise NotFoundError(text, endpoint)
    if not 200 <= status < 300:
        raise APIError(status, text, endpoint)

    ctx.raise_if_cancelled()
    return content


def decode(content: bytes, kind: str) -> Any:
    """Parse a JSON response body.

    Raises:
        SerializationError: Body is empty or not valid JSON
    """
    if not content:
        raise SerializationError(f"Empty response body for {kind}")
    try:
        return json.loads(content)
    except ValueError as exc:
        raise SerializationError(f"Invalid JSON in {kind} response: {exc}") from exc


def require_id(record: R, kind: str) -> R:
    """Return record, or raise if the server did not assign it an id.

    Raises:
        SerializationError: The response carried no id
    """
    if not getattr(record, "id", None):
        raise SerializationError(f"{kind.capitalize()} response is missing an id")
    return record
