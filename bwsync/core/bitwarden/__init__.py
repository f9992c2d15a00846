"""Bitwarden Public API client library.

This package provides a modular, testable interface to the organization
endpoints of the Bitwarden Public API (https://bitwarden.com/help/api/).

Architecture:
- session.py: OAuth2 client-credentials token with single-flight refresh
- client.py: HTTP transport with credential injection
- resources.py: ResourceClient capability and response classification
- groups.py: Group create/get/update/delete
- members.py: Member create/get/update/delete
- models.py: Group and Member records and their JSON mapping
- context.py: Cancellation and deadlines for a single operation
- exceptions.py: Typed exceptions for error handling

Usage:
    from bwsync.core.bitwarden import AuthSession, BitwardenClient, GroupService

    session = AuthSession("organization.abc", "s3cret")
    client = BitwardenClient("https://api.bitwarden.com/public", session)

    groups = GroupService(client)
    group = groups.get("2c7b8f3e-...")
"""
from .client import (
    BitwardenClient,
    create_client,
    DEFAULT_API_URL,
)
from .context import OperationContext
from .exceptions import (
    BitwardenError,
    AuthError,
    TransportError,
    APIError,
    NotFoundError,
    SerializationError,
    OperationCancelledError,
    StateTransitionError,
)
from .groups import GroupService
from .members import MemberService
from .models import (
    Group,
    Member,
    Collection,
    MemberType,
    MemberStatus,
    diff_records,
)
from .resources import ResourceClient
from .session import (
    AuthSession,
    Credential,
    DEFAULT_AUTH_URL,
    REQUEST_TIMEOUT,
)

__all__ = [
    # Transport and auth
    "BitwardenClient",
    "create_client",
    "AuthSession",
    "Credential",
    "OperationContext",
    "DEFAULT_API_URL",
    "DEFAULT_AUTH_URL",
    "REQUEST_TIMEOUT",

    # Exceptions
    "BitwardenError",
    "AuthError",
    "TransportError",
    "APIError",
    "NotFoundError",
    "SerializationError",
    "OperationCancelledError",
    "StateTransitionError",

    # Services
    "ResourceClient",
    "GroupService",
    "MemberService",

    # Models
    "Group",
    "Member",
    "Collection",
    "MemberType",
    "MemberStatus",
    "diff_records",
]
