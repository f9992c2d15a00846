"""Bitwarden member management operations."""
from __future__ import annotations
import dataclasses
import json
import logging
from typing import Optional

from .client import BitwardenClient
from .context import OperationContext
from .models import Member
from .resources import decode, request, require_id

logger = logging.getLogger(__name__)


class MemberService:
    """Service for managing organization members."""

    resource_type = "member"

    def __init__(self, client: BitwardenClient):
        """Initialize member service.

        Args:
            client: Bitwarden client bound to an AuthSession
        """
        self.client = client

    def create(self, member: Member, ctx: Optional[OperationContext] = None) -> Member:
        """Invite a member and return the server's copy.

        Collections are not managed yet, but the API rejects a null collections
        array ("Value cannot be null. (Parameter 'source')"), so create always
        sends an empty list whatever the caller passed.

        Args:
            member: Desired member (email required)
            ctx: Operation context

        Returns:
            Member with server-assigned id, name and status
        """
        member.validate()
        payload = dataclasses.replace(member, collections=[]).to_payload()
        logger.debug("Creating member: %s", json.dumps(payload))
        content = request(self.client, "POST", "/members", payload, ctx, not_found=False)
        logger.debug("Create member response: %s", content.decode("utf-8", errors="replace"))
        created = require_id(Member.from_payload(decode(content, "member")), "member")
        logger.info("Member '%s' created (id=%s, status=%s)", created.email, created.id, created.status.name)
        return created

    def get(self, member_id: str, ctx: Optional[OperationContext] = None) -> Member:
        """Retrieve a member by id.

        Raises:
            NotFoundError: Member does not exist
        """
        content = request(self.client, "GET", f"/members/{member_id}", None, ctx)
        return Member.from_payload(decode(content, "member"))

    def update(self, member_id: str, member: Member, ctx: Optional[OperationContext] = None) -> Member:
        """Replace a member's mutable fields.

        The API replaces the whole record, so every caller-owned field is sent,
        collections included.
        """
        member.validate()
        payload = member.to_payload()
        logger.debug("Updating member %s: %s", member_id, json.dumps(payload))
        content = request(self.client, "PUT", f"/members/{member_id}", payload, ctx)
        updated = Member.from_payload(decode(content, "member"))
        logger.info("Member %s updated", member_id)
        return updated

    def delete(self, member_id: str, ctx: Optional[OperationContext] = None) -> None:
        """Remove a member from the organization.

        Raises:
            NotFoundError: Member does not exist
        """
        request(self.client, "DELETE", f"/members/{member_id}", None, ctx)
        logger.info("Member %s deleted", member_id)
