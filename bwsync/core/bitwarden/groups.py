"""Bitwarden group management operations."""
from __future__ import annotations
import logging
from typing import Optional

from .client import BitwardenClient
from .context import OperationContext
from .models import Group
from .resources import decode, request, require_id

logger = logging.getLogger(__name__)


class GroupService:
    """Service for managing organization groups."""

    resource_type = "group"

    def __init__(self, client: BitwardenClient):
        """Initialize group service.

        Args:
            client: Bitwarden client bound to an AuthSession
        """
        self.client = client

    def create(self, group: Group, ctx: Optional[OperationContext] = None) -> Group:
        """Create a group and return the server's copy.

        Args:
            group: Desired group (name required)
            ctx: Operation context

        Returns:
            Group with the server-assigned id
        """
        group.validate()
        content = request(self.client, "POST", "/groups", group.to_payload(), ctx, not_found=False)
        created = require_id(Group.from_payload(decode(content, "group")), "group")
        logger.info("Group '%s' created (id=%s)", created.name, created.id)
        return created

    def get(self, group_id: str, ctx: Optional[OperationContext] = None) -> Group:
        """Retrieve a group by id.

        Raises:
            NotFoundError: Group does not exist
        """
        content = request(self.client, "GET", f"/groups/{group_id}", None, ctx)
        return Group.from_payload(decode(content, "group"))

    def update(self, group_id: str, group: Group, ctx: Optional[OperationContext] = None) -> Group:
        """Replace a group's mutable fields.

        The API replaces the whole record, so every caller-owned field is sent.
        """
        group.validate()
        content = request(self.client, "PUT", f"/groups/{group_id}", group.to_payload(), ctx)
        updated = Group.from_payload(decode(content, "group"))
        logger.info("Group %s updated", group_id)
        return updated

    def delete(self, group_id: str, ctx: Optional[OperationContext] = None) -> None:
        """Delete a group.

        Raises:
            NotFoundError: Group does not exist
        """
        request(self.client, "DELETE", f"/groups/{group_id}", None, ctx)
        logger.info("Group %s deleted", group_id)
