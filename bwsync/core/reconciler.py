"""
Reconciliation Engine: Desired State Convergence for Groups and Members

This module sequences ResourceClient calls to converge a locally declared
record with the remote Bitwarden state. It is invoked synchronously by an
external orchestrator, which decides when to reconcile and persists the
records it gets back.

Architecture:
    orchestrator ──> ReconciliationEngine ──> GroupService / MemberService
                                                   │
                                                   └──> BitwardenClient ──> AuthSession

Lifecycle of a TrackedResource:
    UNMANAGED ──create──> CREATING ──> SYNCED ──update──> UPDATING ──> SYNCED
    UNMANAGED ──import──> IMPORTING ──> SYNCED
    SYNCED ──delete──> DELETING ──> GONE

Rules:
    - The server copy always wins: after every successful call the tracked
      record is the record the API returned, never the desired one
    - A failed or cancelled call leaves the tracked record untouched and rolls
      the state back
    - Read raising NotFoundError means the remote record is gone; the resource
      returns to UNMANAGED and the caller should drop it (no automatic recreate)
    - Delete treats NotFoundError as success
"""
from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Iterable, Optional, Tuple, TypeVar

from bwsync.core.bitwarden import (
    BitwardenClient,
    GroupService,
    MemberService,
    NotFoundError,
    OperationContext,
    ResourceClient,
    SerializationError,
    StateTransitionError,
    diff_records,
)
from bwsync.core.bitwarden.context import ensure_context

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Same layout as Go's time.RFC850, e.g. "Monday, 02-Jan-06 15:04:05 UTC"
RFC850_FORMAT = "%A, %d-%b-%y %H:%M:%S UTC"


class ResourceState(str, Enum):
    """Lifecycle state of a tracked resource instance."""

    UNMANAGED = "unmanaged"
    CREATING = "creating"
    IMPORTING = "importing"
    SYNCED = "synced"
    UPDATING = "updating"
    DELETING = "deleting"
    GONE = "gone"


@dataclass
class TrackedResource(Generic[R]):
    """One resource instance under reconciliation.

    Attributes:
        resource_type: "group" or "member"
        state: Current lifecycle state
        record: Last server copy (None until created or imported)
        last_updated: RFC 850 timestamp of the last successful create/update
        drift: Fields that changed remotely, as found by the last read
    """

    resource_type: str
    state: ResourceState = ResourceState.UNMANAGED
    record: Optional[R] = None
    last_updated: Optional[str] = None
    drift: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def id(self) -> Optional[str]:
        return getattr(self.record, "id", None) if self.record is not None else None

    @property
    def has_drift(self) -> bool:
        return bool(self.drift)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime(RFC850_FORMAT)


class ReconciliationEngine(Generic[R]):
    """Converges tracked resources of one type with the Bitwarden API.

    The engine holds no resource state of its own; each TrackedResource is
    owned by the caller and may be reconciled from any thread. Operations on
    the same instance must not overlap.

    Usage:
        engine = ReconciliationEngine(GroupService(client))
        group = engine.track()
        engine.create(group, Group(name="eng", access_all=True))
        engine.read(group)
        engine.update(group, Group(name="eng-2"))
        engine.delete(group)
    """

    def __init__(self, client: ResourceClient[R]):
        """Initialize the engine.

        Args:
            client: Resource client for the managed type (GroupService or MemberService)
        """
        self.client = client
        self.resource_type = client.resource_type

    def track(self, record: Optional[R] = None) -> TrackedResource[R]:
        """Return a TrackedResource for this engine's type.

        Args:
            record: Previously persisted server record. When given, the
                resource starts SYNCED; otherwise UNMANAGED.
        """
        if record is not None:
            if getattr(record, "id", None) is None:
                raise ValueError(f"Cannot track a {self.resource_type} record without an id")
            return TrackedResource(self.resource_type, ResourceState.SYNCED, record)
        return TrackedResource(self.resource_type)

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────

    def create(self, resource: TrackedResource[R], desired: R, ctx: Optional[OperationContext] = None) -> R:
        """Create the remote record and start tracking the server copy.

        Args:
            resource: Resource in UNMANAGED state
            desired: Desired record, without id
            ctx: Operation context

        Returns:
            Server record (id, and name/status for members, filled in)

        Raises:
            ValueError: desired already carries an id
            StateTransitionError: resource is not UNMANAGED
        """
        if getattr(desired, "id", None):
            raise ValueError(f"Desired {self.resource_type} must not have an id before create")
        ctx = ensure_context(ctx)

        with self._operation(resource, "create", (ResourceState.UNMANAGED,), ResourceState.CREATING):
            created = self.client.create(desired, ctx)
            ctx.raise_if_cancelled()
            self._commit(resource, created, stamp=True)

        logger.info("Created %s %s", self.resource_type, resource.id)
        return created

    def read(self, resource: TrackedResource[R], ctx: Optional[OperationContext] = None) -> R:
        """Refresh the tracked record from the API and record drift.

        Args:
            resource: Resource in SYNCED state
            ctx: Operation context

        Returns:
            Fresh server record

        Raises:
            NotFoundError: The record no longer exists remotely; the resource
                is back in UNMANAGED and should no longer be tracked
            StateTransitionError: resource is not SYNCED
        """
        ctx = ensure_context(ctx)
        resource_id = resource.id

        try:
            with self._operation(resource, "read", (ResourceState.SYNCED,), ResourceState.SYNCED):
                fresh = self.client.get(resource.id, ctx)
                ctx.raise_if_cancelled()
                drift = diff_records(resource.record, fresh)
                self._commit(resource, fresh)
                resource.drift = drift
        except NotFoundError:
            logger.warning("%s %s no longer exists remotely, dropping it", self.resource_type, resource_id)
            self._forget(resource, ResourceState.UNMANAGED)
            raise

        if drift:
            logger.warning("Drift detected on %s %s: %s", self.resource_type, resource_id, ", ".join(sorted(drift)))
        return fresh

    def fetch(self, resource_id: str, ctx: Optional[OperationContext] = None) -> R:
        """Read a remote record by id without tracking it.

        Raises:
            NotFoundError: No remote record with that id
        """
        return self.client.get(resource_id, ensure_context(ctx))

    def update(self, resource: TrackedResource[R], desired: R, ctx: Optional[OperationContext] = None) -> R:
        """Replace the remote record's caller-owned fields with desired.

        Every caller-owned field is sent, including unchanged ones, because
        the API replaces the whole record.

        Args:
            resource: Resource in SYNCED state
            desired: Desired record; its id, if set, must match the tracked id
            ctx: Operation context

        Returns:
            Server record after the update

        Raises:
            ValueError: desired.id does not match the tracked id
            StateTransitionError: resource is not SYNCED
        """
        desired_id = getattr(desired, "id", None)
        if desired_id and desired_id != resource.id:
            raise ValueError(
                f"Desired {self.resource_type} id {desired_id} does not match tracked id {resource.id}"
            )
        ctx = ensure_context(ctx)

        with self._operation(resource, "update", (ResourceState.SYNCED,), ResourceState.UPDATING):
            updated = self.client.update(resource.id, desired, ctx)
            ctx.raise_if_cancelled()
            self._commit(resource, updated, stamp=True)

        logger.info("Updated %s %s", self.resource_type, resource.id)
        return updated

    def delete(self, resource: TrackedResource[R], ctx: Optional[OperationContext] = None) -> None:
        """Delete the remote record.

        A record that is already absent remotely counts as deleted; an earlier
        delete may have gone through with its response lost.

        Args:
            resource: Resource in SYNCED (or already GONE) state
            ctx: Operation context

        Raises:
            StateTransitionError: resource is neither SYNCED nor GONE
        """
        if resource.state == ResourceState.GONE:
            return
        ctx = ensure_context(ctx)
        resource_id = resource.id

        with self._operation(resource, "delete", (ResourceState.SYNCED,), ResourceState.DELETING):
            try:
                self.client.delete(resource_id, ctx)
            except NotFoundError:
                logger.info("%s %s already absent, treating delete as done", self.resource_type, resource_id)
            ctx.raise_if_cancelled()
            resource.record = None
            resource.drift = {}
            resource.state = ResourceState.GONE

        logger.info("Deleted %s %s", self.resource_type, resource_id)

    def import_resource(self, resource: TrackedResource[R], resource_id: str, ctx: Optional[OperationContext] = None) -> R:
        """Attach an existing remote record without creating it.

        Args:
            resource: Resource in UNMANAGED state
            resource_id: Remote id to import
            ctx: Operation context

        Returns:
            Server record, server-owned fields included

        Raises:
            NotFoundError: No remote record with that id; resource stays UNMANAGED
            StateTransitionError: resource is not UNMANAGED
        """
        if not resource_id:
            raise ValueError(f"An id is required to import a {self.resource_type}")
        ctx = ensure_context(ctx)

        with self._operation(resource, "import", (ResourceState.UNMANAGED,), ResourceState.IMPORTING):
            imported = self.client.get(resource_id, ctx)
            ctx.raise_if_cancelled()
            self._commit(resource, imported)

        logger.info("Imported %s %s", self.resource_type, resource_id)
        return imported

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    @contextmanager
    def _operation(
        self,
        resource: TrackedResource[R],
        operation: str,
        allowed: Iterable[ResourceState],
        transient: ResourceState,
    ):
        """Guard one operation on a resource.

        Checks the source state, enters the transient state, and restores the
        previous state if the body raises.
        """
        if resource.resource_type != self.resource_type:
            raise StateTransitionError(
                f"Cannot {operation} a {resource.resource_type} with the {self.resource_type} engine"
            )
        if not resource._lock.acquire(blocking=False):
            raise StateTransitionError(
                f"Another operation is in progress on {self.resource_type} {resource.id} ({resource.state.value})"
            )
        try:
            if resource.state not in allowed:
                raise StateTransitionError(
                    f"Cannot {operation} {self.resource_type} in state {resource.state.value}"
                )
            previous = resource.state
            resource.state = transient
            try:
                yield
            except BaseException:
                resource.state = previous
                raise
        finally:
            resource._lock.release()

    @staticmethod
    def _commit(resource: TrackedResource[R], record: R, stamp: bool = False) -> None:
        if not getattr(record, "id", None):
            raise SerializationError(f"Server returned a {resource.resource_type} without an id")
        resource.record = record
        resource.drift = {}
        resource.state = ResourceState.SYNCED
        if stamp:
            resource.last_updated = _timestamp()

    @staticmethod
    def _forget(resource: TrackedResource[R], state: ResourceState) -> None:
        with resource._lock:
            resource.record = None
            resource.drift = {}
            resource.last_updated = None
            resource.state = state


def group_engine(client: BitwardenClient) -> ReconciliationEngine:
    """Engine for organization groups."""
    return ReconciliationEngine(GroupService(client))


def member_engine(client: BitwardenClient) -> ReconciliationEngine:
    """Engine for organization members."""
    return ReconciliationEngine(MemberService(client))
