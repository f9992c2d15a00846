"""Bitwarden organization resource models and their JSON mappings.

This module provides the Group and Member records exchanged with the Public
API, together with the structural mapping to and from the wire format.

Usage:
    # Record -> request payload
    payload = Member(email="alice@example.com", type=MemberType.USER).to_payload()

    # Response payload -> record
    member = Member.from_payload({"id": "m-1", "email": "alice@example.com", "type": 2})

Mapping rules:
    - Unknown response fields are ignored
    - Missing or null response fields leave the zero value
    - A field of the wrong JSON type, or an out-of-range enum value, raises
      SerializationError
    - Request payloads carry only caller-owned fields; server-owned fields
      (id, and name/status for members) are never sent
"""
from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .exceptions import SerializationError


class MemberType(IntEnum):
    """Organization user type.

    See https://github.com/bitwarden/server/blob/master/src/Core/Enums/OrganizationUserType.cs
    """

    OWNER = 0
    ADMIN = 1
    USER = 2
    MANAGER = 3
    CUSTOM = 4


class MemberStatus(IntEnum):
    """Organization user status.

    See https://github.com/bitwarden/server/blob/master/src/Core/Enums/OrganizationUserStatusType.cs
    """

    INVITED = 0
    ACCEPTED = 1
    CONFIRMED = 2
    REVOKED = -1


# ─────────────────────────────────────────────────────────────────────────────
# Field readers
# ─────────────────────────────────────────────────────────────────────────────
def _read_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SerializationError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def _read_bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SerializationError(f"Field '{key}' must be a boolean, got {type(value).__name__}")
    return value


def _read_enum(data: Mapping[str, Any], key: str, enum_cls):
    value = data.get(key)
    if value is None:
        value = 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise SerializationError(f"Field '{key}' must be an integer, got {type(value).__name__}")
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise SerializationError(f"Field '{key}' has unknown {enum_cls.__name__} value {value}") from exc


def _read_id(data: Mapping[str, Any]) -> Optional[str]:
    value = _read_str(data, "id")
    return value or None


def _require_object(data: Any, kind: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise SerializationError(f"Expected a JSON object for {kind}, got {type(data).__name__}")
    return data


# ─────────────────────────────────────────────────────────────────────────────
# Group
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class Group:
    """Organization group. ``id`` is assigned by the server on create."""

    name: str = ""
    external_id: str = ""
    access_all: bool = False
    id: Optional[str] = None

    SERVER_OWNED = ("id",)

    def validate(self) -> None:
        """Check the record is acceptable as desired state.

        Raises:
            ValueError: If the name is empty
        """
        if not self.name or not self.name.strip():
            raise ValueError("Group name must not be empty")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "externalId": self.external_id,
            "accessAll": self.access_all,
        }

    @classmethod
    def from_payload(cls, data: Any) -> "Group":
        data = _require_object(data, "group")
        return cls(
            id=_read_id(data),
            name=_read_str(data, "name"),
            external_id=_read_str(data, "externalId"),
            access_all=_read_bool(data, "accessAll"),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Member
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class Collection:
    """Collection assignment of a member."""

    id: str
    read_only: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.id, "readOnly": self.read_only}

    @classmethod
    def from_payload(cls, data: Any) -> "Collection":
        data = _require_object(data, "collection")
        return cls(id=_read_str(data, "id"), read_only=_read_bool(data, "readOnly"))


@dataclass
class Member:
    """Organization member.

    ``id``, ``name`` and ``status`` are owned by the server; they are filled
    from responses and never sent. ``type`` and ``status`` are validated
    against their enumerations on construction. ``type`` has no default for
    desired records; responses that omit it read as OWNER.
    """

    email: str = ""
    type: Optional[MemberType] = None
    access_all: bool = False
    external_id: str = ""
    reset_password_enrolled: bool = False
    collections: List[Collection] = field(default_factory=list)
    id: Optional[str] = None
    name: str = ""
    status: Optional[MemberStatus] = None

    SERVER_OWNED = ("id", "name", "status")

    def __post_init__(self):
        if isinstance(self.type, bool):
            raise ValueError(f"Invalid member type {self.type!r}")
        if self.type is not None:
            self.type = MemberType(self.type)
        if self.status is not None:
            self.status = MemberStatus(self.status)

    def validate(self) -> None:
        """Check the record is acceptable as desired state.

        Raises:
            ValueError: If the email or the type is missing
        """
        if not self.email:
            raise ValueError("Member email is required")
        if self.type is None:
            raise ValueError("Member type is required")

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": int(self.type) if self.type is not None else None,
            "accessAll": self.access_all,
            "externalId": self.external_id,
            "email": self.email,
            "resetPasswordEnrolled": self.reset_password_enrolled,
            "collections": [c.to_payload() for c in self.collections],
        }

    @classmethod
    def from_payload(cls, data: Any) -> "Member":
        data = _require_object(data, "member")
        raw_collections = data.get("collections")
        if raw_collections is None:
            raw_collections = []
        if not isinstance(raw_collections, list):
            raise SerializationError("Field 'collections' must be a list")
        return cls(
            id=_read_id(data),
            type=_read_enum(data, "type", MemberType),
            access_all=_read_bool(data, "accessAll"),
            external_id=_read_str(data, "externalId"),
            email=_read_str(data, "email"),
            reset_password_enrolled=_read_bool(data, "resetPasswordEnrolled"),
            collections=[Collection.from_payload(c) for c in raw_collections],
            name=_read_str(data, "name"),
            status=_read_enum(data, "status", MemberStatus),
        )


def diff_records(old, new) -> Dict[str, Tuple[Any, Any]]:
    """Return {field: (old, new)} for every field that differs.

    Args:
        old: Previously tracked record (same type as new)
        new: Freshly read record

    Returns:
        Mapping of changed field names to (old, new) value pairs
    """
    if type(old) is not type(new):
        raise TypeError(f"Cannot diff {type(old).__name__} with {type(new).__name__}")
    changes = {}
    for f in dataclasses.fields(old):
        before = getattr(old, f.name)
        after = getattr(new, f.name)
        if before != after:
            changes[f.name] = (before, after)
    return changes
