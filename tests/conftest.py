"""Pytest shared fixtures: an in-memory Bitwarden API and wired-up clients."""
import itertools
import json
import pathlib
import sys
import threading
import time
from types import SimpleNamespace
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from bwsync.core.bitwarden import AuthSession, BitwardenClient, GroupService, MemberService

API_URL = "https://api.test/public"
AUTH_URL = "https://identity.test/connect/token"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live endpoints through a real requests.Session.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {method} {url}")

    monkeypatch.setattr(requests.Session, "request", _blocked)


# ─────────────────────────────────────────────────────────────────────────────
# Fake Bitwarden API
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200, content: Optional[bytes] = None):
        if content is None:
            content = json.dumps(payload).encode("utf-8") if payload is not None else b""
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content)


class FakeBitwardenAPI:
    """In-memory token endpoint plus /groups and /members.

    Passed as the ``http`` object of AuthSession and BitwardenClient, so it
    implements ``post`` (token endpoint) and ``request`` (resource endpoints).
    """

    def __init__(self, api_url: str = API_URL, auth_url: str = AUTH_URL):
        self.api_url = api_url
        self.auth_url = auth_url
        self.groups: dict = {}
        self.members: dict = {}
        self.token_requests: list = []
        self.requests: list = []
        self.valid_tokens: set = set()
        self.token_ttl = 3600
        self.token_failures = 0
        self.token_delay = 0.0
        self._queued: dict = {}
        self._group_ids = itertools.count(1)
        self._member_ids = itertools.count(1)
        self._token_ids = itertools.count(1)
        self._lock = threading.Lock()

    # -- test helpers ---------------------------------------------------------
    def queue_response(self, method: str, path: str, status_code: int, payload=None, content=None):
        """Answer the next ``method path`` request with a canned response."""
        self._queued.setdefault((method, path), []).append(StubResponse(payload, status_code, content))

    def revoke_tokens(self):
        self.valid_tokens.clear()

    def requests_for(self, method: str, path: Optional[str] = None):
        return [r for r in self.requests if r.method == method and (path is None or r.path == path)]

    def seed_member(self, member_id: str, **fields):
        record = {
            "object": "member",
            "id": member_id,
            "type": 2,
            "accessAll": False,
            "externalId": None,
            "email": f"{member_id}@example.com",
            "resetPasswordEnrolled": False,
            "collections": [],
            "name": None,
            "status": 0,
        }
        record.update(fields)
        self.members[member_id] = record
        return record

    def seed_group(self, group_id: str, **fields):
        record = {"object": "group", "id": group_id, "name": group_id, "externalId": None, "accessAll": False}
        record.update(fields)
        self.groups[group_id] = record
        return record

    # -- token endpoint -------------------------------------------------------
    def post(self, url, data=None, headers=None, timeout=None):
        assert url == self.auth_url, f"unexpected POST {url}"
        with self._lock:
            self.token_requests.append(dict(data or {}))
            fail = self.token_failures > 0
            if fail:
                self.token_failures -= 1
        if self.token_delay:
            time.sleep(self.token_delay)
        if fail:
            return StubResponse({"error": "invalid_client"}, 400)
        token = f"token-{next(self._token_ids)}"
        self.valid_tokens.add(token)
        return StubResponse({"access_token": token, "expires_in": self.token_ttl, "token_type": "Bearer"})

    # -- resource endpoints ---------------------------------------------------
    def request(self, method, url, data=None, headers=None, timeout=None):
        assert url.startswith(self.api_url), f"unexpected {method} {url}"
        path = url[len(self.api_url):]
        body = json.loads(data) if data else None
        headers = dict(headers or {})
        self.requests.append(SimpleNamespace(method=method, path=path, body=body, headers=headers))

        queued = self._queued.get((method, path))
        if queued:
            return queued.pop(0)

        token = headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return StubResponse({"message": "Unauthorized"}, 401)

        parts = path.strip("/").split("/")
        if parts[0] == "groups":
            return self._route(self.groups, "g", self._group_ids, self._group_record, method, parts, body)
        if parts[0] == "members":
            return self._route(self.members, "m", self._member_ids, self._member_record, method, parts, body)
        return StubResponse({"message": "Not found"}, 404)

    def _route(self, store, prefix, ids, build, method, parts, body):
        if len(parts) == 1:
            if method != "POST":
                return StubResponse({"message": "Method not allowed"}, 405)
            record_id = f"{prefix}-{next(ids)}"
            store[record_id] = build(record_id, body, None)
            return StubResponse(store[record_id])

        record_id = parts[1]
        if record_id not in store:
            return StubResponse({"message": "Resource not found."}, 404)
        if method == "GET":
            return StubResponse(store[record_id])
        if method == "PUT":
            store[record_id] = build(record_id, body, store[record_id])
            return StubResponse(store[record_id])
        if method == "DELETE":
            del store[record_id]
            return StubResponse(status_code=200)
        return StubResponse({"message": "Method not allowed"}, 405)

    @staticmethod
    def _group_record(group_id, body, existing):
        return {
            "object": "group",
            "id": group_id,
            "name": body.get("name"),
            "externalId": body.get("externalId") or None,
            "accessAll": body.get("accessAll", False),
        }

    @staticmethod
    def _member_record(member_id, body, existing):
        existing = existing or {}
        return {
            "object": "member",
            "id": member_id,
            "type": body.get("type"),
            "accessAll": body.get("accessAll", False),
            "externalId": body.get("externalId") or None,
            # The server normalizes addresses
            "email": (body.get("email") or "").lower(),
            "resetPasswordEnrolled": body.get("resetPasswordEnrolled", False),
            "collections": body.get("collections") or [],
            "name": existing.get("name"),
            "status": existing.get("status", 0),
        }


# ─────────────────────────────────────────────────────────────────────────────
# Wired clients
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def fake_api():
    return FakeBitwardenAPI()


@pytest.fixture()
def auth_session(fake_api):
    return AuthSession("organization.test", "test-secret", AUTH_URL, http=fake_api)


@pytest.fixture()
def bw_client(fake_api, auth_session):
    return BitwardenClient(API_URL, auth_session, http=fake_api)


@pytest.fixture()
def group_service(bw_client):
    return GroupService(bw_client)


@pytest.fixture()
def member_service(bw_client):
    return MemberService(bw_client)
