"""
Unit tests for GroupService and MemberService.

Covers verb/path mapping, payloads, response classification and the single
re-authentication retry on 401.
"""
import pytest

from bwsync.core.bitwarden import (
    APIError,
    Collection,
    Group,
    Member,
    MemberStatus,
    MemberType,
    NotFoundError,
    SerializationError,
)


# ============================================================================
# Groups
# ============================================================================

def test_group_create_posts_payload_and_returns_server_copy(fake_api, group_service):
    created = group_service.create(Group(name="eng", access_all=True))

    assert created == Group(name="eng", external_id="", access_all=True, id="g-1")
    post = fake_api.requests_for("POST", "/groups")[0]
    assert post.body == {"name": "eng", "externalId": "", "accessAll": True}


def test_group_get_update_delete_paths(fake_api, group_service):
    fake_api.seed_group("g-5", name="ops")

    assert group_service.get("g-5").name == "ops"
    updated = group_service.update("g-5", Group(name="ops-2", external_id="x"))
    assert updated.name == "ops-2"
    assert updated.external_id == "x"
    group_service.delete("g-5")

    assert [(r.method, r.path) for r in fake_api.requests] == [
        ("GET", "/groups/g-5"),
        ("PUT", "/groups/g-5"),
        ("DELETE", "/groups/g-5"),
    ]
    assert fake_api.requests_for("PUT")[0].body == {"name": "ops-2", "externalId": "x", "accessAll": False}
    assert "g-5" not in fake_api.groups


def test_group_get_missing_raises_not_found(group_service):
    with pytest.raises(NotFoundError) as excinfo:
        group_service.get("nope")
    assert excinfo.value.status_code == 404
    assert excinfo.value.endpoint.endswith("/groups/nope")


def test_group_update_and_delete_missing_raise_not_found(group_service):
    with pytest.raises(NotFoundError):
        group_service.update("nope", Group(name="x"))
    with pytest.raises(NotFoundError):
        group_service.delete("nope")


def test_create_404_is_plain_api_error(fake_api, group_service):
    fake_api.queue_response("POST", "/groups", 404, {"message": "Organization not found"})
    with pytest.raises(APIError) as excinfo:
        group_service.create(Group(name="eng"))
    assert not isinstance(excinfo.value, NotFoundError)
    assert excinfo.value.status_code == 404


def test_api_error_keeps_status_and_body(fake_api, group_service):
    body = {"object": "error", "message": "The request's model state is invalid."}
    fake_api.queue_response("POST", "/groups", 400, body)

    with pytest.raises(APIError) as excinfo:
        group_service.create(Group(name="eng"))

    assert excinfo.value.status_code == 400
    assert "model state is invalid" in excinfo.value.body


def test_server_error_on_get_is_api_error(fake_api, group_service):
    fake_api.queue_response("GET", "/groups/g-1", 500, content=b"Internal Server Error")
    with pytest.raises(APIError) as excinfo:
        group_service.get("g-1")
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "Internal Server Error"


@pytest.mark.parametrize("content", [b"", b"not json", b"[1, 2]", b'{"id": 5}'])
def test_unexpected_response_shape_is_serialization_error(fake_api, group_service, content):
    fake_api.queue_response("GET", "/groups/g-1", 200, content=content)
    with pytest.raises(SerializationError):
        group_service.get("g-1")


def test_empty_group_name_rejected_before_request(fake_api, group_service):
    with pytest.raises(ValueError):
        group_service.create(Group(name=""))
    assert fake_api.requests == []


def test_delete_accepts_no_content(fake_api, group_service):
    fake_api.queue_response("DELETE", "/groups/g-1", 204)
    assert group_service.delete("g-1") is None


# ============================================================================
# Re-authentication on 401
# ============================================================================

def test_unauthorized_refreshes_token_and_retries_once(fake_api, group_service):
    fake_api.seed_group("g-1", name="eng")
    group_service.client.session.credential()
    fake_api.revoke_tokens()

    group = group_service.get("g-1")

    assert group.name == "eng"
    assert len(fake_api.token_requests) == 2
    gets = fake_api.requests_for("GET", "/groups/g-1")
    assert [g.headers["Authorization"] for g in gets] == ["Bearer token-1", "Bearer token-2"]


def test_second_unauthorized_surfaces_as_api_error(fake_api, group_service):
    fake_api.queue_response("GET", "/groups/g-1", 401, {"message": "Unauthorized"})
    fake_api.queue_response("GET", "/groups/g-1", 401, {"message": "Unauthorized"})

    with pytest.raises(APIError) as excinfo:
        group_service.get("g-1")

    assert excinfo.value.status_code == 401
    assert len(fake_api.requests_for("GET", "/groups/g-1")) == 2


# ============================================================================
# Members
# ============================================================================

def test_member_create_always_sends_empty_collections(fake_api, member_service):
    desired = Member(
        email="A@B.com",
        type=MemberType.USER,
        access_all=True,
        collections=[Collection(id="c-1", read_only=True)],
    )

    created = member_service.create(desired)

    post = fake_api.requests_for("POST", "/members")[0]
    assert post.body["collections"] == []
    assert post.body["type"] == 2
    assert "id" not in post.body and "name" not in post.body and "status" not in post.body
    # Caller's record is left alone
    assert desired.collections == [Collection(id="c-1", read_only=True)]
    assert created.id == "m-1"
    assert created.email == "a@b.com"
    assert created.status is MemberStatus.INVITED


def test_member_update_sends_all_caller_owned_fields(fake_api, member_service):
    fake_api.seed_member("m-3", email="c@d.com", name="Carol", status=2)

    updated = member_service.update(
        "m-3",
        Member(
            email="c@d.com",
            type=MemberType.MANAGER,
            external_id="carol",
            collections=[Collection(id="c-9")],
        ),
    )

    put = fake_api.requests_for("PUT", "/members/m-3")[0]
    assert put.body == {
        "type": 3,
        "accessAll": False,
        "externalId": "carol",
        "email": "c@d.com",
        "resetPasswordEnrolled": False,
        "collections": [{"id": "c-9", "readOnly": False}],
    }
    assert updated.name == "Carol"
    assert updated.status is MemberStatus.CONFIRMED
    assert updated.type is MemberType.MANAGER


def test_member_get_and_delete(fake_api, member_service):
    fake_api.seed_member("m-2", email="b@c.com", name="Bob", status=1)

    member = member_service.get("m-2")
    assert member.status is MemberStatus.ACCEPTED
    member_service.delete("m-2")

    with pytest.raises(NotFoundError):
        member_service.get("m-2")


def test_member_with_unknown_status_is_serialization_error(fake_api, member_service):
    fake_api.seed_member("m-4", status=7)
    with pytest.raises(SerializationError):
        member_service.get("m-4")


def test_member_without_email_rejected_before_request(fake_api, member_service):
    with pytest.raises(ValueError):
        member_service.create(Member(type=MemberType.USER))
    assert fake_api.requests == []


def test_member_without_type_rejected_before_request(fake_api, member_service):
    with pytest.raises(ValueError, match="type is required"):
        member_service.create(Member(email="x@y.com"))
    assert fake_api.requests == []


@pytest.mark.parametrize("payload", [{"name": "eng"}, {"id": None, "name": "eng"}, {"id": "", "name": "eng"}])
def test_create_response_without_id_is_serialization_error(fake_api, group_service, payload):
    fake_api.queue_response("POST", "/groups", 200, payload)
    with pytest.raises(SerializationError, match="missing an id"):
        group_service.create(Group(name="eng"))
