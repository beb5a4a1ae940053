"""tests/test_api_client.py"""
from __future__ import annotations

import pytest
import requests

from layerten.blog import (
    AdminSession,
    ApiClient,
    ApiError,
    SessionExpired,
    available_tags,
    basic_token,
)

from conftest import API, FakeBackend, make_list, page_of

ADMIN = AdminSession("tester", basic_token("tester", "secret"), "2099-01-01")


def _client(fake, auth=None) -> ApiClient:
    return ApiClient(API, auth=auth, http=fake)


def test_basic_token():
    assert basic_token("admin", "pw") == "YWRtaW46cHc="


def test_query_params_drop_empty_values():
    fake = FakeBackend().on("GET", "/lists", page_of([]))
    _client(fake).lists_page(search="", tag="film", page=0, size=12)
    assert fake.calls[0].params == {"tag": "film", "page": 0, "size": 12}


def test_admin_credentials_are_attached():
    fake = FakeBackend().on("GET", "/admin/suggestions", [])
    _client(fake, auth=ADMIN).suggestions()
    assert fake.calls[0].headers["Authorization"] == f"Basic {ADMIN.token}"

    _client(fake).suggestions(auth=ADMIN)
    assert fake.calls[1].headers["Authorization"] == f"Basic {ADMIN.token}"


def test_anonymous_requests_carry_no_credentials():
    fake = FakeBackend().on("GET", "/posts", page_of([]))
    _client(fake).posts_page()
    assert "Authorization" not in fake.calls[0].headers


def test_401_with_credentials_means_session_expired():
    fake = FakeBackend().on("GET", "/admin/suggestions", {"message": "nope"}, status=401)
    with pytest.raises(SessionExpired):
        _client(fake, auth=ADMIN).suggestions()


def test_401_without_credentials_is_plain_error():
    fake = FakeBackend().on("POST", "/suggestions", {"message": "nope"}, status=401)
    with pytest.raises(ApiError) as exc:
        _client(fake).create_suggestion({"title": "x"})
    assert not isinstance(exc.value, SessionExpired)
    assert exc.value.status == 401


def test_error_message_from_body():
    fake = FakeBackend().on("POST", "/admin/lists", {"message": "Slug taken"}, status=409)
    with pytest.raises(ApiError) as exc:
        _client(fake, auth=ADMIN).create_list({"title": "x"})
    assert exc.value.message == "Slug taken"
    assert exc.value.status == 409


def test_network_failure_becomes_api_error():
    fake = FakeBackend().on("GET", "/lists", requests.ConnectTimeout("slow"))
    with pytest.raises(ApiError) as exc:
        _client(fake).lists_page()
    assert exc.value.status is None
    assert "unreachable" in exc.value.message


def test_empty_body_is_none():
    fake = FakeBackend().on("DELETE", "/admin/lists/4", None, status=204)
    assert _client(fake, auth=ADMIN).delete_list(4) is None


def test_media_unwraps_page():
    fake = FakeBackend().on("GET", "/media", page_of([{"id": 1}, {"id": 2}]))
    assert [m["id"] for m in _client(fake).media()] == [1, 2]
    assert fake.calls[0].params == {"size": 100}


def test_upload_is_multipart():
    fake = FakeBackend().on("POST", "/admin/media", {"id": 5})
    _client(fake, auth=ADMIN).upload_media("cat.png", b"\x89PNG", "image/png", "A cat")
    call = fake.calls[0]
    assert call.kwargs["files"] == {"file": ("cat.png", b"\x89PNG", "image/png")}
    assert call.kwargs["data"] == {"altText": "A cat"}
    assert call.json is None


def test_reorder_sends_bare_array():
    fake = FakeBackend().on("PUT", "/admin/lists/7/entries/reorder", None, status=204)
    _client(fake, auth=ADMIN).reorder_entries(7, [{"entryId": 1, "newRank": 1}])
    assert fake.calls[0].json == [{"entryId": 1, "newRank": 1}]


def test_available_tags_are_collected_from_lists():
    lists = [
        make_list(1, "a", tags=[{"id": 2, "name": "music"}, {"id": 1, "name": "Film"}]),
        make_list(2, "b", tags=[{"id": 2, "name": "music"}]),
    ]
    fake = FakeBackend().on("GET", "/lists", page_of(lists))
    assert [t["name"] for t in available_tags(_client(fake))] == ["Film", "music"]
