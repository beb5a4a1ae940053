"""tests/test_pages.py"""
from __future__ import annotations

import itertools

import pytest
import requests

from layerten.blog import app

from conftest import make_list, make_post, page_of

_ip_counter = itertools.count(1)


# ───────────────────────── helpers ────────────────────────────────────
def _home(backend):
    backend.on("GET", "/lists", page_of([make_list()], size=6))
    backend.on("GET", "/posts", page_of([make_post()], size=3))


def _suggest(client, **form):
    data = {"title": "Best bridges", "description": "Spans!", **form}
    return client.post(
        "/suggest",
        data=data,
        environ_overrides={"REMOTE_ADDR": f"192.0.2.{next(_ip_counter)}"},
    )


# ───────────────────────── tests ──────────────────────────────────────
def test_home_shows_latest(client, backend):
    _home(backend)
    rv = client.get("/")
    assert rv.status_code == 200
    assert b"Top Films" in rv.data
    assert b"Hello" in rv.data
    assert backend.sent("GET", "/lists")[0].params["size"] == 6
    assert backend.sent("GET", "/posts")[0].params["size"] == 3


@pytest.mark.parametrize("path", ["/", "/lists", "/posts", "/suggest", "/admin/login"])
def test_public_routes_ok(client, backend, path):
    _home(backend)
    assert client.get(path).status_code == 200


def test_lists_index_filters_are_forwarded(client, backend):
    backend.on("GET", "/lists", page_of([make_list()]))
    rv = client.get("/lists?search=film&tag=film&page=2")
    assert rv.status_code == 200
    assert backend.calls[0].params == {"search": "film", "tag": "film", "page": 2, "size": 12}
    assert b"Clear filters" in rv.data


def test_garbage_page_number_means_first_page(client, backend):
    backend.on("GET", "/posts", page_of([]))
    client.get("/posts?page=banana")
    assert backend.calls[0].params["page"] == 0


def test_pager_renders_window(client, backend):
    backend.on("GET", "/lists", page_of([make_list()], number=5, size=1, total=20))
    rv = client.get("/lists?page=5")
    body = rv.get_data(as_text=True)
    assert "Showing 6 to 6 of 20" in body
    assert 'aria-current="page">6<' in body
    assert "…" in body
    assert "page=19" in body


def test_post_page_renders_markdown(client, backend):
    backend.on("GET", "/posts/hello", make_post())
    rv = client.get("/posts/hello")
    assert rv.status_code == 200
    assert b"<strong>bold</strong>" in rv.data


def test_missing_post_is_404(client, backend):
    rv = client.get("/posts/missing")
    assert rv.status_code == 404
    assert b"Page not found" in rv.data


def test_unknown_route_is_404(client):
    rv = client.get("/does/not/exist")
    assert rv.status_code == 404
    assert b"Page not found" in rv.data


def test_backend_down_is_502(client, backend):
    backend.on("GET", "/lists", requests.ConnectionError("refused"))
    rv = client.get("/lists")
    assert rv.status_code == 502
    assert b"Backend unavailable" in rv.data


def test_backend_500_is_502(client, backend):
    backend.on("GET", "/posts/hello", {"message": "db down"}, status=500)
    rv = client.get("/posts/hello")
    assert rv.status_code == 502


# ───────────────────────── suggestions ────────────────────────────────
def test_suggestion_is_sent(client, backend):
    backend.on("POST", "/suggestions", {"id": 1, "status": "NEW"})
    rv = _suggest(client, submitter_email="a@b.io", example_entries="Golden Gate")
    assert rv.status_code == 302
    assert rv.headers["Location"].endswith("/suggest?sent=1")
    assert backend.calls[0].json == {
        "title": "Best bridges",
        "description": "Spans!",
        "exampleEntries": "Golden Gate",
        "submitterEmail": "a@b.io",
    }
    assert "Authorization" not in backend.calls[0].headers


@pytest.mark.parametrize(
    "form,message",
    [
        ({"title": " "}, b"Title is required"),
        ({"description": ""}, b"Description is required"),
        ({"submitter_email": "not-an-email"}, b"Email must be valid"),
    ],
)
def test_suggestion_validation(client, backend, form, message):
    rv = _suggest(client, **form)
    assert rv.status_code == 200
    assert message in rv.data
    assert backend.calls == []


def test_suggestion_backend_failure_keeps_form(client, backend):
    backend.on("POST", "/suggestions", {"message": "nope"}, status=500)
    rv = _suggest(client)
    assert rv.status_code == 200
    assert b"Best bridges" in rv.data
    assert b"Could not send your suggestion" in rv.data


def test_suggestion_rate_limit(backend):
    backend.on("POST", "/suggestions", {"id": 1})
    with app.test_client() as c:
        c.environ_base["REMOTE_ADDR"] = "198.51.100.77"
        codes = [
            c.post("/suggest", data={"title": "t", "description": "d"}).status_code
            for _ in range(11)
        ]
    assert codes[:10] == [302] * 10
    assert codes[10] == 429
