"""
tests/conftest.py
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Generator

import pytest
from flask.testing import FlaskClient

# The single-file app lives here:
from layerten import blog
from layerten.blog import app, basic_token, signer

API = "http://backend.test/api"
CSRF = "test-csrf-token"


@pytest.fixture(scope="session", autouse=True)
def _configure_app() -> None:
    """
    Configure the Flask app *once* before the first test is collected.
    """
    app.config.update(
        TESTING=True,
        API_URL=API,
        SESSION_COOKIE_SECURE=False,
    )


@pytest.fixture
def client() -> Generator[FlaskClient, None, None]:
    """
    Gives each test an isolated application context *and* test client.

    Yields:
        `flask.testing.FlaskClient`
    """
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture(autouse=True)
def _empty_draft_store():
    blog._drafts.clear()
    yield
    blog._drafts.clear()


# ───────────────────────── fake backend ───────────────────────────────
class _FakeResp:
    """Just enough of `requests.Response` for ApiClient.request()."""

    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        if self._payload is None:
            raise ValueError("empty body")
        return self._payload


@dataclass
class Call:
    method: str
    path: str
    kwargs: dict

    @property
    def json(self):
        return self.kwargs.get("json")

    @property
    def params(self):
        return self.kwargs.get("params") or {}

    @property
    def headers(self):
        return self.kwargs.get("headers") or {}


@dataclass
class FakeBackend:
    """
    Stands in for the pooled `requests.Session`.

    Routes are keyed by (METHOD, path); the answer is either a payload, a
    callable taking the recorded `Call`, or an exception to raise.
    Unknown routes answer 404.
    """

    routes: dict = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def on(self, method: str, path: str, payload: Any = None, status: int = 200):
        self.routes[(method.upper(), path)] = (status, payload)
        return self

    def request(self, method, url, **kwargs):
        assert url.startswith(API), url
        call = Call(method.upper(), url[len(API):], kwargs)
        self.calls.append(call)

        route = self.routes.get((call.method, call.path))
        if route is None:
            return _FakeResp(404, {"message": "Not found"})
        status, payload = route
        if isinstance(payload, Exception):
            raise payload
        if callable(payload):
            payload = payload(call)
        return _FakeResp(status, payload)

    def sent(self, method: str, path: str | None = None) -> list[Call]:
        return [
            c
            for c in self.calls
            if c.method == method.upper() and (path is None or c.path == path)
        ]

    def writes(self) -> list[Call]:
        return [c for c in self.calls if c.method != "GET"]


@pytest.fixture
def backend(monkeypatch) -> FakeBackend:
    fake = FakeBackend()
    monkeypatch.setattr(blog, "HTTP", fake)
    return fake


# ───────────────────────── canned payloads ────────────────────────────
def page_of(items: list, *, number: int = 0, size: int = 12, total: int | None = None):
    total = len(items) if total is None else total
    return {
        "content": items,
        "number": number,
        "size": size,
        "totalElements": total,
        "totalPages": max(1, -(-total // size)),
    }


def make_entry(entry_id: int, rank: int, title: str | None = None, **extra):
    data = {
        "id": entry_id,
        "rank": rank,
        "title": title or f"Entry {entry_id}",
        "blurb": f"Blurb {entry_id}",
        "commentary": "",
        "funFact": None,
        "externalLink": None,
        "heroImage": None,
    }
    data.update(extra)
    return data


def make_list(list_id: int = 7, slug: str = "top-films", entries=(), **extra):
    data = {
        "id": list_id,
        "slug": slug,
        "title": "Top Films",
        "subtitle": "Of all time",
        "intro": "The *best* ones.",
        "outro": "Thanks for reading.",
        "coverImage": None,
        "tags": [{"id": 1, "name": "film", "slug": "film"}],
        "entries": list(entries),
        "entryCount": len(entries),
        "publishedAt": "2024-03-01T10:00:00",
    }
    data.update(extra)
    return data


def make_post(post_id: int = 3, slug: str = "hello", **extra):
    data = {
        "id": post_id,
        "slug": slug,
        "title": "Hello",
        "excerpt": "First post",
        "body": "Some **bold** words.",
        "coverImage": None,
        "tags": [],
        "status": "PUBLISHED",
        "publishedAt": "2024-03-02T10:00:00",
    }
    data.update(extra)
    return data


# ───────────────────────── admin helpers ──────────────────────────────
def login(client: FlaskClient, username: str = "tester", password: str = "secret"):
    """Put a signed admin session straight into the cookie."""
    with client.session_transaction() as sess:
        sess["admin"] = {
            "username": username,
            "token": basic_token(username, password),
            "opened_at": "2099-01-01T00:00:00+00:00",
        }
        sess["admin_seal"] = signer.sign(username).decode()
        sess["csrf"] = CSRF
