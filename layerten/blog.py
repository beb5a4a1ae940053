#!/usr/bin/env python3
"""
A single-file frontend for a ranked-list and blog publishing site.

Every page is rendered here; the content itself lives behind the REST
backend configured with ``LAYERTEN_API_URL``.
"""

import base64
import os
import re
import secrets
import threading
from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from time import time
from typing import DefaultDict
from urllib.parse import quote, urlencode
from uuid import uuid4

import click
import markdown
import requests
from flask import (
    Flask,
    Response,
    abort,
    flash,
    g,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner
from markupsafe import Markup
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import secure_filename

################################################################################
# Imports & constants
################################################################################

ROOT = Path(__file__).parent

SECRET_FILE = ROOT / ".secret_key"
SECRET_KEY = (
    SECRET_FILE.read_text().strip() if SECRET_FILE.exists() else secrets.token_hex(32)
)
SECRET_FILE.write_text(SECRET_KEY)
signer = TimestampSigner(SECRET_KEY, salt="admin-session")

API_URL = os.environ.get("LAYERTEN_API_URL", "http://localhost:8080/api")
API_TIMEOUT = float(os.environ.get("LAYERTEN_API_TIMEOUT", "10"))
SITE_NAME = os.environ.get("LAYERTEN_SITE_NAME", "LayerTen")
SECURE_COOKIES = os.environ.get("LAYERTEN_SECURE_COOKIES", "1") != "0"
ADMIN_SESSION_MAX_AGE = int(
    os.environ.get("LAYERTEN_ADMIN_SESSION_MAX_AGE", str(12 * 60 * 60))
)
PAGE_DEFAULT = int(os.environ.get("LAYERTEN_PAGE_SIZE", "12"))

UPLOAD_MAX_BYTES = 10 * 1024 * 1024  # same cap the backend enforces
IMAGE_MIMES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}
MEDIA_PICKER_SIZE = 100
TAG_CATALOGUE_SIZE = 100
HOME_LISTS = 6
HOME_POSTS = 3
PAGER_MAX_VISIBLE = 7
DRAFT_LIMIT = 256
DRAFTS_PER_SESSION = 8

DASHBOARD_TABS = ("lists", "posts", "suggestions", "media")
SUGGESTION_STATUSES = ("NEW", "REVIEWING", "ACCEPTED", "DECLINED")
POST_STATUSES = ("DRAFT", "PUBLISHED")

RANK_FRAGMENT_RE = re.compile(r"^#?rank-(\d+)$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

try:
    __version__ = version("layerten")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"

################################################################################
# App + template filters
################################################################################
app = Flask(__name__)
app.url_map.strict_slashes = False
app.config.update(
    SECRET_KEY=SECRET_KEY,
    API_URL=API_URL,
    API_TIMEOUT=API_TIMEOUT,
    SITE_NAME=SITE_NAME,
    PAGE_SIZE=PAGE_DEFAULT,
    ADMIN_SESSION_MAX_AGE=ADMIN_SESSION_MAX_AGE,
    MAX_CONTENT_LENGTH=UPLOAD_MAX_BYTES + 1024 * 1024,  # room for the form fields
)
app.config.update(
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=SECURE_COOKIES,
)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

MD_EXTENSIONS = [
    "pymdownx.extra",
    "pymdownx.magiclink",
    "pymdownx.tilde",
    "pymdownx.mark",
    "pymdownx.superfences",
    "pymdownx.betterem",
    "pymdownx.saneheaders",
]

md = markdown.Markdown(extensions=MD_EXTENSIONS)


def render_markdown_html(text: str | None) -> str:
    if not text:
        return ""
    return md.reset().convert(text)


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    """Render Markdown written by the editors (intros, commentary, bodies)."""
    return Markup(render_markdown_html(text))


@app.template_filter("mdinline")
def md_inline_filter(text: str | None) -> Markup:
    """
    Render Markdown like `md`, but if the result is exactly one
    <p>…</p> block, unwrap it so we get pure inline HTML.
    """
    s = str(md_filter(text))
    if s.startswith("<p>") and s.endswith("</p>"):
        s = s[3:-4].strip()
    return Markup(s)


@app.template_filter("day")
def day_filter(iso: str | None) -> str:
    if not iso:
        return ""
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        return iso
    return dt.strftime("%b %d, %Y")


@app.template_filter("filesize")
def filesize_filter(size: int | float | None) -> str:
    size = size or 0
    if size < 1024:
        return f"{int(size)} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


# Pagination helpers
def page_arg() -> int:
    """0-based page number from the query string; garbage → first page."""
    page = request.args.get("page", type=int) or 0
    return max(page, 0)


def page_window(current: int, total: int, max_visible: int = PAGER_MAX_VISIBLE):
    """
    Page numbers for the pager, `None` standing for an ellipsis.

    Short ranges are shown in full; longer ones keep the first page, the
    last page and the neighbours of *current*.
    """
    if total <= max_visible:
        return list(range(total))

    pages: list[int | None] = [0]
    if current > 2:
        pages.append(None)
    for i in range(max(1, current - 1), min(total - 2, current + 1) + 1):
        pages.append(i)
    if current < total - 3:
        pages.append(None)
    pages.append(total - 1)
    return pages


def query_href(**changes) -> str:
    """Current path + query string with *changes* applied (None drops a key)."""
    args = request.args.to_dict()
    for key, value in changes.items():
        if value is None or value == "":
            args.pop(key, None)
        else:
            args[key] = value
    qs = urlencode(args)
    return request.path + (f"?{qs}" if qs else "")


def site_name() -> str:
    return app.config.get("SITE_NAME") or SITE_NAME


###############################################################################
# Backend client
###############################################################################
class ApiError(Exception):
    """A backend call failed. ``status`` is None when nothing came back."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class SessionExpired(ApiError):
    """The backend answered 401 to a request that carried admin credentials."""


# one pooled session for the whole process
HTTP = requests.Session()


def _error_message(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return f"Backend error ({resp.status_code})"


def _compact(payload: dict) -> dict:
    """Drop optional fields the operator left empty."""
    return {k: v for k, v in payload.items() if v not in (None, "")}


class ApiClient:
    """
    Thin wrapper around the REST backend.

    The admin session (if any) is injected at construction and attached as
    a Basic ``Authorization`` header to every request.
    """

    def __init__(self, base_url: str, *, auth=None, timeout: float = API_TIMEOUT, http=None):
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.http = http or HTTP

    def request(self, method, path, *, params=None, json=None, files=None, data=None, auth=None):
        credentials = auth or self.auth
        headers = {"Accept": "application/json"}
        if credentials is not None:
            headers.update(credentials.header())
        if params:
            params = {k: v for k, v in params.items() if v not in (None, "")}

        try:
            resp = self.http.request(
                method,
                f"{self.base_url}{path}",
                params=params or None,
                json=json,
                files=files,
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            app.logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Backend unreachable – {exc}") from None

        if resp.status_code == 401 and credentials is not None:
            raise SessionExpired("Session expired", status=401)
        if resp.status_code >= 400:
            message = _error_message(resp)
            app.logger.warning(
                "%s %s → %s: %s", method, path, resp.status_code, message
            )
            raise ApiError(message, status=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            raise ApiError(
                "Backend sent malformed JSON", status=resp.status_code
            ) from None

    # ── public ───────────────────────────────────────────────────────
    def lists_page(self, *, search=None, tag=None, page=0, size=PAGE_DEFAULT):
        return self.request(
            "GET",
            "/lists",
            params={"search": search, "tag": tag, "page": page, "size": size},
        )

    def list_by_slug(self, slug: str):
        return self.request("GET", f"/lists/{quote(slug, safe='')}")

    def posts_page(self, *, search=None, tag=None, page=0, size=PAGE_DEFAULT):
        return self.request(
            "GET",
            "/posts",
            params={"search": search, "tag": tag, "page": page, "size": size},
        )

    def post_by_slug(self, slug: str):
        return self.request("GET", f"/posts/{quote(slug, safe='')}")

    def media(self, *, size=MEDIA_PICKER_SIZE) -> list[dict]:
        page = self.request("GET", "/media", params={"size": size})
        if isinstance(page, dict):
            return page.get("content") or []
        return page or []

    def create_suggestion(self, payload: dict):
        return self.request("POST", "/suggestions", json=payload)

    # ── admin: lists ─────────────────────────────────────────────────
    def create_list(self, payload: dict):
        return self.request("POST", "/admin/lists", json=payload)

    def update_list(self, list_id: int, payload: dict):
        return self.request("PUT", f"/admin/lists/{list_id}", json=payload)

    def delete_list(self, list_id: int):
        return self.request("DELETE", f"/admin/lists/{list_id}")

    def add_entry(self, list_id: int, payload: dict):
        return self.request("POST", f"/admin/lists/{list_id}/entries", json=payload)

    def reorder_entries(self, list_id: int, updates: list[dict]):
        return self.request(
            "PUT", f"/admin/lists/{list_id}/entries/reorder", json=updates
        )

    # ── admin: posts ─────────────────────────────────────────────────
    def create_post(self, payload: dict):
        return self.request("POST", "/admin/posts", json=payload)

    def update_post(self, post_id: int, payload: dict):
        return self.request("PUT", f"/admin/posts/{post_id}", json=payload)

    def delete_post(self, post_id: int):
        return self.request("DELETE", f"/admin/posts/{post_id}")

    # ── admin: media ─────────────────────────────────────────────────
    def upload_media(self, filename: str, blob: bytes, content_type: str, alt_text=""):
        return self.request(
            "POST",
            "/admin/media",
            files={"file": (filename, blob, content_type)},
            data=_compact({"altText": alt_text}),
        )

    def delete_media(self, media_id: int):
        return self.request("DELETE", f"/admin/media/{media_id}")

    # ── admin: suggestions ───────────────────────────────────────────
    def suggestions(self, *, auth=None) -> list[dict]:
        return self.request("GET", "/admin/suggestions", auth=auth) or []

    def update_suggestion_status(self, suggestion_id: int, status: str):
        return self.request(
            "PUT", f"/admin/suggestions/{suggestion_id}", json={"status": status}
        )


def available_tags(client: ApiClient) -> list[dict]:
    """The backend has no tag endpoint – collect the tags used by lists."""
    page = client.lists_page(size=TAG_CATALOGUE_SIZE) or {}
    seen: dict[int, dict] = {}
    for lst in page.get("content") or []:
        for tag in lst.get("tags") or []:
            seen[tag["id"]] = tag
    return sorted(seen.values(), key=lambda t: t.get("name", "").lower())


###############################################################################
# Admin session
###############################################################################
@dataclass(frozen=True)
class AdminSession:
    """Credentials of the signed-in operator, alive from login to logout."""

    username: str
    token: str
    opened_at: str

    def header(self) -> dict[str, str]:
        return {"Authorization": f"Basic {self.token}"}


def basic_token(username: str, password: str) -> str:
    return base64.b64encode(f"{username}:{password}".encode()).decode("ascii")


def new_client(auth=None) -> ApiClient:
    return ApiClient(app.config["API_URL"], auth=auth, timeout=app.config["API_TIMEOUT"])


def open_admin_session(username: str, password: str) -> AdminSession | None:
    """
    Check the backend with the candidate credentials and, if accepted,
    start a session. Returns None for rejected credentials; other backend
    failures propagate as ApiError.
    """
    candidate = AdminSession(
        username=username,
        token=basic_token(username, password),
        opened_at=utc_now().isoformat(),
    )
    try:
        new_client().suggestions(auth=candidate)
    except SessionExpired:
        app.logger.info("admin login rejected for %r", username)
        return None

    session.clear()
    session.permanent = True
    session["admin"] = {
        "username": candidate.username,
        "token": candidate.token,
        "opened_at": candidate.opened_at,
    }
    session["admin_seal"] = signer.sign(candidate.username).decode()
    session["csrf"] = secrets.token_hex(16)
    g.admin_session = candidate
    g.pop("api", None)
    app.logger.info("admin session opened for %r", username)
    return candidate


def close_admin_session() -> None:
    for draft_id in session.get("drafts", []):
        _drafts.pop(draft_id, None)
    for key in ("admin", "admin_seal", "csrf", "drafts"):
        session.pop(key, None)
    g.admin_session = None
    g.pop("api", None)


def admin_session() -> AdminSession | None:
    """The current operator's session, rebuilt once per request."""
    if "admin_session" in g:
        return g.admin_session

    data = session.get("admin")
    current = None
    if data:
        try:
            signer.unsign(
                session.get("admin_seal", ""),
                max_age=app.config["ADMIN_SESSION_MAX_AGE"],
            )
        except SignatureExpired:
            app.logger.info("admin session for %r expired", data.get("username"))
            close_admin_session()
        except BadSignature:
            close_admin_session()
        else:
            current = AdminSession(**data)
    g.admin_session = current
    return current


def api() -> ApiClient:
    """Request-scoped backend client carrying the admin session (if any)."""
    if "api" not in g:
        g.api = new_client(auth=admin_session())
    return g.api


###############################################################################
# Reveal controller
###############################################################################
def parse_rank_fragment(fragment: str | None) -> int | None:
    """``#rank-3`` → 3; anything else → None."""
    if not fragment:
        return None
    m = RANK_FRAGMENT_RE.match(fragment.strip())
    return int(m.group(1)) if m else None


def rank_anchor(rank: int) -> str:
    return f"rank-{rank}"


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(value, hi))


@dataclass
class RevealState:
    """
    Progressive disclosure of a ranked list.

    `revealed_count` stays within [1, total] (0 only for an empty list).
    `scroll_to` is the rank the page should scroll to once rendered.
    """

    total: int
    revealed_count: int = 1
    show_all: bool = False
    scroll_to: int | None = None

    def __post_init__(self):
        self.revealed_count = _clamp(self.revealed_count, self.floor, self.total)

    @property
    def floor(self) -> int:
        return 1 if self.total else 0

    @classmethod
    def initial(cls, total: int, fragment: str | None = None) -> "RevealState":
        """Fresh page load, optionally deep-linked with ``#rank-n``."""
        state = cls(total=total)
        rank = parse_rank_fragment(fragment)
        if rank is not None and 1 <= rank <= total:
            state.revealed_count = rank
            state.show_all = True
            state.scroll_to = rank
        return state

    @classmethod
    def from_query(cls, total: int, args) -> "RevealState":
        """Rebuild the state carried in the page's query string."""
        revealed = args.get("revealed", type=int)
        return cls(
            total=total,
            revealed_count=1 if revealed is None else revealed,
            show_all=args.get("all") == "1",
        )

    def can_reveal_next(self) -> bool:
        return self.revealed_count < self.total

    def reveal_next(self) -> bool:
        if not self.can_reveal_next():
            return False
        self.revealed_count += 1
        self.scroll_to = self.revealed_count
        return True

    def toggle_show_all(self) -> None:
        self.show_all = not self.show_all
        self.revealed_count = self.total if self.show_all else self.floor
        self.scroll_to = None

    def visible(self, entries: list[dict]) -> list[dict]:
        ordered = sorted(entries, key=lambda e: e.get("rank", 0))
        return ordered if self.show_all else ordered[: self.revealed_count]

    @property
    def progress(self) -> float:
        if not self.total:
            return 0.0
        return _clamp(self.revealed_count / self.total, 0, 1)

    @property
    def finished(self) -> bool:
        return self.show_all or self.revealed_count >= self.total

    def query(self) -> dict:
        args = {"revealed": self.revealed_count}
        if self.show_all:
            args["all"] = 1
        return args

    def fragment(self) -> str:
        return f"#{rank_anchor(self.scroll_to)}" if self.scroll_to else ""


###############################################################################
# List draft editor
###############################################################################
@dataclass(frozen=True)
class NewEntry:
    """Created in the editor; lives only in memory until the next save."""

    handle: str


@dataclass(frozen=True)
class PersistedEntry:
    """Already known to the backend."""

    server_id: int


EntryRef = NewEntry | PersistedEntry


class DraftBusy(Exception):
    """A save for this draft is still in flight."""


def _resolve_media(image_id, media: list[dict], current: dict | None = None):
    if image_id is None:
        return None
    if current and current.get("id") == image_id:
        return current
    for asset in media:
        if asset.get("id") == image_id:
            return asset
    return {"id": image_id}


@dataclass
class EntryDraft:
    ref: EntryRef
    rank: int
    title: str
    blurb: str = ""
    commentary: str = ""
    fun_fact: str = ""
    external_link: str = ""
    hero_image: dict | None = None

    @property
    def is_new(self) -> bool:
        return isinstance(self.ref, NewEntry)

    @property
    def key(self) -> str:
        if isinstance(self.ref, NewEntry):
            return f"new-{self.ref.handle}"
        return f"id-{self.ref.server_id}"

    @classmethod
    def from_api(cls, data: dict) -> "EntryDraft":
        return cls(
            ref=PersistedEntry(int(data["id"])),
            rank=int(data["rank"]),
            title=data.get("title") or "",
            blurb=data.get("blurb") or "",
            commentary=data.get("commentary") or "",
            fun_fact=data.get("funFact") or "",
            external_link=data.get("externalLink") or "",
            hero_image=data.get("heroImage"),
        )

    def payload(self) -> dict:
        """Body of the backend's create-entry request."""
        return _compact(
            {
                "rank": self.rank,
                "title": self.title,
                "blurb": self.blurb,
                "commentary": self.commentary,
                "funFact": self.fun_fact,
                "externalLink": self.external_link,
                "heroImageId": (self.hero_image or {}).get("id"),
            }
        )


@dataclass
class ListDraft:
    """
    In-memory editing state of one ranked list.

    Nothing reaches the backend until `save()`; entries added here carry a
    `NewEntry` ref, entries loaded from the backend a `PersistedEntry`.
    """

    list_id: int | None = None
    slug: str | None = None
    title: str = ""
    subtitle: str = ""
    intro: str = ""
    outro: str = ""
    cover_image_id: int | None = None
    tag_ids: list[int] = field(default_factory=list)
    entries: list[EntryDraft] = field(default_factory=list)
    media: list[dict] = field(default_factory=list)
    tags: list[dict] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    _save_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @classmethod
    def from_api(cls, data: dict, *, media=(), tags=()) -> "ListDraft":
        entries = sorted(
            (EntryDraft.from_api(e) for e in data.get("entries") or []),
            key=lambda e: e.rank,
        )
        return cls(
            list_id=int(data["id"]),
            slug=data.get("slug"),
            title=data.get("title") or "",
            subtitle=data.get("subtitle") or "",
            intro=data.get("intro") or "",
            outro=data.get("outro") or "",
            cover_image_id=(data.get("coverImage") or {}).get("id"),
            tag_ids=sorted(t["id"] for t in data.get("tags") or []),
            entries=entries,
            media=list(media),
            tags=list(tags),
        )

    # ── metadata ─────────────────────────────────────────────────────
    def update_meta(self, form) -> None:
        self.title = form.get("title", self.title)
        self.subtitle = form.get("subtitle", self.subtitle)
        self.intro = form.get("intro", self.intro)
        self.outro = form.get("outro", self.outro)
        if "cover_image_id" in form:
            self.cover_image_id = _int_or_none(form.get("cover_image_id"))
        if "tags_sent" in form:
            self.tag_ids = sorted({int(t) for t in form.getlist("tag_ids") if t.isdigit()})
        self.errors = {}

    def validate(self) -> dict[str, str]:
        errors = {}
        if not self.title.strip():
            errors["title"] = "Title is required"
        if not self.intro.strip():
            errors["intro"] = "Intro is required"
        return errors

    def list_payload(self) -> dict:
        payload = _compact(
            {
                "title": self.title,
                "subtitle": self.subtitle,
                "intro": self.intro,
                "outro": self.outro,
                "coverImageId": self.cover_image_id,
            }
        )
        payload["tagIds"] = list(self.tag_ids)
        return payload

    # ── entries ──────────────────────────────────────────────────────
    def add_entry(self, data: dict) -> EntryDraft:
        rank = data.get("rank") or len(self.entries) + 1
        entry = EntryDraft(
            ref=NewEntry(uuid4().hex),
            rank=rank,
            title=data["title"],
            blurb=data.get("blurb", ""),
            commentary=data.get("commentary", ""),
            fun_fact=data.get("fun_fact", ""),
            external_link=data.get("external_link", ""),
            hero_image=_resolve_media(data.get("hero_image_id"), self.media),
        )
        self.entries.append(entry)
        return entry

    def edit_entry(self, index: int, data: dict) -> EntryDraft:
        old = self.entries[index]
        entry = EntryDraft(
            ref=old.ref,
            rank=data.get("rank") or old.rank,
            title=data["title"],
            blurb=data.get("blurb", ""),
            commentary=data.get("commentary", ""),
            fun_fact=data.get("fun_fact", ""),
            external_link=data.get("external_link", ""),
            hero_image=_resolve_media(
                data.get("hero_image_id"), self.media, current=old.hero_image
            ),
        )
        self.entries[index] = entry
        return entry

    @property
    def saving(self) -> bool:
        return self._save_lock.locked()

    def delete_entry(self, index: int) -> EntryDraft:
        return self.entries.pop(index)

    def move(self, from_index: int, to_index: int) -> None:
        """Splice the entry at *from_index* into *to_index*; others shift by one."""
        n = len(self.entries)
        if not (0 <= from_index < n and 0 <= to_index < n):
            raise IndexError(f"move {from_index}→{to_index} outside 0..{n - 1}")
        if from_index == to_index:
            return
        entry = self.entries.pop(from_index)
        self.entries.insert(to_index, entry)

    # ── reconciliation ───────────────────────────────────────────────
    def new_entries(self) -> list[EntryDraft]:
        return [e for e in self.entries if e.is_new]

    def rank_updates(self) -> list[dict]:
        """
        Final ranks of the persisted entries: their position among the
        persisted entries only, new entries take no slot.
        """
        persisted = [e for e in self.entries if not e.is_new]
        return [
            {"entryId": e.ref.server_id, "newRank": pos}
            for pos, e in enumerate(persisted, 1)
        ]

    def save(self, client: ApiClient) -> int | None:
        """
        Push the draft to the backend: list metadata, then new entries,
        then one bulk rank update. Returns the list id, or None when
        validation failed (no request made). The draft itself is never
        modified by a save, successful or not.
        """
        if not self._save_lock.acquire(blocking=False):
            raise DraftBusy()
        try:
            self.errors = self.validate()
            if self.errors:
                return None

            # everything sent is taken from the draft as it is right now
            list_id = self.list_id
            payload = self.list_payload()
            fresh = [e.payload() for e in self.new_entries()]
            updates = self.rank_updates()

            if list_id is None:
                created = client.create_list(payload)
                list_id = int(created["id"])
            else:
                client.update_list(list_id, payload)

            for entry in fresh:
                client.add_entry(list_id, entry)

            if updates:
                client.reorder_entries(list_id, updates)
            return list_id
        finally:
            self._save_lock.release()


def _int_or_none(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_entry_form(form) -> tuple[dict, dict[str, str]]:
    """Validate the entry form; returns (data, errors)."""
    errors = {}
    rank = _int_or_none(form.get("rank"))
    if rank is None or rank < 1:
        errors["rank"] = "Rank must be a positive number"
    title = form.get("title", "").strip()
    if not title:
        errors["title"] = "Title is required"
    data = {
        "rank": rank,
        "title": title,
        "blurb": form.get("blurb", "").strip(),
        "commentary": form.get("commentary", ""),
        "fun_fact": form.get("fun_fact", "").strip(),
        "external_link": form.get("external_link", "").strip(),
        "hero_image_id": _int_or_none(form.get("hero_image_id")),
    }
    return data, errors


# Drafts live in process memory, keyed by ids kept in the operator's
# session. Each operator keeps at most DRAFTS_PER_SESSION drafts and only
# loses their own oldest; DRAFT_LIMIT caps the whole process.
_drafts: "OrderedDict[str, ListDraft]" = OrderedDict()


def stash_draft(draft: ListDraft) -> str:
    draft_id = secrets.token_urlsafe(9)
    owned = [d for d in session.get("drafts", []) if d in _drafts]
    while len(owned) >= DRAFTS_PER_SESSION:
        _drafts.pop(owned.pop(0), None)
    _drafts[draft_id] = draft
    while len(_drafts) > DRAFT_LIMIT:
        _drafts.popitem(last=False)
    session["drafts"] = owned + [draft_id]
    return draft_id


def open_draft_for(list_id: int) -> str | None:
    """The operator's unsaved draft of list *list_id*, if one is open."""
    for draft_id in session.get("drafts", []):
        draft = _drafts.get(draft_id)
        if draft is not None and draft.list_id == list_id:
            return draft_id
    return None


def get_draft(draft_id: str) -> ListDraft:
    if draft_id not in session.get("drafts", []) or draft_id not in _drafts:
        abort(404)
    _drafts.move_to_end(draft_id)
    return _drafts[draft_id]


def drop_draft(draft_id: str) -> None:
    _drafts.pop(draft_id, None)
    session["drafts"] = [d for d in session.get("drafts", []) if d != draft_id]


# -------------------------------------------------------------------------
# Form helpers for posts and suggestions
# -------------------------------------------------------------------------
def parse_post_form(form) -> tuple[dict, dict[str, str]]:
    errors = {}
    for name in ("title", "excerpt", "body"):
        if not form.get(name, "").strip():
            errors[name] = f"{name.capitalize()} is required"
    status = form.get("status", "DRAFT")
    if status not in POST_STATUSES:
        errors["status"] = "Unknown status"
    payload = _compact(
        {
            "title": form.get("title", "").strip(),
            "excerpt": form.get("excerpt", "").strip(),
            "body": form.get("body", ""),
            "coverImageId": _int_or_none(form.get("cover_image_id")),
            "status": status,
        }
    )
    payload["tagIds"] = sorted({int(t) for t in form.getlist("tag_ids") if t.isdigit()})
    return payload, errors


def parse_suggestion_form(form) -> tuple[dict, dict[str, str]]:
    errors = {}
    if not form.get("title", "").strip():
        errors["title"] = "Title is required"
    if not form.get("description", "").strip():
        errors["description"] = "Description is required"
    email = form.get("submitter_email", "").strip()
    if email and not EMAIL_RE.match(email):
        errors["submitter_email"] = "Email must be valid"
    payload = _compact(
        {
            "title": form.get("title", "").strip(),
            "description": form.get("description", "").strip(),
            "category": form.get("category", "").strip(),
            "exampleEntries": form.get("example_entries", "").strip(),
            "submitterName": form.get("submitter_name", "").strip(),
            "submitterEmail": email,
        }
    )
    return payload, errors


def _csrf_token() -> str:
    """One token per admin session."""
    return session.get("csrf", "")


# Expose helpers to templates
app.jinja_env.globals.update(
    csrf_token=_csrf_token,
    admin_session=admin_session,
    page_window=page_window,
    query_href=query_href,
    rank_anchor=rank_anchor,
    site_name=site_name,
    version=__version__,
    dashboard_tabs=DASHBOARD_TABS,
    suggestion_statuses=SUGGESTION_STATUSES,
    post_statuses=POST_STATUSES,
)


###############################################################################
# Authentication + request guards
###############################################################################
def login_required() -> None:
    if admin_session() is None:
        abort(redirect(url_for("admin_login", next=request.path)))


def _safe_next(target: str | None) -> str | None:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


def rate_limit(max_requests: int, window: int = 60, methods=None):
    hits: DefaultDict[str, deque] = defaultdict(deque)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if methods and request.method not in methods:
                return view(*args, **kwargs)
            now = time()
            # left-most entry after ProxyFix = real client
            ip = (
                request.access_route[0] if request.access_route else request.remote_addr
            ) or "unknown"

            dq = hits[ip]
            while dq and now - dq[0] > window:
                dq.popleft()

            if len(dq) >= max_requests:
                retry_after = int(window - (now - dq[0]))
                return Response(
                    "Too many requests – try again later.",
                    status=429,
                    headers={"Retry-After": str(retry_after)},
                )

            dq.append(now)
            return view(*args, **kwargs)

        return wrapped

    return decorator


SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


@app.before_request
def _fresh_admin_state():
    # g can outlive a request when an app context is already pushed
    g.pop("admin_session", None)
    g.pop("api", None)


@app.before_request
def csrf_protect():
    # ➊ read-only verbs ⇒ always allowed
    if request.method in SAFE_METHODS:
        return

    # ➋ no admin session ⇒ allow (login form, public suggestions)
    if admin_session() is None:
        return

    # ➌ signed-in operators must send the session token
    token = session.get("csrf", "")
    sent = request.form.get("csrf") or request.headers.get("X-CSRFToken", "")
    if not token or not secrets.compare_digest(token, sent):
        abort(403)


@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "interest-cohort=()",
        }
    )
    return resp


###############################################################################
# Templates
###############################################################################


def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


TEMPL_PROLOG = """
<!doctype html>
<html lang="en" style="scroll-behavior:smooth;">
<title>{% if title %}{{ title }} · {% endif %}{{ site_name() }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1, shrink-to-fit=no">
<meta charset="utf-8">
<meta name="description" content="{{ site_name() }} – countdown lists and blog posts">
<style>
html{font-size:62.5%;font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,"Helvetica Neue",Arial,"Noto Sans",sans-serif}body{font-size:1.7rem;line-height:1.6;max-width:64em;margin:auto;color:#1f2933;background:#f5f6f8;padding:13px}h1,h2,h3{line-height:1.15;margin-top:2.5rem;margin-bottom:1.25rem}a{color:#2563eb;text-decoration:none}a:hover{text-decoration:underline}img{max-width:100%;height:auto;border-radius:6px}textarea,select,input{font:inherit;padding:6px 10px;margin-bottom:10px;border:1px solid #cbd2d9;border-radius:4px;box-sizing:border-box;background:#fff}textarea,input[type=text],input[type=url],input[type=email],input[type=password],input[type=search]{width:100%}.button,button{display:inline-block;padding:6px 14px;background:#2563eb;color:#fff;border:1px solid #2563eb;border-radius:4px;cursor:pointer;font:inherit}.button[disabled],button[disabled]{opacity:.5;cursor:default}.button.secondary,button.secondary{background:#fff;color:#1f2933;border-color:#cbd2d9}.button.danger,button.danger{background:#c0262d;border-color:#c0262d}table{width:100%;border-collapse:collapse;margin-bottom:2rem;background:#fff}td,th{padding:.6em;border-bottom:1px solid #e4e7eb;text-align:left;vertical-align:top}label{display:block;font-weight:600;margin-bottom:.3rem}
.card{background:#fff;border-radius:8px;box-shadow:0 1px 3px rgba(0,0,0,.08);padding:1.6rem 2rem;margin-bottom:1.6rem}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(26rem,1fr));gap:1.6rem}
.tag{display:inline-block;padding:.1em .7em;margin:0 .3em .3em 0;background:#e0e7ff;color:#3730a3;border-radius:1em;font-size:.75em}
.muted{color:#7b8794;font-size:.85em}
.field-error{color:#c0262d;font-size:.85em;margin-top:-.5rem}
.has-error{border-color:#c0262d}
.nav-primary{display:flex;align-items:center;gap:1.5rem;flex-wrap:wrap;margin-bottom:1.5rem}
.nav-primary .spacer{flex:1}
nav a[aria-current=page]{font-weight:700;text-decoration:underline}
.pager{display:flex;gap:.6rem;align-items:center;flex-wrap:wrap;margin:2rem 0}
.progress{position:sticky;top:0;z-index:10;background:#fff;padding:.8rem 1.2rem;box-shadow:0 1px 3px rgba(0,0,0,.1);margin-bottom:1.6rem}
.progress-track{height:.8rem;background:#e4e7eb;border-radius:1rem;overflow:hidden}
.progress-bar{height:100%;background:#2563eb;transition:width .3s}
.entry{display:flex;gap:2rem;cursor:pointer}
.rank-badge{flex:0 0 6rem;height:6rem;border-radius:50%;background:#2563eb;color:#fff;display:flex;align-items:center;justify-content:center;font-size:2.2rem;font-weight:700}
.fun-fact{background:#eff6ff;border-radius:6px;padding:1rem 1.4rem}
.entry-row{display:flex;align-items:center;gap:1.2rem;padding:.8rem 1rem;background:#f5f6f8;border-radius:6px;margin-bottom:.6rem;cursor:move}
.entry-row.drop-target{outline:2px dashed #2563eb}
.entry-row .pos{flex:0 0 3rem;height:3rem;border-radius:50%;background:#2563eb;color:#fff;display:flex;align-items:center;justify-content:center;font-weight:700}
.entry-row .grow{flex:1;min-width:0}
.entry-row button{padding:3px 9px;font-size:.85em}
.tabs{display:flex;gap:2rem;border-bottom:1px solid #cbd2d9;margin-bottom:2rem}
.tabs a{padding:.6rem 0}
.stats{display:grid;grid-template-columns:repeat(auto-fill,minmax(14rem,1fr));gap:1rem}
.stat{background:#fff;border-radius:6px;padding:1rem;text-align:center}
.stat strong{display:block;font-size:1.6em}
.status-NEW{color:#1e40af}.status-REVIEWING{color:#92400e}.status-ACCEPTED{color:#166534}.status-DECLINED{color:#991b1b}
</style>
<body>
<a class="skip-link" href="#main-content" style="position:absolute;left:-999px;">Skip to main content</a>
{% macro pager(p) -%}
    {% set total = p.get('totalPages', 0) %}
    {% if total > 1 %}
    {% set current = p.get('number', 0) %}
    {% set size = p.get('size', 1) %}
    <nav aria-label="Pagination" class="pager">
        <span class="muted">
            Showing {{ current * size + 1 }} to {{ [(current + 1) * size, p.get('totalElements', 0)]|min }}
            of {{ p.get('totalElements', 0) }}
        </span>
        {% if current > 0 %}<a href="{{ query_href(page=current - 1) }}">‹&nbsp;Previous</a>{% endif %}
        {% for n in page_window(current, total) %}
            {% if n is none %}<span>…</span>
            {% elif n == current %}<strong aria-current="page">{{ n + 1 }}</strong>
            {% else %}<a href="{{ query_href(page=n) }}">{{ n + 1 }}</a>
            {% endif %}
        {% endfor %}
        {% if current < total - 1 %}<a href="{{ query_href(page=current + 1) }}">Next&nbsp;›</a>{% endif %}
    </nav>
    {% endif %}
{%- endmacro %}
{% macro field_error(errors, name) -%}
    {% if errors and errors.get(name) %}<p class="field-error">{{ errors[name] }}</p>{% endif %}
{%- endmacro %}
{% macro tag_badges(tags, endpoint) -%}
    {% for t in tags or [] %}
        <a class="tag" href="{{ url_for(endpoint, tag=t['name']) }}">{{ t['name'] }}</a>
    {% endfor %}
{%- endmacro %}
{% macro csrf_field() -%}
    {% if csrf_token() %}<input type="hidden" name="csrf" value="{{ csrf_token() }}">{% endif %}
{%- endmacro %}
<div class="container">
    <nav aria-label="Primary" class="nav-primary">
        <a href="{{ url_for('index') }}" style="font-size:1.4em;font-weight:800;color:#1f2933;">{{ site_name() }}</a>
        <a href="{{ url_for('lists_index') }}"
           {% if request.endpoint in ('lists_index', 'list_detail') %}aria-current="page"{% endif %}>Lists</a>
        <a href="{{ url_for('posts_index') }}"
           {% if request.endpoint in ('posts_index', 'post_detail') %}aria-current="page"{% endif %}>Posts</a>
        <a href="{{ url_for('suggest') }}"
           {% if request.endpoint == 'suggest' %}aria-current="page"{% endif %}>Suggest a list</a>
        <span class="spacer"></span>
        {% if admin_session() %}
            <a href="{{ url_for('dashboard') }}">Dashboard</a>
            <a href="{{ url_for('admin_logout') }}">Logout</a>
        {% endif %}
    </nav>
    {% with msgs = get_flashed_messages() %}
    {% if msgs %}
        <div role="status" aria-live="polite" aria-atomic="true" style="position:fixed;top:1rem;right:1rem;background:#323232;color:#fff;padding:.75rem 1rem;border-radius:.4rem;font-size:1.4rem;line-height:1.3;box-shadow:0 2px 6px rgba(0,0,0,.4);max-width:32rem;z-index:999;">
        {% for m in msgs %}{{ m }}{% if not loop.last %}<br>{% endif %}{% endfor %}
        </div>
    {% endif %}
    {% endwith %}
    <main id="main-content" role="main" tabindex="-1">
"""

TEMPL_EPILOG = """
    </main>
    <footer id="page-bottom" style="margin-top:3rem;padding-top:1.5em;font-size:.8em;color:#7b8794;display:flex;justify-content:space-between;border-top:1px solid #cbd2d9;">
        <span>{{ site_name() }} <span class="muted">v{{ version }}</span></span>
        {% if not admin_session() %}
            <a href="{{ url_for('admin_login') }}" style="color:inherit;">Admin</a>
        {% endif %}
    </footer>
</div> <!-- container -->
</body>
</html>
"""


###############################################################################
# Public pages
###############################################################################
@app.route("/")
def index():
    client = api()
    lists = client.lists_page(size=HOME_LISTS) or {}
    posts = client.posts_page(size=HOME_POSTS) or {}
    return render_template_string(
        TEMPL_INDEX,
        lists=lists.get("content") or [],
        posts=posts.get("content") or [],
    )


TEMPL_INDEX = wrap("""
{% block body %}
<section>
    <h1 style="margin-top:0">Welcome to {{ site_name() }}</h1>
    <p class="muted">Countdown lists, revealed one rank at a time.</p>
</section>
<h2>Latest lists</h2>
{% if lists %}
<div class="grid">
    {% for l in lists %}
    <article class="card">
        {% if l.get('coverImage') %}
            <img src="{{ l['coverImage']['url'] }}" alt="{{ l['coverImage'].get('altText') or l['title'] }}">
        {% endif %}
        <h3><a href="{{ url_for('list_detail', slug=l['slug']) }}">{{ l['title'] }}</a></h3>
        {% if l.get('subtitle') %}<p>{{ l['subtitle'] }}</p>{% endif %}
        {{ tag_badges(l.get('tags'), 'lists_index') }}
        <p class="muted">{{ l.get('entryCount', 0) }} entries · {{ l.get('publishedAt')|day }}</p>
    </article>
    {% endfor %}
</div>
<p><a href="{{ url_for('lists_index') }}">All lists →</a></p>
{% else %}
<p class="muted">No lists published yet.</p>
{% endif %}

<h2>From the blog</h2>
{% for p in posts %}
<article class="card">
    <h3 style="margin-top:0"><a href="{{ url_for('post_detail', slug=p['slug']) }}">{{ p['title'] }}</a></h3>
    <p>{{ p.get('excerpt')|mdinline }}</p>
    <span class="muted">{{ p.get('publishedAt')|day }}</span>
</article>
{% else %}
<p class="muted">No posts yet.</p>
{% endfor %}
{% endblock %}
""")


@app.route("/lists")
def lists_index():
    search = request.args.get("search", "").strip()
    tag = request.args.get("tag", "").strip()
    page = api().lists_page(
        search=search, tag=tag, page=page_arg(), size=app.config["PAGE_SIZE"]
    ) or {}
    return render_template_string(
        TEMPL_LISTS_INDEX, title="Lists", p=page, search=search, tag=tag
    )


TEMPL_LISTS_INDEX = wrap("""
{% block body %}
<h1 style="margin-top:0">Lists</h1>
<form method="get" style="display:flex;gap:.6rem;">
    <input type="search" name="search" value="{{ search }}" placeholder="Search lists..." aria-label="Search lists">
    {% if tag %}<input type="hidden" name="tag" value="{{ tag }}">{% endif %}
    <button>Search</button>
</form>
{% if search or tag %}
<p class="muted">
    {% if tag %}Tagged <span class="tag">{{ tag }}</span>{% endif %}
    {% if search %}Matching “{{ search }}”{% endif %}
    · <a href="{{ url_for('lists_index') }}">Clear filters</a>
</p>
{% endif %}
{% set items = p.get('content') or [] %}
{% if items %}
<div class="grid">
    {% for l in items %}
    <article class="card">
        {% if l.get('coverImage') %}
            <img src="{{ l['coverImage']['url'] }}" alt="{{ l['coverImage'].get('altText') or l['title'] }}">
        {% endif %}
        <h3><a href="{{ url_for('list_detail', slug=l['slug']) }}">{{ l['title'] }}</a></h3>
        {% if l.get('subtitle') %}<p>{{ l['subtitle'] }}</p>{% endif %}
        {{ tag_badges(l.get('tags'), 'lists_index') }}
        <p class="muted">{{ l.get('entryCount', 0) }} entries · {{ l.get('publishedAt')|day }}</p>
    </article>
    {% endfor %}
</div>
{{ pager(p) }}
{% else %}
<p class="muted">No lists found.</p>
{% endif %}
{% endblock %}
""")


@app.route("/lists/<slug>")
def list_detail(slug):
    lst = api().list_by_slug(slug)
    entries = sorted(lst.get("entries") or [], key=lambda e: e.get("rank", 0))
    total = len(entries)

    deep_link = request.args.get("rank")
    if deep_link is not None:
        state = RevealState.initial(total, f"#rank-{deep_link.strip()}")
    else:
        state = RevealState.from_query(total, request.args)

    action = request.args.get("do")
    if action in ("next", "toggle"):
        if action == "next":
            state.reveal_next()
        else:
            state.toggle_show_all()
        target = url_for("list_detail", slug=slug, **state.query())
        return redirect(target + state.fragment())

    return render_template_string(
        TEMPL_LIST_DETAIL,
        title=lst.get("title"),
        lst=lst,
        state=state,
        total=total,
        visible=state.visible(entries),
    )


TEMPL_LIST_DETAIL = wrap("""
{% block body %}
{% if not state.show_all and total %}
<div class="progress">
    <div style="display:flex;justify-content:space-between;margin-bottom:.4rem;">
        <span class="muted">{{ state.revealed_count }} of {{ total }} revealed</span>
        <a href="{{ url_for('list_detail', slug=lst['slug'], do='toggle', **state.query()) }}">Show All</a>
    </div>
    <div class="progress-track">
        <div class="progress-bar" style="width:{{ '%.1f'|format(state.progress * 100) }}%"></div>
    </div>
</div>
{% endif %}

<header class="card">
    {% if lst.get('coverImage') %}
        <img src="{{ lst['coverImage']['url'] }}" alt="{{ lst['coverImage'].get('altText') or lst['title'] }}">
    {% endif %}
    <h1>{{ lst['title'] }}</h1>
    {% if lst.get('subtitle') %}<p style="font-size:1.2em;">{{ lst['subtitle'] }}</p>{% endif %}
    {{ tag_badges(lst.get('tags'), 'lists_index') }}
    <p class="muted">Published {{ lst.get('publishedAt')|day }}</p>
    {% if lst.get('intro') %}<div class="e-content">{{ lst['intro']|md }}</div>{% endif %}
    {% if state.show_all %}
        <a class="button secondary" href="{{ url_for('list_detail', slug=lst['slug'], do='toggle', **state.query()) }}">Switch to Reveal Mode</a>
    {% endif %}
</header>

{% for e in visible %}
<article class="card entry" id="{{ rank_anchor(e['rank']) }}" data-rank="{{ e['rank'] }}"
         {% if state.scroll_to == e['rank'] %}data-scroll-target{% endif %}>
    <div class="rank-badge">{{ e['rank'] }}</div>
    <div style="flex:1;min-width:0;">
        <h2 style="margin-top:0">{{ e['title'] }}</h2>
        {% if e.get('heroImage') %}
            <img src="{{ e['heroImage']['url'] }}" alt="{{ e['heroImage'].get('altText') or e['title'] }}">
        {% endif %}
        {% if e.get('blurb') %}
            <h3>Overview</h3>
            <p>{{ e['blurb'] }}</p>
        {% endif %}
        {% if e.get('commentary') %}
            <h3>Commentary</h3>
            <div class="e-content">{{ e['commentary']|md }}</div>
        {% endif %}
        {% if e.get('funFact') %}
            <div class="fun-fact"><h3 style="margin-top:0">Fun Fact</h3><p>{{ e['funFact'] }}</p></div>
        {% endif %}
        {% if e.get('externalLink') %}
            <a href="{{ e['externalLink'] }}" target="_blank" rel="noopener noreferrer">Learn more →</a>
        {% endif %}
    </div>
</article>
{% endfor %}

{% if not state.show_all and state.can_reveal_next() %}
<p style="text-align:center;margin-top:2rem;">
    <a class="button" style="font-size:1.2em;padding:10px 24px;"
       href="{{ url_for('list_detail', slug=lst['slug'], do='next', **state.query()) }}">Reveal #{{ state.revealed_count + 1 }}</a>
</p>
{% endif %}

{% if state.finished and lst.get('outro') %}
<section class="card e-content">{{ lst['outro']|md }}</section>
{% endif %}

<script>
(() => {
    const params = new URLSearchParams(location.search);
    const m = /^#rank-(\\d+)$/.exec(location.hash);
    const stateful = ['rank', 'revealed', 'all'].some(k => params.has(k));
    // bare deep link: let the server open the list at that rank
    if (m && !stateful) {
        params.set('rank', m[1]);
        location.replace(`${location.pathname}?${params}${location.hash}`);
        return;
    }

    const target = document.querySelector('[data-scroll-target]')
        || (m && document.getElementById(`rank-${m[1]}`));
    if (target) {
        setTimeout(() => target.scrollIntoView({behavior: 'smooth', block: 'center'}), 100);
    }

    document.querySelectorAll('.entry[data-rank]').forEach(el => {
        el.addEventListener('click', ev => {
            if (ev.target.closest('a')) return;
            history.replaceState(null, '', `${location.pathname}${location.search}#rank-${el.dataset.rank}`);
        });
    });
})();
</script>
{% endblock %}
""")


@app.route("/posts")
def posts_index():
    search = request.args.get("search", "").strip()
    tag = request.args.get("tag", "").strip()
    page = api().posts_page(
        search=search, tag=tag, page=page_arg(), size=app.config["PAGE_SIZE"]
    ) or {}
    return render_template_string(
        TEMPL_POSTS_INDEX, title="Posts", p=page, search=search, tag=tag
    )


TEMPL_POSTS_INDEX = wrap("""
{% block body %}
<h1 style="margin-top:0">Posts</h1>
<form method="get" style="display:flex;gap:.6rem;">
    <input type="search" name="search" value="{{ search }}" placeholder="Search posts..." aria-label="Search posts">
    {% if tag %}<input type="hidden" name="tag" value="{{ tag }}">{% endif %}
    <button>Search</button>
</form>
{% if search or tag %}
<p class="muted">
    {% if tag %}Tagged <span class="tag">{{ tag }}</span>{% endif %}
    {% if search %}Matching “{{ search }}”{% endif %}
    · <a href="{{ url_for('posts_index') }}">Clear filters</a>
</p>
{% endif %}
{% for p_ in p.get('content') or [] %}
<article class="card">
    {% if p_.get('coverImage') %}
        <img src="{{ p_['coverImage']['url'] }}" alt="{{ p_['coverImage'].get('altText') or p_['title'] }}">
    {% endif %}
    <h2 style="margin-top:0"><a href="{{ url_for('post_detail', slug=p_['slug']) }}">{{ p_['title'] }}</a></h2>
    <p>{{ p_.get('excerpt')|mdinline }}</p>
    {{ tag_badges(p_.get('tags'), 'posts_index') }}
    <span class="muted">{{ p_.get('publishedAt')|day }}</span>
</article>
{% else %}
<p class="muted">No posts found.</p>
{% endfor %}
{{ pager(p) }}
{% endblock %}
""")


@app.route("/posts/<slug>")
def post_detail(slug):
    post = api().post_by_slug(slug)
    return render_template_string(TEMPL_POST_DETAIL, title=post.get("title"), post=post)


TEMPL_POST_DETAIL = wrap("""
{% block body %}
<article class="card">
    {% if post.get('coverImage') %}
        <img src="{{ post['coverImage']['url'] }}" alt="{{ post['coverImage'].get('altText') or post['title'] }}">
    {% endif %}
    <h1>{{ post['title'] }}</h1>
    {{ tag_badges(post.get('tags'), 'posts_index') }}
    {% if post.get('publishedAt') %}<p class="muted">Published {{ post['publishedAt']|day }}</p>{% endif %}
    <div class="e-content">{{ post.get('body')|md }}</div>
</article>
<p><a href="{{ url_for('posts_index') }}">← All posts</a></p>
{% endblock %}
""")


@app.route("/suggest", methods=["GET", "POST"])
@rate_limit(max_requests=10, window=60, methods=("POST",))
def suggest():
    errors: dict[str, str] = {}
    if request.method == "POST":
        payload, errors = parse_suggestion_form(request.form)
        if not errors:
            try:
                new_client().create_suggestion(payload)
            except ApiError as exc:
                flash(f"Could not send your suggestion – {exc.message}")
            else:
                flash("Thanks! Your suggestion is on its way to the editors.")
                return redirect(url_for("suggest", sent=1))

    return render_template_string(
        TEMPL_SUGGEST,
        title="Suggest a list",
        errors=errors,
        form=request.form,
        sent=request.args.get("sent") == "1",
    )


TEMPL_SUGGEST = wrap("""
{% block body %}
<h1 style="margin-top:0">Suggest a list</h1>
{% if sent %}
<p class="card">Thanks for the idea! Feel free to send another one.</p>
{% endif %}
<form method="post" class="card">
    {{ csrf_field() }}
    <label for="title">Title *</label>
    <input id="title" name="title" type="text" value="{{ form.get('title', '') }}"
           class="{{ 'has-error' if errors.get('title') }}" placeholder="Top 10 ...">
    {{ field_error(errors, 'title') }}

    <label for="description">Description *</label>
    <textarea id="description" name="description" rows="4"
              class="{{ 'has-error' if errors.get('description') }}">{{ form.get('description', '') }}</textarea>
    {{ field_error(errors, 'description') }}

    <label for="category">Category</label>
    <input id="category" name="category" type="text" value="{{ form.get('category', '') }}">

    <label for="example_entries">Example entries</label>
    <textarea id="example_entries" name="example_entries" rows="3">{{ form.get('example_entries', '') }}</textarea>

    <label for="submitter_name">Your name</label>
    <input id="submitter_name" name="submitter_name" type="text" value="{{ form.get('submitter_name', '') }}">

    <label for="submitter_email">Your email</label>
    <input id="submitter_email" name="submitter_email" type="email" value="{{ form.get('submitter_email', '') }}"
           class="{{ 'has-error' if errors.get('submitter_email') }}">
    {{ field_error(errors, 'submitter_email') }}

    <button>Send suggestion</button>
</form>
{% endblock %}
""")


###############################################################################
# Admin: login / logout
###############################################################################
@app.route("/admin/login", methods=["GET", "POST"])
@rate_limit(max_requests=5, window=60, methods=("POST",))
def admin_login():
    next_url = _safe_next(request.values.get("next"))
    if request.method == "GET" and admin_session():
        return redirect(next_url or url_for("dashboard"))

    error = None
    username = ""
    if request.method == "POST":
        username = request.form.get("username", "").strip()
        password = request.form.get("password", "")
        if not username or not password:
            error = "Username and password are required"
        else:
            try:
                opened = open_admin_session(username, password)
            except ApiError as exc:
                error = f"Could not reach the backend – {exc.message}"
            else:
                if opened:
                    return redirect(next_url or url_for("dashboard"))
                error = "Invalid username or password"

    return render_template_string(
        TEMPL_LOGIN, title="Sign in", error=error, username=username, next=next_url
    )


TEMPL_LOGIN = wrap("""
{% block body %}
<h1 style="margin-top:0">Admin sign in</h1>
<form method="post" class="card" style="max-width:36rem;">
    {{ csrf_field() }}
    {% if next %}<input type="hidden" name="next" value="{{ next }}">{% endif %}
    {% if error %}<p class="field-error" role="alert">{{ error }}</p>{% endif %}
    <label for="username">Username</label>
    <input id="username" name="username" type="text" value="{{ username }}" autocomplete="username" autofocus>
    <label for="password">Password</label>
    <input id="password" name="password" type="password" autocomplete="current-password">
    <button>Sign in</button>
</form>
{% endblock %}
""")


@app.route("/admin/logout")
def admin_logout():
    who = admin_session()
    close_admin_session()
    if who:
        app.logger.info("admin session closed for %r", who.username)
    flash("Signed out.")
    return redirect(url_for("index"))


###############################################################################
# Admin: dashboard
###############################################################################
@app.route("/admin")
def admin_home():
    login_required()
    return redirect(url_for("dashboard"))


def _media_stats(media: list[dict]) -> dict:
    total = sum(m.get("fileSize") or 0 for m in media)
    return {
        "count": len(media),
        "images": sum(1 for m in media if (m.get("contentType") or "").startswith("image/")),
        "total": total,
        "average": total / len(media) if media else 0,
    }


@app.route("/admin/dashboard")
def dashboard():
    login_required()
    tab = request.args.get("tab", "lists")
    if tab not in DASHBOARD_TABS:
        tab = "lists"

    ctx: dict = {"unavailable": False}
    client = api()
    try:
        if tab == "lists":
            ctx["p"] = client.lists_page(page=page_arg(), size=app.config["PAGE_SIZE"]) or {}
        elif tab == "posts":
            ctx["p"] = client.posts_page(page=page_arg(), size=app.config["PAGE_SIZE"]) or {}
        elif tab == "suggestions":
            items = client.suggestions()
            status = request.args.get("status", "ALL")
            if status not in SUGGESTION_STATUSES:
                status = "ALL"
            ctx["counts"] = {
                s: sum(1 for x in items if x.get("status") == s)
                for s in SUGGESTION_STATUSES
            }
            ctx["counts"]["ALL"] = len(items)
            ctx["status_filter"] = status
            ctx["suggestions"] = [
                x for x in items if status == "ALL" or x.get("status") == status
            ]
        else:
            media = client.media()
            ctx["media"] = media
            ctx["stats"] = _media_stats(media)
    except SessionExpired:
        raise
    except ApiError as exc:
        flash(f"Backend error – {exc.message}")
        ctx["unavailable"] = True

    return render_template_string(TEMPL_DASHBOARD, title="Dashboard", tab=tab, **ctx)


TEMPL_DASHBOARD = wrap("""
{% block body %}
<h1 style="margin-top:0">Dashboard</h1>
<p class="muted">Signed in as {{ admin_session().username }}</p>
<nav class="tabs" aria-label="Dashboard">
    {% for t in dashboard_tabs %}
        <a href="{{ url_for('dashboard', tab=t) }}" {% if t == tab %}aria-current="page"{% endif %}>{{ t|capitalize }}</a>
    {% endfor %}
</nav>

{% if unavailable %}
<p class="card muted">The backend could not be reached. Try again in a moment.</p>

{% elif tab == 'lists' %}
<p><a class="button" href="{{ url_for('list_new') }}">+ New list</a></p>
<table>
    <tr><th>Title</th><th>Entries</th><th>Published</th><th></th></tr>
    {% for l in p.get('content') or [] %}
    <tr>
        <td><a href="{{ url_for('list_detail', slug=l['slug']) }}">{{ l['title'] }}</a>
            {% if l.get('subtitle') %}<br><span class="muted">{{ l['subtitle'] }}</span>{% endif %}</td>
        <td>{{ l.get('entryCount', 0) }}</td>
        <td>{{ l.get('publishedAt')|day }}</td>
        <td style="white-space:nowrap;">
            <a href="{{ url_for('list_edit', slug=l['slug']) }}">Edit</a> ·
            <a href="{{ url_for('list_delete', list_id=l['id'], title=l['title']) }}" style="color:#c0262d;">Delete</a>
        </td>
    </tr>
    {% else %}
    <tr><td colspan="4" class="muted">No lists yet.</td></tr>
    {% endfor %}
</table>
{{ pager(p) }}

{% elif tab == 'posts' %}
<p><a class="button" href="{{ url_for('post_new') }}">+ New post</a></p>
<table>
    <tr><th>Title</th><th>Status</th><th>Published</th><th></th></tr>
    {% for p_ in p.get('content') or [] %}
    <tr>
        <td><a href="{{ url_for('post_detail', slug=p_['slug']) }}">{{ p_['title'] }}</a></td>
        <td>{{ p_.get('status', '') }}</td>
        <td>{{ p_.get('publishedAt')|day }}</td>
        <td style="white-space:nowrap;">
            <a href="{{ url_for('post_edit', slug=p_['slug']) }}">Edit</a> ·
            <a href="{{ url_for('post_delete', post_id=p_['id'], title=p_['title']) }}" style="color:#c0262d;">Delete</a>
        </td>
    </tr>
    {% else %}
    <tr><td colspan="4" class="muted">No posts yet.</td></tr>
    {% endfor %}
</table>
{{ pager(p) }}

{% elif tab == 'suggestions' %}
<nav class="pager" aria-label="Filter by status">
    {% for s in ('ALL',) + suggestion_statuses %}
        <a href="{{ url_for('dashboard', tab='suggestions', status=None if s == 'ALL' else s) }}"
           {% if s == status_filter %}aria-current="page"{% endif %}>{{ s|capitalize }} ({{ counts[s] }})</a>
    {% endfor %}
</nav>
{% for s in suggestions %}
<article class="card">
    <h3 style="margin-top:0">{{ s['title'] }} <small class="status-{{ s['status'] }}">{{ s['status'] }}</small></h3>
    <p>{{ s.get('description') or '' }}</p>
    {% if s.get('category') %}<p><strong>Category:</strong> {{ s['category'] }}</p>{% endif %}
    {% if s.get('exampleEntries') %}<p><strong>Examples:</strong> {{ s['exampleEntries'] }}</p>{% endif %}
    <p class="muted">
        {{ s.get('submitterName') or 'Anonymous' }}{% if s.get('submitterEmail') %} &lt;{{ s['submitterEmail'] }}&gt;{% endif %}
        · {{ s.get('createdAt')|day }}
    </p>
    <form method="post" action="{{ url_for('suggestion_status', suggestion_id=s['id']) }}" style="display:flex;gap:.6rem;">
        {{ csrf_field() }}
        <input type="hidden" name="filter" value="{{ '' if status_filter == 'ALL' else status_filter }}">
        <select name="status" aria-label="Status">
            {% for st in suggestion_statuses %}
                <option value="{{ st }}" {% if st == s['status'] %}selected{% endif %}>{{ st|capitalize }}</option>
            {% endfor %}
        </select>
        <button class="secondary">Update</button>
    </form>
</article>
{% else %}
<p class="muted">No suggestions.</p>
{% endfor %}

{% else %}
<div class="stats">
    <div class="stat"><strong>{{ stats.count }}</strong>Files</div>
    <div class="stat"><strong>{{ stats.images }}</strong>Images</div>
    <div class="stat"><strong>{{ stats.total|filesize }}</strong>Total size</div>
    <div class="stat"><strong>{{ stats.average|filesize }}</strong>Average size</div>
</div>
<form method="post" action="{{ url_for('media_upload') }}" enctype="multipart/form-data" class="card" style="margin-top:2rem;">
    {{ csrf_field() }}
    <label for="file">Image (JPEG, PNG, GIF or WebP, max 10 MB)</label>
    <input id="file" name="file" type="file" accept="image/jpeg,image/png,image/gif,image/webp">
    <label for="alt_text">Alt text</label>
    <input id="alt_text" name="alt_text" type="text">
    <button>Upload</button>
</form>
<div class="grid">
    {% for m in media %}
    <figure class="card" style="margin:0;">
        <img src="{{ m['url'] }}" alt="{{ m.get('altText') or m.get('filename', '') }}" loading="lazy">
        <figcaption>
            {{ m.get('filename', '') }}<br>
            <span class="muted">{{ m.get('fileSize')|filesize }}{% if m.get('width') %} · {{ m['width'] }}×{{ m['height'] }}{% endif %}</span><br>
            <a href="{{ url_for('media_delete', media_id=m['id'], title=m.get('filename', '')) }}" style="color:#c0262d;">Delete</a>
        </figcaption>
    </figure>
    {% else %}
    <p class="muted">No media uploaded yet.</p>
    {% endfor %}
</div>
{% endif %}
{% endblock %}
""")


TEMPL_CONFIRM_DELETE = wrap("""
{% block body %}
<h1 style="margin-top:0">Delete {{ what }}?</h1>
<article class="card">
    <p>Are you sure you want to delete “{{ name }}”? This cannot be undone.</p>
    <form method="post">
        {{ csrf_field() }}
        {% if name_field %}<input type="hidden" name="title" value="{{ name }}">{% endif %}
        <button class="danger">Delete</button>
        <a class="button secondary" href="{{ back }}">Cancel</a>
    </form>
</article>
{% endblock %}
""")


###############################################################################
# Admin: list editor
###############################################################################
def _editor_catalogue(client: ApiClient) -> tuple[list[dict], list[dict]]:
    return client.media(), available_tags(client)


@app.route("/admin/lists/new")
def list_new():
    login_required()
    media, tags = _editor_catalogue(api())
    draft_id = stash_draft(ListDraft(media=media, tags=tags))
    return redirect(url_for("list_editor", draft_id=draft_id))


@app.route("/admin/lists/<slug>/edit")
def list_edit(slug):
    login_required()
    client = api()
    lst = client.list_by_slug(slug)
    draft_id = open_draft_for(int(lst["id"]))
    if draft_id is not None:
        flash("Resumed your unsaved changes to this list.")
        return redirect(url_for("list_editor", draft_id=draft_id))
    media, tags = _editor_catalogue(client)
    draft_id = stash_draft(ListDraft.from_api(lst, media=media, tags=tags))
    return redirect(url_for("list_editor", draft_id=draft_id))


def _busy_redirect(draft_id: str):
    flash("Still saving – try again in a moment.")
    return redirect(url_for("list_editor", draft_id=draft_id))


def _parse_move(action: str) -> tuple[int, int] | None:
    try:
        src, dst = action.split(":")
        return int(src), int(dst)
    except ValueError:
        return None


@app.route("/admin/drafts/<draft_id>", methods=["GET", "POST"])
def list_editor(draft_id):
    login_required()
    draft = get_draft(draft_id)
    if request.method == "GET":
        return _render_editor(draft_id, draft)

    if draft.saving:
        return _busy_redirect(draft_id)
    draft.update_meta(request.form)
    drag = request.form.get("drag", "")
    action = f"move:{drag}" if drag else request.form.get("action", "")
    verb, _, arg = action.partition(":")

    if verb == "save":
        return _save_draft(draft_id, draft)
    if verb == "discard":
        drop_draft(draft_id)
        flash("Changes discarded.")
        return redirect(url_for("dashboard", tab="lists"))
    if verb == "add":
        return redirect(url_for("entry_form", draft_id=draft_id))
    if verb == "edit" and arg.isdigit():
        return redirect(url_for("entry_form", draft_id=draft_id, index=int(arg)))
    if verb == "delete" and arg.isdigit():
        return redirect(url_for("entry_delete", draft_id=draft_id, index=int(arg)))
    if verb == "move":
        move = _parse_move(arg)
        if move is None:
            abort(400)
        try:
            draft.move(*move)
        except IndexError:
            abort(400)
        return redirect(url_for("list_editor", draft_id=draft_id) + "#entries")
    # plain submit (e.g. Enter in a text field): metadata kept, nothing else
    return redirect(url_for("list_editor", draft_id=draft_id))


def _save_draft(draft_id: str, draft: ListDraft):
    try:
        list_id = draft.save(api())
    except DraftBusy:
        flash("Already saving – please wait.")
        return redirect(url_for("list_editor", draft_id=draft_id))
    except SessionExpired:
        raise
    except ApiError as exc:
        flash(f"Failed to save list – {exc.message}")
        return _render_editor(draft_id, draft)

    if list_id is None:
        return _render_editor(draft_id, draft)

    app.logger.info("list %s saved (%d entries)", list_id, len(draft.entries))
    drop_draft(draft_id)
    flash("List saved.")
    return redirect(url_for("dashboard", tab="lists"))


def _render_editor(draft_id: str, draft: ListDraft):
    return render_template_string(
        TEMPL_LIST_EDITOR,
        title="Edit list" if draft.list_id else "New list",
        draft_id=draft_id,
        draft=draft,
    )


TEMPL_LIST_EDITOR = wrap("""
{% block body %}
<h1 style="margin-top:0">{{ 'Edit list' if draft.list_id else 'New list' }}</h1>
<form method="post" id="list-form" action="{{ url_for('list_editor', draft_id=draft_id) }}">
    {{ csrf_field() }}
    <input type="hidden" name="tags_sent" value="1">
    <input type="hidden" name="drag" id="drag" value="">
    <section class="card">
        <label for="title">Title *</label>
        <input id="title" name="title" type="text" value="{{ draft.title }}"
               class="{{ 'has-error' if draft.errors.get('title') }}">
        {{ field_error(draft.errors, 'title') }}

        <label for="subtitle">Subtitle</label>
        <input id="subtitle" name="subtitle" type="text" value="{{ draft.subtitle }}">

        <label for="intro">Intro *</label>
        <textarea id="intro" name="intro" rows="5"
                  class="{{ 'has-error' if draft.errors.get('intro') }}">{{ draft.intro }}</textarea>
        {{ field_error(draft.errors, 'intro') }}

        <label for="outro">Outro</label>
        <textarea id="outro" name="outro" rows="3">{{ draft.outro }}</textarea>

        <label for="cover_image_id">Cover image</label>
        <select id="cover_image_id" name="cover_image_id">
            <option value="">None</option>
            {% for m in draft.media %}
                <option value="{{ m['id'] }}" {% if m['id'] == draft.cover_image_id %}selected{% endif %}>{{ m.get('filename') or m['id'] }}</option>
            {% endfor %}
        </select>

        {% if draft.tags %}
        <fieldset style="border:0;padding:0;">
            <legend style="font-weight:600;">Tags</legend>
            {% for t in draft.tags %}
                <label style="display:inline-block;font-weight:400;margin-right:1rem;">
                    <input type="checkbox" name="tag_ids" value="{{ t['id'] }}" {% if t['id'] in draft.tag_ids %}checked{% endif %}>
                    {{ t['name'] }}
                </label>
            {% endfor %}
        </fieldset>
        {% endif %}
    </section>

    <section class="card" id="entries">
        <div style="display:flex;justify-content:space-between;align-items:center;">
            <h2 style="margin:0">Entries ({{ draft.entries|length }})</h2>
            <button name="action" value="add" class="secondary">+ Add entry</button>
        </div>
        <p class="muted">Drag entries or use the arrows to reorder. Ranks are saved from this order.</p>
        <div id="entry-rows">
        {% for e in draft.entries %}
            <div class="entry-row" draggable="true" data-index="{{ loop.index0 }}">
                <span class="pos">{{ loop.index }}</span>
                <div class="grow">
                    <strong>{{ e.title }}</strong>
                    {% if e.is_new %}<span class="tag">new</span>{% endif %}
                    <br><span class="muted">Rank #{{ e.rank }}{% if e.blurb %} · {{ e.blurb|truncate(80) }}{% endif %}</span>
                </div>
                <button name="action" value="move:{{ loop.index0 }}:{{ loop.index0 - 1 }}" class="secondary"
                        {% if loop.first %}disabled{% endif %} aria-label="Move up">↑</button>
                <button name="action" value="move:{{ loop.index0 }}:{{ loop.index0 + 1 }}" class="secondary"
                        {% if loop.last %}disabled{% endif %} aria-label="Move down">↓</button>
                <button name="action" value="edit:{{ loop.index0 }}" class="secondary">Edit</button>
                <button name="action" value="delete:{{ loop.index0 }}" class="danger">Delete</button>
            </div>
        {% else %}
            <p class="muted">No entries yet.</p>
        {% endfor %}
        </div>
    </section>

    <p style="display:flex;gap:1rem;">
        <button name="action" value="save" {% if draft.saving %}disabled{% endif %}>
            {{ 'Saving…' if draft.saving else 'Save list' }}
        </button>
        <button name="action" value="discard" class="secondary">Discard changes</button>
    </p>
</form>

<script>
(() => {
    const form = document.getElementById('list-form');
    const rows = [...document.querySelectorAll('.entry-row[draggable]')];
    let from = null;
    let over = null;

    rows.forEach(row => {
        row.addEventListener('dragstart', ev => {
            from = Number(row.dataset.index);
            ev.dataTransfer.effectAllowed = 'move';
            row.style.opacity = '.5';
        });
        row.addEventListener('dragover', ev => {
            ev.preventDefault();
            if (from === null) return;
            if (over) over.classList.remove('drop-target');
            over = row;
            row.classList.add('drop-target');
        });
        row.addEventListener('drop', ev => {
            ev.preventDefault();
            const to = Number(row.dataset.index);
            if (from === null || from === to) return;
            document.getElementById('drag').value = `${from}:${to}`;
            form.submit();
        });
        row.addEventListener('dragend', () => {
            row.style.opacity = '';
            if (over) over.classList.remove('drop-target');
            from = over = null;
        });
    });
})();
</script>
{% endblock %}
""")


@app.route("/admin/drafts/<draft_id>/entry", methods=["GET", "POST"])
@app.route("/admin/drafts/<draft_id>/entry/<int:index>", methods=["GET", "POST"])
def entry_form(draft_id, index=None):
    login_required()
    draft = get_draft(draft_id)
    if index is not None and index >= len(draft.entries):
        abort(404)
    current = draft.entries[index] if index is not None else None

    errors: dict[str, str] = {}
    if request.method == "POST":
        if draft.saving:
            return _busy_redirect(draft_id)
        data, errors = parse_entry_form(request.form)
        if not errors:
            if current is None:
                draft.add_entry(data)
                flash(f"Added “{data['title']}” – save the list to publish it.")
            else:
                draft.edit_entry(index, data)
                if not current.is_new:
                    flash("Entry updated in this draft only – the backend keeps the published text.")
            return redirect(url_for("list_editor", draft_id=draft_id) + "#entries")
        values = request.form
    elif current is not None:
        values = {
            "rank": current.rank,
            "title": current.title,
            "blurb": current.blurb,
            "commentary": current.commentary,
            "fun_fact": current.fun_fact,
            "external_link": current.external_link,
            "hero_image_id": (current.hero_image or {}).get("id", ""),
        }
    else:
        values = {"rank": len(draft.entries) + 1}

    return render_template_string(
        TEMPL_ENTRY_FORM,
        title="Edit entry" if current else "Add entry",
        draft_id=draft_id,
        draft=draft,
        editing=current is not None,
        values=values,
        errors=errors,
    )


TEMPL_ENTRY_FORM = wrap("""
{% block body %}
<h1 style="margin-top:0">{{ 'Edit entry' if editing else 'Add entry' }}</h1>
<form method="post" class="card">
    {{ csrf_field() }}
    <label for="rank">Rank *</label>
    <input id="rank" name="rank" type="number" min="1" value="{{ values.get('rank', '') }}"
           class="{{ 'has-error' if errors.get('rank') }}">
    {{ field_error(errors, 'rank') }}

    <label for="title">Title *</label>
    <input id="title" name="title" type="text" value="{{ values.get('title', '') }}"
           class="{{ 'has-error' if errors.get('title') }}">
    {{ field_error(errors, 'title') }}

    <label for="blurb">Blurb</label>
    <textarea id="blurb" name="blurb" rows="2">{{ values.get('blurb', '') }}</textarea>

    <label for="commentary">Commentary</label>
    <textarea id="commentary" name="commentary" rows="5">{{ values.get('commentary', '') }}</textarea>

    <label for="fun_fact">Fun fact</label>
    <input id="fun_fact" name="fun_fact" type="text" value="{{ values.get('fun_fact', '') }}">

    <label for="external_link">External link</label>
    <input id="external_link" name="external_link" type="url" value="{{ values.get('external_link', '') }}">

    <label for="hero_image_id">Hero image</label>
    <select id="hero_image_id" name="hero_image_id">
        <option value="">None</option>
        {% for m in draft.media %}
            <option value="{{ m['id'] }}" {% if m['id']|string == values.get('hero_image_id', '')|string %}selected{% endif %}>{{ m.get('filename') or m['id'] }}</option>
        {% endfor %}
    </select>

    <button>{{ 'Update entry' if editing else 'Add entry' }}</button>
    <a class="button secondary" href="{{ url_for('list_editor', draft_id=draft_id) }}#entries">Cancel</a>
</form>
{% endblock %}
""")


@app.route("/admin/drafts/<draft_id>/entry/<int:index>/delete", methods=["GET", "POST"])
def entry_delete(draft_id, index):
    login_required()
    draft = get_draft(draft_id)
    if index >= len(draft.entries):
        abort(404)
    entry = draft.entries[index]
    if request.method == "POST":
        if draft.saving:
            return _busy_redirect(draft_id)
        draft.delete_entry(index)
        if entry.is_new:
            flash(f"Removed “{entry.title}”.")
        else:
            flash(f"Removed “{entry.title}” from this draft – the backend copy stays until deleted there.")
        return redirect(url_for("list_editor", draft_id=draft_id) + "#entries")
    return render_template_string(
        TEMPL_CONFIRM_DELETE,
        title="Delete entry",
        what="entry",
        name=entry.title,
        name_field=False,
        back=url_for("list_editor", draft_id=draft_id) + "#entries",
    )


@app.route("/admin/lists/<int:list_id>/delete", methods=["GET", "POST"])
def list_delete(list_id):
    login_required()
    name = request.values.get("title") or f"List #{list_id}"
    if request.method == "POST":
        api().delete_list(list_id)
        app.logger.info("list %s deleted", list_id)
        flash(f"Deleted “{name}”.")
        return redirect(url_for("dashboard", tab="lists"))
    return render_template_string(
        TEMPL_CONFIRM_DELETE,
        title="Delete list",
        what="list",
        name=name,
        name_field=True,
        back=url_for("dashboard", tab="lists"),
    )


###############################################################################
# Admin: posts
###############################################################################
def _post_values(post: dict) -> dict:
    return {
        "title": post.get("title") or "",
        "excerpt": post.get("excerpt") or "",
        "body": post.get("body") or "",
        "cover_image_id": (post.get("coverImage") or {}).get("id", ""),
        "status": post.get("status") or "DRAFT",
        "tag_ids": [t["id"] for t in post.get("tags") or []],
    }


def _form_values(form) -> dict:
    values = form.to_dict()
    values["tag_ids"] = [int(t) for t in form.getlist("tag_ids") if t.isdigit()]
    return values


def _post_editor(post: dict | None):
    client = api()
    errors: dict[str, str] = {}
    values = _post_values(post) if post else {"status": "DRAFT", "tag_ids": []}
    preview = None

    if request.method == "POST":
        values = _form_values(request.form)
        payload, errors = parse_post_form(request.form)
        if request.form.get("action") == "preview":
            preview = render_markdown_html(values.get("body", ""))
        elif not errors:
            try:
                if post:
                    client.update_post(post["id"], payload)
                else:
                    client.create_post(payload)
            except SessionExpired:
                raise
            except ApiError as exc:
                flash(f"Failed to save post – {exc.message}")
            else:
                flash("Post saved.")
                return redirect(url_for("dashboard", tab="posts"))

    return render_template_string(
        TEMPL_POST_EDITOR,
        title="Edit post" if post else "New post",
        editing=post is not None,
        values=values,
        errors=errors,
        preview=Markup(preview) if preview is not None else None,
        media=client.media(),
        tags=available_tags(client),
    )


@app.route("/admin/posts/new", methods=["GET", "POST"])
def post_new():
    login_required()
    return _post_editor(None)


@app.route("/admin/posts/<slug>/edit", methods=["GET", "POST"])
def post_edit(slug):
    login_required()
    return _post_editor(api().post_by_slug(slug))


TEMPL_POST_EDITOR = wrap("""
{% block body %}
<h1 style="margin-top:0">{{ 'Edit post' if editing else 'New post' }}</h1>
<form method="post" class="card">
    {{ csrf_field() }}
    <label for="title">Title *</label>
    <input id="title" name="title" type="text" value="{{ values.get('title', '') }}"
           class="{{ 'has-error' if errors.get('title') }}">
    {{ field_error(errors, 'title') }}

    <label for="excerpt">Excerpt *</label>
    <textarea id="excerpt" name="excerpt" rows="2"
              class="{{ 'has-error' if errors.get('excerpt') }}">{{ values.get('excerpt', '') }}</textarea>
    {{ field_error(errors, 'excerpt') }}

    <label for="body">Body (Markdown) *</label>
    <textarea id="body" name="body" rows="14"
              class="{{ 'has-error' if errors.get('body') }}">{{ values.get('body', '') }}</textarea>
    {{ field_error(errors, 'body') }}

    <label for="cover_image_id">Cover image</label>
    <select id="cover_image_id" name="cover_image_id">
        <option value="">None</option>
        {% for m in media %}
            <option value="{{ m['id'] }}" {% if m['id']|string == values.get('cover_image_id', '')|string %}selected{% endif %}>{{ m.get('filename') or m['id'] }}</option>
        {% endfor %}
    </select>

    {% if tags %}
    <fieldset style="border:0;padding:0;">
        <legend style="font-weight:600;">Tags</legend>
        {% for t in tags %}
            <label style="display:inline-block;font-weight:400;margin-right:1rem;">
                <input type="checkbox" name="tag_ids" value="{{ t['id'] }}" {% if t['id'] in values.get('tag_ids', []) %}checked{% endif %}>
                {{ t['name'] }}
            </label>
        {% endfor %}
    </fieldset>
    {% endif %}

    <label for="status">Status</label>
    <select id="status" name="status">
        {% for st in post_statuses %}
            <option value="{{ st }}" {% if st == values.get('status') %}selected{% endif %}>{{ st|capitalize }}</option>
        {% endfor %}
    </select>
    {{ field_error(errors, 'status') }}

    <p style="display:flex;gap:1rem;">
        <button name="action" value="save">Save post</button>
        <button name="action" value="preview" class="secondary">Preview</button>
        <a class="button secondary" href="{{ url_for('dashboard', tab='posts') }}">Cancel</a>
    </p>
</form>
{% if preview is not none %}
<section class="card" aria-label="Preview">
    <h2 style="margin-top:0">Preview</h2>
    <div class="e-content">{{ preview }}</div>
</section>
{% endif %}
{% endblock %}
""")


@app.route("/admin/posts/<int:post_id>/delete", methods=["GET", "POST"])
def post_delete(post_id):
    login_required()
    name = request.values.get("title") or f"Post #{post_id}"
    if request.method == "POST":
        api().delete_post(post_id)
        app.logger.info("post %s deleted", post_id)
        flash(f"Deleted “{name}”.")
        return redirect(url_for("dashboard", tab="posts"))
    return render_template_string(
        TEMPL_CONFIRM_DELETE,
        title="Delete post",
        what="post",
        name=name,
        name_field=True,
        back=url_for("dashboard", tab="posts"),
    )


###############################################################################
# Admin: media + suggestions
###############################################################################
@app.route("/admin/media", methods=["POST"])
def media_upload():
    login_required()
    back = url_for("dashboard", tab="media")
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        flash("Please choose an image to upload.")
        return redirect(back)

    content_type = (upload.mimetype or "").lower()
    if content_type not in IMAGE_MIMES:
        flash("Please select an image file (JPEG, PNG, GIF or WebP).")
        return redirect(back)

    blob = upload.read()
    if len(blob) > UPLOAD_MAX_BYTES:
        flash("File size exceeds maximum allowed size (10 MB).")
        return redirect(back)

    filename = secure_filename(upload.filename) or "upload"
    try:
        api().upload_media(
            filename, blob, content_type, request.form.get("alt_text", "").strip()
        )
    except SessionExpired:
        raise
    except ApiError as exc:
        flash(f"Upload failed – {exc.message}")
    else:
        app.logger.info("uploaded %s (%d bytes)", filename, len(blob))
        flash(f"Uploaded {filename}.")
    return redirect(back)


@app.route("/admin/media/<int:media_id>/delete", methods=["GET", "POST"])
def media_delete(media_id):
    login_required()
    name = request.values.get("title") or f"Media #{media_id}"
    if request.method == "POST":
        api().delete_media(media_id)
        flash(f"Deleted “{name}”.")
        return redirect(url_for("dashboard", tab="media"))
    return render_template_string(
        TEMPL_CONFIRM_DELETE,
        title="Delete media",
        what="image",
        name=name,
        name_field=True,
        back=url_for("dashboard", tab="media"),
    )


@app.route("/admin/suggestions/<int:suggestion_id>", methods=["POST"])
def suggestion_status(suggestion_id):
    login_required()
    status = request.form.get("status", "")
    if status not in SUGGESTION_STATUSES:
        abort(400)
    try:
        api().update_suggestion_status(suggestion_id, status)
    except SessionExpired:
        raise
    except ApiError as exc:
        flash(f"Failed to update suggestion status – {exc.message}")
    else:
        flash(f"Suggestion marked {status.lower()}.")
    return redirect(
        url_for("dashboard", tab="suggestions", status=request.form.get("filter") or None)
    )


###############################################################################
# Error pages
###############################################################################
TEMPL_404 = wrap("""
{% block body %}
<h1 style="margin-top:0">Page not found</h1>
<p>The page you were looking for doesn’t exist.</p>
<p><a href="{{ url_for('index') }}">← Back to the front page</a></p>
{% endblock %}
""")

TEMPL_500 = wrap("""
{% block body %}
<h1 style="margin-top:0">{{ heading or 'Internal Server Error' }}</h1>
<p>{{ message or 'Sorry, something went wrong on our side.' }}</p>
<p><a href="{{ url_for('index') }}">← Back to the front page</a></p>
{% endblock %}
""")


@app.errorhandler(404)
def not_found(exc):
    return render_template_string(TEMPL_404, title="Not found"), 404


@app.errorhandler(500)
def internal_error(exc):
    app.logger.exception("Unhandled exception: %s", exc)
    return render_template_string(TEMPL_500, title="Server error"), 500


@app.errorhandler(SessionExpired)
def session_expired(exc):
    who = admin_session()
    if who:
        app.logger.info("backend rejected the session of %r", who.username)
    close_admin_session()
    flash("Session expired – please sign in again.")
    return redirect(url_for("admin_login"))


@app.errorhandler(ApiError)
def backend_error(exc):
    if exc.status == 404:
        return not_found(exc)
    # admin pages fall back to the dashboard, which copes with a dead backend
    if request.path.startswith("/admin") and request.endpoint != "dashboard":
        flash(f"Backend error – {exc.message}")
        return redirect(url_for("dashboard"))
    return (
        render_template_string(
            TEMPL_500,
            title="Backend unavailable",
            heading="Backend unavailable",
            message="The content service is not responding right now. Please try again shortly.",
        ),
        502,
    )


###############################################################################
# CLI
###############################################################################
@app.cli.command("check-api")
def check_api():
    """Ping the backend and report what it serves."""
    client = new_client()
    try:
        lists = client.lists_page(size=1) or {}
        posts = client.posts_page(size=1) or {}
    except ApiError as exc:
        click.secho(f"✗ {app.config['API_URL']}: {exc.message}", fg="red")
        raise SystemExit(1)
    click.secho(f"✓ {app.config['API_URL']} is up", fg="green")
    click.echo(f"  lists: {lists.get('totalElements', 0)}")
    click.echo(f"  posts: {posts.get('totalElements', 0)}")


@app.cli.command("token")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def token(username, password):
    """Check admin credentials and print the matching Basic token."""
    candidate = AdminSession(username, basic_token(username, password), utc_now().isoformat())
    try:
        new_client().suggestions(auth=candidate)
    except SessionExpired:
        click.secho("✗ Credentials rejected by the backend.", fg="red")
        raise SystemExit(1)
    except ApiError as exc:
        click.secho(f"✗ {exc.message}", fg="red")
        raise SystemExit(1)
    click.secho("✓ Credentials accepted.", fg="green")
    click.echo(f"Authorization: Basic {candidate.token}")


if __name__ == "__main__":
    app.run(debug=True)
