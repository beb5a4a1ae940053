import pytest
from werkzeug.datastructures import MultiDict

import layerten.blog as blog
from layerten.blog import (
    ListDraft,
    app,
    day_filter,
    filesize_filter,
    get_draft,
    md_inline_filter,
    page_window,
    parse_post_form,
    parse_suggestion_form,
    query_href,
    stash_draft,
)


@pytest.mark.parametrize(
    "current,total,expected",
    [
        (0, 1, [0]),
        (3, 7, [0, 1, 2, 3, 4, 5, 6]),
        (0, 10, [0, 1, None, 9]),
        (5, 10, [0, None, 4, 5, 6, None, 9]),
        (9, 10, [0, None, 8, 9]),
    ],
)
def test_page_window(current, total, expected):
    assert page_window(current, total) == expected


def test_filesize():
    assert filesize_filter(None) == "0 B"
    assert filesize_filter(512) == "512 B"
    assert filesize_filter(1536) == "1.5 KB"
    assert filesize_filter(5 * 1024 * 1024) == "5.0 MB"


def test_day_filter():
    assert day_filter("2024-03-01T10:00:00") == "Mar 01, 2024"
    assert day_filter("") == ""
    assert day_filter("yesterday") == "yesterday"


def test_mdinline_unwraps_single_paragraph():
    assert md_inline_filter("*hi*") == "<em>hi</em>"


def test_query_href_keeps_other_args():
    with app.test_request_context("/lists?search=cats&page=3"):
        assert query_href(page=4) == "/lists?search=cats&page=4"
        assert query_href(search=None) == "/lists?page=3"


def test_post_form():
    form = MultiDict(
        [("title", " T "), ("excerpt", "E"), ("body", "B"), ("status", "DRAFT"),
         ("tag_ids", "3"), ("tag_ids", "1"), ("tag_ids", "x"), ("cover_image_id", "")]
    )
    payload, errors = parse_post_form(form)
    assert errors == {}
    assert payload == {"title": "T", "excerpt": "E", "body": "B", "status": "DRAFT", "tagIds": [1, 3]}


def test_post_form_rejects_unknown_status():
    _, errors = parse_post_form(MultiDict({"title": "T", "excerpt": "E", "body": "B", "status": "LIVE"}))
    assert "status" in errors


def test_suggestion_form_optional_email():
    payload, errors = parse_suggestion_form(MultiDict({"title": "T", "description": "D"}))
    assert errors == {}
    assert "submitterEmail" not in payload


def test_draft_store_evicts_only_own_drafts(monkeypatch):
    monkeypatch.setattr(blog, "DRAFTS_PER_SESSION", 2)
    with app.test_request_context("/"):
        theirs = stash_draft(ListDraft(title="theirs"))
    with app.test_request_context("/"):
        first = stash_draft(ListDraft(title="a"))
        stash_draft(ListDraft(title="b"))
        third = stash_draft(ListDraft(title="c"))
        assert first not in blog._drafts
        assert theirs in blog._drafts
        assert get_draft(third).title == "c"
