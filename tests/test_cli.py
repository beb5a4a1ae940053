"""tests/test_cli.py"""
from __future__ import annotations

from layerten.blog import app, basic_token

from conftest import page_of


def test_check_api_reports_counts(backend):
    backend.on("GET", "/lists", page_of([], total=4)).on("GET", "/posts", page_of([], total=2))
    result = app.test_cli_runner().invoke(args=["check-api"])
    assert result.exit_code == 0
    assert "lists: 4" in result.output
    assert "posts: 2" in result.output


def test_check_api_fails_when_down(backend):
    result = app.test_cli_runner().invoke(args=["check-api"])
    assert result.exit_code == 1


def test_token_prints_header(backend):
    backend.on("GET", "/admin/suggestions", [])
    result = app.test_cli_runner().invoke(
        args=["token", "--username", "tester", "--password", "secret"]
    )
    assert result.exit_code == 0
    assert basic_token("tester", "secret") in result.output


def test_token_rejected(backend):
    backend.on("GET", "/admin/suggestions", {"message": "no"}, status=401)
    result = app.test_cli_runner().invoke(
        args=["token", "--username", "tester", "--password", "wrong"]
    )
    assert result.exit_code == 1
