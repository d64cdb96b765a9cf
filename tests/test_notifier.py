from __future__ import annotations

import pytest
import requests

from deployer.errors import RetryExhaustedError
from deployer.models import EvaluatorNotification
from deployer.notifier import notify_evaluator

URL = "https://evaluator.example.com/notify"

NOTIFICATION = EvaluatorNotification(
    email="student@example.com",
    task="bakery-site",
    round=1,
    nonce="nonce-123",
    repo_url="https://github.com/alice/bakery-site",
    commit_sha="abc123",
    pages_url="https://alice.github.io/bakery-site/",
)


def _response(status: int, body: bytes = b"") -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = body
    r.url = URL
    return r


class ScriptedSession:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.posts: list[dict] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return _response(outcome)


def test_posts_payload_once_on_success() -> None:
    session = ScriptedSession([200])
    notify_evaluator(URL, NOTIFICATION, session=session, sleep=lambda _: None)
    assert len(session.posts) == 1
    assert session.posts[0]["json"] == NOTIFICATION.model_dump()


def test_retries_transient_failures_with_doubling_delay() -> None:
    sleeps: list[float] = []
    session = ScriptedSession([503, requests.ConnectionError("reset"), 200])
    notify_evaluator(URL, NOTIFICATION, session=session, sleep=sleeps.append)
    assert len(session.posts) == 3
    assert sleeps == [2.0, 4.0]


def test_gives_up_after_five_attempts() -> None:
    sleeps: list[float] = []
    session = ScriptedSession([500])
    with pytest.raises(RetryExhaustedError) as exc_info:
        notify_evaluator(URL, NOTIFICATION, session=session, sleep=sleeps.append)
    assert len(session.posts) == 5
    assert exc_info.value.attempts == 5
    assert isinstance(exc_info.value.last_error, requests.HTTPError)
    assert sleeps == [2.0, 4.0, 8.0, 16.0]


def test_without_session_uses_module_level_post(monkeypatch) -> None:
    posts: list[str] = []

    def fake_post(url, json=None, headers=None, timeout=None):
        posts.append(url)
        return _response(200)

    def no_session():
        raise AssertionError("a Session must not be created")

    monkeypatch.setattr(requests, "post", fake_post)
    monkeypatch.setattr(requests, "Session", no_session)
    notify_evaluator(URL, NOTIFICATION, sleep=lambda _: None)
    assert posts == [URL]
