"""Shared test fixtures: in-memory hosting and generation collaborators."""

from __future__ import annotations

import itertools
from typing import Any

import pytest

from deployer.errors import HostingError, MissingFileError, VersionConflictError
from deployer.models import GeneratedFile, RepoFile, TaskRequest
from deployer.pipeline import Collaborators, JobContext, PipelineConfig

README_MD = "# Bakery\n\nA landing page with a contact section.\n"
INDEX_HTML = (
    "<!doctype html><html><head><title>Bakery</title></head>"
    "<body><section id='contact'>Call us</section></body></html>"
)


def valid_bundle(readme: str = README_MD, index: str = INDEX_HTML) -> list[GeneratedFile]:
    return [
        GeneratedFile(type="markdown", filename="README.md", content=readme),
        GeneratedFile(type="html", filename="index.html", content=index),
    ]


class FakeGitHub:
    """Records every call; keeps file contents and a linear commit history."""

    def __init__(self, username: str = "alice", repos: list[str] | None = None) -> None:
        self.username = username
        self.repos = set(repos or [])
        self.files: dict[tuple[str, str], tuple[str, Any]] = {}
        self.commits: list[str] = []
        self.calls: list[tuple] = []
        self.builds_ready = True
        self.reachable = True
        self.conflict_on: set[str] = set()
        self._shas = itertools.count(1)

    def repo_url(self, repo: str) -> str:
        return f"https://github.com/{self.username}/{repo}"

    def pages_url(self, repo: str) -> str:
        return f"https://{self.username}.github.io/{repo}/"

    def _commit(self) -> str:
        sha = f"c{len(self.commits) + 1:039d}"
        self.commits.append(sha)
        return sha

    def check_connectivity(self) -> None:
        self.calls.append(("check_connectivity",))
        if not self.reachable:
            raise HostingError("GET /users/alice failed: connection refused")

    def list_repositories(self) -> list[dict]:
        self.calls.append(("list_repositories",))
        return [{"name": name} for name in sorted(self.repos)]

    def delete_repository(self, repo: str) -> None:
        self.calls.append(("delete_repository", repo))
        self.repos.discard(repo)
        self.files = {k: v for k, v in self.files.items() if k[0] != repo}

    def create_repository(self, repo: str) -> None:
        self.calls.append(("create_repository", repo))
        self.repos.add(repo)

    def setup_repository(self, repo: str, license_owner: str) -> None:
        self.create_file(repo, "LICENSE", f"MIT License {license_owner}", "init: add license")
        self.enable_pages(repo)

    def enable_pages(self, repo: str) -> None:
        self.calls.append(("enable_pages", repo))

    def create_file(self, repo: str, path: str, content: Any, message: str) -> None:
        self.calls.append(("create_file", repo, path))
        self.files[(repo, path)] = (f"s{next(self._shas)}", content)
        self._commit()

    def seed(self, repo: str, path: str, content: str) -> str:
        self.repos.add(repo)
        sha = f"s{next(self._shas)}"
        self.files[(repo, path)] = (sha, content)
        self._commit()
        return sha

    def get_file(self, repo: str, path: str) -> RepoFile:
        self.calls.append(("get_file", repo, path))
        if (repo, path) not in self.files:
            raise MissingFileError(f"{repo}/{path} not found", 404)
        sha, content = self.files[(repo, path)]
        return RepoFile(filename=path, sha=sha, content=content)

    def update_file(self, repo: str, path: str, content: str, message: str, sha: str) -> None:
        self.calls.append(("update_file", repo, path))
        current_sha, _ = self.files.get((repo, path), (None, None))
        if path in self.conflict_on or current_sha != sha:
            raise VersionConflictError(f"{repo}/{path} changed", 409)
        self.files[(repo, path)] = (f"s{next(self._shas)}", content)
        self._commit()

    def latest_commit_sha(self, repo: str) -> str:
        self.calls.append(("latest_commit_sha", repo))
        if not self.commits:
            raise HostingError(f"no commits found in {repo}")
        return self.commits[-1]

    def list_pages_builds(self, repo: str) -> list[dict]:
        self.calls.append(("list_pages_builds", repo))
        if not self.builds_ready:
            return []
        return [{"commit": self.commits[-1], "status": "built"}]

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def writes(self) -> list[str]:
        return [c[2] for c in self.calls if c[0] in ("create_file", "update_file")]


class FakeGenerator:
    def __init__(self, files: list[GeneratedFile] | None = None, error: Exception | None = None) -> None:
        self.files = files if files is not None else valid_bundle()
        self.error = error
        self.generate_calls: list[dict] = []
        self.modify_calls: list[dict] = []

    def generate(self, brief, checks, attachments):
        self.generate_calls.append({"brief": brief, "checks": checks, "attachments": list(attachments)})
        if self.error:
            raise self.error
        return list(self.files)

    def modify(self, brief, checks, attachments, current):
        self.modify_calls.append(
            {"brief": brief, "checks": checks, "attachments": list(attachments), "current": list(current)}
        )
        if self.error:
            raise self.error
        return list(self.files)


class NotifyRecorder:
    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, Any]] = []
        self.error = error

    def __call__(self, url, notification) -> None:
        if self.error:
            raise self.error
        self.sent.append((url, notification))


@pytest.fixture()
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def notify() -> NotifyRecorder:
    return NotifyRecorder()


@pytest.fixture()
def collab(github, generator, notify) -> Collaborators:
    return Collaborators(
        github=github,
        generator=generator,
        notify=notify,
        config=PipelineConfig(license_owner="Alice <alice@example.com>", build_poll_attempts=3, build_poll_interval=0),
    )


@pytest.fixture()
def ctx() -> JobContext:
    return JobContext(timeout=60, job_id="test-job")


def make_request(round_: int = 1, **overrides) -> TaskRequest:
    data = {
        "email": "student@example.com",
        "secret": "s3cret",
        "task": "bakery-site",
        "round": round_,
        "nonce": "nonce-123",
        "brief": "landing page for a bakery",
        "checks": ["must have a contact section"],
        "evaluation_url": "https://evaluator.example.com/notify",
        "attachments": [],
    }
    data.update(overrides)
    return TaskRequest.model_validate(data)
