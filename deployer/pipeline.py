"""Plumbing shared by the Round 1 and Round 2 pipelines."""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .backoff import wait_for
from .data_uri import decode_data_uri, stored_name
from .errors import BundleValidationError, DataUriError, HostingError, JobCancelledError
from .gh_api import GitHubClient
from .guardrails import validate_bundle
from .llm import GenerationClient
from .models import (
    Attachment,
    BuildResult,
    EvaluatorNotification,
    GeneratedFile,
    GenerationAttachment,
    TaskRequest,
)

log = logging.getLogger(__name__)

Notify = Callable[[str, EvaluatorNotification], None]


@dataclass
class PipelineConfig:
    license_owner: str = ""
    build_poll_attempts: int = 24
    build_poll_interval: float = 5.0


@dataclass
class Collaborators:
    """Handles built once at startup and passed into every pipeline run."""

    github: GitHubClient
    generator: GenerationClient
    notify: Notify
    config: PipelineConfig = field(default_factory=PipelineConfig)


class JobContext:
    """Deadline plus cooperative cancellation for one job."""

    def __init__(self, timeout: float, stop_event: Optional[threading.Event] = None, job_id: str = ""):
        self.deadline = time.monotonic() + timeout
        self.stop_event = stop_event or threading.Event()
        self.job_id = job_id

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def checkpoint(self, step: str) -> None:
        if self.stop_event.is_set():
            raise JobCancelledError(f"shutdown before {step}")
        if time.monotonic() >= self.deadline:
            raise JobCancelledError(f"deadline exceeded before {step}")


def join_checks(checks: Sequence[str]) -> str:
    return "\n".join(checks)


def upload_attachments(
    github: GitHubClient, repo: str, attachments: Sequence[Attachment], ctx: JobContext
) -> List[GenerationAttachment]:
    uploaded = []
    for att in attachments:
        ctx.checkpoint(f"upload {att.name}")
        try:
            _, data = decode_data_uri(att.url)
        except DataUriError as e:
            raise DataUriError(f"decode_data_url({att.name}): {e}") from e
        dst = stored_name(att.name)
        github.create_file(repo, dst, data, f"feat: add attachment {att.name}")
        uploaded.append(GenerationAttachment(filename=att.name, url=f"./{dst}"))
    return uploaded


def ensure_valid(files: Sequence[GeneratedFile]) -> None:
    violations = validate_bundle(files)
    if violations:
        for v in violations:
            log.error("bundle validation error: %s", v)
        raise BundleValidationError(violations)


def wait_for_pages(collab: Collaborators, repo: str, commit_sha: str, ctx: JobContext) -> bool:
    """Best effort: True once the latest Pages build is "built" for ``commit_sha``."""

    def _built() -> bool:
        ctx.checkpoint("pages build poll")
        builds = collab.github.list_pages_builds(repo)
        if not builds:
            return False
        latest = builds[0]
        return latest.get("commit") == commit_sha and latest.get("status") == "built"

    try:
        return wait_for(
            _built,
            collab.config.build_poll_attempts,
            collab.config.build_poll_interval,
            stop_event=ctx.stop_event,
        )
    except HostingError as e:
        # a failed status read ends the wait, not the round
        log.warning("pages build status unavailable for %s: %s", repo, e)
        return False


def finish_round(req: TaskRequest, collab: Collaborators, ctx: JobContext) -> BuildResult:
    """Wait for the Pages deploy, then report the round to the evaluator."""
    github = collab.github
    repo = req.task

    ctx.checkpoint("resolve commit")
    sha = github.latest_commit_sha(repo)
    if not wait_for_pages(collab, repo, sha, ctx):
        log.warning("pages build did not complete for %s@%s (round %s)", repo, sha[:7], req.round)

    ctx.checkpoint("notify evaluator")
    sha = github.latest_commit_sha(repo)
    result = BuildResult(repo_url=github.repo_url(repo), commit_sha=sha, pages_url=github.pages_url(repo))
    collab.notify(
        str(req.evaluation_url),
        EvaluatorNotification(
            email=req.email,
            task=req.task,
            round=req.round,
            nonce=req.nonce,
            repo_url=result.repo_url,
            commit_sha=result.commit_sha,
            pages_url=result.pages_url,
        ),
    )
    return result


def process_request(req: TaskRequest, collab: Collaborators, ctx: JobContext) -> BuildResult:
    from .generator import bootstrap_repo
    from .generator_round2 import revise_repo

    if req.round == 1:
        return bootstrap_repo(req, collab, ctx)
    if req.round == 2:
        return revise_repo(req, collab, ctx)
    raise ValueError(f"unsupported_round:{req.round}")
