import logging
from typing import Dict, List, Sequence

from .guardrails import TRACKED_FILES
from .models import BuildResult, GeneratedFile, RepoFile, TaskRequest
from .errors import UnexpectedFileError
from .gh_api import GitHubClient
from .pipeline import (
    Collaborators,
    JobContext,
    ensure_valid,
    finish_round,
    join_checks,
    upload_attachments,
)

log = logging.getLogger(__name__)

def read_tracked_files(github: GitHubClient, repo: str) -> List[RepoFile]:
    # MissingFileError propagates if either file is gone
    return [github.get_file(repo, name) for name in TRACKED_FILES]

def write_tracked_files(
    github: GitHubClient,
    repo: str,
    files: Sequence[GeneratedFile],
    shas: Dict[str, str],
    ctx: JobContext,
) -> None:
    """
    Write each file back guarded by the sha captured when it was read.
    Every filename is checked before the first write; a stale sha makes the
    host reject the write with VersionConflictError, which aborts the loop.
    """
    for f in files:
        if f.filename not in shas:
            raise UnexpectedFileError(f"unexpected filename in round 2: {f.filename}")
    for f in files:
        ctx.checkpoint(f"update {f.filename}")
        github.update_file(
            repo,
            f.filename,
            f.content,
            f"chore: update {f.filename} for round 2",
            shas[f.filename],
        )

def revise_repo(req: TaskRequest, collab: Collaborators, ctx: JobContext) -> BuildResult:
    assert req.round == 2, "This function only supports round 2"
    github = collab.github
    repo = req.task

    ctx.checkpoint("read current files")
    current = read_tracked_files(github, repo)
    shas = {f.filename: f.sha for f in current}

    attachments = upload_attachments(github, repo, req.attachments, ctx)

    ctx.checkpoint("modify bundle")
    files = collab.generator.modify(req.brief, join_checks(req.checks), attachments, current)
    ensure_valid(files)

    write_tracked_files(github, repo, files, shas, ctx)
    log.info("[%s] updated %s in %s", ctx.job_id, [f.filename for f in files], repo)

    return finish_round(req, collab, ctx)
