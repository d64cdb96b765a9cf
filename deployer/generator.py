import logging

from .models import BuildResult, TaskRequest
from .pipeline import (
    Collaborators,
    JobContext,
    ensure_valid,
    finish_round,
    join_checks,
    upload_attachments,
)

log = logging.getLogger(__name__)

def reset_repository(collab: Collaborators, repo: str, ctx: JobContext) -> None:
    """Delete ``repo`` if it exists, then create it empty, seeded with a license and Pages."""
    github = collab.github
    ctx.checkpoint("list repositories")
    if any(r.get("name") == repo for r in github.list_repositories()):
        github.delete_repository(repo)

    ctx.checkpoint("create repository")
    github.create_repository(repo)
    github.setup_repository(repo, collab.config.license_owner)

def bootstrap_repo(req: TaskRequest, collab: Collaborators, ctx: JobContext) -> BuildResult:
    assert req.round == 1, "This function only supports round 1"
    github = collab.github
    repo = req.task

    # Abort before touching anything if the host is unreachable
    github.check_connectivity()
    reset_repository(collab, repo, ctx)

    attachments = upload_attachments(github, repo, req.attachments, ctx)

    ctx.checkpoint("generate bundle")
    files = collab.generator.generate(req.brief, join_checks(req.checks), attachments)
    ensure_valid(files)

    for f in files:
        ctx.checkpoint(f"commit {f.filename}")
        github.create_file(repo, f.filename, f.content, f"feat: add {f.filename}")
    log.info("[%s] committed %s to %s", ctx.job_id, [f.filename for f in files], repo)

    return finish_round(req, collab, ctx)
