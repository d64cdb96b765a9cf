import logging, pathlib
from contextlib import asynccontextmanager
from datetime import datetime
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from .errors import QueueBusyError
from .gh_api import GitHubClient
from .jobqueue import JobQueue
from .llm import GenerationClient
from .logging_setup import configure_logging
from .models import Job, TaskRequest
from .notifier import notify_evaluator
from .pipeline import Collaborators, PipelineConfig, process_request
from .security import verify_secret
from .settings import Settings, settings as default_settings

log = logging.getLogger(__name__)

def build_collaborators(cfg: Settings) -> Collaborators:
    github = GitHubClient(
        username=cfg.GITHUB_USERNAME,
        token=cfg.GITHUB_TOKEN,
        committer_name=cfg.GITHUB_NAME,
        committer_email=cfg.GITHUB_EMAIL,
        api_base=cfg.GITHUB_API_BASE,
        branch=cfg.DEFAULT_BRANCH,
        pages_path=cfg.PAGES_BUILD_PATH,
        timeout=cfg.HTTP_TIMEOUT_SECONDS,
    )
    generator = GenerationClient(
        api_key=cfg.OPENAI_API_KEY,
        base_url=cfg.OPENAI_BASE_URL,
        model=cfg.OPENAI_MODEL,
        timeout=cfg.GENERATION_TIMEOUT_SECONDS,
    )
    notify = partial(
        notify_evaluator,
        attempts=cfg.NOTIFY_ATTEMPTS,
        base_delay=cfg.NOTIFY_BASE_DELAY_SECONDS,
    )
    owner = cfg.GITHUB_NAME or cfg.GITHUB_USERNAME
    if cfg.GITHUB_EMAIL:
        owner = f"{owner} <{cfg.GITHUB_EMAIL}>"
    config = PipelineConfig(
        license_owner=owner,
        build_poll_attempts=cfg.BUILD_POLL_ATTEMPTS,
        build_poll_interval=cfg.BUILD_POLL_INTERVAL_SECONDS,
    )
    return Collaborators(github=github, generator=generator, notify=notify, config=config)

def build_pool(cfg: Settings, collab: Collaborators) -> JobQueue:
    return JobQueue(
        handler=lambda job, ctx: process_request(job.request, collab, ctx),
        capacity=cfg.QUEUE_CAPACITY,
        workers=cfg.QUEUE_WORKERS,
        job_timeout=cfg.JOB_TIMEOUT_SECONDS,
    )

def create_app(cfg: Optional[Settings] = None, pool: Optional[JobQueue] = None) -> FastAPI:
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(cfg.LOG_LEVEL, cfg.NOTIFY_LOG_PATH)
        if app.state.pool is None:
            collab = build_collaborators(cfg)
            # Startup connectivity failures are fatal: no work is accepted
            collab.generator.check_connectivity()
            collab.github.check_connectivity()
            app.state.pool = build_pool(cfg, collab)
        app.state.pool.start()
        log.info("queue started: %s", app.state.pool.stats())
        try:
            yield
        finally:
            log.info("Shutting down...")
            app.state.pool.stop()

    app = FastAPI(title="LLM Pages Deployer", lifespan=lifespan)
    app.state.pool = pool

    @app.exception_handler(RequestValidationError)
    async def _bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})

    @app.get("/")
    async def status():
        return {
            "status": "running",
            "time": datetime.now().strftime("%d-%m-%Y %H:%M:%S"),
            "queue": app.state.pool.stats() if app.state.pool else None,
        }

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    # ---- MAIN ENDPOINT ----
    @app.post("/task", response_model=None)
    def receive_task(req: TaskRequest):
        # Verify secret first
        if not verify_secret(req.secret, cfg.API_SECRET):
            return JSONResponse(status_code=401, content={"error": "invalid_secret"})

        job = Job(request=req)
        log.info("[%s] incoming task=%s round=%s email=%s", job.job_id, req.task, req.round, req.email)
        try:
            app.state.pool.try_enqueue(job, cfg.ENQUEUE_TIMEOUT_SECONDS)
        except QueueBusyError as e:
            log.warning("[%s] rejected: %s", job.job_id, e)
            return JSONResponse(status_code=503, content={"status": "queue_busy", "error": str(e)})

        # Admission only; the evaluator notification is the sole result channel
        return {"status": "queued"}

    # ---- NOTIFY LOG VIEWER ----
    @app.get("/_notify_log", include_in_schema=False)
    async def _notify_log():
        path = pathlib.Path(cfg.NOTIFY_LOG_PATH)
        if not path.exists():
            return PlainTextResponse(f"NO LOG: {path} not found\n")
        return PlainTextResponse(path.read_text(encoding="utf-8"))

    return app

app = create_app()
