import uuid
from datetime import datetime, timezone
from typing import Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

TASK_NAME_PATTERN = r"^[A-Za-z0-9._-]+$"

class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    url: str  # data: URIs supported

class TaskRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str = Field(min_length=3)
    secret: str
    task: str = Field(min_length=1, max_length=100, pattern=TASK_NAME_PATTERN)
    round: Literal[1, 2]
    nonce: str = Field(min_length=1)
    brief: str = Field(min_length=1)
    checks: Tuple[str, ...] = ()
    evaluation_url: HttpUrl
    attachments: Tuple[Attachment, ...] = ()

class Job(BaseModel):
    model_config = ConfigDict(frozen=True)

    request: TaskRequest
    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class GeneratedFile(BaseModel):
    type: str
    filename: str
    content: str

class RepoFile(BaseModel):
    filename: str
    sha: str  # version token required by the next write
    content: str

class GenerationAttachment(BaseModel):
    filename: str
    url: str

class EvaluatorNotification(BaseModel):
    email: str
    task: str
    round: int
    nonce: str
    repo_url: str
    commit_sha: str
    pages_url: str

class BuildResult(BaseModel):
    repo_url: str
    commit_sha: str
    pages_url: str
