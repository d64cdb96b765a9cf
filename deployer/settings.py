import os
from pydantic_settings import BaseSettings

ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")

class Settings(BaseSettings):
    API_SECRET: str = "change-me"

    GITHUB_USERNAME: str = ""
    GITHUB_TOKEN: str = ""
    GITHUB_NAME: str = ""
    GITHUB_EMAIL: str = ""
    GITHUB_API_BASE: str = "https://api.github.com"
    DEFAULT_BRANCH: str = "main"
    PAGES_BUILD_PATH: str = "/"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    OPENAI_MODEL: str = "gpt-5-mini"
    GENERATION_TIMEOUT_SECONDS: float = 320.0

    QUEUE_CAPACITY: int = 100
    QUEUE_WORKERS: int = 3
    ENQUEUE_TIMEOUT_SECONDS: float = 0.2
    JOB_TIMEOUT_SECONDS: float = 300.0

    BUILD_POLL_ATTEMPTS: int = 24
    BUILD_POLL_INTERVAL_SECONDS: float = 5.0

    NOTIFY_ATTEMPTS: int = 5
    NOTIFY_BASE_DELAY_SECONDS: float = 2.0
    NOTIFY_LOG_PATH: str = "/tmp/notify.log"

    LOG_LEVEL: str = "INFO"
    PORT: int = 7860

    class Config:
        env_file = ENV_PATH  # <- always read deployer/.env
        extra = "ignore"

settings = Settings()
