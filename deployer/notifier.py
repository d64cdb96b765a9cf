import logging, time
from typing import Callable, Optional

import requests

from .backoff import with_backoff
from .models import EvaluatorNotification

log = logging.getLogger("deployer.notify")

DEFAULT_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 2.0

def notify_evaluator(
    evaluation_url: str,
    notification: EvaluatorNotification,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
    timeout: float = 20.0,
) -> None:
    """POST the round result to the evaluator, retrying with exponential backoff.

    Raises RetryExhaustedError once every attempt failed.
    """
    http = session or requests  # module-level post when no session is shared
    payload = notification.model_dump()

    def _post() -> None:
        log.info("POST %s task=%s round=%s", evaluation_url, notification.task, notification.round)
        r = http.post(evaluation_url, json=payload, headers={"Content-Type": "application/json"}, timeout=timeout)
        log.info("response: status=%s len=%s", r.status_code, len(r.text))
        r.raise_for_status()

    with_backoff(_post, attempts, base_delay, sleep=sleep, logger=log)
    log.info("sent evaluator notification for task %s round %s commit %s",
             notification.task, notification.round, notification.commit_sha)
