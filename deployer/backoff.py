"""Retry and polling helpers shared by the network-facing parts of the pipeline."""
import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from tenacity import RetryError, Retrying, before_sleep_log, stop_after_attempt, wait_exponential

from .errors import RetryExhaustedError

log = logging.getLogger(__name__)

T = TypeVar("T")


def with_backoff(
    operation: Callable[[], T],
    max_attempts: int,
    base_delay: float,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
) -> T:
    """Call ``operation`` until it succeeds, at most ``max_attempts`` times.

    Any exception counts as a failed attempt. The delay before retry n is
    ``base_delay * 2 ** (n - 1)``: no jitter and no upper bound. When every
    attempt fails a ``RetryExhaustedError`` carrying the attempt count and the
    last exception is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        sleep=sleep,
        before_sleep=before_sleep_log(logger or log, logging.WARNING),
        reraise=False,
    )
    try:
        return retrying(operation)
    except RetryError as e:
        last = e.last_attempt
        raise RetryExhaustedError(last.attempt_number, last.exception()) from last.exception()


def wait_for(
    condition: Callable[[], bool],
    max_attempts: int,
    interval: float,
    stop_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``condition`` up to ``max_attempts`` times, waiting ``interval`` before each probe.

    Returns True as soon as the condition holds, False when attempts run out or
    ``stop_event`` gets set while waiting. Exceptions raised by the probe propagate.
    """
    for _ in range(max_attempts):
        if stop_event is not None:
            if stop_event.wait(interval):
                return False
        else:
            sleep(interval)
        if condition():
            return True
    return False
