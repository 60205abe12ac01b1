"""Elasticsearch availability probing with bounded retries."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from elasticsearch import ApiError, Elasticsearch, TransportError

from .errors import EngineUnavailableError
from .es_client import response_body

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_SECONDS = 5.0


def fixed_delay(seconds: float) -> Callable[[int], float]:
    return lambda attempt: seconds


@dataclass(frozen=True)
class BackoffPolicy:
    """How often to retry and how long to wait between attempts.

    ``delay`` receives the 1-based number of the attempt that just failed.
    Tests swap ``sleep`` for a no-op.
    """

    max_attempts: int = CONNECT_ATTEMPTS
    delay: Callable[[int], float] = field(default_factory=lambda: fixed_delay(CONNECT_BACKOFF_SECONDS))
    sleep: Callable[[float], None] = time.sleep


def wait_for_engine(es: Elasticsearch, policy: BackoffPolicy | None = None) -> None:
    """Block until ``es.info()`` succeeds or raise :class:`EngineUnavailableError`."""
    policy = policy or BackoffPolicy()
    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            info = es.info()
        except (ApiError, TransportError) as exc:
            last_error = exc
            logger.warning(
                "Elasticsearch connection check %s/%s failed: %s", attempt, policy.max_attempts, exc
            )
        else:
            version = (response_body(info).get("version") or {}).get("number")
            logger.info("Elasticsearch connection successful (version %s)", version)
            return
        if attempt < policy.max_attempts:
            policy.sleep(policy.delay(attempt))
    raise EngineUnavailableError(
        f"Elasticsearch unavailable after {policy.max_attempts} attempts"
    ) from last_error
