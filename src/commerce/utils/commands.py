"""Serialised command processing for aggregates written by concurrent requests."""

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from commerce.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

MAX_CONFLICT_RETRIES = 3


def process_serialized(command, locks: KeyedLocks, key, retries: int = MAX_CONFLICT_RETRIES):
    """Process ``command`` while holding the lock for ``key``.

    The lock orders writers inside this process. A writer in another process
    surfaces as ``ExpectedVersionError`` at commit; the command is then
    replayed against the fresh stream, up to ``retries`` attempts in total.
    """
    with locks.hold(key):
        for attempt in range(1, retries + 1):
            try:
                return current_domain.process(command, asynchronous=False)
            except ExpectedVersionError:
                if attempt == retries:
                    raise
                logger.warning(
                    "Concurrent write detected, retrying",
                    command=command.__class__.__name__,
                    key=str(key),
                    attempt=attempt,
                )
