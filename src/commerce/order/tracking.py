"""Tracking numbers: ``ZYN`` + base36 millisecond timestamp + random suffix."""

import re
import secrets
import string
import time

TRACKING_PREFIX = "ZYN"
TRACKING_PATTERN = re.compile(r"^ZYN[A-Z0-9]{15,20}$")
MAX_ALLOCATION_ATTEMPTS = 5

_ALPHABET = string.digits + string.ascii_uppercase
_SUFFIX_LENGTH = 8


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_tracking_number(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{TRACKING_PREFIX}{_base36(now_ms)}{suffix}"


def is_valid_tracking_number(value) -> bool:
    return isinstance(value, str) and TRACKING_PATTERN.match(value) is not None


def allocate_tracking_number(is_taken) -> str:
    """Generate a tracking number that ``is_taken`` does not already know.

    Raises:
        RuntimeError: after ``MAX_ALLOCATION_ATTEMPTS`` collisions.
    """
    for _ in range(MAX_ALLOCATION_ATTEMPTS):
        candidate = generate_tracking_number()
        if not is_taken(candidate):
            return candidate
    raise RuntimeError("Could not allocate a unique tracking number")
