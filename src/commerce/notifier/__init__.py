"""Notifier wiring.

``configure_notifier()`` installs the adapter at startup; without one,
notices go to the application log.
"""

from commerce.notifier.log_adapter import LoggingNotifier
from commerce.notifier.port import Notifier

_current_notifier: Notifier = LoggingNotifier()


def configure_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def get_notifier() -> Notifier:
    return _current_notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = LoggingNotifier()
