"""Notifier factory.

Provides get_notifier() / set_notifier(). FakeNotifier is the default until a
real email or messaging adapter is configured.
"""

from notifications.notifier.fake_adapter import FakeNotifier
from notifications.notifier.port import OrderNotifier

_current_notifier: OrderNotifier | None = None


def get_notifier() -> OrderNotifier:
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = FakeNotifier()
    return _current_notifier


def set_notifier(notifier: OrderNotifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None
