"""Tests for the fake order notifier and the notifier factory."""

import pytest
from notifications.notifier import get_notifier, reset_notifier, set_notifier
from notifications.notifier.fake_adapter import FakeNotifier
from notifications.notifier.port import NotificationFailed


def test_send_records_the_message():
    notifier = FakeNotifier()

    message_id = notifier.send("cust@example.com", "Order confirmed", "Thanks!", {"notification": "order_placed"})

    assert message_id.startswith("msg-")
    assert notifier.sent == [
        {
            "message_id": message_id,
            "recipient": "cust@example.com",
            "subject": "Order confirmed",
            "body": "Thanks!",
            "metadata": {"notification": "order_placed"},
        }
    ]


def test_metadata_defaults_to_empty():
    notifier = FakeNotifier()
    notifier.send("cust-001", "Subject", "Body")

    assert notifier.sent[0]["metadata"] == {}


def test_configured_failure_raises_and_records_nothing():
    notifier = FakeNotifier()
    notifier.configure(should_succeed=False)

    with pytest.raises(NotificationFailed):
        notifier.send("cust-001", "Subject", "Body")
    assert notifier.sent == []


def test_factory_defaults_and_overrides():
    reset_notifier()
    assert isinstance(get_notifier(), FakeNotifier)

    custom = FakeNotifier()
    set_notifier(custom)
    assert get_notifier() is custom
