"""Fake notifier: records messages in memory for test assertions."""

from uuid import uuid4

from notifications.notifier.port import NotificationFailed, OrderNotifier


class FakeNotifier(OrderNotifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, recipient: str, subject: str, body: str, metadata: dict | None = None) -> str:
        if not self.should_succeed:
            raise NotificationFailed(self.failure_reason)

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "recipient": recipient,
                "subject": subject,
                "body": body,
                "metadata": metadata or {},
            }
        )
        return message_id
