"""Order notifier port: a fire-and-forget outbound message hook."""

from abc import ABC, abstractmethod


class NotificationFailed(Exception):
    pass


class OrderNotifier(ABC):
    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: dict | None = None) -> str:
        """Deliver a message and return its id.

        Raises NotificationFailed when the message could not be handed off.
        """
        ...
