"""Notification port: the engine's only way to tell the outside world something happened.

Calls are fire-and-forget and always made after the state change has been
committed. Delivery (email, push, chat) is the notification service's job.
"""

from abc import ABC, abstractmethod


class NotificationPort(ABC):
    @abstractmethod
    def notify(self, event_type: str, entity_ref: dict) -> dict:
        """Announce a committed transition.

        Args:
            event_type: Name of the domain event, e.g. ``"FirstPieceApproved"``
            entity_ref: ``{"entity_type": ..., "entity_id": ...}`` plus any
                fields the recipient needs to route the message

        Returns:
            dict with keys: notification_id, status
        """
        ...
