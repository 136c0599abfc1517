"""Fake notifier: records notifications in memory for testing."""

from uuid import uuid4

from production.collaborators.notifier.port import NotificationPort


class FakeNotifier(NotificationPort):
    """Notifier that keeps every call in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification service unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification service unavailable"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, event_type: str, entity_ref: dict) -> dict:
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "notification_id": notification_id,
                "event_type": event_type,
                "entity_ref": dict(entity_ref),
            }
        )
        return {"notification_id": notification_id, "status": "sent"}

    def sent_for(self, event_type: str) -> list[dict]:
        return [n for n in self.sent if n["event_type"] == event_type]

    def reset(self):
        """Clear recorded notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification service unavailable"
