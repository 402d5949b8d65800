"""
Base event classes for the event system.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4


DESIGN_STATUS_CHANNEL = "design-status"
FITTER_STATUS_CHANNEL = "fitter-status"


class BaseEvent:
    """Base class for all events in the system."""

    def __init__(self, event_type: str, data: Optional[Dict[str, Any]] = None):
        self.event_id = str(uuid4())
        self.event_type = event_type
        self.data = data or {}
        self.timestamp = datetime.now(timezone.utc)
        self.processed = False

    def __str__(self) -> str:
        return f"{self.event_type}({self.event_id})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed
        }


class TokenStatusEvent(BaseEvent):
    """
    A booking token's design or fitter sub-status changed.

    The channel is the event type, so subscribers listen on
    ``design-status`` or ``fitter-status``.
    """

    def __init__(
        self,
        channel: str,
        token_id: str,
        hoarding_id: str,
        new_status: str,
        extra: Optional[Dict[str, Any]] = None,
    ):
        data = dict(extra or {})
        data.update({
            "token_id": token_id,
            "hoarding_id": hoarding_id,
            "new_status": new_status,
        })
        super().__init__(channel, data)
        self.token_id = token_id
        self.hoarding_id = hoarding_id
        self.new_status = new_status

    @property
    def channel(self) -> str:
        return self.event_type
