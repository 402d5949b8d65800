"""
Event system for the hoarding rental service.
"""

from .base_event import (
    BaseEvent,
    TokenStatusEvent,
    DESIGN_STATUS_CHANNEL,
    FITTER_STATUS_CHANNEL,
)
from .event_bus import EventBus, EventHandlerRegistry, event_bus

__all__ = [
    "BaseEvent",
    "TokenStatusEvent",
    "DESIGN_STATUS_CHANNEL",
    "FITTER_STATUS_CHANNEL",
    "EventBus",
    "EventHandlerRegistry",
    "event_bus",
]
