"""
Notification events emitted by the data pipeline.

The pipeline never shows anything itself; it writes NotificationEvents to an
optional sink and the caller decides what to do with them.
"""
from typing import Callable, List, Optional

from ..logging_config import get_logger
from ..schemas import NotificationEvent

logger = get_logger(__name__)

EventSink = Callable[[NotificationEvent], None]


def emit(sink: Optional[EventSink], severity: str, title: str, message: str) -> None:
    """Build an event and hand it to the sink, if there is one."""
    event = NotificationEvent(severity=severity, title=title, message=message)
    if severity == "warning":
        logger.warning(f"{title}: {message}")
    else:
        logger.info(f"{title}: {message}")
    if sink is not None:
        sink(event)


class EventCollector:
    """Sink that keeps events in order so they can be returned with a response."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def __call__(self, event: NotificationEvent) -> None:
        self.events.append(event)
