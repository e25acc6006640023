"""
Subscribe/notify for the board stores.

Each store owns its state and announces changes through an EventEmitter;
views and other stores subscribe instead of reading shared globals.
"""
import logging
from typing import Dict, Callable, List

logger = logging.getLogger(__name__)


class EventEmitter:
    """Routes store events to registered callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> list of callbacks

    def subscribe(self, event_type: str, callback: Callable) -> Callable[[], None]:
        """Register a callback for an event type. Returns an unsubscribe function."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

        def unsubscribe() -> None:
            callbacks = self.subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")
