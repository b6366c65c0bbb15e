import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

STATUS_CHANGED = "status_changed"
APPLICATION_REROUTED = "application_rerouted"
HIRE_RELEASED = "hire_released"

Handler = Callable[[str, dict[str, Any]], None]

_lock = threading.Lock()
_subscribers: dict[str, list[Handler]] = {}


def subscribe(event_name: str, handler: Handler) -> None:
    with _lock:
        handlers = _subscribers.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)


def unsubscribe(event_name: str, handler: Handler) -> None:
    with _lock:
        handlers = _subscribers.get(event_name) or []
        if handler in handlers:
            handlers.remove(handler)


def clear() -> None:
    with _lock:
        _subscribers.clear()


def emit(event_name: str, payload: dict[str, Any]) -> None:
    """
    Deliver to every subscriber synchronously. Emission happens after the state
    change is committed, so a failing subscriber is logged and skipped.
    """
    with _lock:
        handlers = list(_subscribers.get(event_name) or [])
    for handler in handlers:
        try:
            handler(event_name, dict(payload))
        except Exception:
            logger.exception("Event handler %r failed for %s", handler, event_name)
