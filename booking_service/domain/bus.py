"""In-process dispatch of booking lifecycle events to the audit handlers."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Routes each booking event to the handlers registered for its exact type.

    The conflict guard publishes only after a write has committed and its room
    locks are released, so handlers see stored state and may read the
    repository. Dispatch runs on the publishing thread in subscription order;
    an exception in a handler reaches the caller of the guard operation.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self._subscribers[event_type].append(handler)

    def publish(self, event: Any) -> None:
        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            logger.debug("No handlers for %s", type(event).__name__)
            return
        logger.debug("Dispatching %s to %d handler(s)", type(event).__name__, len(handlers))
        for handler in handlers:
            handler(event)
