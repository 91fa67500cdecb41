# repairhub/intake/channel.py: named publish/subscribe topics
"""
The intake state machines only ever talk to a ``MessageChannel``. The
in-process implementation below has the same contract as the realtime
broadcast it stands in for: fire-and-forget publish, per-publisher ordering,
no replay for late subscribers, no delivery receipts.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Protocol

logger = logging.getLogger(__name__)

Handler = Callable[[dict], None]
Unsubscribe = Callable[[], None]


class MessageChannel(Protocol):
    def publish(self, topic: str, message: dict) -> None: ...

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe: ...


class InMemoryChannel:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)

    def publish(self, topic: str, message: dict) -> None:
        handlers = list(self._subscribers.get(topic, ()))
        if not handlers:
            # the remote side may still be there on a real transport; nothing to raise
            logger.debug("publish %s on %s: no local subscribers", message.get("type"), topic)
            return
        for handler in handlers:
            try:
                handler(message)
            except Exception:
                # one broken subscriber must not stop delivery to the others
                logger.exception("subscriber on %s failed handling %s", topic, message.get("type"))

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe:
        self._subscribers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(topic)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._subscribers[topic]

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))
