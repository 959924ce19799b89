"""
Live queries: push-based equivalents of the read paths.

Subscribers register a callback for a read path; after every mutation the
affected paths are recomputed in full and pushed. Subscriber failures are
logged and never break dispatch to the others.
"""
import itertools
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class LiveQueryHub:
    """
    Registry of live read subscriptions.

    `reader(path)` returns the full current result for a read path and
    `topic_of(path)` names the collection a path depends on.
    """

    def __init__(self, reader: Callable[[str], Any], topic_of: Callable[[str], str]):
        self._reader = reader
        self._topic_of = topic_of
        self._subscriptions: Dict[int, Dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, path: str, callback: Callback, initial: bool = True) -> Callable[[], None]:
        """
        Subscribe to a read path.

        Returns:
            A callable that detaches the callback. In-flight writes are unaffected.
        """
        topic = self._topic_of(path)
        with self._lock:
            subscription_id = next(self._ids)
            self._subscriptions[subscription_id] = {'path': path, 'topic': topic, 'callback': callback}

        if initial:
            self._push(subscription_id, path, callback)

        def unsubscribe():
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        return unsubscribe

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions.values() if s['topic'] == topic)

    def notify(self, topics: Iterable[str]) -> int:
        """
        Recompute every subscription whose topic changed and push the result.

        Returns:
            Number of callbacks that received a fresh result
        """
        topics = set(topics)
        with self._lock:
            targets = [
                (sid, s['path'], s['callback'])
                for sid, s in self._subscriptions.items()
                if s['topic'] in topics
            ]

        delivered = 0
        for subscription_id, path, callback in targets:
            if self._push(subscription_id, path, callback):
                delivered += 1
        return delivered

    def _push(self, subscription_id: int, path: str, callback: Callback) -> bool:
        try:
            result = self._reader(path)
            callback(result)
            return True
        except Exception as exc:
            logger.error(f"[LIVE] Subscriber {subscription_id} on {path} failed: {exc}", exc_info=True)
            return False
