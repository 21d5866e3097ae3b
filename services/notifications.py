# backend/services/notifications.py
"""Post-commit notification queue.

Workflows publish ``(event_type, payload)`` after their writes are committed.
Every handler registered for the type runs with its own retry budget, so a
failing email never blocks the SMS (or the HTTP response). With ``run_async``
the work happens on a daemon worker thread; otherwise it runs inline, which
is what tests use.
"""
import logging
import queue
import threading
import time

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, handlers=None, max_attempts=3, retry_delay=5.0, run_async=True):
        self._handlers = {}
        self._lock = threading.Lock()
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = retry_delay
        self.run_async = run_async
        self._queue = None
        self._worker = None
        for event_type, callbacks in (handlers or {}).items():
            for callback in callbacks:
                self.subscribe(event_type, callback)

    def subscribe(self, event_type, handler):
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def handlers_for(self, event_type):
        with self._lock:
            return list(self._handlers.get(event_type, []))

    def publish(self, event_type, payload):
        handlers = self.handlers_for(event_type)
        if not handlers:
            logger.debug("No notification handlers for %s", event_type)
            return

        if not self.run_async:
            self._deliver(event_type, payload, handlers)
            return

        self._ensure_worker()
        self._queue.put((event_type, payload, handlers))

    def _ensure_worker(self):
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._queue = queue.Queue()
            self._worker = threading.Thread(
                target=self._run, name="notification-worker", daemon=True
            )
            self._worker.start()

    def _run(self):
        while True:
            event_type, payload, handlers = self._queue.get()
            try:
                self._deliver(event_type, payload, handlers)
            finally:
                self._queue.task_done()

    def _deliver(self, event_type, payload, handlers):
        for handler in handlers:
            self._call_with_retry(event_type, handler, payload)

    def _call_with_retry(self, event_type, handler, payload):
        name = getattr(handler, "__name__", repr(handler))
        for attempt in range(1, self.max_attempts + 1):
            try:
                handler(payload)
                return True
            except Exception:
                if attempt >= self.max_attempts:
                    logger.exception(
                        "Notification handler %s failed for %s after %d attempts",
                        name,
                        event_type,
                        attempt,
                    )
                    return False
                logger.warning(
                    "Notification handler %s failed for %s (attempt %d/%d), retrying",
                    name,
                    event_type,
                    attempt,
                    self.max_attempts,
                )
                if self.retry_delay:
                    time.sleep(self.retry_delay)
        return False

    def join(self):
        """Block until every queued notification has been handled."""
        if self._queue is not None:
            self._queue.join()
