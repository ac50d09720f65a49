"""Match events and notification fan-out.

A newly created match is announced two ways: a `MatchCreated` event is put on
a queue that a real-time layer can poll, and each participant is notified
through the external dispatcher on a worker thread so the swipe response is
never held up by delivery.
"""

import queue
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from discovery.config import settings
from discovery.custom_types import NotificationDispatcher
from discovery.models.match import Match, MatchCreated
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


class MatchEventBus:
    """
    Bounded in-process queue of `MatchCreated` events.

    Publishing never blocks: once `maxsize` events are waiting, new ones
    are dropped with a warning until a consumer drains the queue.
    """

    def __init__(self, maxsize: Optional[int] = None) -> None:
        self.maxsize = settings.MATCH_EVENT_QUEUE_SIZE if maxsize is None else maxsize
        self._queue: "queue.Queue[MatchCreated]" = queue.Queue(maxsize=self.maxsize)

    def publish(self, event: MatchCreated) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning("Match event queue full, dropping event", match_id=event.match_id)

    def qsize(self) -> int:
        return self._queue.qsize()

    def poll(self, timeout: Optional[float] = None) -> Optional[MatchCreated]:
        """Next event, or None if nothing arrives within `timeout` seconds."""
        try:
            return self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> List[MatchCreated]:
        events: List[MatchCreated] = []
        while (event := self.poll()) is not None:
            events.append(event)
        return events


class LoggingNotificationDispatcher:
    """Dispatcher used when no push provider is wired in. Only logs."""

    def notify_match(self, user_id: str, other_user_id: str, match_id: str) -> None:
        logger.info("Match notification", user_id=user_id, other_user_id=other_user_id, match_id=match_id)


class MatchNotifier:
    """
    Fire-and-forget match notifications.

    Failures are logged and never reach the swipe that created the match.
    Retries belong to the dispatcher.
    """

    def __init__(self, dispatcher: NotificationDispatcher, max_workers: int = 4) -> None:
        self._dispatcher = dispatcher
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="match-notify")

    def notify_match(self, match: Match) -> List[Future]:
        """Queue one notification per participant and return their futures."""
        futures = []
        for user_id in match.user_ids:
            other_user_id = match.other_user(user_id)
            future = self._executor.submit(self._dispatcher.notify_match, user_id, other_user_id, match.id)
            future.add_done_callback(self._make_callback(user_id, match.id))
            futures.append(future)
        return futures

    @staticmethod
    def _make_callback(user_id: str, match_id: str):
        def _log_failure(future: Future) -> None:
            error = future.exception()
            if error is not None:
                logger.warning("Match notification failed", user_id=user_id, match_id=match_id, error=str(error))

        return _log_failure

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
