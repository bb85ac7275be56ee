"""
Pending-message queue for the MQTT Forwarder

FIFO buffer of messages accepted from the hub but not yet confirmed
published. The queue takes no lock of its own: its owner serializes every
call together with the broker connection check.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Optional

from models.message import Message


@dataclass
class QueuedMessage:
    """Message waiting for the broker"""
    message: Message
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0


class MessageQueue:
    """
    Ordered buffer of pending messages.

    Features:
    - Strict FIFO ordering (arrival order)
    - Optional maximum size with drop-oldest overflow handling
    - Atomic drain of the whole queue
    - Statistics tracking
    """

    def __init__(self, max_size: int = 0, logger: Optional[logging.Logger] = None):
        """
        Initialize message queue.

        Args:
            max_size: Maximum number of messages in queue, 0 for unbounded
            logger: Logger instance for queue operations
        """
        self.max_size = max_size
        self.logger = logger or logging.getLogger(__name__)

        self._queue: Deque[QueuedMessage] = deque()

        self._stats = {
            'enqueued': 0,
            'drained': 0,
            'requeued': 0,
            'overflow_drops': 0,
        }

    def enqueue(self, message: Message) -> QueuedMessage:
        """
        Append a message to the tail of the queue.

        When the queue is full the oldest message is dropped to make room.

        Args:
            message: The message to hold

        Returns:
            The queued entry
        """
        while self.is_full():
            dropped = self._queue.popleft()
            self._stats['overflow_drops'] += 1
            self.logger.warning(
                f"Queue overflow: dropped oldest message - "
                f"dropped_title={dropped.message.title!r}, "
                f"queued_at={dropped.timestamp.isoformat()}, "
                f"dropped_age={(datetime.now(timezone.utc) - dropped.timestamp).total_seconds():.1f}s, "
                f"queue_size={self.size()}/{self.max_size}"
            )

        entry = QueuedMessage(message=message)
        self._queue.append(entry)
        self._stats['enqueued'] += 1

        self.logger.debug(
            f"Enqueued message - "
            f"title={message.title!r}, "
            f"queue_size={self.size()}{'/' + str(self.max_size) if self.max_size else ''}"
        )

        return entry

    def requeue_front(self, entries: Iterable[QueuedMessage]) -> None:
        """
        Put entries back at the head of the queue, keeping their order.

        Used when a drain stops part way; the entries go ahead of anything
        that arrived meanwhile. Overflow drops still apply to the oldest.
        """
        entries = list(entries)
        self._queue.extendleft(reversed(entries))
        self._stats['requeued'] += len(entries)

        while self.max_size and len(self._queue) > self.max_size:
            dropped = self._queue.popleft()
            self._stats['overflow_drops'] += 1
            self.logger.warning(
                f"Queue overflow on requeue: dropped oldest message - "
                f"dropped_title={dropped.message.title!r}, "
                f"queued_at={dropped.timestamp.isoformat()}, "
                f"queue_size={self.size()}/{self.max_size}"
            )

    def drain_all(self) -> List[QueuedMessage]:
        """
        Remove and return every queued entry in FIFO order.

        Returns:
            The entries, oldest first; empty if nothing was queued
        """
        entries = list(self._queue)
        self._queue.clear()
        self._stats['drained'] += len(entries)

        if entries:
            self.logger.debug(f"Drained queue - messages={len(entries)}")

        return entries

    def size(self) -> int:
        """Get the number of queued messages"""
        return len(self._queue)

    def is_full(self) -> bool:
        """Check if the queue is at maximum capacity (never, when unbounded)"""
        return self.max_size > 0 and self.size() >= self.max_size

    def is_empty(self) -> bool:
        """Check if the queue is empty"""
        return not self._queue

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get queue statistics.

        Returns:
            Dictionary containing queue statistics
        """
        oldest = self._queue[0].timestamp.isoformat() if self._queue else None
        return {
            'size': self.size(),
            'max_size': self.max_size,
            'enqueued': self._stats['enqueued'],
            'drained': self._stats['drained'],
            'requeued': self._stats['requeued'],
            'overflow_drops': self._stats['overflow_drops'],
            'oldest_timestamp': oldest,
        }
