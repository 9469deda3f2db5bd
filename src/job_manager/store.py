from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

StreamRecord = Tuple[str, Dict[str, str]]


class Subscription(ABC):
    """
    An open subscription to one publish/subscribe channel.
    """

    @abstractmethod
    def receive(self, timeout: float) -> bool:
        """
        Wait for the next message on the channel.

        Args:
            timeout (float): Max seconds to wait.

        Returns:
            True if a message arrived, False if the timeout elapsed.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class Store(ABC):
    """
    Abstract backing store used by the job manager.

    Design rules:
    - Stateless apart from its connection
    - Knows keys, not jobs
    - Errors of the underlying client propagate to the caller
    """

    @abstractmethod
    def ping(self) -> None:
        """Liveness probe. Raises if the store is unreachable."""
        pass

    # ------------------------------------------------------------------
    # DOCUMENTS
    # ------------------------------------------------------------------

    @abstractmethod
    def put_document(self, key: str, value: str) -> None:
        """Write a document, keeping the TTL of an existing key."""
        pass

    @abstractmethod
    def get_document(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def expire(self, key: str, ttl: float) -> None:
        pass

    @abstractmethod
    def ttl(self, key: str) -> Optional[float]:
        """Remaining seconds to live, None if the key has no expiry or is missing."""
        pass

    # ------------------------------------------------------------------
    # QUEUES
    # ------------------------------------------------------------------

    @abstractmethod
    def push(self, queue: str, value: str) -> None:
        """Add a value to the head of a queue."""
        pass

    @abstractmethod
    def move_blocking(
        self, source: str, destination: str, timeout: float
    ) -> Optional[str]:
        """
        Atomically move the oldest value of source onto destination,
        waiting up to timeout seconds for one to arrive.
        """
        pass

    @abstractmethod
    def peek(self, queue: str) -> Optional[str]:
        """Return the oldest value of a queue without removing it."""
        pass

    @abstractmethod
    def remove(self, queue: str, value: str) -> None:
        pass

    # ------------------------------------------------------------------
    # PUBLISH / SUBSCRIBE
    # ------------------------------------------------------------------

    @abstractmethod
    def publish(self, channel: str, message: str) -> int:
        """Publish a message and return the number of receivers."""
        pass

    @abstractmethod
    def subscribe(self, channel: str) -> Subscription:
        """
        Subscribe to a channel. The subscription is active on the server
        when this returns.
        """
        pass

    # ------------------------------------------------------------------
    # CURSOR LOGS
    # ------------------------------------------------------------------

    @abstractmethod
    def append(self, log: str, record: Dict[str, str]) -> str:
        """Append a record and return its cursor."""
        pass

    @abstractmethod
    def read(
        self, log: str, cursor: Optional[str], timeout: Optional[float]
    ) -> Optional[StreamRecord]:
        """
        Return the first record after cursor (None = from the start),
        waiting up to timeout seconds when there is none yet.
        """
        pass

    @abstractmethod
    def read_at(self, log: str, cursor: str) -> Optional[Dict[str, str]]:
        """Return the record stored at cursor, if it still exists."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass
