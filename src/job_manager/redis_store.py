import logging
import time
from typing import Dict, Optional

from redis import Redis
from redis.client import PubSub
from redis.exceptions import TimeoutError as RedisTimeoutError

from .config import Config
from .store import Store, StreamRecord, Subscription

logger = logging.getLogger(__name__)

SUBSCRIBE_TIMEOUT = 5.0
POLL_INTERVAL = 0.1


class RedisSubscription(Subscription):
    """Completion channel subscription backed by a redis-py PubSub."""

    def __init__(self, pubsub: PubSub, channel: str):
        self.pubsub = pubsub
        self.channel = channel

    def confirm(self, timeout: float = SUBSCRIBE_TIMEOUT) -> None:
        """
        Block until the server acknowledged the SUBSCRIBE.

        Publishing that happens after this returns is guaranteed to
        reach the subscription.
        """
        deadline = time.time() + timeout

        while time.time() < deadline:
            message = self.pubsub.get_message(timeout=POLL_INTERVAL)
            if message and message["type"] == "subscribe":
                return

        raise RedisTimeoutError(f"subscription to '{self.channel}' was not confirmed")

    def receive(self, timeout: float) -> bool:
        message = self.pubsub.get_message(timeout=timeout)
        return bool(message) and message["type"] == "message"

    def close(self) -> None:
        self.pubsub.close()


class RedisStore(Store):
    """
    Redis implementation of the backing store.

    Structures:
    - documents  → STRING with KEEPTTL on overwrite
    - queues     → LIST  (LPUSH / BLMOVE RIGHT LEFT / LINDEX / LREM)
    - channels   → PUBSUB
    - cursor logs → STREAM (XADD / XREAD)
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    @classmethod
    def from_config(cls, config: Config) -> "RedisStore":
        return cls(
            Redis(
                host=config.redis_host,
                port=config.redis_port,
                username=config.redis_username,
                password=config.redis_password,
                db=0,
                decode_responses=True,
            )
        )

    def ping(self) -> None:
        self.redis.ping()

    # ------------------------------------------------------------------
    # DOCUMENTS
    # ------------------------------------------------------------------

    def put_document(self, key: str, value: str) -> None:
        self.redis.set(key, value, keepttl=True)

    def get_document(self, key: str) -> Optional[str]:
        return self.redis.get(key)

    def expire(self, key: str, ttl: float) -> None:
        # PEXPIRE keeps sub-second precision
        self.redis.pexpire(key, int(ttl * 1000))

    def ttl(self, key: str) -> Optional[float]:
        # PTTL is -1 without expiry and -2 for a missing key
        remaining = self.redis.pttl(key)
        if remaining < 0:
            return None
        return remaining / 1000

    # ------------------------------------------------------------------
    # QUEUES
    # ------------------------------------------------------------------

    def push(self, queue: str, value: str) -> None:
        self.redis.lpush(queue, value)

    def move_blocking(
        self, source: str, destination: str, timeout: float
    ) -> Optional[str]:
        return self.redis.blmove(source, destination, timeout, "RIGHT", "LEFT")

    def peek(self, queue: str) -> Optional[str]:
        return self.redis.lindex(queue, -1)

    def remove(self, queue: str, value: str) -> None:
        self.redis.lrem(queue, 1, value)

    # ------------------------------------------------------------------
    # PUBLISH / SUBSCRIBE
    # ------------------------------------------------------------------

    def publish(self, channel: str, message: str) -> int:
        return self.redis.publish(channel, message)

    def subscribe(self, channel: str) -> RedisSubscription:
        pubsub = self.redis.pubsub()
        pubsub.subscribe(channel)

        subscription = RedisSubscription(pubsub, channel)
        try:
            subscription.confirm()
        except Exception:
            subscription.close()
            raise

        logger.debug(f"RedisStore: subscribed to {channel}")
        return subscription

    # ------------------------------------------------------------------
    # CURSOR LOGS
    # ------------------------------------------------------------------

    def append(self, log: str, record: Dict[str, str]) -> str:
        return self.redis.xadd(log, record)

    def read(
        self, log: str, cursor: Optional[str], timeout: Optional[float]
    ) -> Optional[StreamRecord]:
        # XREAD BLOCK 0 waits forever, so never round down to it
        block = max(1, int(timeout * 1000)) if timeout else None

        response = self.redis.xread({log: cursor or "0"}, count=1, block=block)
        if not response:
            return None

        # [[stream, [(id, fields), ...]]]
        _, messages = response[0]
        if not messages:
            return None

        message_id, fields = messages[0]
        return message_id, fields

    def read_at(self, log: str, cursor: str) -> Optional[Dict[str, str]]:
        messages = self.redis.xrange(log, min=cursor, max=cursor, count=1)
        if not messages:
            return None

        _, fields = messages[0]
        return fields

    def close(self) -> None:
        self.redis.close()
