from enum import Enum


class KeySuffix(str, Enum):
    """
    Centralized Redis key suffixes.

    Every structure lives under the configured namespace:

    <ns>:pending                → LIST    waiting job ids
    <ns>:<worker>               → LIST    job ids claimed by one worker
    <ns>:<job_id>               → STRING  JSON job document
    <ns>:<job_id>:progress      → STREAM  progress records
    <ns>:<job_id>:completed     → PUBSUB  completion notification
    """

    PENDING = "pending"
    PROGRESS = "progress"
    COMPLETED = "completed"


class JobKeys:
    """Builds namespaced key names for one manager."""

    def __init__(self, namespace: str, worker_name: str):
        self.namespace = namespace
        self.worker_name = worker_name

    @property
    def pending(self) -> str:
        return f"{self.namespace}:{KeySuffix.PENDING.value}"

    @property
    def processing(self) -> str:
        return f"{self.namespace}:{self.worker_name}"

    def document(self, job_id: str) -> str:
        return f"{self.namespace}:{job_id}"

    def progress(self, job_id: str) -> str:
        return f"{self.namespace}:{job_id}:{KeySuffix.PROGRESS.value}"

    def completed(self, job_id: str) -> str:
        return f"{self.namespace}:{job_id}:{KeySuffix.COMPLETED.value}"
