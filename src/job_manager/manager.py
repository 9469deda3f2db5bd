import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Type

from .models import Job, JobDocument, JobProgress, JobState


class Manager(ABC):
    """
    Abstract job manager.

    A manager runs in one of two modes:
    - client: start() → enqueue, wait for and inspect jobs
    - worker: start_worker() → additionally executes queued jobs

    Every store operation waits until the backing store is reachable.
    """

    job_class: Type[Job]

    @abstractmethod
    def start(
        self, shutdown: threading.Event, done: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Start monitoring the backing store. Setting `shutdown` stops the
        manager; `done` is called once it has stopped.
        """
        pass

    @abstractmethod
    def start_worker(
        self, shutdown: threading.Event, done: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Like start(), then drain this worker's unfinished jobs and keep
        executing jobs from the queue.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        pass

    @abstractmethod
    def wait_until_ready(self) -> None:
        pass

    @abstractmethod
    def add_job(self, job: Job) -> str:
        """Enqueue a job and return its id."""
        pass

    @abstractmethod
    def add_job_and_wait(self, job: Job, timeout: Optional[float] = None) -> JobDocument:
        """
        Enqueue a job and block until a worker finished it. The finished
        fields are loaded into `job`.
        """
        pass

    @abstractmethod
    def get_job(self, job_id: str, job: Job) -> JobDocument:
        """Load a stored job into `job` and return its document."""
        pass

    @abstractmethod
    def get_job_document(self, job_id: str) -> JobDocument:
        """Return the stored document without loading it into a job."""
        pass

    @abstractmethod
    def set_job(self, job_id: str, entity: Any) -> None:
        pass

    @abstractmethod
    def get_job_progress(
        self,
        job_id: str,
        last_artefact: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> JobProgress:
        """
        Read the next progress record after `last_artefact`. Pass the
        returned artefact to the next call to continue from there.
        """
        pass

    @abstractmethod
    def set_job_progress(self, job_id: str, state: JobState, progress: int) -> None:
        pass

    @abstractmethod
    def set_hook_context(self, key: str, value: Any) -> None:
        pass
