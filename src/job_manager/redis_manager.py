import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, Type

from redis.exceptions import RedisError

from .config import Config
from .errors import (
    JobManagerTerminatedError,
    JobNotFoundError,
    JobNotMutableError,
    JobTimeoutError,
)
from .hooks import HookContext
from .manager import Manager
from .models import Job, JobDocument, JobProgress, JobState, new_job_id
from .readiness import ReadinessMonitor
from .redis_keys import JobKeys
from .redis_store import RedisStore
from .store import Store
from .worker import Worker

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1
COMPLETION_MESSAGE = "1"


class RedisManager(Manager):
    """
    Job manager backed by Redis.

    Redis structures (see redis_keys.JobKeys):
    - one JSON document per job, expiring `redis_ttl` after creation
    - a shared pending queue and one processing queue per worker
    - a progress stream per job (cursor = stream id)
    - a completion channel per job, published once per processed job
    """

    def __init__(
        self,
        job_class: Type[Job],
        config: Config,
        log: Optional[logging.Logger] = None,
        store: Optional[Store] = None,
    ):
        """
        Args:
            job_class (Type[Job]): Job type executed by workers. Must be
                constructible without arguments.
            config (Config): Validated manager configuration.
            log (Optional[logging.Logger]): Logger for lifecycle messages
                and store warnings. Defaults to this module's logger.
            store (Optional[Store]): Backing store. Defaults to a Redis
                connection built from `config`.
        """
        self.job_class = job_class
        self.config = config
        self.log = log or logger
        self.store = store or RedisStore.from_config(config)
        self.keys = JobKeys(config.redis_namespace, config.worker_name)
        self.hook_context = HookContext()
        self.monitor = ReadinessMonitor(self.store, config.monitor_interval, self.log)
        self.worker: Optional[Worker] = None

        self._shutdown: Optional[threading.Event] = None

    def set_hook_context(self, key: str, value: Any) -> None:
        self.hook_context.set(key, value)

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    def start(
        self, shutdown: threading.Event, done: Optional[Callable[[], None]] = None
    ) -> None:
        self.log.info("starting redis job-manager")
        self.monitor.start(shutdown, done)
        self._shutdown = shutdown

    def start_worker(
        self, shutdown: threading.Event, done: Optional[Callable[[], None]] = None
    ) -> None:
        self.worker = Worker(self, self.log)
        # The job in flight stores its outcome before the store is closed
        self.monitor.before_close = self.worker.join

        self.start(shutdown, done)
        self.worker.start(shutdown)

    def stop(self) -> None:
        self.monitor.stop()

    def is_ready(self) -> bool:
        return self.monitor.is_ready()

    def wait_until_ready(self) -> None:
        self.monitor.wait_until_ready()

    @property
    def terminated(self) -> bool:
        if self.monitor.stopped:
            return True
        return self._shutdown is not None and self._shutdown.is_set()

    # ------------------------------------------------------------------
    # ENQUEUE
    # ------------------------------------------------------------------

    def add_job(self, job: Job) -> str:
        job_id = new_job_id()

        self.wait_until_ready()
        self._add_job(job_id, job)

        return job_id

    def add_job_and_wait(self, job: Job, timeout: Optional[float] = None) -> JobDocument:
        """
        Enqueue a job and block until a worker finished it.

        The completion channel is subscribed before the job is written, so
        a worker finishing immediately cannot be missed.

        Returns:
            JobDocument: The finished document; its fields are also loaded
            into `job`. A failed job returns normally with state FAILED.

        Raises:
            JobTimeoutError: The job did not finish within `timeout`
                (defaults to config.timeout). It keeps running and can be
                fetched later with get_job().
            JobManagerTerminatedError: The manager stopped while waiting.
        """
        if not isinstance(job, Job):
            raise JobNotMutableError()

        job_id = new_job_id()
        if timeout is None:
            timeout = self.config.timeout

        self.wait_until_ready()

        subscription = self.store.subscribe(self.keys.completed(job_id))
        try:
            self._add_job(job_id, job)

            deadline = time.time() + timeout
            while True:
                if self.terminated:
                    raise JobManagerTerminatedError()

                remaining = deadline - time.time()
                if remaining <= 0:
                    self.log.info(f"job '{job_id}' was timed out")
                    raise JobTimeoutError(job_id)

                try:
                    received = subscription.receive(min(remaining, POLL_INTERVAL))
                except RedisError:
                    if self.terminated:
                        raise JobManagerTerminatedError()
                    raise

                if received:
                    self.log.debug(f"job '{job_id}' was completed")
                    return self.get_job(job_id, job)
        finally:
            subscription.close()

    def _add_job(self, job_id: str, job: Job) -> None:
        """
        Write the document and progress stream, set their TTL and queue
        the id. The first failing store call aborts without retry.
        """
        document = JobDocument.from_job(job_id, job)

        self.store.put_document(self.keys.document(job_id), document.to_json())
        self.store.expire(self.keys.document(job_id), self.config.redis_ttl)
        self.append_progress(job_id, JobState.PENDING, 0)

        self.store.push(self.keys.pending, job_id)
        self.log.info(f"job-manager enqueued job '{job_id}'")

    # ------------------------------------------------------------------
    # DOCUMENTS
    # ------------------------------------------------------------------

    def get_job(self, job_id: str, job: Job) -> JobDocument:
        """
        Load a stored job into `job`.

        Raises:
            JobNotMutableError: `job` is not a job instance (checked
                before touching the store).
            JobNotFoundError: No document exists for `job_id`.
            MalformedJobError: The document is not valid JSON.
        """
        if not isinstance(job, Job):
            raise JobNotMutableError()

        document = self.get_job_document(job_id)
        document.apply_to(job)
        return document

    def get_job_document(self, job_id: str) -> JobDocument:
        self.wait_until_ready()

        raw = self.store.get_document(self.keys.document(job_id))
        if raw is None:
            raise JobNotFoundError(job_id)

        return JobDocument.from_json(job_id, raw)

    def set_job(self, job_id: str, entity: Any) -> None:
        """
        Overwrite the fields of a job document with `entity` (a Job or a
        mapping). State, progress and error of an existing document are
        kept.
        """
        self.wait_until_ready()

        metadata: Dict[str, Any] = {}
        raw = self.store.get_document(self.keys.document(job_id))
        if raw is not None:
            current = JobDocument.from_json(job_id, raw)
            metadata = dict(
                state=current.state, progress=current.progress, error=current.error
            )

        self.save_document(JobDocument.from_job(job_id, entity, **metadata))

    def save_document(self, document: JobDocument) -> None:
        self.wait_until_ready()
        self.log.debug(f"job-manager sets job '{document.id}': {document}")
        self.store.put_document(self.keys.document(document.id), document.to_json())

    # ------------------------------------------------------------------
    # PROGRESS
    # ------------------------------------------------------------------

    def get_job_progress(
        self,
        job_id: str,
        last_artefact: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> JobProgress:
        """
        Read the record following `last_artefact` from the job's progress
        stream, waiting up to `timeout` seconds for one to be appended.

        Records are returned one at a time, so following the returned
        artefacts visits every record exactly once. Without a new record
        the last known one is returned with the artefact unchanged.
        """
        if not isinstance(last_artefact, str):
            last_artefact = None

        self.wait_until_ready()

        log = self.keys.progress(job_id)
        record = self.store.read(log, last_artefact, timeout)

        if record is None:
            if last_artefact is None:
                return JobProgress(None, 0, None)

            fields = self.store.read_at(log, last_artefact)
            if fields is None:
                return JobProgress(None, 0, last_artefact)

            state, progress = _parse_progress(fields)
            return JobProgress(state, progress, last_artefact)

        artefact, fields = record
        state, progress = _parse_progress(fields)
        return JobProgress(state, progress, artefact)

    def set_job_progress(self, job_id: str, state: JobState, progress: int) -> None:
        """
        Append a progress record. Does not change the job document.

        Raises:
            ValueError: If progress is negative or state unknown.
        """
        self.wait_until_ready()
        self.append_progress(job_id, JobState(state), progress)

    def append_progress(self, job_id: str, state: JobState, progress: int) -> None:
        """
        Append a progress record without waiting for readiness. A stream
        created after the job was enqueued (e.g. once its document
        expired) gets its own TTL.
        """
        if progress < 0:
            raise ValueError(f"progress must not be negative, got {progress}")

        log = self.keys.progress(job_id)
        self.store.append(log, {"state": state.value, "progress": str(progress)})

        if self.store.ttl(log) is None:
            self.store.expire(log, self.config.redis_ttl)

    # ------------------------------------------------------------------
    # COMPLETION
    # ------------------------------------------------------------------

    def publish_completion(self, job_id: str) -> int:
        """Notify waiters that `job_id` reached a terminal state."""
        subscribers = self.store.publish(
            self.keys.completed(job_id), COMPLETION_MESSAGE
        )
        self.log.debug(
            f"job-manager sent completion message of job '{job_id}' "
            f"to {subscribers} subscribers"
        )
        return subscribers


def _parse_progress(fields: Dict[str, str]) -> Tuple[JobState, int]:
    """Records without a known state count as running."""
    try:
        state = JobState(fields.get("state") or JobState.RUNNING.value)
    except ValueError:
        state = JobState.RUNNING

    try:
        progress = int(fields.get("progress") or 0)
    except ValueError:
        progress = 0

    return state, progress
