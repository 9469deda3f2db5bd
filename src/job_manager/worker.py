import logging
import threading
from typing import TYPE_CHECKING, Optional

from redis.exceptions import RedisError

from .errors import InvalidJobError, JobManagerError, JobManagerTerminatedError
from .hooks import process_completion_hook, process_creation_hook
from .models import Job, JobDocument, JobState

if TYPE_CHECKING:
    from .redis_manager import RedisManager

logger = logging.getLogger(__name__)

POP_TIMEOUT = 1.0
ERROR_BACKOFF = 1.0


class Worker:
    """
    Redis-backed queue worker.

    Responsibilities:
    - Finish jobs left in this worker's processing queue by a restart
    - Claim jobs from the pending queue
    - Execute them and persist state, fields and progress
    - Run hooks and publish exactly one completion per job
    """

    def __init__(
        self,
        manager: "RedisManager",
        log: Optional[logging.Logger] = None,
        pop_timeout: float = POP_TIMEOUT,
    ):
        """
        Initialize the Worker.

        Args:
            manager (RedisManager): Manager whose store, keys and hook
                context the worker uses.
            log (Optional[logging.Logger]): Logger, defaults to this module's.
            pop_timeout (float): Seconds a queue pop blocks before the
                shutdown event is checked again.
        """
        self.manager = manager
        self.store = manager.store
        self.keys = manager.keys
        self.log = log or logger
        self.pop_timeout = pop_timeout
        self._thread: Optional[threading.Thread] = None

    def start(self, shutdown: threading.Event) -> None:
        self._thread = threading.Thread(
            target=self.run, args=(shutdown,), name="job-manager-worker", daemon=True
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the worker loop to return, including the job in flight."""
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def run(self, shutdown: threading.Event) -> None:
        """
        Worker loop. Returns once `shutdown` is set.
        """
        try:
            self.drain(shutdown)
            self.watch(shutdown)
        except JobManagerTerminatedError:
            self.log.info("Worker: job-manager terminated while waiting for the store")

        self.log.info("Worker stopped.")

    def drain(self, shutdown: threading.Event) -> None:
        """
        Process the jobs this worker claimed before its last shutdown.
        A job stays queued until its outcome is stored.
        """
        self.log.info(f"Worker: draining processing queue '{self.keys.processing}'")

        while not shutdown.is_set():
            self.manager.wait_until_ready()

            try:
                job_id = self.store.peek(self.keys.processing)
            except RedisError as e:
                self.log.warning(
                    f"Worker: failed to drain processing queue "
                    f"'{self.keys.processing}': {e}"
                )
                shutdown.wait(ERROR_BACKOFF)
                continue

            if job_id is None:
                return

            if not self.process_job(job_id):
                shutdown.wait(ERROR_BACKOFF)

    def watch(self, shutdown: threading.Event) -> None:
        """
        Move job ids from the pending queue to this worker's processing
        queue and execute them.
        """
        self.log.info(f"Worker: watching pending queue '{self.keys.pending}'")

        while not shutdown.is_set():
            self.manager.wait_until_ready()

            try:
                job_id = self.store.move_blocking(
                    self.keys.pending, self.keys.processing, self.pop_timeout
                )

                if job_id:
                    self.process_job(job_id)

            except RedisError as e:
                if shutdown.is_set():
                    break
                self.log.warning(
                    f"Worker: failed to watch pending queue '{self.keys.pending}': {e}"
                )
                shutdown.wait(ERROR_BACKOFF)

            except JobManagerTerminatedError:
                raise

            except Exception as e:
                # Unexpected worker loop error
                self.log.error(f"Unexpected error in worker loop: {e}", exc_info=True)
                shutdown.wait(ERROR_BACKOFF)

    # ------------------------------------------------------------------
    # JOB EXECUTION
    # ------------------------------------------------------------------

    def process_job(self, job_id: str) -> bool:
        """
        Execute one job. Once its outcome is stored, waiters are released
        and the id leaves the processing queue, whether the job completed,
        failed or could not be loaded at all.

        Returns:
            bool: False if the outcome could not be stored. The id then
            stays in the processing queue for the next drain.
        """
        self.log.info(f"Worker: starting job {job_id}")

        if not self._execute(job_id):
            self.log.warning(
                f"Worker: outcome of job {job_id} was not stored, keeping it in "
                f"processing queue '{self.keys.processing}'"
            )
            return False

        self._publish_completion(job_id)
        self._release(job_id)
        return True

    def _execute(self, job_id: str) -> bool:
        try:
            job = self.manager.job_class()
            document = self.manager.get_job(job_id, job)
        except (JobManagerTerminatedError, RedisError) as e:
            self.log.warning(f"Worker: failed to load job {job_id}: {e}")
            return False
        except (JobManagerError, TypeError) as e:
            self.log.warning(f"Worker: job {job_id} cannot be loaded: {e}")
            return self._record_progress(job_id, JobState.FAILED, 0)

        try:
            process_creation_hook(self.manager.hook_context, job)

            document.state = JobState.RUNNING
            self._write(job_id, _serialize(document, job))
            self._record_progress(job_id, JobState.RUNNING, document.progress)

            job.start()

        except Exception as e:
            self.log.error(f"Worker: job {job_id} failed: {e}", exc_info=True)
            document.state = JobState.FAILED
            document.error = f"{type(e).__name__}: {e}"

        else:
            self.log.info(f"Worker: job {job_id} succeeded")
            document.state = JobState.COMPLETED
            document.progress = 100

        if not self._store_outcome(document, job):
            return False

        try:
            process_completion_hook(self.manager.hook_context, job)
        except Exception as e:
            self.log.error(
                f"Worker: completion hook of job {job_id} failed: {e}", exc_info=True
            )

        return True

    def _store_outcome(self, document: JobDocument, job: Job) -> bool:
        """
        Persist the terminal document and progress record. A job whose
        fields cannot be serialized fails, keeping its last stored fields.
        """
        try:
            raw = _serialize(document, job)
        except InvalidJobError as e:
            self.log.error(f"Worker: result of job {document.id} cannot be stored: {e}")
            document.state = JobState.FAILED
            document.error = f"{type(e).__name__}: {e}"
            raw = document.to_json()

        return self._write(document.id, raw) and self._record_progress(
            document.id, document.state, document.progress
        )

    # ------------------------------------------------------------------
    # STORE HELPERS (log, never raise)
    # ------------------------------------------------------------------

    def _wait_for_store(self) -> None:
        # Once the manager stops, the job in flight still stores its outcome
        if not self.manager.terminated:
            self.manager.wait_until_ready()

    def _write(self, job_id: str, raw: str) -> bool:
        try:
            self._wait_for_store()
            self.log.debug(f"Worker: storing job '{job_id}': {raw}")
            self.store.put_document(self.keys.document(job_id), raw)
        except (JobManagerTerminatedError, RedisError) as e:
            self.log.warning(f"Worker: failed to persist job {job_id}: {e}")
            return False
        return True

    def _record_progress(self, job_id: str, state: JobState, progress: int) -> bool:
        try:
            self._wait_for_store()
            self.manager.append_progress(job_id, state, progress)
        except (JobManagerTerminatedError, RedisError) as e:
            self.log.warning(f"Worker: failed to set progress of job {job_id}: {e}")
            return False
        return True

    def _publish_completion(self, job_id: str) -> None:
        try:
            self.manager.publish_completion(job_id)
        except RedisError as e:
            self.log.warning(
                f"Worker: failed to send completion message of job {job_id}: {e}"
            )

    def _release(self, job_id: str) -> None:
        try:
            self.store.remove(self.keys.processing, job_id)
        except RedisError as e:
            self.log.warning(
                f"Worker: failed to remove job {job_id} from processing queue "
                f"'{self.keys.processing}': {e}"
            )


def _serialize(document: JobDocument, job: Job) -> str:
    """The job's current fields under the document's metadata, as JSON."""
    return JobDocument.from_job(
        document.id,
        job,
        state=document.state,
        progress=document.progress,
        error=document.error,
    ).to_json()
