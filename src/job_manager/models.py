import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional

from uuid6 import uuid7

from .errors import InvalidJobError, MalformedJobError


class JobState(str, Enum):
    """Lifecycle states of a job."""

    PENDING = "pending"  # waiting for a worker (default of new jobs)
    RUNNING = "running"  # claimed by a worker
    COMPLETED = "completed"  # start() returned normally
    FAILED = "failed"  # start() raised, or the document could not be loaded


TERMINAL_STATES = (JobState.COMPLETED, JobState.FAILED)

# Document keys owned by the manager; job fields may not use them.
METADATA_FIELDS = ("id", "state", "progress", "error")


def new_job_id() -> str:
    """Time-sortable unique job id (UUIDv7)."""
    return str(uuid7())


class Job(ABC):
    """
    Unit of work executed by a worker.

    IMPORTANT:
    - subclasses must be constructible without arguments
    - public attributes are the job's stored fields
    - start() signals failure by raising
    """

    @abstractmethod
    def start(self) -> None:
        """
        Perform the work. Fields mutated here are persisted once the
        job finishes.
        """
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Public attributes of the job, as stored in its document."""
        return {
            name: value
            for name, value in vars(self).items()
            if not name.startswith("_")
        }

    def load(self, fields: Mapping[str, Any]) -> None:
        """Populate the job from stored fields."""
        for name, value in fields.items():
            setattr(self, name, value)


@dataclass
class JobDocument:
    """
    Stored representation of a job: its fields plus manager metadata.

    Serialized as one flat JSON object::

        {"id": ..., "state": ..., "progress": ..., "error": ..., <fields>}
    """

    id: str
    state: JobState = JobState.PENDING
    progress: int = 0
    error: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_job(cls, job_id: str, entity: Any, **metadata: Any) -> "JobDocument":
        if isinstance(entity, Job):
            fields = entity.to_dict()
        elif isinstance(entity, Mapping):
            fields = dict(entity)
        else:
            raise InvalidJobError(
                f"job '{job_id}' must be a Job or a mapping, got {type(entity).__name__}"
            )

        reserved = sorted(set(fields) & set(METADATA_FIELDS))
        if reserved:
            raise InvalidJobError(
                f"job '{job_id}' uses reserved field names: {', '.join(reserved)}"
            )

        return cls(id=job_id, fields=fields, **metadata)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def apply_to(self, job: Job) -> None:
        job.load(self.fields)

    def to_json(self) -> str:
        """Serialize the document for Redis storage."""
        data = dict(self.fields)
        data.update(
            id=self.id,
            state=self.state.value,
            progress=self.progress,
            error=self.error,
        )
        try:
            return json.dumps(data)
        except (TypeError, ValueError) as e:
            raise InvalidJobError(f"job '{self.id}' is not JSON serializable: {e}")

    @classmethod
    def from_json(cls, job_id: str, raw: str) -> "JobDocument":
        """Deserialize a document read from Redis."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedJobError(job_id, str(e))

        if not isinstance(data, dict):
            raise MalformedJobError(job_id, "document is not an object")

        try:
            state = JobState(data.pop("state", JobState.PENDING.value))
            progress = int(data.pop("progress", 0) or 0)
        except (TypeError, ValueError) as e:
            raise MalformedJobError(job_id, str(e))

        data.pop("id", None)
        error = data.pop("error", None)

        return cls(id=job_id, state=state, progress=progress, error=error, fields=data)


class JobProgress(NamedTuple):
    """One progress record plus the cursor to continue reading after it."""

    state: Optional[JobState]
    progress: int
    artefact: Optional[str]
