from .config import Config
from .errors import (
    ConfigError,
    InvalidBackendError,
    InvalidJobError,
    InvalidPortError,
    InvalidRedisTTLError,
    InvalidTimeoutError,
    JobManagerError,
    JobManagerTerminatedError,
    JobNotFoundError,
    JobNotMutableError,
    JobTimeoutError,
    MalformedJobError,
    NoContextError,
    NoHostError,
    NoRedisNamespaceError,
    NoWorkerNameError,
)
from .factory import new_manager
from .hooks import CompletionHook, CreationHook, HookContext
from .manager import Manager
from .models import Job, JobDocument, JobProgress, JobState
from .redis_manager import RedisManager
from .redis_store import RedisStore
from .store import Store, Subscription

__all__ = [
    "Config",
    "ConfigError",
    "CompletionHook",
    "CreationHook",
    "HookContext",
    "InvalidBackendError",
    "InvalidJobError",
    "InvalidPortError",
    "InvalidRedisTTLError",
    "InvalidTimeoutError",
    "Job",
    "JobDocument",
    "JobManagerError",
    "JobManagerTerminatedError",
    "JobNotFoundError",
    "JobNotMutableError",
    "JobProgress",
    "JobState",
    "JobTimeoutError",
    "MalformedJobError",
    "Manager",
    "NoContextError",
    "NoHostError",
    "NoRedisNamespaceError",
    "NoWorkerNameError",
    "RedisManager",
    "RedisStore",
    "Store",
    "Subscription",
    "new_manager",
]
