import logging
from typing import Optional, Type

from .config import BACKEND_REDIS, Config
from .errors import InvalidBackendError
from .manager import Manager
from .models import Job
from .redis_manager import RedisManager


def new_manager(
    job_class: Type[Job], config: Config, log: Optional[logging.Logger] = None
) -> Manager:
    """
    Build the manager for the configured backend.

    Raises:
        TypeError: If job_class is not a Job subclass.
        InvalidBackendError: If config.backend has no implementation.
    """
    if not isinstance(job_class, type) or not issubclass(job_class, Job):
        raise TypeError("job-manager model must be a subclass of Job")

    if config.backend == BACKEND_REDIS:
        return RedisManager(job_class, config, log)

    raise InvalidBackendError()
