import socket
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import (
    InvalidBackendError,
    InvalidPortError,
    InvalidRedisTTLError,
    InvalidTimeoutError,
    NoHostError,
    NoRedisNamespaceError,
    NoWorkerNameError,
)

BACKEND_REDIS = "redis"
VALID_BACKENDS = (BACKEND_REDIS,)

DEFAULT_BACKEND = BACKEND_REDIS
DEFAULT_REDIS_NAMESPACE = "jobs"
DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_TTL = 3600.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_MONITOR_INTERVAL = 1.0


class Config(BaseSettings):
    """
    Job manager settings loaded from environment variables.

    Every field can be set through ``JOB_MANAGER_<FIELD>``, e.g.
    ``JOB_MANAGER_REDIS_HOST=localhost``. Durations are seconds.

    Loading never fails on semantic problems; call validate() to check
    the configuration before handing it to a manager.
    """

    # Worker identity, also names the worker's processing queue
    worker_name: str = Field(default_factory=socket.gethostname)

    backend: str = DEFAULT_BACKEND

    # Redis Configuration
    redis_host: str = ""
    redis_port: int = DEFAULT_REDIS_PORT
    redis_username: Optional[str] = None
    redis_password: Optional[str] = None
    redis_namespace: str = DEFAULT_REDIS_NAMESPACE
    redis_ttl: float = DEFAULT_REDIS_TTL

    # Default time add_job_and_wait() waits for a job
    timeout: float = DEFAULT_TIMEOUT

    # Interval between two readiness probes
    monitor_interval: float = DEFAULT_MONITOR_INTERVAL

    # Logging Configuration (used by the CLI)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="JOB_MANAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate(self) -> None:
        """
        Check the settings in a fixed order and raise the error of the
        first violated rule:

        worker name → backend → host / namespace / port / ttl → timeout
        """
        if not self.worker_name:
            raise NoWorkerNameError()

        if self.backend not in VALID_BACKENDS:
            raise InvalidBackendError()

        if self.backend == BACKEND_REDIS:
            if not self.redis_host:
                raise NoHostError()

            if not self.redis_namespace:
                raise NoRedisNamespaceError()

            if self.redis_port <= 0 or self.redis_port > 65535:
                raise InvalidPortError()

            if self.redis_ttl <= 0:
                raise InvalidRedisTTLError()

        if self.timeout <= 0:
            raise InvalidTimeoutError()
