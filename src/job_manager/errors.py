class JobManagerError(Exception):
    """Base class for every error raised by the job manager."""


# ----------------------------------------------------------------------
# CONFIGURATION
# ----------------------------------------------------------------------


class ConfigError(JobManagerError):
    """Raised by Config.validate() for the first violated setting."""


class NoWorkerNameError(ConfigError):
    def __init__(self, message: str = "job-manager worker name cannot be empty"):
        super().__init__(message)


class InvalidBackendError(ConfigError):
    def __init__(self, message: str = "job-manager backend is not valid"):
        super().__init__(message)


class NoHostError(ConfigError):
    def __init__(self, message: str = "job-manager host cannot be empty"):
        super().__init__(message)


class NoRedisNamespaceError(ConfigError):
    def __init__(self, message: str = "job-manager redis namespace cannot be empty"):
        super().__init__(message)


class InvalidPortError(ConfigError):
    def __init__(
        self, message: str = "job-manager port must be a number between 1 and 65535"
    ):
        super().__init__(message)


class InvalidRedisTTLError(ConfigError):
    def __init__(self, message: str = "job-manager redis ttl must be greater than 0"):
        super().__init__(message)


class InvalidTimeoutError(ConfigError):
    def __init__(self, message: str = "job-manager timeout must be greater than 0"):
        super().__init__(message)


# ----------------------------------------------------------------------
# CONTRACT
# ----------------------------------------------------------------------


class NoContextError(JobManagerError):
    def __init__(self, message: str = "job-manager requires a shutdown event"):
        super().__init__(message)


class JobNotMutableError(JobManagerError):
    def __init__(self, message: str = "job must be a mutable job instance"):
        super().__init__(message)


class InvalidJobError(JobManagerError):
    """The job cannot be stored, e.g. a field shadows document metadata."""


# ----------------------------------------------------------------------
# DOCUMENTS
# ----------------------------------------------------------------------


class JobNotFoundError(JobManagerError):
    def __init__(self, job_id: str):
        super().__init__(f"job '{job_id}' does not exist or has expired")
        self.job_id = job_id


class MalformedJobError(JobManagerError):
    def __init__(self, job_id: str, reason: str):
        super().__init__(f"job '{job_id}' has a malformed document: {reason}")
        self.job_id = job_id


# ----------------------------------------------------------------------
# WAITING
# ----------------------------------------------------------------------


class JobTimeoutError(JobManagerError):
    def __init__(self, job_id: str):
        super().__init__(f"job '{job_id}' timeout exceeded")
        self.job_id = job_id


class JobManagerTerminatedError(JobManagerError):
    def __init__(self, message: str = "job-manager was terminated"):
        super().__init__(message)
