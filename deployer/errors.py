from typing import List


class DeployerError(Exception):
    pass


class QueueBusyError(DeployerError):
    pass


class JobCancelledError(DeployerError):
    """Raised at a pipeline checkpoint once the job deadline passed or the pool is stopping."""


class DataUriError(DeployerError):
    pass


class HostingError(DeployerError):
    def __init__(self, message: str, status_code: int = 0, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MissingFileError(HostingError):
    pass


class VersionConflictError(HostingError):
    """The file changed since its sha was read; the write was rejected."""


class GenerationError(DeployerError):
    pass


class BundleValidationError(DeployerError):
    def __init__(self, violations: List[str]):
        super().__init__(f"bundle_validation_failed: {len(violations)} violation(s)")
        self.violations = list(violations)


class UnexpectedFileError(DeployerError):
    pass


class RetryExhaustedError(DeployerError):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"all retries failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
