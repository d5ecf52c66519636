"""Exceptions raised by the shorts agent."""

from __future__ import annotations

import re
from pathlib import Path

_QUOTA_PATTERN = re.compile(r"quota exceeded", re.IGNORECASE)


class ShortsAgentError(RuntimeError):
    """Base error of the package."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ValidationFailure(ShortsAgentError):
    """Generated content or configuration violates a constraint."""


class ClientConfigError(ValidationFailure):
    """Clients file cannot be parsed or does not match the schema."""


class NoTopicsError(ValidationFailure):
    """Client has no usable topic source."""


class ProviderError(ShortsAgentError):
    """An external provider call failed."""

    def __init__(self, message: str, *, provider: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message, cause=cause)
        self.provider = provider


class RetryableProviderError(ProviderError):
    """Transient provider failure (throttling, 5xx, network)."""


class QuotaExceededError(ShortsAgentError):
    """Daily upload cap reached; retrying cannot succeed."""

    def __init__(self, client_id: str, day: str, limit: int | None = None) -> None:
        suffix = f" ({limit}/day)" if limit is not None else ""
        super().__init__(f"Daily upload quota exceeded for client {client_id} on {day}{suffix}")
        self.client_id = client_id
        self.day = day
        self.limit = limit


class RenderFailedError(ShortsAgentError):
    """Render job reached the failed state."""

    def __init__(self, job_id: str, reason: str | None = None) -> None:
        message = f"Render job failed: {job_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.job_id = job_id
        self.reason = reason


class RenderTimeoutError(ShortsAgentError):
    """Render job did not reach a terminal state before the poll timeout."""

    def __init__(self, job_id: str, timeout_s: float) -> None:
        super().__init__(f"Render job timed out after {timeout_s:g}s: {job_id}")
        self.job_id = job_id
        self.timeout_s = timeout_s


class NotFoundError(ShortsAgentError, KeyError):
    """Requested entity does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class JobNotFoundError(NotFoundError):
    pass


class ClientNotFoundError(NotFoundError):
    pass


class RunNotFoundError(NotFoundError):
    pass


class DuplicateJobError(ShortsAgentError):
    """A render job with the same id is already stored."""


class JobTransitionError(ShortsAgentError):
    """Update would break the forward-only lifecycle of a render job."""


class RunFailedError(ShortsAgentError):
    """A run failed; the failure is already recorded at ``run_log_path``."""

    def __init__(self, client_id: str, run_log_path: Path, *, cause: Exception) -> None:
        super().__init__(
            f"Daily short run failed for client {client_id}: {cause}. Run log: {run_log_path}",
            cause=cause,
        )
        self.client_id = client_id
        self.run_log_path = run_log_path


def is_quota_exceeded(exc: BaseException) -> bool:
    """Return True for quota errors, typed or reported only through the message."""

    if isinstance(exc, QuotaExceededError):
        return True
    return bool(_QUOTA_PATTERN.search(str(exc)))


__all__ = [
    "ShortsAgentError",
    "ValidationFailure",
    "ClientConfigError",
    "NoTopicsError",
    "ProviderError",
    "RetryableProviderError",
    "QuotaExceededError",
    "RenderFailedError",
    "RenderTimeoutError",
    "NotFoundError",
    "JobNotFoundError",
    "ClientNotFoundError",
    "RunNotFoundError",
    "DuplicateJobError",
    "JobTransitionError",
    "RunFailedError",
    "is_quota_exceeded",
]
