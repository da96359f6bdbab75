"""Error taxonomy for sync runs.

- ``QuotaExceededError``: transient, retried by the executor with backoff.
- anything else raised by a remote call: propagated immediately.
- graph-integrity problems (cycles, unreachable ancestors) never raise; they
  are recorded as warnings on the resolution context.
- ``RetryExhaustedError``: terminal; fails the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from unisync.domain.model import ObjectType, SyncState


class SyncError(RuntimeError):
    """Base class for errors raised by the sync engine."""


class QuotaExceededError(SyncError):
    """Raised by adapters when a provider signals rate limiting or quota exhaustion."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryExhaustedError(SyncError):
    """Raised after the executor gave up retrying a rate-limited call."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class EntityNotFoundError(SyncError):
    """Raised when a provider cannot resolve a remote id."""

    def __init__(self, remote_id: str) -> None:
        super().__init__(f"Remote entity not found: {remote_id}")
        self.remote_id = remote_id


class MapperNotFoundError(SyncError):
    def __init__(self, provider: str, vertical: str, object_type: ObjectType) -> None:
        super().__init__(f"No mapper registered for {vertical}/{object_type} on {provider}")


class RecordMappingError(SyncError):
    """Raised by mappers for payloads that cannot be unified."""


class ConnectorNotFoundError(SyncError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"No connector registered for provider {provider!r}")
        self.provider = provider


class InvalidTransitionError(SyncError):
    def __init__(self, current: SyncState, target: SyncState) -> None:
        super().__init__(f"Illegal sync state transition {current} -> {target}")
        self.current = current
        self.target = target
