"""Domain-specific exceptions and business outcome kinds"""

from enum import Enum


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class PersistenceError(DomainException):
    """Document store is unavailable or a write did not complete"""

    pass


class LockTimeoutError(DomainException):
    """Per-owner lock could not be acquired within the configured wait"""

    def __init__(self, key: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s waiting for lock {key!r}")
        self.key = key
        self.timeout = timeout


class ErrorKind(str, Enum):
    """Expected business outcomes, returned as values rather than raised"""

    NOT_FOUND = "not_found"
    POLICY_DISABLED = "policy_disabled"
    VALIDATION_FAILED = "validation_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    PERSISTENCE_FAILURE = "persistence_failure"
    ALREADY_SETTLED = "already_settled"
