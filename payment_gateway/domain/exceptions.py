"""Domain-specific exceptions"""

from datetime import datetime


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input is malformed and was rejected before any stage ran"""

    pass


class InvalidPinFormat(ValidationError):
    """PIN is not exactly four digits"""

    pass


class CredentialError(DomainException):
    """PIN setup or verification failed"""

    pass


class WeakCredential(CredentialError):
    """PIN is trivially guessable"""

    pass


class PinAlreadySet(CredentialError):
    """Customer already has a PIN; changing it is a separate flow"""

    pass


class PinNotSet(CredentialError):
    """Customer has not set up a PIN"""

    pass


class PinIncorrect(CredentialError):
    """PIN did not match the stored hash"""

    def __init__(self, attempts_remaining: int):
        super().__init__(f"Incorrect PIN, {attempts_remaining} attempts remaining")
        self.attempts_remaining = attempts_remaining


class PinLocked(CredentialError):
    """Too many failed attempts; verification is refused until the lock expires"""

    def __init__(self, unlocks_at: datetime):
        super().__init__(f"PIN locked until {unlocks_at.isoformat()}")
        self.unlocks_at = unlocks_at


class DependencyUnavailable(DomainException):
    """A downstream data source timed out or kept failing"""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source} unavailable: {message}")
        self.source = source


class DependencyRejected(DependencyUnavailable):
    """A downstream data source refused the request with a 4xx; never retried"""

    def __init__(self, source: str, status_code: int):
        super().__init__(source, f"rejected with status {status_code}")
        self.status_code = status_code


class PolicyDeny(DomainException):
    """A stage refused the payment; `reason` is safe to show the customer"""

    def __init__(self, stage, code: str, reason: str, **details):
        super().__init__(f"{stage.value}: {code}")
        self.stage = stage
        self.code = code
        self.reason = reason
        self.details = details
