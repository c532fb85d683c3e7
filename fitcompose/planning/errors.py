"""Composition error types.

Every remote-path failure is a GenerationError and is absorbed by the
hybrid composer, which converts it into a local fallback result. The only
error that reaches callers is NoCompatibleContentError.

retryable_at_orchestrator marks the failures that consume one validation
attempt instead of falling back straight away:
- DecodingFailedError, SchemaInvalidError, EmptyResponseError: yes
- DiversityRejectedError: yes
- ConfigurationMissingError, NetworkTransientError, ClientRejectedError: no
"""


class CompositionError(Exception):
    """Base class for composition failures."""


class GenerationError(CompositionError):
    retryable_at_orchestrator: bool = False


class ConfigurationMissingError(GenerationError):
    """No remote credentials are configured."""


class NetworkTransientError(GenerationError):
    """Timeout, connection failure or 5xx after the client retry budget."""

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class ClientRejectedError(GenerationError):
    """The endpoint answered with a 4xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Remote generation rejected with HTTP {status_code}: {body[:200]}")


class DecodingFailedError(GenerationError):
    retryable_at_orchestrator = True


class EmptyResponseError(GenerationError):
    retryable_at_orchestrator = True


class SchemaInvalidError(GenerationError):
    retryable_at_orchestrator = True

    def __init__(self, issues: list[str]):
        self.issues = issues
        super().__init__(f"Generated plan failed validation: {'; '.join(issues)}")


class DiversityRejectedError(GenerationError):
    retryable_at_orchestrator = True

    def __init__(self, ratio: float, threshold: float, repeated: list[str]):
        self.ratio = ratio
        self.threshold = threshold
        self.repeated = repeated
        super().__init__(f"Diversity ratio {ratio:.2f} below threshold {threshold:.2f}")


class NoCompatibleContentError(CompositionError):
    """The catalog has no block or exercise usable for this profile and check-in."""
