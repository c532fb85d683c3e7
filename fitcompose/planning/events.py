"""Composition event sinks.

The hybrid composer reports its lifecycle through an injected sink instead
of logging directly, so tests can assert on the exact transitions.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

from fitcompose.planning.errors import GenerationError


class CompositionEventSink(Protocol):
    def on_attempt(self, attempt: int, max_attempts: int, cache_key: str) -> None: ...

    def on_validation_failure(self, attempt: int, error: GenerationError) -> None: ...

    def on_fallback(self, reason: str, error: GenerationError | None = None) -> None: ...

    def on_accepted(self, attempt: int, plan_id: str, diversity_ratio: float) -> None: ...


class LoguruEventSink:
    """Default sink: structured loguru records."""

    def on_attempt(self, attempt: int, max_attempts: int, cache_key: str) -> None:
        logger.info(
            "hybrid_composer: Remote generation attempt",
            attempt=attempt,
            max_attempts=max_attempts,
            cache_key=cache_key[:12],
        )

    def on_validation_failure(self, attempt: int, error: GenerationError) -> None:
        logger.warning(
            "hybrid_composer: Generated plan rejected",
            attempt=attempt,
            error_type=type(error).__name__,
            error=str(error),
        )

    def on_fallback(self, reason: str, error: GenerationError | None = None) -> None:
        logger.info(
            "hybrid_composer: Falling back to local composer",
            reason=reason,
            error_type=type(error).__name__ if error else None,
        )

    def on_accepted(self, attempt: int, plan_id: str, diversity_ratio: float) -> None:
        logger.info(
            "hybrid_composer: Remote plan accepted",
            attempt=attempt,
            plan_id=plan_id,
            diversity_ratio=round(diversity_ratio, 3),
        )


@dataclass
class RecordingEventSink:
    """Sink that keeps every event in order; used by tests and the CLI trace."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def on_attempt(self, attempt: int, max_attempts: int, cache_key: str) -> None:
        self.events.append(("attempt", {"attempt": attempt, "max_attempts": max_attempts, "cache_key": cache_key}))

    def on_validation_failure(self, attempt: int, error: GenerationError) -> None:
        self.events.append(("validation_failure", {"attempt": attempt, "error": error}))

    def on_fallback(self, reason: str, error: GenerationError | None = None) -> None:
        self.events.append(("fallback", {"reason": reason, "error": error}))

    def on_accepted(self, attempt: int, plan_id: str, diversity_ratio: float) -> None:
        self.events.append(("accepted", {"attempt": attempt, "plan_id": plan_id, "diversity_ratio": diversity_ratio}))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]
