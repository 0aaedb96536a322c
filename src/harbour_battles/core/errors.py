"""Custom exceptions for configuration, input, and ranking errors."""

from __future__ import annotations

from typing import Any, ClassVar


class ConfigurationError(Exception):
    """Base exception for configuration errors with optional suggestions."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[Configuration Error] {self.message}"
        if self.suggestion:
            msg += f"\n[Suggestion] {self.suggestion}"
        return msg


class MissingFieldError(ConfigurationError):
    """Error when a required configuration field is missing."""

    def __init__(self, field: str, config_path: str) -> None:
        super().__init__(
            f"Missing required field '{field}' in {config_path}",
            "Add the field to your configuration.",
        )


class DuplicateProjectError(ConfigurationError):
    """Error when a project seed file lists the same ID twice."""

    def __init__(self, project_id: str) -> None:
        super().__init__(
            f"Duplicate project ID '{project_id}'",
            "Give every project a unique 'id'.",
        )


class BattleError(Exception):
    """Base exception for vote and matchup failures.

    Subclasses set ``kind`` (one of invalid_input, not_found, conflict,
    transient) and ``retryable`` so callers can tell "fix your input" apart
    from "try again".
    """

    kind: ClassVar[str] = "internal"
    retryable: ClassVar[bool] = False

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Render as a structured error payload."""
        payload: dict[str, Any] = {
            "error": self.message,
            "kind": self.kind,
            "retryable": self.retryable,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


class InvalidInput(BattleError):
    """Malformed or missing fields. Permanent."""

    kind = "invalid_input"


class NotFound(BattleError):
    """Unknown project or exhausted pool. Permanent."""

    kind = "not_found"


class Conflict(BattleError):
    """Stale snapshot or lost compare-and-set race. Retryable."""

    kind = "conflict"
    retryable = True


class Transient(BattleError):
    """Store timeout or other passing failure. Retryable."""

    kind = "transient"
    retryable = True


class InvalidExplanation(InvalidInput):
    """Error when a vote explanation is too short."""

    def __init__(self, word_count: int, min_words: int) -> None:
        self.word_count = word_count
        self.min_words = min_words
        super().__init__(
            f"Explanation has {word_count} words, at least {min_words} required",
            f"Please provide a reason with at least {min_words} words.",
        )


class SameProject(InvalidInput):
    """Error when winner and loser are the same project."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Winner and loser are the same project '{project_id}'")


class UnknownProject(NotFound):
    """Error when a project ID is not in the rating store."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Unknown project '{project_id}'")


class InsufficientPool(NotFound):
    """Error when fewer than two projects can be matched."""

    def __init__(self, pool_size: int) -> None:
        self.pool_size = pool_size
        super().__init__(
            f"Need at least 2 projects for a matchup, found {pool_size}",
        )


class StaleRating(Conflict):
    """Error when a submitted rating snapshot no longer matches the store."""

    def __init__(self, project_id: str, submitted: float, current: float) -> None:
        self.project_id = project_id
        self.submitted = submitted
        self.current = current
        super().__init__(
            f"Rating for '{project_id}' moved from {submitted:.2f} to {current:.2f}",
            "Fetch a fresh matchup and vote again.",
        )


class ConcurrencyExhausted(Conflict):
    """Error when compare-and-set kept losing races."""

    def __init__(self, winner_id: str, loser_id: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Could not update '{winner_id}' vs '{loser_id}' after {attempts} attempts",
            "Resubmit the vote.",
        )


class StoreTimeout(Transient):
    """Error when a store call or lock acquisition exceeds its timeout."""

    def __init__(self, operation: str, timeout: float | None = None) -> None:
        self.operation = operation
        self.timeout = timeout
        msg = f"Store operation '{operation}' timed out"
        if timeout is not None:
            msg += f" after {timeout:.1f}s"
        super().__init__(msg, "Try again shortly.")
