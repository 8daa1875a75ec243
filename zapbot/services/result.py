from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

# Error codes used across services
AI_ERROR = "ai_error"
VOICE_ERROR = "voice_error"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a collaborator call that must not raise past the service boundary."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = AI_ERROR) -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)
