"""
Result Models

Values returned across the public recorder boundary. Public operations
never raise: they return a RecorderResult carrying success or a readable
error message plus an ErrorCode.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from recording.constants import ErrorCode


@dataclass
class RecorderResult:
    success: bool
    output_path: Optional[Path] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, output_path: Optional[Path] = None) -> "RecorderResult":
        return cls(success=True, output_path=output_path)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        output_path: Optional[Path] = None,
    ) -> "RecorderResult":
        return cls(
            success=False,
            output_path=output_path,
            error=error,
            error_code=error_code,
        )

    @classmethod
    def from_error(cls, error: Exception) -> "RecorderResult":
        """Convert a RecorderError (or anything else) into a failure result"""
        code = getattr(error, "code", ErrorCode.UNKNOWN_ERROR)
        fallback = getattr(error, "fallback_path", None)
        return cls.failure(str(error), code, output_path=fallback)

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ProcessResult:
    """Outcome of a one-shot encoder invocation"""

    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.returncode == 0
