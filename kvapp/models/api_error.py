"""
ApiError - the JSON error envelope returned by every handler.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ApiError:
    """
    Error payload emitted as {"error": {"code": ..., "message": ...}}.

    Attributes:
        code: Negative mirror of the HTTP status.
        message: Short, client-safe description.
    """

    code: int
    message: str

    @property
    def status(self) -> int:
        """HTTP status code this error is sent with."""
        return -self.code

    def envelope(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


NOT_FOUND = ApiError(code=-404, message="not found")
INTERNAL_ERROR = ApiError(code=-500, message="internal server error")
