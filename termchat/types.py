from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolResult:
    """
    Outcome of a single tool call.

    ``to_payload()`` is what the model sees: a JSON object with ``success``,
    the tool-specific ``data`` fields, and ``error`` on failure.
    """

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    error_code: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: str | None = None, **data: Any) -> ToolResult:
        return cls(success=False, data=data, error=error, error_code=error_code)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        payload.update(self.data)
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ErrorCode:
    INVALID_ARGUMENTS = "invalid_arguments"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_TOOL = "unknown_tool"
    TOOL_EXCEPTION = "tool_exception"
    TIMEOUT = "timeout"
    COLLABORATOR_ERROR = "collaborator_error"
