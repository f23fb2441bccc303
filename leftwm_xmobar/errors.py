"""
Error handling for the leftwm xmobar control program.

Every failure the control loop can recover from (or must report before
exiting) is raised as a LeftwmBarError subclass with a structured code.
"""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorCode(Enum):
    """
    Error codes for leftwm-xmobar.

    - 1000-1099: State socket errors
    - 1100-1199: Snapshot decode errors
    - 1200-1299: Bar process errors
    - 1300-1399: Markup errors
    - 1400-1499: Helper command errors
    """

    # State socket errors (1000-1099)
    SOCKET_NOT_FOUND = 1000
    SOCKET_CONNECT_FAILED = 1001

    # Snapshot decode errors (1100-1199)
    INVALID_JSON = 1100
    SCHEMA_VIOLATION = 1101

    # Bar process errors (1200-1299)
    BAR_SPAWN_FAILED = 1200
    BAR_WRITE_FAILED = 1201

    # Markup errors (1300-1399)
    UNSAFE_COMMAND = 1300
    INVALID_TEMPLATE = 1301

    # Helper command errors (1400-1499)
    LEFTWM_COMMAND_FAILED = 1400


class LeftwmBarError(Exception):
    """Base exception for leftwm-xmobar errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to a dictionary for structured logging.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class SocketConnectError(LeftwmBarError):
    """The leftwm state socket is missing or refused the connection."""

    def __init__(self, socket_path: str, reason: str, missing: bool = False):
        super().__init__(
            code=ErrorCode.SOCKET_NOT_FOUND if missing else ErrorCode.SOCKET_CONNECT_FAILED,
            message=f"Cannot connect to leftwm state socket {socket_path}: {reason}",
            suggestion="Ensure leftwm is running and XDG_RUNTIME_DIR is set",
            context={"socket_path": socket_path, "reason": reason}
        )


class SnapshotDecodeError(LeftwmBarError):
    """A state line is not valid JSON or does not match the snapshot schema."""

    def __init__(self, reason: str, fields: Optional[List[str]] = None, invalid_json: bool = False):
        """
        Initialize decode error.

        Args:
            reason: Why decoding failed
            fields: Dotted locations of offending fields (e.g. "viewports.0.x")
            invalid_json: True when the line is not JSON at all
        """
        self.fields = fields or []
        context = {"fields": self.fields} if self.fields else {}
        super().__init__(
            code=ErrorCode.INVALID_JSON if invalid_json else ErrorCode.SCHEMA_VIOLATION,
            message=f"Invalid state snapshot: {reason}",
            context=context
        )


class BarSpawnError(LeftwmBarError):
    """The renderer process for a viewport could not be started."""

    def __init__(self, index: int, command: List[str], reason: str):
        super().__init__(
            code=ErrorCode.BAR_SPAWN_FAILED,
            message=f"Failed to start bar for viewport {index}: {reason}",
            suggestion="Check that xmobar is installed and the config file exists",
            context={"index": index, "command": command, "reason": reason}
        )


class BarWriteError(LeftwmBarError):
    """Writing to a renderer's stdin failed (usually: the bar died)."""

    def __init__(self, index: int, reason: str):
        super().__init__(
            code=ErrorCode.BAR_WRITE_FAILED,
            message=f"Failed to write to bar for viewport {index}: {reason}",
            context={"index": index, "reason": reason}
        )


class UnsafeCommandError(LeftwmBarError):
    """A click command cannot be embedded in xmobar markup."""

    def __init__(self, command: str):
        super().__init__(
            code=ErrorCode.UNSAFE_COMMAND,
            message=f"Command contains a backtick and cannot be used as an xmobar action: {command!r}",
            suggestion="Remove backticks from tag names and the action template",
            context={"command": command}
        )


class InvalidTemplateError(LeftwmBarError):
    """A click command template has stray braces or unknown fields."""

    def __init__(self, template: str, reason: str):
        super().__init__(
            code=ErrorCode.INVALID_TEMPLATE,
            message=f"Invalid action template {template!r}: {reason}",
            suggestion="Use only {view}, {tag} and {name}; write literal braces as {{ and }}",
            context={"template": template, "reason": reason}
        )


class LeftwmCommandError(LeftwmBarError):
    """leftwm-command exited with an error or could not be run."""

    def __init__(self, command: List[str], reason: str):
        super().__init__(
            code=ErrorCode.LEFTWM_COMMAND_FAILED,
            message=f"leftwm command failed: {reason}",
            suggestion="Ensure leftwm-command is on PATH and leftwm is running",
            context={"command": command, "reason": reason}
        )
