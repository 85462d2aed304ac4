"""
Failure taxonomy for one invocation of the action control.

Every flow error derives from MeetAddError and is caught at the top of the
invocation; ``label`` is the short text shown on the control's tooltip.
"""

from typing import Any, Dict, Optional


class MeetAddError(Exception):
    """Base exception for meetadd errors."""

    kind = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def label(self) -> str:
        return self.message


class DialogNotFound(MeetAddError):
    """No event dialog encloses the action control."""
    kind = "dialog_not_found"

    def __init__(self, message: str = "Could not find event dialog"):
        super().__init__(message)


class ElementNotFound(MeetAddError):
    """A host control for a logical role is missing."""
    kind = "element_not_found"

    def __init__(self, role: str, message: Optional[str] = None):
        self.role = role
        super().__init__(message or f"Could not find {role}", {"role": role})


class ClassificationFailed(MeetAddError):
    """No strategy recognised the dialog."""
    kind = "classification_failed"

    def __init__(self, message: str = "Could not find video conferencing button"):
        super().__init__(message)


class AttachTimeout(MeetAddError):
    """The attach action ran but no attachment showed up in time."""
    kind = "attach_timeout"

    def __init__(self, control_state: str, timeout_ms: int):
        self.control_state = control_state
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Meet link did not appear within {timeout_ms}ms (control: {control_state})",
            {"control_state": control_state, "timeout_ms": timeout_ms},
        )


class StaleDialog(MeetAddError):
    """The captured dialog node was detached before use."""
    kind = "stale_dialog"

    def __init__(self, message: str = "Event dialog is no longer on the page"):
        super().__init__(message)


class WrongDialog(MeetAddError):
    """The attach control opened an unrelated dialog."""
    kind = "wrong_dialog"

    def __init__(self, message: str = "Opened wrong dialog (rooms)"):
        super().__init__(message)


class ConfigError(MeetAddError):
    """Raised when configuration is invalid."""
    kind = "config"
