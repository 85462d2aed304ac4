from dataclasses import dataclass, field
from typing import Optional

from .audit import NullAudit

@dataclass
class SessionState:
    """
    Per-document flags. `injected` is cleared when the dialog is known to be
    gone (close/cancel click, navigation) or when a force check replaces a
    stale control.
    """
    injected: bool = False
    last_reset: Optional[str] = None
    audit: object = field(default_factory=NullAudit, repr=False)

    def mark_injected(self) -> None:
        self.injected = True

    def reset(self, reason: str) -> None:
        was = self.injected
        self.injected = False
        self.last_reset = reason
        self.audit.log("SESSION_RESET", reason=reason, was_injected=was)
