import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import meet_selectors as S
from .audit import NullAudit
from .config import Timing
from .errors import DialogNotFound, ElementNotFound, MeetAddError, StaleDialog
from .poller import sleep_ms
from .utils import _dbg

LABEL_WORKING = "Adding Meet..."
LABEL_SAVING = "Saving..."
LABEL_DONE = "✓ Done!"
LABEL_ERROR = "Error"


class ControlState(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class InvokeOutcome:
    ok: bool
    strategy: Optional[str] = None
    error: Optional[MeetAddError] = None

    @property
    def reason(self) -> str:
        if self.ok:
            return "Video conferencing already active" if self.strategy == "already_attached" else "Meet added"
        return self.error.label if self.error else "unknown"


class InteractionController:
    """
    State machine behind the injected action control:

        Idle -> Working -> Success | Error -> (after error_reset_ms) Idle

    A click while Working is ignored (the control is also disabled). Failures
    of any step end in Error with a short tooltip; nothing is retried beyond
    the bounded waits inside the strategies.
    """

    def __init__(self, doc, locator, registry, timing: Optional[Timing] = None,
                 audit=None, button_text: str = "Make it a Google Meet"):
        self.doc = doc
        self.locator = locator
        self.registry = registry
        self.timing = timing or Timing()
        self.audit = audit or NullAudit()
        self.button_text = button_text
        self.state = ControlState.IDLE
        self.message = ""
        self._reset_task: Optional[asyncio.Task] = None

    async def invoke(self, control) -> Optional[InvokeOutcome]:
        if self.state is ControlState.WORKING:
            self.audit.log("INVOKE_SKIP", state=self.state.value)
            return None
        self._cancel_reset()
        await self._enter(control, ControlState.WORKING, LABEL_WORKING, disabled=True)

        strategy = None
        error: Optional[MeetAddError] = None
        try:
            dialog = await self._dialog_for(control)
            strategy = await self.registry.classify(dialog)
            await strategy.execute(dialog)
            await self._render(control, text=LABEL_SAVING)
            await sleep_ms(self.timing.commit_delay_ms)
            await self.commit(dialog)
        except MeetAddError as e:
            error = e
        except Exception as e:
            error = MeetAddError(str(e) or e.__class__.__name__)
        finally:
            await self.registry.cleanup()

        name = strategy.name if strategy else None
        if error is None:
            await self._enter(control, ControlState.SUCCESS, LABEL_DONE, disabled=False)
            self.audit.log("INVOKE_OK", strategy=name)
            return InvokeOutcome(True, name)

        self.message = error.label
        await self._enter(control, ControlState.ERROR, LABEL_ERROR, disabled=False, title=error.label)
        self.audit.log("INVOKE_FAIL", kind=error.kind, error=error.message, strategy=name)
        self._reset_task = asyncio.ensure_future(self._reset_later(control))
        return InvokeOutcome(False, name, error)

    async def commit(self, dialog) -> None:
        if not await self._connected(dialog):
            raise StaleDialog()
        save = await self.locator.locate("save", dialog)
        if save is None:
            raise ElementNotFound("commit control", "Could not find Save button")
        await self.doc.click(save)
        self.audit.log("COMMIT", ok=True)

    async def _dialog_for(self, control):
        try:
            dialog = await self.doc.closest(control, ", ".join(S.EVENT_DIALOG))
        except Exception:
            dialog = None
        if dialog is None:
            raise DialogNotFound()
        if not await self._connected(dialog):
            raise StaleDialog()
        return dialog

    async def _connected(self, node) -> bool:
        try:
            return bool(await self.doc.is_connected(node))
        except Exception:
            return False

    async def _enter(self, control, state: ControlState, text: str, disabled: bool, title: str = "") -> None:
        self.state = state
        await self._render(control, text=text, disabled=disabled, title=title)

    async def _render(self, control, text: Optional[str] = None, disabled: Optional[bool] = None,
                      title: Optional[str] = None) -> None:
        # the host may have torn the control down with its dialog
        try:
            if text is not None:
                await self.doc.set_text(control, text)
            if disabled is not None:
                await self.doc.set_disabled(control, disabled)
            if title is not None:
                await self.doc.set_title(control, title)
        except Exception as e:
            _dbg(f"control render skipped: {e}")

    async def _reset_later(self, control) -> None:
        await sleep_ms(self.timing.error_reset_ms)
        if self.state is ControlState.ERROR:
            self.message = ""
            await self._enter(control, ControlState.IDLE, self.button_text, disabled=False, title="")

    def _cancel_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    def close(self) -> None:
        self._cancel_reset()
