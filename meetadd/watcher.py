# meetadd/watcher.py
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from . import meet_selectors as S
from .audit import NullAudit
from .config import DEFAULTS, Timing, timing_from_cfg
from .controller import InteractionController
from .locator import ElementLocator
from .override import (
    DEMOTED_FALLBACK, DEMOTED_PROPS, PRESENTATION_PROPS, PRIMARY_FALLBACK,
    OverridePersister, capture_presentation,
)
from .session import SessionState
from .strategies import StrategyRegistry, is_conference_attached
from .utils import _dbg


class DialogWatcher:
    """
    Watches one host document for the event dialog and injects the action
    control into it once per appearance.

    Every batch with added nodes triggers a discovery pass. Passes never
    overlap: batches arriving mid-pass are folded into one follow-up pass, and
    the control is only created when the dialog does not already contain it.
    """

    def __init__(self, doc, cfg: Optional[Dict[str, Any]] = None, audit=None,
                 timing: Optional[Timing] = None):
        self.doc = doc
        self.cfg = dict(DEFAULTS)
        self.cfg.update(cfg or {})
        self.audit = audit or NullAudit()
        self.timing = timing or timing_from_cfg(self.cfg)
        self.button_id = self.cfg["button_id"]
        self.button_text = self.cfg["button_text"]
        provider = self.cfg["provider_name"]

        self.locator = ElementLocator(doc, provider)
        self.registry = StrategyRegistry(doc, self.locator, self.timing, self.audit, provider)
        self.controller = InteractionController(
            doc, self.locator, self.registry, self.timing, self.audit, self.button_text
        )
        self.session = SessionState(audit=self.audit)

        self.running = False
        self.attached = False
        self.override: Optional[OverridePersister] = None
        self._doc_sub = None
        self._click_sub = None
        self._nav_hooked = False
        self._checking = False
        self._pending = False
        self._last_skip = None

    # ---------- lifecycle ----------

    def matches_host(self, url: str) -> bool:
        host = urlparse(url or "").hostname or ""
        return self.cfg["host_match"] in host

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        if not self._nav_hooked:
            self.doc.on_navigate(self._on_navigate)
            self._nav_hooked = True
        url = await self.doc.url()
        if not self.matches_host(url):
            self.audit.log("WATCH_SKIP", url=url)
            return
        await self._attach()
        self.audit.log("WATCH_START", url=url)
        await self.check()

    async def stop(self) -> None:
        self.running = False
        await self._detach()
        self.controller.close()
        self.audit.log("WATCH_STOP")

    async def _attach(self) -> None:
        self._doc_sub = await self.doc.observe(None, self._on_mutation, child_list=True, subtree=True)
        self._click_sub = await self.doc.listen_clicks(S.CLOSE_TRIGGERS, self._on_close_click)
        self.attached = True

    async def _detach(self) -> None:
        self.attached = False
        for sub in (self._doc_sub, self._click_sub):
            if sub is not None:
                await sub.cancel()
        self._doc_sub = self._click_sub = None
        await self._drop_override()

    async def _drop_override(self) -> None:
        if self.override is not None:
            await self.override.stop(restore=True)
            self.override = None

    # ---------- event sources ----------

    async def _on_mutation(self, batch) -> None:
        if batch.has_added_nodes:
            await self.check()

    async def _on_close_click(self, batch) -> None:
        self.session.reset("dialog_closed")
        self._last_skip = None

    async def _on_navigate(self, url: str) -> None:
        self.session.reset("navigation")
        self._last_skip = None
        await self._detach()
        if not self.running:
            return
        if self.matches_host(url):
            await self._attach()
            await self.check()
        else:
            self.audit.log("WATCH_SKIP", url=url)

    # ---------- discovery ----------

    async def check(self) -> None:
        if self._checking:
            self._pending = True
            return
        self._checking = True
        try:
            while True:
                self._pending = False
                await self._discover()
                if not self._pending:
                    break
        finally:
            self._checking = False

    async def _discover(self) -> None:
        dialog = await self.find_dialog()
        if dialog is None:
            self._last_skip = None
            return
        try:
            if self.session.injected and await self._control_in(dialog):
                return
            await self.inject(dialog)
        except Exception as e:
            # dialog re-rendered under us; the next batch retries
            _dbg(f"inject failed: {e}")
            self.audit.log("INJECT", result="error", error=repr(e))

    async def find_dialog(self):
        dialog = await self.locator.locate("dialog")
        if dialog is None or not await self.locator.is_visible(dialog):
            return None
        return dialog

    async def _control_in(self, dialog) -> bool:
        return bool(await self.doc.query_all(dialog, f"#{self.button_id}"))

    async def inject(self, dialog) -> bool:
        """Add the action control next to the dialog's save control. Idempotent."""
        if await self._control_in(dialog):
            self.session.mark_injected()
            if self.override is None or not self.override.active:
                # same-document navigation dropped the override, the control survived
                save = await self.locator.locate("save", dialog)
                if save is not None:
                    await self._demote(save)
            await self._skipped(dialog, "exists")
            return False
        save = await self.locator.locate("save", dialog)
        if save is None:
            await self._skipped(dialog, "preview")
            return False
        if await is_conference_attached(self.doc, dialog):
            await self._skipped(dialog, "attached")
            return False

        self.audit.log("DIALOG_FOUND")
        # the host control may still carry our secondary look from an earlier pass
        await self._drop_override()
        styles = await capture_presentation(self.doc, save, PRESENTATION_PROPS, PRIMARY_FALLBACK)
        await self.doc.create_control(save, self.button_id, self.button_text, styles, self.controller.invoke)
        self.session.mark_injected()
        await self._demote(save)
        self._last_skip = None
        self.audit.log("INJECT", result="added")
        return True

    async def _skipped(self, dialog, result: str) -> None:
        # a preview card or attached dialog is re-examined on every host batch;
        # audit once per dialog while it stays in the document
        if self._last_skip is not None:
            last_dialog, last_result = self._last_skip
            if last_result == result and await self.doc.is_connected(last_dialog):
                _dbg(f"inject skipped again: {result}")
                return
        self._last_skip = (dialog, result)
        self.audit.log("INJECT", result=result)

    async def _demote(self, save) -> None:
        await self._drop_override()
        reference = None
        for node in await self.doc.siblings(save, S.CLICKABLE):
            if await self.locator.is_visible(node):
                reference = node
                break
        desired = await capture_presentation(self.doc, reference, DEMOTED_PROPS, DEMOTED_FALLBACK)
        self.override = OverridePersister(self.doc, save, desired, self.audit)
        await self.override.start()

    # ---------- control surface ----------

    async def handle_message(self, request) -> Optional[Dict[str, Any]]:
        """Answer a control-surface request; None when not active on this page."""
        if not isinstance(request, dict) or request.get("action") != "force_check":
            return None
        if not self.attached:
            return None
        return await self.force_check()

    async def force_check(self) -> Dict[str, Any]:
        dialog = await self.find_dialog()
        if dialog is None:
            resp = {"status": "checked", "dialogFound": False, "reason": "No event dialog found"}
            self.audit.log("FORCE_CHECK", **resp)
            return resp

        for wrapper in await self.doc.query_all(dialog, f"#{self.button_id}-wrap"):
            await self.doc.remove(wrapper)
        for stale in await self.doc.query_all(dialog, f"#{self.button_id}"):
            await self.doc.remove(stale)
        self.session.reset("force_check")
        self._last_skip = None
        await self._drop_override()

        if await is_conference_attached(self.doc, dialog):
            resp = {"status": "checked", "dialogFound": True, "reason": "Video conferencing already active"}
        else:
            added = await self.inject(dialog)
            resp = {
                "status": "checked",
                "dialogFound": True,
                "buttonAdded": added,
                "reason": "Button added" if added else "Could not add button",
            }
        self.audit.log("FORCE_CHECK", **resp)
        return resp
