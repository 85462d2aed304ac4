"""
Classification of the host's conferencing control and the flow for each case.

The host renders the attach control in one of three ways, distinguished in a
fixed order:

1. already_attached  a real Meet link (or conference section) is present
2. direct_attach     the control's own label names the provider; one click
3. submenu_attach    generic label; the click either attaches directly or
                     opens a provider menu, decided at runtime by a short probe

Only the first strategy whose detect() is true runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from . import meet_selectors as S
from .audit import NullAudit
from .config import Timing
from .errors import AttachTimeout, ClassificationFailed, ElementNotFound, WrongDialog
from .poller import wait_for_condition
from .utils import norm_text, _dbg


class StrategyKind(str, Enum):
    ALREADY_ATTACHED = "already_attached"
    DIRECT_ATTACH = "direct_attach"
    SUBMENU_ATTACH = "submenu_attach"


DEFAULT_PRIORITIES: Dict[StrategyKind, int] = {
    StrategyKind.ALREADY_ATTACHED: 10,
    StrategyKind.DIRECT_ATTACH: 20,
    StrategyKind.SUBMENU_ATTACH: 30,
}


@dataclass(frozen=True)
class Strategy:
    kind: StrategyKind
    priority: int
    detect: Callable[[object], Awaitable[bool]]
    execute: Callable[[object], Awaitable[None]]

    @property
    def name(self) -> str:
        return self.kind.value


async def is_conference_attached(doc, dialog) -> bool:
    """True when the dialog carries a real (non-template) Meet attachment."""
    for link in await doc.query_all(dialog, S.MEET_LINK):
        href = await doc.attr(link, "href") or ""
        if href and not any(tok in href for tok in S.PLACEHOLDER_TOKENS):
            return True
    for section in await doc.query_all(dialog, S.CONFERENCE_FIELD):
        text = norm_text(await doc.text(section))
        if "meet" in text and S.PLACEHOLDER_TOKENS[0] not in text:
            return True
    return False


class StrategyRegistry:
    def __init__(self, doc, locator, timing: Optional[Timing] = None, audit=None,
                 provider_name: str = "google meet",
                 priorities: Optional[Dict[StrategyKind, int]] = None):
        self.doc = doc
        self.locator = locator
        self.timing = timing or Timing()
        self.audit = audit or NullAudit()
        self.provider = norm_text(provider_name)
        prios = dict(DEFAULT_PRIORITIES)
        prios.update(priorities or {})
        self.strategies = sorted(
            (self._build(kind, prios[kind]) for kind in StrategyKind),
            key=lambda s: s.priority,
        )

    def _build(self, kind: StrategyKind, priority: int) -> Strategy:
        match kind:
            case StrategyKind.ALREADY_ATTACHED:
                return Strategy(kind, priority, self._detect_attached, self._run_attached)
            case StrategyKind.DIRECT_ATTACH:
                return Strategy(kind, priority, self._detect_direct, self._run_direct)
            case StrategyKind.SUBMENU_ATTACH:
                return Strategy(kind, priority, self._detect_submenu, self._run_submenu)
        raise ValueError(f"unknown strategy kind: {kind}")

    # ---------- classification ----------

    async def classify(self, dialog) -> Strategy:
        for strategy in self.strategies:
            try:
                hit = await strategy.detect(dialog)
            except Exception as e:
                _dbg(f"detect {strategy.name} failed: {e}")
                hit = False
            if hit:
                self.audit.log("CLASSIFY", strategy=strategy.name, priority=strategy.priority)
                return strategy
        self.audit.log("CLASSIFY", strategy="none")
        raise ClassificationFailed()

    async def is_attached(self, dialog) -> bool:
        return await is_conference_attached(self.doc, dialog)

    async def attach_control(self, dialog):
        return await self.locator.locate("video_button", dialog)

    async def _detect_attached(self, dialog) -> bool:
        return await self.is_attached(dialog)

    async def _detect_direct(self, dialog) -> bool:
        control = await self.attach_control(dialog)
        if control is None:
            return False
        return self.provider in await self._label(control)

    async def _detect_submenu(self, dialog) -> bool:
        return await self.attach_control(dialog) is not None

    # ---------- execution ----------

    async def _run_attached(self, dialog) -> None:
        self.audit.log("ATTACH", mode="already_active")

    async def _run_direct(self, dialog) -> None:
        control = await self._require_control(dialog)
        await self.doc.click(control)
        await self._await_attachment(dialog, control)
        self.audit.log("ATTACH", mode="direct")

    async def _run_submenu(self, dialog) -> None:
        t = self.timing
        await self.doc.add_style_rule(S.SUBMENU_HIDE_RULE_ID, S.SUBMENU_HIDE_CSS)
        try:
            control = await self._require_control(dialog)
            await self.doc.click(control)

            # Some accounts attach straight away even with a generic label.
            if await wait_for_condition(lambda: self.is_attached(dialog), t.probe_timeout_ms, t.poll_interval_ms):
                self.audit.log("ATTACH", mode="submenu_probe_direct")
                return

            await self._reject_room_dialog()
            option = await wait_for_condition(
                lambda: self.locator.locate("meet_option"), t.dropdown_timeout_ms, t.poll_interval_ms
            )
            if option is None:
                raise ElementNotFound("meet_option", "Could not find Google Meet option")
            await self.doc.click(option)
            await self._await_attachment(dialog, control)
            self.audit.log("ATTACH", mode="submenu")
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        """Drop the transient submenu-hiding rule; safe to call repeatedly."""
        try:
            await self.doc.remove_style_rule(S.SUBMENU_HIDE_RULE_ID)
        except Exception as e:
            _dbg(f"remove_style_rule failed: {e}")

    # ---------- helpers ----------

    async def _require_control(self, dialog):
        control = await self.attach_control(dialog)
        if control is None:
            raise ElementNotFound("video_button", "Could not find video conferencing button")
        return control

    async def _await_attachment(self, dialog, control) -> None:
        t = self.timing
        ok = await wait_for_condition(lambda: self.is_attached(dialog), t.attach_timeout_ms, t.poll_interval_ms)
        if not ok:
            raise AttachTimeout(await self._describe(control), t.attach_timeout_ms)

    async def _reject_room_dialog(self) -> None:
        try:
            rooms = await self.doc.query_all(None, S.ROOM_DIALOG)
        except Exception:
            return
        for room in rooms:
            if await self.locator.is_visible(room):
                raise WrongDialog()

    async def _label(self, node) -> str:
        text = norm_text(await self.doc.text(node))
        aria = norm_text(await self.doc.attr(node, "aria-label") or "")
        if aria in ("", text):
            return text
        return f"{text} {aria}".strip()

    async def _describe(self, control) -> str:
        """Short state string for diagnostics, e.g. 'add video conferencing expanded=true'."""
        try:
            parts = [await self._label(control) or "?"]
            for name in ("aria-expanded", "aria-pressed", "aria-disabled"):
                v = await self.doc.attr(control, name)
                if v is not None:
                    parts.append(f"{name[5:]}={v}")
            if not await self.doc.is_connected(control):
                parts.append("detached")
            return " ".join(parts)
        except Exception:
            return "unknown"
