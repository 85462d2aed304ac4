from typing import Dict, Iterable, Optional

from .audit import NullAudit
from .utils import _dbg

# Subset copied from the host's commit control onto the injected control.
PRESENTATION_PROPS = (
    "background-color",
    "height",
    "min-width",
    "padding",
    "border",
    "border-radius",
    "box-shadow",
    "color",
    "font-weight",
    "font-family",
    "font-size",
    "letter-spacing",
    "text-transform",
)

PRIMARY_FALLBACK: Dict[str, str] = {
    "background-color": "#1a73e8",
    "color": "#ffffff",
    "border": "none",
    "border-radius": "4px",
    "padding": "8px 16px",
    "font-family": "'Google Sans', Roboto, Arial, sans-serif",
    "font-size": "14px",
    "font-weight": "500",
}

# Secondary look forced onto the host's own commit control.
DEMOTED_PROPS = ("background-color", "color", "border", "box-shadow")
DEMOTED_FALLBACK: Dict[str, str] = {
    "background-color": "transparent",
    "color": "#1a73e8",
    "border": "1px solid #dadce0",
    "box-shadow": "none",
}

# Applied to every descendant as well; host buttons paint text in inner spans.
TEXT_PROPS = ("color",)

def _norm(v) -> str:
    return " ".join(str(v or "").replace("!important", "").split()).lower()

async def capture_presentation(doc, node, props: Iterable[str], fallback: Dict[str, str]) -> Dict[str, str]:
    """Computed values of `props` on `node`, or `fallback` if unreadable."""
    props = list(props)
    if node is None:
        return dict(fallback)
    try:
        styles = await doc.computed_style(node, props)
    except Exception as e:
        _dbg(f"capture_presentation failed: {e}")
        return dict(fallback)
    styles = {k: v for k, v in (styles or {}).items() if k in props and v not in (None, "")}
    return styles or dict(fallback)

class OverridePersister:
    """
    Keep `desired` inline styles on a host-owned node that the host keeps
    re-rendering. Each observed mutation batch triggers at most one re-apply,
    and only when the applied values no longer match, so our own writes settle
    after one notification instead of feeding back.

    Matching is done against the values read back right after applying, since
    the browser reserializes what we write (hex colours come back as rgb()).
    stop(restore=True) puts back the inline values the node had before.
    """

    def __init__(self, doc, target, desired: Dict[str, str], audit=None):
        self.doc = doc
        self.target = target
        self.desired = dict(desired)
        self.audit = audit or NullAudit()
        self.subscription = None
        self.reapplied = 0
        self.previous: Optional[Dict[str, str]] = None
        self.baseline: Dict[str, str] = {}

    @property
    def active(self) -> bool:
        return bool(self.subscription and self.subscription.active)

    def _descendant_styles(self) -> Dict[str, str]:
        return {k: v for k, v in self.desired.items() if k in TEXT_PROPS}

    async def start(self) -> None:
        self.previous = await self.doc.read_style(self.target, list(self.desired))
        await self.apply()
        self.audit.log("OVERRIDE_APPLY", props=",".join(sorted(self.desired)))
        self.subscription = await self.doc.observe(
            self.target, self._on_mutation, child_list=True, subtree=True, attributes=True
        )

    async def apply(self) -> None:
        await self.doc.set_style(self.target, self.desired, descendants=self._descendant_styles() or None)
        self.baseline = await self.doc.read_style(self.target, list(self.desired))

    def _expected(self, prop: str) -> str:
        return self.baseline.get(prop) or self.desired[prop]

    async def is_reverted(self) -> bool:
        current = await self.doc.read_style(self.target, list(self.desired))
        for k in self.desired:
            if _norm(current.get(k)) != _norm(self._expected(k)):
                return True
        text = list(self._descendant_styles())
        if text:
            for styles in await self.doc.read_descendant_style(self.target, text):
                for k in text:
                    if _norm(styles.get(k)) != _norm(self._expected(k)):
                        return True
        return False

    async def _on_mutation(self, batch) -> None:
        if not self.active:
            return
        try:
            if not await self.doc.is_connected(self.target):
                await self.stop()
                return
            if await self.is_reverted():
                await self.apply()
                self.reapplied += 1
                self.audit.log("OVERRIDE_REAPPLY", count=self.reapplied)
        except Exception as e:
            # target detached between checks; the next dialog gets its own persister
            _dbg(f"override check failed: {e}")

    async def stop(self, restore: bool = False) -> None:
        if self.subscription is not None:
            await self.subscription.cancel()
        previous, self.previous = self.previous, None
        if not restore or previous is None:
            return
        try:
            if await self.doc.is_connected(self.target):
                await self.doc.restore_style(
                    self.target,
                    {k: previous.get(k, "") for k in self.desired},
                    descendants=list(self._descendant_styles()) or None,
                )
                self.audit.log("OVERRIDE_RESTORE", props=",".join(sorted(self.desired)))
        except Exception as e:
            _dbg(f"override restore failed: {e}")
