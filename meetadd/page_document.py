# meetadd/page_document.py
import asyncio
import itertools
from typing import Callable, Dict, List, Optional, Set

from playwright.async_api import Error as PWError, Page  # type: ignore

from .dom import MutationBatch, Subscription, maybe_await
from .utils import _dbg

BINDING = "__meetaddNotify"

# Page-side helpers. Trusted-Types safe (no innerHTML); re-installed on every
# navigation through add_init_script.
HELPERS_JS = r"""
(() => {
  if (window.__meetadd) return;
  const reg = {};
  const notify = (id, payload) => {
    try { if (typeof window.__meetaddNotify === 'function') window.__meetaddNotify(id, payload); } catch (e) {}
  };
  window.__meetadd = {
    observe(el, id, opts) {
      const root = el || document.body || document.documentElement;
      if (reg[id]) reg[id].disconnect();
      const mo = new MutationObserver((muts) => {
        let added = 0, removed = 0;
        const attrs = new Set();
        for (const m of muts) {
          added += m.addedNodes.length;
          removed += m.removedNodes.length;
          if (m.attributeName) attrs.add(m.attributeName);
        }
        notify(id, { type: 'mutation', added, removed, attributes: Array.from(attrs) });
      });
      mo.observe(root, opts);
      reg[id] = mo;
    },
    listenClicks(selector, id) {
      if (reg[id]) reg[id].disconnect();
      const fn = (ev) => {
        const t = ev.target;
        try { if (t && t.closest && t.closest(selector)) notify(id, { type: 'click' }); } catch (e) {}
      };
      document.addEventListener('click', fn, true);
      reg[id] = { disconnect: () => document.removeEventListener('click', fn, true) };
    },
    unobserve(id) {
      if (reg[id]) { reg[id].disconnect(); delete reg[id]; }
    },
    createControl(anchor, id, label, styles, subId) {
      const parent = anchor.parentElement;
      if (!parent) return null;
      const existing = parent.querySelector('#' + CSS.escape(id));
      if (existing) { existing.dataset.meetaddSub = subId; return existing; }

      const btn = document.createElement('button');
      btn.id = id; btn.type = 'button'; btn.textContent = label;
      btn.className = 'google-meet-auto-add-button';
      btn.dataset.meetaddSub = subId;
      for (const [k, v] of Object.entries(styles || {})) btn.style.setProperty(k, v);
      btn.style.setProperty('cursor', 'pointer');
      btn.style.setProperty('margin', '0 8px');
      btn.style.setProperty('white-space', 'nowrap');
      btn.style.setProperty('transition', 'filter 0.2s');
      btn.addEventListener('mouseenter', () => { btn.style.filter = 'brightness(0.9)'; });
      btn.addEventListener('mouseleave', () => { btn.style.filter = ''; });
      btn.addEventListener('click', (ev) => {
        ev.preventDefault(); ev.stopPropagation(); ev.stopImmediatePropagation();
        if (!btn.disabled) notify(btn.dataset.meetaddSub, { type: 'invoke' });
      });

      const wrap = document.createElement('div');
      wrap.id = id + '-wrap';
      wrap.style.cssText = 'display: flex; align-items: center; flex-shrink: 0;';
      wrap.appendChild(btn);
      parent.insertBefore(wrap, anchor);
      return btn;
    },
  };
})();
"""

VISIBLE_JS = """(el) => {
  if (!el.isConnected) return false;
  const s = window.getComputedStyle(el);
  if (s.display === 'none' || s.visibility === 'hidden') return false;
  return el.getClientRects().length > 0;
}"""

MOUSE_JS = """(el, type) => {
  el.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true, view: window }));
}"""


class PageDocument:
    """
    Host document backed by a Playwright Page; nodes are ElementHandles.

    Observers and click listeners live page-side and report back through one
    exposed binding, dispatched here by subscription id.
    """

    def __init__(self, page: Page, click_step_ms: int = 50):
        self.page = page
        self.click_step_ms = click_step_ms
        self._subs: Dict[str, Subscription] = {}
        self._control_ids: Dict[str, str] = {}
        self._nav_callbacks: List[Callable] = []
        self._nav_tasks: Set[asyncio.Future] = set()
        self._seq = itertools.count(1)
        self._installed = False

    async def install(self) -> None:
        if self._installed:
            return
        await self.page.expose_function(BINDING, self._dispatch)
        await self.page.add_init_script(HELPERS_JS)
        await self.page.evaluate(HELPERS_JS)
        self.page.on("framenavigated", self._on_frame_navigated)
        self._installed = True

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._seq)}"

    async def _dispatch(self, sub_id: str, payload=None):
        sub = self._subs.get(sub_id)
        if sub is None or not sub.active:
            return False
        kind = (payload or {}).get("type")
        if kind == "invoke":
            control = await self.page.query_selector(f"#{self._control_ids[sub_id]}")
            await maybe_await(sub.callback(control))
        else:
            await maybe_await(sub.callback(MutationBatch.from_payload(payload)))
        return True

    def _on_frame_navigated(self, frame) -> None:
        if frame != self.page.main_frame:
            return
        for cb in list(self._nav_callbacks):
            task = asyncio.ensure_future(maybe_await(cb(frame.url)))
            self._nav_tasks.add(task)
            task.add_done_callback(self._nav_done)

    def _nav_done(self, task) -> None:
        self._nav_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _dbg(f"navigation handler failed: {exc!r}")

    # ---------- queries ----------

    async def url(self) -> str:
        return self.page.url

    async def query_all(self, scope, selector: str) -> list:
        root = scope if scope is not None else self.page
        return await root.query_selector_all(selector)

    async def matches(self, node, selector: str) -> bool:
        return bool(await node.evaluate("(el, s) => el.matches(s)", selector))

    async def closest(self, node, selector: str):
        handle = await node.evaluate_handle("(el, s) => el.closest(s)", selector)
        return handle.as_element()

    async def siblings(self, node, selector: str) -> list:
        arr = await node.evaluate_handle(
            """(el, s) => Array.from(el.parentElement ? el.parentElement.children : [])
                 .filter(c => c !== el && c.matches(s))""",
            selector,
        )
        out = []
        try:
            for prop in (await arr.get_properties()).values():
                el = prop.as_element()
                if el is not None:
                    out.append(el)
        finally:
            await arr.dispose()
        return out

    async def is_visible(self, node) -> bool:
        return bool(await node.evaluate(VISIBLE_JS))

    async def is_connected(self, node) -> bool:
        return bool(await node.evaluate("el => el.isConnected"))

    async def text(self, node) -> str:
        return await node.evaluate("el => el.textContent || ''")

    async def attr(self, node, name: str) -> Optional[str]:
        return await node.get_attribute(name)

    async def computed_style(self, node, props) -> Dict[str, str]:
        return await node.evaluate(
            """(el, props) => {
                const s = window.getComputedStyle(el); const o = {};
                for (const p of props) o[p] = s.getPropertyValue(p);
                return o;
            }""",
            list(props),
        )

    async def read_style(self, node, props) -> Dict[str, str]:
        return await node.evaluate(
            "(el, props) => { const o = {}; for (const p of props) o[p] = el.style.getPropertyValue(p); return o; }",
            list(props),
        )

    async def read_descendant_style(self, node, props) -> List[Dict[str, str]]:
        return await node.evaluate(
            """(el, props) => Array.from(el.querySelectorAll('*')).map(d => {
                const o = {}; for (const p of props) o[p] = d.style.getPropertyValue(p); return o;
            })""",
            list(props),
        )

    # ---------- mutations ----------

    async def click(self, node) -> None:
        """mousedown / mouseup / click with short gaps; host widgets listen to all three."""
        for i, kind in enumerate(("mousedown", "mouseup", "click")):
            if i:
                await asyncio.sleep(self.click_step_ms / 1000.0)
            await node.evaluate(MOUSE_JS, kind)

    async def set_style(self, node, styles: Dict[str, str], descendants: Optional[Dict[str, str]] = None) -> None:
        await node.evaluate(
            """(el, [styles, desc]) => {
                for (const [k, v] of Object.entries(styles)) el.style.setProperty(k, v, 'important');
                if (desc) for (const d of el.querySelectorAll('*'))
                  for (const [k, v] of Object.entries(desc)) d.style.setProperty(k, v, 'important');
            }""",
            [styles, descendants],
        )

    async def restore_style(self, node, styles: Dict[str, str], descendants: Optional[List[str]] = None) -> None:
        """Write back plain inline values; an empty value removes the property."""
        await node.evaluate(
            """(el, [styles, desc]) => {
                for (const [k, v] of Object.entries(styles)) {
                  if (v) el.style.setProperty(k, v); else el.style.removeProperty(k);
                }
                if (desc) for (const d of el.querySelectorAll('*'))
                  for (const k of desc) d.style.removeProperty(k);
            }""",
            [styles, descendants],
        )

    async def set_text(self, node, text: str) -> None:
        await node.evaluate("(el, t) => { el.textContent = t; }", text)

    async def set_title(self, node, title: str) -> None:
        await node.evaluate("(el, t) => { el.title = t; }", title)

    async def set_disabled(self, node, disabled: bool) -> None:
        await node.evaluate("(el, d) => { el.disabled = !!d; }", bool(disabled))

    async def remove(self, node) -> None:
        await node.evaluate("el => el.remove()")

    async def create_control(self, anchor, control_id: str, label: str, styles: Dict[str, str], on_invoke: Callable):
        for sub_id, cid in list(self._control_ids.items()):
            if cid == control_id and sub_id in self._subs:
                await self._subs[sub_id].cancel()
        sub_id = self._next_id("invoke")
        self._subs[sub_id] = Subscription(self, sub_id, on_invoke)
        self._control_ids[sub_id] = control_id
        handle = await anchor.evaluate_handle(
            "(el, [id, label, styles, subId]) => window.__meetadd.createControl(el, id, label, styles, subId)",
            [control_id, label, styles, sub_id],
        )
        return handle.as_element()

    async def add_style_rule(self, rule_id: str, css: str) -> None:
        await self.page.evaluate(
            """([id, css]) => {
                let st = document.getElementById(id);
                if (!st) { st = document.createElement('style'); st.id = id; (document.head || document.documentElement).appendChild(st); }
                st.textContent = css;
            }""",
            [rule_id, css],
        )

    async def remove_style_rule(self, rule_id: str) -> None:
        await self.page.evaluate("(id) => { const st = document.getElementById(id); if (st) st.remove(); }", rule_id)

    # ---------- subscriptions ----------

    async def observe(self, target, callback: Callable, child_list: bool = True,
                      subtree: bool = False, attributes: bool = False) -> Subscription:
        sub_id = self._next_id("obs")
        sub = Subscription(self, sub_id, callback)
        self._subs[sub_id] = sub
        opts = {"childList": child_list, "subtree": subtree, "attributes": attributes}
        if target is None:
            await self.page.evaluate("([id, opts]) => window.__meetadd.observe(null, id, opts)", [sub_id, opts])
        else:
            await target.evaluate("(el, [id, opts]) => window.__meetadd.observe(el, id, opts)", [sub_id, opts])
        return sub

    async def listen_clicks(self, selector: str, callback: Callable) -> Subscription:
        sub_id = self._next_id("click")
        sub = Subscription(self, sub_id, callback)
        self._subs[sub_id] = sub
        await self.page.evaluate("([s, id]) => window.__meetadd.listenClicks(s, id)", [selector, sub_id])
        return sub

    async def unobserve(self, sub_id: str) -> None:
        self._subs.pop(sub_id, None)
        self._control_ids.pop(sub_id, None)
        try:
            await self.page.evaluate("(id) => window.__meetadd && window.__meetadd.unobserve(id)", sub_id)
        except PWError as e:
            # page navigated or closed; the page-side observer went with it
            _dbg(f"unobserve {sub_id}: {e}")

    def on_navigate(self, callback: Callable) -> None:
        self._nav_callbacks.append(callback)
