# meetadd/locator.py
from dataclasses import dataclass
from typing import Dict, Tuple

from . import meet_selectors as S
from .utils import norm_text, _dbg

@dataclass(frozen=True)
class Rule:
    """
    One lookup rule: a CSS selector, optionally narrowed by the node's
    normalized text (or aria-label) being one of `texts` or containing
    `contains`.
    """
    selector: str
    texts: Tuple[str, ...] = ()
    contains: str = ""
    use_aria: bool = True

    @property
    def filtered(self) -> bool:
        return bool(self.texts or self.contains)

    async def accepts(self, doc, node) -> bool:
        if not self.filtered:
            return True
        labels = [norm_text(await doc.text(node))]
        if self.use_aria:
            labels.append(norm_text(await doc.attr(node, "aria-label") or ""))
        for label in labels:
            if self.texts and label in self.texts:
                return True
            if self.contains and self.contains in label:
                return True
        return False

@dataclass(frozen=True)
class Matcher:
    role: str
    rules: Tuple[Rule, ...]
    visible_only: bool = False
    self_match: bool = False

def build_roles(provider_name: str = "google meet") -> Dict[str, Matcher]:
    provider = norm_text(provider_name)
    return {
        "dialog": Matcher(
            "dialog",
            tuple(Rule(sel) for sel in S.EVENT_DIALOG),
            self_match=True,
        ),
        "save": Matcher(
            "save",
            tuple(Rule(sel) for sel in S.SAVE_BUTTON)
            + (Rule(S.CLICKABLE, texts=(norm_text(S.SAVE_TEXT),), use_aria=False),),
            visible_only=True,
        ),
        "video_button": Matcher(
            "video_button",
            (Rule(S.VIDEO_BUTTON_CANDIDATES, texts=S.VIDEO_BUTTON_LABELS),),
            visible_only=True,
        ),
        "meet_option": Matcher(
            "meet_option",
            tuple(Rule(sel, contains=provider) for sel in S.MEET_OPTION),
            visible_only=True,
        ),
    }

class ElementLocator:
    """
    Resolve a logical role to the first matching node under a scope.

    Rules are tried strictly in order; a rule that raises (invalid selector,
    node detached mid-read) counts as no match. Never mutates the document.
    """

    def __init__(self, doc, provider_name: str = "google meet"):
        self.doc = doc
        self.roles = build_roles(provider_name)

    async def locate(self, role: str, scope=None):
        matcher = self.roles[role]
        for rule in matcher.rules:
            try:
                nodes = await self.doc.query_all(scope, rule.selector)
            except Exception as e:
                _dbg(f"Invalid selector for {role}: {rule.selector} ({e})")
                continue
            for node in nodes:
                if await self._candidate(matcher, rule, node):
                    return node
        if matcher.self_match and scope is not None:
            for rule in matcher.rules:
                try:
                    if await self.doc.matches(scope, rule.selector) and await self._candidate(matcher, rule, scope):
                        return scope
                except Exception:
                    continue
        return None

    async def _candidate(self, matcher: Matcher, rule: Rule, node) -> bool:
        try:
            if matcher.visible_only and not await self.doc.is_visible(node):
                return False
            return await rule.accepts(self.doc, node)
        except Exception:
            return False

    async def is_visible(self, node) -> bool:
        try:
            return bool(await self.doc.is_visible(node))
        except Exception:
            return False
