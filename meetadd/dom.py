"""
Types shared by every host-document implementation.

A host document is anything exposing the PageDocument operations
(query_all, is_visible, observe, ...). Observation is modelled as an explicit
Subscription so watchers can be fed synthetic MutationBatch objects in tests.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, List


@dataclass
class MutationBatch:
    """One observer callback worth of changes."""
    added: int = 0
    removed: int = 0
    attributes: List[str] = field(default_factory=list)

    @property
    def has_added_nodes(self) -> bool:
        return self.added > 0

    @classmethod
    def from_payload(cls, payload: Any) -> "MutationBatch":
        payload = payload or {}
        return cls(
            added=int(payload.get("added", 0) or 0),
            removed=int(payload.get("removed", 0) or 0),
            attributes=list(payload.get("attributes") or []),
        )


class Subscription:
    """Handle returned by observe()/listen_clicks(); cancel() is idempotent."""

    def __init__(self, doc, sub_id: str, callback: Callable):
        self._doc = doc
        self.sub_id = sub_id
        self.callback = callback
        self.active = True

    async def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        await self._doc.unobserve(self.sub_id)

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<Subscription {self.sub_id} {state}>"


async def maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value
