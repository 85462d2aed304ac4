"""End-to-end flows through the injected control (Scenarios A-E and guards)."""
from __future__ import annotations

import asyncio

import pytest

from meetadd import meet_selectors as S
from meetadd.controller import LABEL_DONE, LABEL_ERROR, ControlState
from meetadd.errors import StaleDialog
from meetadd.watcher import DialogWatcher
from tests.fakes import FAST, FakeDocument, RecordingAudit, el, event_dialog, meet_link, parts

BUTTON_ID = "google-meet-auto-add-btn"
GENERIC = "Add video conferencing"


async def _ready(**dialog_kw):
    doc = FakeDocument()
    dialog = event_dialog(**dialog_kw)
    doc.append(doc.body, dialog)
    audit = RecordingAudit()
    watcher = DialogWatcher(doc, audit=audit, timing=FAST)
    await watcher.start()
    control = (await doc.query_all(dialog, f"#{BUTTON_ID}"))[0]
    return doc, dialog, control, watcher, audit


def _submenu(doc: FakeDocument, dialog, option_delay_ms: int = 5, attach_delay_ms: int = 10):
    """Generic attach control that opens a provider menu."""
    conf = parts(dialog)["conf"]
    menu = el("ul", role="menu")
    option = el("li", role="menuitem", text="Google Meet")
    menu.add(el("li", role="menuitem", text="Zoom"), option)
    seen_rules = []

    def pick(_n):
        seen_rules.append(dict(doc.style_rules))
        doc.after(attach_delay_ms, lambda: (doc.append(conf, meet_link()), doc.detach(menu)))

    option.on_click = pick
    parts(dialog)["video"].on_click = lambda _n: doc.after(option_delay_ms, lambda: doc.append(doc.body, menu))
    return option, seen_rules


@pytest.mark.asyncio
async def test_scenario_a_already_attached_commits_without_attach() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    p = parts(dialog)
    # attachment arrives after injection (e.g. added by another tab's edit)
    doc.append(p["conf"], meet_link())

    outcome = await watcher.controller.invoke(control)

    assert outcome.ok and outcome.strategy == "already_attached"
    assert outcome.reason == "Video conferencing already active"
    assert watcher.controller.state is ControlState.SUCCESS
    assert doc.clicks == [p["save"]]
    assert audit.of("ATTACH") == [{"mode": "already_active"}]
    assert audit.of("INVOKE_OK") == [{"strategy": "already_attached"}]
    assert doc.style_rule_log == [("remove", S.SUBMENU_HIDE_RULE_ID)]


@pytest.mark.asyncio
async def test_scenario_b_direct_attach() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    p = parts(dialog)
    p["video"].on_click = lambda _n: doc.after(20, lambda: doc.append(p["conf"], meet_link()))

    outcome = await watcher.controller.invoke(control)

    assert outcome.ok and outcome.strategy == "direct_attach"
    assert outcome.reason == "Meet added"
    assert doc.clicks == [p["video"], p["save"]]
    assert control.own_text == LABEL_DONE
    assert not control.disabled
    assert ("add", S.SUBMENU_HIDE_RULE_ID) not in doc.style_rule_log
    assert audit.of("ATTACH") == [{"mode": "direct"}]
    assert audit.of("COMMIT") == [{"ok": True}]


@pytest.mark.asyncio
async def test_scenario_c_submenu_attach() -> None:
    doc, dialog, control, watcher, audit = await _ready(video_label=GENERIC)
    p = parts(dialog)
    # option appears after the probe window would already have been checked once;
    # the attachment only lands once the option is clicked, so the probe must fail
    option, seen_rules = _submenu(doc, dialog)

    outcome = await watcher.controller.invoke(control)

    assert outcome.ok and outcome.strategy == "submenu_attach"
    assert doc.clicks == [p["video"], option, p["save"]]
    assert seen_rules == [{S.SUBMENU_HIDE_RULE_ID: S.SUBMENU_HIDE_CSS}]
    assert doc.style_rules == {}
    assert audit.of("ATTACH") == [{"mode": "submenu"}]


@pytest.mark.asyncio
async def test_scenario_d_generic_control_attaches_directly() -> None:
    doc, dialog, control, watcher, audit = await _ready(video_label=GENERIC)
    p = parts(dialog)
    # lands well inside probe_timeout_ms; the most timing-sensitive case
    p["video"].on_click = lambda _n: doc.append(p["conf"], meet_link())

    outcome = await watcher.controller.invoke(control)

    assert outcome.ok and outcome.strategy == "submenu_attach"
    assert doc.clicks == [p["video"], p["save"]]
    assert audit.of("ATTACH") == [{"mode": "submenu_probe_direct"}]
    assert doc.style_rules == {}


@pytest.mark.asyncio
async def test_scenario_e_no_attach_control_errors_then_resets() -> None:
    doc, dialog, control, watcher, audit = await _ready(video_label=None)
    p = parts(dialog)

    outcome = await watcher.controller.invoke(control)

    assert not outcome.ok
    assert outcome.reason == "Could not find video conferencing button"
    assert watcher.controller.state is ControlState.ERROR
    assert control.own_text == LABEL_ERROR
    assert control.title == "Could not find video conferencing button"
    assert not control.disabled
    assert p["save"] not in doc.clicks
    assert audit.of("INVOKE_FAIL")[0]["kind"] == "classification_failed"

    await asyncio.sleep(FAST.error_reset_ms / 1000.0 + 0.05)
    assert watcher.controller.state is ControlState.IDLE
    assert control.own_text == "Make it a Google Meet"
    assert control.title == ""


@pytest.mark.asyncio
async def test_second_click_while_working_is_ignored() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    p = parts(dialog)
    p["video"].on_click = lambda _n: doc.after(40, lambda: doc.append(p["conf"], meet_link()))

    first = asyncio.ensure_future(watcher.controller.invoke(control))
    await asyncio.sleep(0.01)
    assert watcher.controller.state is ControlState.WORKING
    assert control.disabled

    assert await watcher.controller.invoke(control) is None
    await doc.click(control)  # disabled: host click does not reach the controller

    assert (await first).ok
    assert doc.clicks.count(p["video"]) == 1
    assert doc.clicks.count(p["save"]) == 1
    assert len(audit.of("INVOKE_SKIP")) == 1


@pytest.mark.asyncio
async def test_attach_timeout_reports_and_allows_retry() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    p = parts(dialog)

    outcome = await watcher.controller.invoke(control)
    assert not outcome.ok
    assert outcome.error.kind == "attach_timeout"
    assert p["save"] not in doc.clicks

    # a later invocation on the same dialog still works
    p["video"].on_click = lambda _n: doc.append(p["conf"], meet_link())
    assert (await watcher.controller.invoke(control)).ok
    assert watcher.controller.state is ControlState.SUCCESS


@pytest.mark.asyncio
async def test_submenu_failure_still_removes_hide_rule() -> None:
    doc, dialog, control, watcher, audit = await _ready(video_label=GENERIC)

    outcome = await watcher.controller.invoke(control)

    assert outcome.error.kind == "element_not_found"
    assert outcome.reason == "Could not find Google Meet option"
    assert doc.style_rules == {}
    assert doc.style_rule_log[0] == ("add", S.SUBMENU_HIDE_RULE_ID)


@pytest.mark.asyncio
async def test_stale_dialog_at_commit() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    detached = event_dialog()
    with pytest.raises(StaleDialog):
        await watcher.controller.commit(detached)


@pytest.mark.asyncio
async def test_missing_save_at_commit_is_distinct_error() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    p = parts(dialog)
    p["video"].on_click = lambda _n: (doc.append(p["conf"], meet_link()), doc.detach(p["save"]))

    outcome = await watcher.controller.invoke(control)

    assert outcome.error.kind == "element_not_found"
    assert outcome.error.role == "commit control"
    assert outcome.reason == "Could not find Save button"


@pytest.mark.asyncio
async def test_control_outside_dialog_is_dialog_not_found() -> None:
    doc, dialog, control, watcher, audit = await _ready()
    stray = el("button", id="stray")
    doc.append(doc.body, stray)

    outcome = await watcher.controller.invoke(stray)
    assert outcome.error.kind == "dialog_not_found"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_error_state() -> None:
    doc, dialog, control, watcher, audit = await _ready()

    async def explode(_dialog):
        raise KeyError("host changed")

    watcher.registry.classify = explode
    outcome = await watcher.controller.invoke(control)
    assert not outcome.ok
    assert watcher.controller.state is ControlState.ERROR
    assert outcome.error.kind == "error"
