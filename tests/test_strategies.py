from __future__ import annotations

import pytest

from meetadd import meet_selectors as S
from meetadd.errors import AttachTimeout, ClassificationFailed, ElementNotFound, WrongDialog
from meetadd.locator import ElementLocator
from meetadd.strategies import StrategyKind, StrategyRegistry, is_conference_attached
from tests.fakes import FAST, FakeDocument, RecordingAudit, el, event_dialog, meet_link, parts

GENERIC = "Add video conferencing"


def _registry(doc: FakeDocument, audit=None, **kw) -> StrategyRegistry:
    return StrategyRegistry(doc, ElementLocator(doc), FAST, audit or RecordingAudit(), **kw)


def _mount(doc: FakeDocument, **kw):
    dialog = event_dialog(**kw)
    doc.append(doc.body, dialog)
    return dialog


@pytest.mark.asyncio
async def test_placeholder_link_is_not_an_attachment() -> None:
    doc = FakeDocument()
    dialog = _mount(doc)
    parts(dialog)["conf"].add(meet_link("https://meet.google.com/abc-defg-hij"))
    assert not await is_conference_attached(doc, dialog)
    parts(dialog)["conf"].add(meet_link())
    assert await is_conference_attached(doc, dialog)


@pytest.mark.asyncio
async def test_conference_section_counts_as_attached() -> None:
    doc = FakeDocument()
    dialog = _mount(doc)
    parts(dialog)["conf"].add(el("div", text="Google Meet joining info", data_field="conferenceData"))
    assert await is_conference_attached(doc, dialog)


@pytest.mark.asyncio
async def test_already_attached_wins_over_direct() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, attached=True)
    audit = RecordingAudit()
    strategy = await _registry(doc, audit).classify(dialog)
    assert strategy.kind is StrategyKind.ALREADY_ATTACHED
    assert audit.of("CLASSIFY") == [{"strategy": "already_attached", "priority": 10}]


@pytest.mark.asyncio
async def test_direct_when_label_names_provider() -> None:
    doc = FakeDocument()
    dialog = _mount(doc)
    assert (await _registry(doc).classify(dialog)).kind is StrategyKind.DIRECT_ATTACH


@pytest.mark.asyncio
async def test_submenu_for_generic_label() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, video_label=GENERIC)
    assert (await _registry(doc).classify(dialog)).kind is StrategyKind.SUBMENU_ATTACH


@pytest.mark.asyncio
async def test_no_attach_control_fails_classification() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, video_label=None)
    audit = RecordingAudit()
    with pytest.raises(ClassificationFailed):
        await _registry(doc, audit).classify(dialog)
    assert audit.of("CLASSIFY") == [{"strategy": "none"}]


@pytest.mark.asyncio
async def test_priorities_can_be_reordered() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, attached=True)
    reg = _registry(doc, priorities={StrategyKind.DIRECT_ATTACH: 5})
    assert [s.name for s in reg.strategies] == ["direct_attach", "already_attached", "submenu_attach"]
    assert (await reg.classify(dialog)).kind is StrategyKind.DIRECT_ATTACH


@pytest.mark.asyncio
async def test_detect_error_treated_as_no_match() -> None:
    doc = FakeDocument()
    dialog = _mount(doc)
    reg = _registry(doc)

    async def broken(_dialog):
        raise RuntimeError("host re-rendered")

    reg._detect_attached = broken
    reg.strategies = [reg._build(k, p) for k, p in ((StrategyKind.ALREADY_ATTACHED, 10),
                                                     (StrategyKind.DIRECT_ATTACH, 20))]
    assert (await reg.classify(dialog)).kind is StrategyKind.DIRECT_ATTACH


@pytest.mark.asyncio
async def test_direct_attach_timeout_names_control_state() -> None:
    doc = FakeDocument()
    dialog = _mount(doc)
    video = parts(dialog)["video"]
    video.attrs["aria-pressed"] = "false"
    reg = _registry(doc)
    strategy = await reg.classify(dialog)

    with pytest.raises(AttachTimeout) as exc:
        await strategy.execute(dialog)
    assert "add google meet video conferencing" in exc.value.control_state
    assert "pressed=false" in exc.value.control_state
    assert exc.value.timeout_ms == FAST.attach_timeout_ms


@pytest.mark.asyncio
async def test_submenu_missing_option_is_element_not_found_and_cleans_up() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, video_label=GENERIC)
    reg = _registry(doc)
    strategy = await reg.classify(dialog)

    with pytest.raises(ElementNotFound) as exc:
        await strategy.execute(dialog)
    assert exc.value.role == "meet_option"
    assert doc.style_rule_log == [("add", S.SUBMENU_HIDE_RULE_ID), ("remove", S.SUBMENU_HIDE_RULE_ID)]
    assert doc.style_rules == {}


@pytest.mark.asyncio
async def test_submenu_rooms_dialog_is_wrong_dialog() -> None:
    doc = FakeDocument()
    dialog = _mount(doc, video_label=GENERIC)
    video = parts(dialog)["video"]
    video.on_click = lambda _n: doc.append(doc.body, el("div", role="dialog", aria_label="Find a room"))
    strategy = await _registry(doc).classify(dialog)

    with pytest.raises(WrongDialog):
        await strategy.execute(dialog)
    assert doc.style_rules == {}


@pytest.mark.asyncio
async def test_cleanup_swallows_errors() -> None:
    class NoStyles(FakeDocument):
        async def remove_style_rule(self, rule_id):
            raise RuntimeError("page gone")

    doc = NoStyles()
    await _registry(doc).cleanup()
