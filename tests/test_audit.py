from __future__ import annotations

import re
from pathlib import Path

from meetadd.audit import Audit, open_audit
from meetadd.session import SessionState
from tests.fakes import RecordingAudit


def test_open_audit_writes_boot_line(tmp_path: Path) -> None:
    aud = open_audit("250101-120000", "meetadd", str(tmp_path / "audit"))
    files = list((tmp_path / "audit").glob("meetadd-*.txt"))
    assert files == [aud.path]
    line = files[0].read_text(encoding="utf-8").strip()
    assert re.match(r"^\d\d:\d\d:\d\d\.\d{3} \[BOOT\] run_ts=250101-120000 script=meetadd$", line)


def test_audit_appends_lines(tmp_path: Path) -> None:
    aud = Audit(tmp_path / "a.txt")
    aud.log("inject", result="added")
    aud.log("COMMIT", ok=True)
    lines = (tmp_path / "a.txt").read_text(encoding="utf-8").splitlines()
    assert lines[0].endswith("[INJECT] result=added")
    assert lines[1].endswith("[COMMIT] ok=True")


def test_session_reset_is_audited() -> None:
    audit = RecordingAudit()
    session = SessionState(audit=audit)
    session.mark_injected()
    session.reset("dialog_closed")
    assert not session.injected
    assert session.last_reset == "dialog_closed"
    assert audit.of("SESSION_RESET") == [{"reason": "dialog_closed", "was_injected": True}]
