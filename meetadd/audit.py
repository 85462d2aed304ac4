from pathlib import Path
from datetime import datetime
from .utils import now_ts_minute, append_atomic

class Audit:
    """
    One line per meetadd event, e.g.
    `12:00:01.250 [INJECT] result=added`, written with append_atomic.
    """
    def __init__(self, path: Path):
        self.path = path

    def log(self, action: str, **kv) -> None:
        ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]  # HH:mm:ss.SSS
        parts = [f"{ts} [{action.upper()}]"]
        for k, v in kv.items():
            parts.append(f"{k}={v}")
        line = " ".join(parts) + "\n"
        append_atomic(self.path, line)

class NullAudit:
    """Drop-in for callers that run without an audit file."""
    def log(self, action: str, **kv) -> None:
        pass

def open_audit(run_ts: str, script_name: str, audit_dir: str) -> Audit:
    """
    Start the audit file for one meetadd run (`<audit_dir>/meetadd-yyMMdd_HHMM.txt`)
    and stamp it with a BOOT line carrying the run id shared with the manifest.
    """
    p = Path(audit_dir) / f"{script_name}-{now_ts_minute()}.txt"
    p.parent.mkdir(parents=True, exist_ok=True)
    aud = Audit(p)
    aud.log("BOOT", run_ts=run_ts, script=script_name)
    return aud
