import os, time
from pathlib import Path

def now_ts_run() -> str:
    """Run id, YYMMDD-HHMMSS: keys run.<ts>.json, the BOOT line and cfg["__run_ts__"]."""
    return time.strftime("%y%m%d-%H%M%S", time.localtime())

def now_ts_minute() -> str:
    """YYMMDD_HHMM suffix for the meetadd-<ts>.txt audit file."""
    return time.strftime("%y%m%d_%H%M", time.localtime())

def norm_text(s: str) -> str:
    """Collapse whitespace and lowercase, the way labels are compared."""
    return " ".join((s or "").split()).lower()

def _dbg(msg: str):
    if os.environ.get("MEETADD_VERBOSE", "1") != "0":
        print(f"[DBG] {msg}", flush=True)

def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)

def append_atomic(path: Path, chunk: str) -> None:
    """Add `chunk` to the audit file via read, rewrite and rename; a crash leaves the old file whole.

    Cost grows with the file, so callers keep repeated per-batch events out of it.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        _atomic_write_text(path, chunk)
    else:
        existing = path.read_text(encoding="utf-8")
        _atomic_write_text(path, existing + chunk)
