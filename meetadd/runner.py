import sys, json, hashlib, threading, asyncio, os, time
from concurrent.futures import Future
from pathlib import Path
from typing import Dict, Any, Optional

from .audit import open_audit
from .config import load, timing_from_cfg
from .errors import ConfigError
from .launcher import open_context
from .page_document import PageDocument
from .utils import now_ts_run, _dbg
from .watcher import DialogWatcher

SCRIPT_NAME = "meetadd"

def config_digest(cfg: Dict[str, Any]) -> str:
    """sha256 over the public config keys; run-scoped `__x__` keys are ignored."""
    public = {k: v for k, v in cfg.items() if not k.startswith("__")}
    blob = json.dumps(public, sort_keys=True, default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()

def write_manifest(cfg: Dict[str, Any], run_ts: str) -> Path:
    out = Path(cfg.get("artifacts_root", "artifacts")) / f"run.{run_ts}.json"
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps({
        "script": SCRIPT_NAME,
        "run_ts": run_ts,
        "calendar_url": cfg.get("calendar_url", ""),
        "browser_channel": cfg.get("browser_channel", ""),
        "button_id": cfg.get("button_id", ""),
        "config_digest": config_digest(cfg),
    }, indent=2), encoding="utf-8")
    return out

def _begin_run(cfg: Dict[str, Any]):
    run_ts = now_ts_run()
    cfg["__run_ts__"] = run_ts
    audit = open_audit(run_ts, SCRIPT_NAME, cfg.get("audit_dir", "audit"))
    manifest = write_manifest(cfg, run_ts)
    audit.log("MANIFEST", path=str(manifest))
    return audit

class CalendarWorker:
    """
    Owns the browser on a private thread and asyncio loop. Opens the calendar
    and, unless it only captures a login, hands the page to a DialogWatcher.
    Other threads (Tk, the console) reach it through call().
    """

    def __init__(self, cfg: Dict[str, Any], audit=None, login_only: bool = False):
        self.cfg = cfg
        self.audit = audit
        self.login_only = login_only
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.browser = self.context = self.page = None
        self.watcher: Optional[DialogWatcher] = None
        self._thread: Optional[threading.Thread] = None
        self._booted: Future = Future()
        self._shutdown: Optional[asyncio.Event] = None

    def start(self, timeout: float = 60) -> None:
        self._thread = threading.Thread(target=lambda: asyncio.run(self._serve()), name="MEETADD-PW", daemon=True)
        self._thread.start()
        self._booted.result(timeout=timeout)

    async def _open(self) -> None:
        state = None if self.login_only else self.cfg.get("storage_state_path")
        self.browser, self.context = await open_context(
            self.cfg.get("browser_channel", "msedge"),
            bool(self.cfg.get("headless", False)),
            storage_state=state,
        )
        self.page = await self.context.new_page()
        if not self.login_only:
            timing = timing_from_cfg(self.cfg)
            doc = PageDocument(self.page, click_step_ms=timing.click_step_ms)
            await doc.install()
            self.watcher = DialogWatcher(doc, self.cfg, self.audit, timing)
        await self.page.goto(self.cfg.get("calendar_url", ""), wait_until="domcontentloaded")
        if self.watcher is not None:
            await self.watcher.start()

    async def _close(self) -> None:
        if self.watcher is not None:
            try:
                await self.watcher.stop()
            except Exception as e:
                _dbg(f"watcher stop failed: {e!r}")
        for closer in (self.context, self.browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                _dbg(f"close failed: {e!r}")
        pw = getattr(self.browser, "_pw", None)
        if pw is not None:
            try:
                await pw.stop()
            except Exception as e:
                _dbg(f"playwright stop failed: {e!r}")

    async def _serve(self) -> None:
        self.loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        try:
            await self._open()
        except Exception as e:
            self._booted.set_exception(RuntimeError(f"browser start failed: {e!r}"))
            await self._close()
            return
        self._booted.set_result(True)
        try:
            await self._shutdown.wait()
        finally:
            await self._close()

    def call(self, coro, timeout: float = 30):
        """Run `coro` on the worker loop and block for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout=timeout)

    def force_check(self) -> Optional[Dict[str, Any]]:
        if self.watcher is None:
            return None
        return self.call(self.watcher.handle_message({"action": "force_check"}))

    def stop(self) -> None:
        if self._thread is None or self.loop is None:
            return
        self.loop.call_soon_threadsafe(self._shutdown.set)
        self._thread.join(timeout=5)

def capture_login(cfg: Dict[str, Any]) -> int:
    """Open a clean browser, wait for the operator to log in, save storage state."""
    audit = _begin_run(cfg)
    target = Path(cfg.get("storage_state_path", "auth/auth_state.json"))
    audit.log("LOGIN_START", channel=cfg.get("browser_channel"), url=cfg.get("calendar_url"))
    worker = CalendarWorker(cfg, audit, login_only=True)
    worker.start()
    try:
        print("[READY] Log into Google Calendar in the opened window, then press Enter here.", flush=True)
        try:
            input()
        except (KeyboardInterrupt, EOFError):
            pass

        async def dump():
            target.parent.mkdir(parents=True, exist_ok=True)
            await worker.context.storage_state(path=str(target))

        worker.call(dump())
        try:
            os.chmod(target, 0o600)
        except OSError as e:
            _dbg(f"chmod {target}: {e}")
        print(f"[INFO] Login state saved to {target}", flush=True)
        audit.log("LOGIN_SAVED", path=str(target))
        return 0
    except Exception as e:
        print(f"[FATAL] Could not save login state: {e}", file=sys.stderr, flush=True)
        audit.log("LOGIN_SAVE_FAIL", error=repr(e))
        return 1
    finally:
        worker.stop()

def watch(cfg: Dict[str, Any], show_controls: bool) -> int:
    """Keep the calendar open and the watcher running until Ctrl+C or the panel closes."""
    audit = _begin_run(cfg)
    state = Path(cfg.get("storage_state_path", "auth/auth_state.json"))
    if not state.exists():
        print(f"[FATAL] No login state at {state}; run `meetadd --init` first.", file=sys.stderr, flush=True)
        audit.log("LOGIN_MISSING", path=str(state))
        return 2

    worker = CalendarWorker(cfg, audit)
    worker.start()
    try:
        if show_controls:
            from .tk_panel import start_tk_panel
            start_tk_panel(worker, cfg, audit)
        else:
            print("[INFO] Watching Google Calendar; Ctrl+C to quit.", flush=True)
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        _dbg("Ctrl+C received")
    finally:
        worker.stop()
    return 0

def main_entry(cfg_path: Optional[str], init: bool, show_controls: bool, headless: bool = False) -> int:
    try:
        cfg = load(cfg_path)
        if headless:
            cfg["headless"] = True
        timing_from_cfg(cfg)
    except ConfigError as e:
        print(f"[FATAL] {e.message}", file=sys.stderr, flush=True)
        return 2
    return capture_login(cfg) if init else watch(cfg, show_controls)
