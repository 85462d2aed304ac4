# meetadd/tk_panel.py
import tkinter as tk
from tkinter import messagebox
from typing import Dict, Optional, Tuple
from concurrent.futures import Future

from .utils import _dbg

COLOR_SUCCESS = "#137333"
COLOR_WARNING = "#e37400"
COLOR_ERROR = "#d93025"
COLOR_IDLE = "#5f6368"

NOT_AVAILABLE = "Not available on this page"

def _post(loop, coro) -> Future:
    import asyncio
    # schedule coroutine on the Playwright loop (running in background thread)
    return asyncio.run_coroutine_threadsafe(coro, loop)

def status_for(response: Optional[Dict]) -> Tuple[str, str]:
    """Map a force_check response to (status text, colour)."""
    if not response:
        return NOT_AVAILABLE, COLOR_ERROR
    reason = response.get("reason") or "Check completed"
    if response.get("buttonAdded"):
        return reason, COLOR_SUCCESS
    return reason, COLOR_WARNING

def start_tk_panel(worker, cfg: Dict, audit):
    """
    Tk must be created on the MAIN THREAD (macOS/Cocoa rule).
    This function blocks inside root.mainloop(), while Playwright runs in a bg loop.
    """
    _dbg("[TK] starting start_tk_panel()")

    root = tk.Tk()
    root.title("Google Meet Auto-Add")
    root.geometry("520x130")

    url_var = tk.StringVar(value=cfg.get("calendar_url", ""))
    status = tk.StringVar(value="Ready.")

    frm = tk.Frame(root); frm.pack(fill="both", expand=True, padx=10, pady=10)
    status_lbl = tk.Label(frm, textvariable=status, anchor="w", fg=COLOR_IDLE)

    def set_status(text: str, color: str = COLOR_IDLE):
        status.set(text)
        status_lbl.configure(fg=color)

    def do_open_calendar():
        _dbg("[TK] Open Calendar clicked")
        try:
            _post(worker.loop, worker.page.goto(url_var.get(), wait_until="domcontentloaded")).result(timeout=30)
            set_status("Calendar opened.")
        except Exception as e:
            set_status(f"Open failed: {e}", COLOR_ERROR)
            messagebox.showerror("Error", str(e))

    def do_force_check():
        _dbg("[TK] Force Check clicked")
        set_status("Checking...")
        root.update_idletasks()
        try:
            resp = worker.force_check()
        except Exception as e:
            audit.log("FORCE_CHECK_FAIL", error=repr(e), via="tk")
            set_status(f"Error: {e}", COLOR_ERROR)
            return
        text, color = status_for(resp)
        set_status(text, color)

    # Row 0: URL + Open
    tk.Label(frm, text="Calendar URL:").grid(row=0, column=0, sticky="e")
    tk.Entry(frm, textvariable=url_var, width=36).grid(row=0, column=1, sticky="we", padx=6)
    tk.Button(frm, text="Open Calendar", width=14, command=do_open_calendar).grid(row=0, column=2, padx=6, pady=4)

    # Row 1: Force check + status
    tk.Button(frm, text="Force Check", width=14, command=do_force_check).grid(row=1, column=0, padx=6, pady=8)
    status_lbl.grid(row=1, column=1, columnspan=2, sticky="we")

    _dbg("[TK] Tk window created; entering mainloop()")
    root.mainloop()
    _dbg("[TK] mainloop() exited")
