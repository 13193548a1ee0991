"""
Logging utilities for smbdeploy
"""
import threading
from datetime import datetime

_verbose = False
_print_lock = threading.Lock()

ERROR_PREFIX = "smbdeploy => "


def set_verbose(verbose: bool):
    """Set the verbose flag"""
    global _verbose
    _verbose = verbose


def log(msg: str):
    """Log a message with timestamp"""
    ts = datetime.now().strftime("%H:%M:%S")
    with _print_lock:
        print(f"[{ts}] {msg}", flush=True)


def vlog(msg: str):
    """Log a verbose message (only if verbose mode is enabled)"""
    if _verbose:
        log(msg)


def warn(msg: str):
    """Log a warning message"""
    log(f"⚠  {msg}")


class ConsoleReporter:
    """
    Renders run progress as timestamped log lines.

    Status updates repeat quickly during bulk phases, so only the first line
    of each phase is printed outside verbose mode.
    """

    def __init__(self):
        self._last_phase = ""

    def status(self, text: str):
        phase = text.split("...", 1)[0]
        if phase != self._last_phase:
            self._last_phase = phase
            log(text)
        else:
            vlog(text)

    def retry(self, attempt: int, attempts: int, subject: str):
        warn(f"attempt {attempt + 1}/{attempts}: {subject}")

    def error(self, message: str):
        warn(message)
