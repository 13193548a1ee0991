"""
Per-run state passed explicitly into every component call:
the cooperative cancellation signal, the error sink and the progress reporter.
"""
import threading
from typing import Optional, Protocol


class Reporter(Protocol):
    def status(self, text: str) -> None: ...

    def retry(self, attempt: int, attempts: int, subject: str) -> None: ...

    def error(self, message: str) -> None: ...


class NullReporter:
    def status(self, text: str) -> None:
        pass

    def retry(self, attempt: int, attempts: int, subject: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class RunContext:
    """
    Shared by every worker thread of a run.

    Errors are append-only; any recorded error also raises the
    cancellation signal, which is polled (never forced) by each operation.
    """

    def __init__(self, reporter: Optional[Reporter] = None):
        self.reporter = reporter or NullReporter()
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._errors: list = []

    # ── cancellation ───────────────────────────────────────────────────────

    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self):
        self._cancel.set()

    def wait(self, seconds: float) -> bool:
        """
        Sleep for a retry back-off. Wakes early if the run is cancelled.
        Returns True if the run is still live afterwards.
        """
        if seconds > 0:
            self._cancel.wait(seconds)
        return not self.cancelled()

    # ── errors ─────────────────────────────────────────────────────────────

    def fail(self, error):
        """Record a fatal error (a message or a DeployError) and cancel the run."""
        message = str(error)
        with self._lock:
            self._errors.append(message)
        self.reporter.error(message)
        self._cancel.set()

    @property
    def errors(self) -> list:
        with self._lock:
            return list(self._errors)

    # ── progress ───────────────────────────────────────────────────────────

    def status(self, text: str):
        self.reporter.status(text)

    def retrying(self, attempt: int, attempts: int, subject: str):
        self.reporter.retry(attempt, attempts, subject)
