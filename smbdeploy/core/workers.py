"""
Bounded worker pool for the parallel phases of a deployment
"""
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional

from .smb_session import SmbSession


class WorkerPool:
    """
    Runs one task per item on at most config.workers threads.

    Tasks are called as task(session, item). By default every task shares
    the main session; with dedicated_sessions=True each worker thread opens
    its own session on first use and keeps it for the rest of the phase.
    """

    def __init__(self, config, ctx, session=None,
                 session_factory: Callable = SmbSession.connect):
        self.config = config
        self.ctx = ctx
        self.session = session
        self.session_factory = session_factory

    @property
    def size(self) -> int:
        return self.config.workers

    def run(self, items: Iterable, task: Callable, label: str = "",
            dedicated_sessions: bool = False) -> bool:
        """
        Run *task* over *items* and wait for all of them.
        Returns False if the run was cancelled before or during the phase.
        """
        items = list(items)
        total = len(items)
        if self.ctx.cancelled():
            return False
        if not items:
            return True

        done = 0
        done_lock = threading.Lock()
        local = threading.local()
        opened: list = []
        opened_lock = threading.Lock()

        def session_for_thread() -> Optional[SmbSession]:
            if not dedicated_sessions:
                return self.session
            if not hasattr(local, "session"):
                local.session = self.session_factory(self.config, self.ctx)
                if local.session is not None:
                    with opened_lock:
                        opened.append(local.session)
            return local.session

        def run_one(item):
            nonlocal done
            if self.ctx.cancelled():
                return
            session = session_for_thread()
            if session is None:
                return
            try:
                task(session, item)
            except Exception as exc:
                self.ctx.fail(f"{label or 'Task'} failed for `{item}`: {exc}")
                return
            with done_lock:
                done += 1
                count = done
            if label:
                self.ctx.status(f"{label}... {count:,}/{total:,}")

        try:
            with ThreadPoolExecutor(max_workers=max(1, min(self.size, total))) as executor:
                futures = [executor.submit(run_one, item) for item in items]
                for future in as_completed(futures):
                    future.result()
        finally:
            for session in opened:
                session.disconnect()

        return not self.ctx.cancelled()
