"""
Deployment orchestrator - sequences connect, index, plan, transfer and the
maintenance window for one run
"""
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..operations.build import run_build
from ..operations.delete import RemoteIndex, delete_orphans
from ..operations.offline import bring_online, take_offline
from ..operations.planner import DeployPlan, build_plan
from ..operations.scanner import index_local, index_remote
from ..operations.transfer import copy_entry, copy_file_copies
from ..utils.retry import plural
from .run_context import RunContext
from .smb_session import SmbSession
from .workers import WorkerPool


@dataclass
class DeployResult:
    success: bool = False
    errors: list = field(default_factory=list)
    copied: int = 0
    skipped: int = 0
    deleted: int = 0
    static_file_copies: int = 0
    file_copies: int = 0
    elapsed_seconds: float = 0.0
    plan: Optional[DeployPlan] = None


class Deployer:
    """
    Runs one deployment:

      connect → build → index local ∥ index remote → plan
      → copy online-safe files → copy static files → static file copies
      → take offline
      → copy remaining files (one session per worker) → file copies
      → delete orphans → bring online → disconnect

    Every stage checks the run's cancellation signal. Once it is raised the
    run goes straight to disconnect; nothing already written is rolled back
    and a site taken offline stays offline.
    """

    def __init__(self, config, ctx: Optional[RunContext] = None,
                 session_factory: Callable = SmbSession.connect,
                 build_runner: Callable = subprocess.run,
                 skip_build: bool = False):
        self.config = config
        self.ctx = ctx or RunContext()
        self.session_factory = session_factory
        self.build_runner = build_runner
        self.skip_build = skip_build

    def run(self) -> DeployResult:
        result = DeployResult()
        started = time.monotonic()
        session = None
        try:
            self.ctx.status("Connecting to server...")
            session = self.session_factory(self.config, self.ctx)
            if session is None:
                if not self.ctx.cancelled():
                    self.ctx.fail("Could not connect to the server")
            else:
                self._deploy(session, result)
        except KeyboardInterrupt:
            self.ctx.fail("Deployment interrupted")
        finally:
            if session is not None:
                self.ctx.status("Disconnecting...")
                session.disconnect()
            result.errors = self.ctx.errors
            result.success = not self.ctx.cancelled()
            result.elapsed_seconds = time.monotonic() - started
        return result

    # ── stages ─────────────────────────────────────────────────────────────

    def _deploy(self, session, result: DeployResult):
        config, ctx = self.config, self.ctx

        if not self.skip_build and not run_build(config.project, ctx, runner=self.build_runner):
            return

        pool = WorkerPool(config, ctx, session=session, session_factory=self.session_factory)

        local, remote = self._index(session, pool)
        if ctx.cancelled():
            return

        plan = build_plan(local, remote, config)
        result.plan = plan
        result.skipped = len(plan.skipped)
        ctx.status(f"Planning... {plural(plan.copy_count, 'file', 'files')} to copy, "
                   f"{len(plan.skipped):,} unchanged, "
                   f"{plural(plan.delete_count, 'orphan', 'orphans')} to delete")

        result.copied += self._copy(pool, plan.copy_safe, "Copying online-safe files")
        if ctx.cancelled():
            return
        result.copied += self._copy(pool, plan.copy_static, "Copying static files")
        if ctx.cancelled():
            return

        if config.paths.static_file_copies:
            result.static_file_copies = copy_file_copies(session, config, ctx, config.paths.static_file_copies)
            if ctx.cancelled():
                return

        if not take_offline(session, config, ctx):
            return

        result.copied += self._copy(pool, plan.copy, "Deploying files", dedicated_sessions=True)
        if ctx.cancelled():
            return

        if config.paths.file_copies:
            result.file_copies = copy_file_copies(session, config, ctx)
            if ctx.cancelled():
                return

        if config.delete_orphans and plan.delete_count:
            result.deleted = delete_orphans(plan, RemoteIndex(remote), pool, config, ctx)
            if ctx.cancelled():
                return

        bring_online(session, config, ctx)

    def _index(self, session, pool: WorkerPool) -> tuple:
        """Local and remote indexing run side by side."""
        publish = self.config.project.resolved_publish_path()
        with ThreadPoolExecutor(max_workers=1) as executor:
            local_future = executor.submit(index_local, publish, self.config, self.ctx)
            remote = index_remote(session, self.config, self.ctx, pool=pool)
            local = local_future.result()
        return local, remote

    def _copy(self, pool: WorkerPool, entries: list, label: str,
              dedicated_sessions: bool = False) -> int:
        copied = 0
        lock = threading.Lock()

        def copy_one(session, entry):
            nonlocal copied
            if copy_entry(session, entry, self.config, self.ctx):
                with lock:
                    copied += 1

        pool.run(entries, copy_one, label=label, dedicated_sessions=dedicated_sessions)
        return copied
