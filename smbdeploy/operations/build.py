"""
External build step that produces the local publish folder
"""
import subprocess
from typing import Callable

from ..errors import BuildError
from ..utils.logging import vlog


def run_build(project, ctx, runner: Callable = subprocess.run) -> bool:
    """
    Run project.build_command in project.working_path.

    An empty command skips the build. A non-zero exit status, a command that
    cannot be started, or a missing publish folder afterwards is fatal.
    """
    argv = project.build_argv()
    publish = project.resolved_publish_path()
    try:
        if argv:
            ctx.status(f"Building project ({' '.join(argv)})...")
            try:
                result = runner(argv, cwd=str(project.resolved_working_path()),
                                stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                                text=True, check=False)
            except OSError as exc:
                raise BuildError(f"Could not run the build command `{argv[0]}`: {exc}") from exc
            for line in (result.stdout or "").splitlines():
                vlog(f"  [build] {line}")
            if result.returncode != 0:
                raise BuildError(f"Could not build the project; exit code: {result.returncode}")
        if not publish.is_dir():
            raise BuildError(f"Publish folder `{publish}` does not exist")
    except BuildError as exc:
        ctx.fail(exc)
        return False
    return True
