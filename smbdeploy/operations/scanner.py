"""
Tree indexing operations (local and remote)
"""
import os
import threading
from pathlib import Path

from ..core.file_entry import FileEntry, filetime_from_ns
from ..errors import IndexingError, LocalIOError, ProtocolError
from ..utils.paths import IgnoreRules, is_hidden_local, join_smb, relative_comparable_path, to_smb_separators


def index_local(root: Path, config, ctx) -> list:
    """
    Depth-first walk of the local publish folder.

    At each level the subfolders come first (each followed by its own
    contents), then the files. Hidden or ignored folders are neither indexed
    nor descended into.
    """
    root = Path(root)
    rules = IgnoreRules.from_config(config)
    entries: list = []

    ctx.status("Indexing local files...")
    try:
        if not root.is_dir():
            raise LocalIOError(f"Local publish folder `{root}` does not exist")
        _walk_local(root, root, rules, config, ctx, entries, {_identity(root)})
    except LocalIOError as exc:
        ctx.fail(exc)
    return entries


def _identity(path) -> tuple:
    # DirEntry.stat() leaves st_ino zero on Windows
    st = os.stat(path)
    return st.st_dev, st.st_ino


def _walk_local(root: Path, folder: Path, rules: IgnoreRules, config, ctx, entries: list, ancestors: set):
    """*ancestors* holds the folders on the current path; a link back to one of them is a loop."""
    if ctx.cancelled():
        return
    try:
        with os.scandir(folder) as it:
            children = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise LocalIOError(f"Cannot list local folder `{folder}`: {exc}") from exc

    folders, files = [], []
    for child in children:
        path = Path(child.path)
        try:
            st = child.stat()
            is_dir = child.is_dir()
            identity = _identity(path) if is_dir else None
        except OSError as exc:
            raise LocalIOError(f"Cannot read local entry `{path}`: {exc}") from exc
        if is_hidden_local(path, st):
            continue
        rel = relative_comparable_path(str(path), str(root))
        if rules.ignores(rel, not is_dir):
            continue
        entry = FileEntry.create(str(path), rel, filetime_from_ns(st.st_mtime_ns), st.st_size,
                                 is_file=not is_dir, config=config)
        if is_dir and identity in ancestors:
            raise LocalIOError(f"Symbolic link loop at local folder `{path}`")
        (folders if is_dir else files).append((entry, path, identity))

    for entry, path, identity in folders:
        entries.append(entry)
        _walk_local(root, path, rules, config, ctx, entries, ancestors | {identity})
    entries.extend(entry for entry, _, _ in files)


def index_remote(session, config, ctx, pool=None) -> list:
    """
    Walk the remote tree under paths.remote_root_path one depth at a time.

    All folders of the same depth are listed in parallel when *pool* is
    given. A missing remote root is a first deployment and yields an empty
    index.
    """
    root = to_smb_separators(config.paths.remote_root_path)
    rules = IgnoreRules.from_config(config)
    entries: list = []
    lock = threading.Lock()

    ctx.status("Indexing remote files...")
    if root:
        try:
            if not session.folder_exists(root):
                return entries
        except ProtocolError as exc:
            ctx.fail(IndexingError(f"Failed to index remote folder `{root}`: {exc}"))
            return entries

    frontier = [root]
    while frontier and not ctx.cancelled():
        next_frontier: list = []

        def list_one(sess, folder: str):
            try:
                items = sess.list_folder(folder)
            except ProtocolError as exc:
                ctx.fail(IndexingError(f"Failed to index remote folder `{folder or '/'}`: {exc}"))
                return
            found, subfolders = [], []
            for item in items:
                if item.hidden:
                    continue
                full = join_smb(folder, item.name)
                rel = relative_comparable_path(full, root)
                if rules.ignores(rel, not item.is_folder):
                    continue
                found.append(FileEntry.create(full, rel, item.last_write_time, item.size,
                                              is_file=not item.is_folder, config=config))
                if item.is_folder:
                    subfolders.append(full)
            with lock:
                entries.extend(found)
                next_frontier.extend(subfolders)

        if pool is not None:
            pool.run(frontier, list_one)
        else:
            for folder in frontier:
                if ctx.cancelled():
                    break
                list_one(session, folder)
        frontier = sorted(next_frontier)

    return entries
