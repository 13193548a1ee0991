"""
Delete operations on the remote share
"""
import threading
from typing import Iterable

from ..errors import ProtocolError, RemotePathNotFound
from ..utils.retry import attempt


class RemoteIndex:
    """
    Thread-safe view of the remote index during deletion.
    Entries are removed as they are deleted so no later step retries them.
    """

    def __init__(self, entries: Iterable = ()):
        self._lock = threading.Lock()
        self._entries = {entry.relative_path: entry for entry in entries}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, relative_path: str) -> bool:
        with self._lock:
            return relative_path in self._entries

    def under(self, folder) -> tuple:
        """(files, folders) currently indexed below *folder*."""
        with self._lock:
            nested = [e for e in self._entries.values() if e.is_under(folder)]
        return [e for e in nested if e.is_file], [e for e in nested if e.is_folder]

    def discard(self, entry):
        with self._lock:
            self._entries.pop(entry.relative_path, None)


def _delete(session, path: str, is_folder: bool, config, ctx) -> bool:
    if ctx.cancelled():
        return False
    if session.ensure_file_store() is None:
        return False
    exists = session.folder_exists if is_folder else session.file_exists

    def remove():
        try:
            session.delete(path, is_folder)
        except RemotePathNotFound:
            return True
        except ProtocolError:
            # already gone is the state we wanted
            if not exists(path):
                return True
            raise
        return True

    kind = "folder" if is_folder else "file"
    return attempt(ctx, config, remove, f"Failed to delete {kind}", path)


def delete_file(session, path: str, config, ctx) -> bool:
    return _delete(session, path, False, config, ctx)


def delete_folder(session, path: str, config, ctx) -> bool:
    """Delete one empty folder."""
    return _delete(session, path, True, config, ctx)


def delete_folder_recursive(session, folder, remote_index: RemoteIndex, config, ctx) -> bool:
    """
    Indexed files under *folder* first, then its indexed subfolders
    deepest first, then *folder* itself.
    """
    files, folders = remote_index.under(folder)

    for entry in files:
        if not delete_file(session, entry.full_path, config, ctx):
            return False
        remote_index.discard(entry)

    for entry in sorted(folders, key=lambda e: (-e.level, e.relative_path)):
        if not delete_folder(session, entry.full_path, config, ctx):
            return False
        remote_index.discard(entry)

    if not delete_folder(session, folder.full_path, config, ctx):
        return False
    remote_index.discard(folder)
    return True


def delete_orphans(plan, remote_index: RemoteIndex, pool, config, ctx) -> int:
    """
    Delete the planned orphan files (in parallel on *pool*), then the
    planned orphan folders deepest first. Returns the number of planned
    entries deleted.
    """
    deleted = 0
    lock = threading.Lock()

    def delete_one(session, entry):
        nonlocal deleted
        if delete_file(session, entry.full_path, config, ctx):
            remote_index.discard(entry)
            with lock:
                deleted += 1

    if not pool.run(plan.delete_files, delete_one, label="Deleting orphaned files"):
        return deleted

    for index, folder in enumerate(plan.delete_folders, start=1):
        if ctx.cancelled():
            break
        ctx.status(f"Deleting orphaned folders... {index:,}/{len(plan.delete_folders):,}")
        if not delete_folder_recursive(pool.session, folder, remote_index, config, ctx):
            break
        deleted += 1

    return deleted
