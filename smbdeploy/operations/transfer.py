"""
Transfer operations: remote folder creation and whole-file uploads
"""
import io
import os
from pathlib import Path
from typing import BinaryIO, Optional

from ..core.file_entry import filetime_from_ns
from ..errors import LocalIOError, ProtocolError, RemotePathExists
from ..utils.paths import join_smb, parent_of, split_segments, to_local_separators, to_smb_separators
from ..utils.retry import attempt


def ensure_path_exists(session, remote_folder: str, config, ctx) -> bool:
    """
    Create *remote_folder* one segment at a time. A segment that already
    exists, or that another worker creates first, counts as success.
    """
    segments = split_segments(remote_folder)
    if not segments:
        return True
    if session.ensure_file_store() is None:
        return False

    def create():
        path = ""
        for segment in segments:
            path = f"{path}\\{segment}" if path else segment
            if session.folder_exists(path):
                continue
            try:
                session.create_folder(path)
            except RemotePathExists:
                pass
        return True

    return attempt(ctx, config, create, "Failed to create folder", to_smb_separators(remote_folder))


def _write_stream(session, remote_path: str, reader: BinaryIO, ctx) -> bool:
    """Write *reader* to *remote_path* in max_write_size chunks."""
    overwrite = session.file_exists(remote_path)
    handle = session.open_for_write(remote_path, overwrite)
    completed = False
    try:
        chunk_size = session.max_write_size
        offset = 0
        while True:
            if ctx.cancelled():
                return False
            try:
                data = reader.read(chunk_size)
            except OSError as exc:
                raise LocalIOError(f"Cannot read local source of `{remote_path}`: {exc}") from exc
            if not data:
                break
            session.write(handle, offset, data)
            offset += len(data)
        completed = True
    finally:
        try:
            session.close(handle)
        except ProtocolError:
            if completed:
                raise
    return True


def copy_file(session, local_path: str, remote_path: str, last_write_time: int, config, ctx) -> bool:
    """
    Upload one local file, then stamp the remote copy with *last_write_time*.

    Any failure restarts the whole file on the next attempt; nothing resumes
    from a partial offset.
    """
    if ctx.cancelled():
        return False
    try:
        reader = open(local_path, "rb")
    except OSError as exc:
        ctx.fail(LocalIOError(f"Cannot read local file `{local_path}`: {exc}"))
        return False

    with reader:
        if not ensure_path_exists(session, parent_of(remote_path), config, ctx):
            return False

        def upload():
            reader.seek(0)
            if not _write_stream(session, remote_path, reader, ctx):
                return False
            session.set_last_write_time(remote_path, last_write_time)
            return True

        return attempt(ctx, config, upload, "Failed to write file", remote_path)


def upload_bytes(session, remote_path: str, data: bytes, config, ctx,
                 last_write_time: Optional[int] = None) -> bool:
    """Upload in-memory content with the same write loop and retry as copy_file."""
    if ctx.cancelled():
        return False
    if not ensure_path_exists(session, parent_of(remote_path), config, ctx):
        return False

    def upload():
        if not _write_stream(session, remote_path, io.BytesIO(data), ctx):
            return False
        if last_write_time is not None:
            session.set_last_write_time(remote_path, last_write_time)
        return True

    return attempt(ctx, config, upload, "Failed to write file", remote_path)


def remote_path_for(config, relative_path: str) -> str:
    return join_smb(config.paths.remote_root_path, relative_path)


def copy_entry(session, entry, config, ctx) -> bool:
    """Copy one indexed local file to the same relative path under the remote root."""
    return copy_file(session, entry.full_path, remote_path_for(config, entry.relative_path),
                     entry.last_write_time, config, ctx)


def copy_file_copies(session, config, ctx, copies: Optional[list] = None,
                      publish_path: Optional[Path] = None) -> int:
    """
    Process a list of FileCopySettings (paths.file_copies by default): each
    source (relative to the publish folder) is uploaded to its destination
    (relative to the remote root). Returns the number of files copied.
    """
    if copies is None:
        copies = config.paths.file_copies
    publish = Path(publish_path) if publish_path else config.project.resolved_publish_path()
    copied = 0
    for item in copies:
        if ctx.cancelled():
            break
        source = publish / to_local_separators(item.source)
        try:
            st = os.stat(source)
        except OSError as exc:
            ctx.fail(LocalIOError(f"Cannot read local file `{source}`: {exc}"))
            break
        ctx.status(f"Copying {item.source} to {item.destination}...")
        if not copy_file(session, str(source), remote_path_for(config, item.destination),
                         filetime_from_ns(st.st_mtime_ns), config, ctx):
            break
        copied += 1
    return copied
