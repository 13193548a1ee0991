"""
FileEntry: one file or folder in either the local or the remote tree
"""
import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..utils.paths import is_nested_under, last_segment, level_of, parent_of, to_comparable_separators

_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
_TICKS_PER_MICROSECOND = 10
# 100 ns ticks between 1601-01-01 and 1970-01-01
_UNIX_EPOCH_TICKS = 116444736000000000


class EntryFlag(enum.Flag):
    NONE = 0
    ONLINE_SAFE = enum.auto()  # may be copied before the site goes offline
    STATIC = enum.auto()       # always overwritten, copied in its own phase


def filetime_from_ns(mtime_ns: int) -> int:
    """Unix nanoseconds → FILETIME ticks, truncated to whole microseconds."""
    return (mtime_ns // 1000) * _TICKS_PER_MICROSECOND + _UNIX_EPOCH_TICKS


def filetime_from_datetime(value: datetime) -> int:
    """Datetime (naive values are UTC) → FILETIME ticks at microsecond resolution."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return ((value - _FILETIME_EPOCH) // timedelta(microseconds=1)) * _TICKS_PER_MICROSECOND


def _matches_any(relative_path: str, configured: list) -> bool:
    for raw in configured:
        path = to_comparable_separators(raw)
        if relative_path == path or is_nested_under(relative_path, path):
            return True
    return False


def _matches_direct(relative_path: str, configured: list) -> bool:
    """The path itself, or an entry sitting directly inside it."""
    parent = parent_of(relative_path)
    for raw in configured:
        path = to_comparable_separators(raw)
        if relative_path == path or parent == path:
            return True
    return False


def classify(relative_path: str, is_file: bool, config) -> EntryFlag:
    """Flags for an entry, computed once from configuration."""
    if config is None:
        return EntryFlag.NONE
    paths = config.paths
    flags = EntryFlag.NONE
    if is_file and (
        _matches_any(relative_path, paths.online_copy_folder_paths)
        or relative_path in {to_comparable_separators(p) for p in paths.online_copy_file_paths}
    ):
        flags |= EntryFlag.ONLINE_SAFE
    if (_matches_direct(relative_path, paths.static_paths)
            or _matches_any(relative_path, paths.static_paths_recursive)):
        flags |= EntryFlag.STATIC
    return flags


@dataclass(frozen=True)
class FileEntry:
    full_path: str
    relative_path: str
    last_write_time: int
    size_bytes: int
    is_file: bool
    flags: EntryFlag = EntryFlag.NONE

    @classmethod
    def create(cls, full_path: str, relative_path: str, last_write_time: int,
               size_bytes: int, is_file: bool, config=None) -> "FileEntry":
        relative_path = to_comparable_separators(relative_path)
        return cls(
            full_path=full_path,
            relative_path=relative_path,
            last_write_time=last_write_time,
            size_bytes=size_bytes if is_file else 0,
            is_file=is_file,
            flags=classify(relative_path, is_file, config),
        )

    @property
    def is_folder(self) -> bool:
        return not self.is_file

    @property
    def file_name(self) -> str:
        return last_segment(self.relative_path)

    @property
    def parent_path(self) -> str:
        return parent_of(self.full_path)

    @property
    def relative_parent(self) -> str:
        return parent_of(self.relative_path)

    @property
    def level(self) -> int:
        return level_of(self.relative_path)

    @property
    def online_safe(self) -> bool:
        return bool(self.flags & EntryFlag.ONLINE_SAFE)

    @property
    def static(self) -> bool:
        return bool(self.flags & EntryFlag.STATIC)

    def __str__(self) -> str:
        return self.relative_path or "/"

    def is_under(self, folder: "FileEntry") -> bool:
        return is_nested_under(self.relative_path, folder.relative_path)
