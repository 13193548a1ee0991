"""
Path model shared by the local and remote trees.

Relative comparable paths always use "/" and never start or end with a
separator, whichever tree they came from. Remote paths handed to the SMB
session use "\\" and are relative to the share root.
"""
import os
import stat
from pathlib import Path
from typing import Iterable


def trim_path(path: str) -> str:
    """Strip leading and trailing separators of either kind."""
    return path.strip("/\\")


def to_comparable_separators(path: str) -> str:
    return trim_path(path.replace("\\", "/"))


def to_local_separators(path: str) -> str:
    return path.replace("\\", os.sep).replace("/", os.sep)


def to_smb_separators(path: str) -> str:
    return trim_path(path.replace("/", "\\"))


def split_segments(path: str) -> list:
    return [s for s in path.replace("\\", "/").split("/") if s]


def last_segment(path: str) -> str:
    segments = split_segments(path)
    return segments[-1] if segments else ""


def parent_of(path: str) -> str:
    """Everything before the last segment, in the separator style of *path*."""
    trimmed = path.rstrip("/\\")
    cut = max(trimmed.rfind("/"), trimmed.rfind("\\"))
    return trimmed[:cut] if cut > 0 else ""


def relative_comparable_path(full_path: str, root: str) -> str:
    """
    Strip *root* from *full_path* and normalise separators.

    Both arguments may use either separator. A path that is not under *root*
    is returned normalised but otherwise untouched.
    """
    full_segments = split_segments(full_path)
    root_segments = split_segments(root)
    if full_segments[:len(root_segments)] == root_segments:
        full_segments = full_segments[len(root_segments):]
    return "/".join(full_segments)


def join_smb(root: str, relative: str) -> str:
    """Absolute share path for a relative comparable path under *root*."""
    parts = [p for p in (to_smb_separators(root), to_smb_separators(relative)) if p]
    return "\\".join(parts)


def is_nested_under(path: str, folder: str) -> bool:
    """True if *path* is strictly inside *folder* (segment-aware, not a string prefix)."""
    if not folder:
        return bool(path)
    return path.startswith(folder + "/")


def level_of(relative_path: str) -> int:
    return len(split_segments(relative_path))


def is_hidden_local(path: Path, st: os.stat_result) -> bool:
    """
    Hidden attribute on Windows, dot-prefixed name elsewhere.
    """
    attributes = getattr(st, "st_file_attributes", None)
    if attributes is not None:
        return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)
    return path.name.startswith(".")


class IgnoreRules:
    """
    Two independent rule kinds, kept separately for folders and files:

      - exact relative path: ignored iff the relative comparable path equals
        the rule (no prefix matching)
      - bare name: ignored iff the last segment equals the rule, at any depth
    """

    def __init__(self, folder_paths: Iterable[str] = (), file_paths: Iterable[str] = (),
                 folder_names: Iterable[str] = (), file_names: Iterable[str] = ()):
        self.folder_paths = {to_comparable_separators(p) for p in folder_paths}
        self.file_paths = {to_comparable_separators(p) for p in file_paths}
        self.folder_names = set(folder_names)
        self.file_names = set(file_names)

    @classmethod
    def from_config(cls, config) -> "IgnoreRules":
        p = config.paths
        return cls(p.ignore_folder_paths, p.ignore_file_paths,
                   p.ignore_folders_named, p.ignore_files_named)

    def ignores_folder(self, relative_path: str) -> bool:
        return relative_path in self.folder_paths or last_segment(relative_path) in self.folder_names

    def ignores_file(self, relative_path: str) -> bool:
        return relative_path in self.file_paths or last_segment(relative_path) in self.file_names

    def ignores(self, relative_path: str, is_file: bool) -> bool:
        if is_file:
            return self.ignores_file(relative_path)
        return self.ignores_folder(relative_path)

    @property
    def protected_paths(self) -> list:
        """Exact-path rules; their enclosing orphan folders must survive deletion."""
        return sorted(self.folder_paths | self.file_paths)
