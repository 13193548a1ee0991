"""
Sync planning: decide what to copy, what to skip and what to delete
"""
from dataclasses import dataclass, field
from typing import Iterable

from ..utils.paths import IgnoreRules, is_nested_under, to_comparable_separators


@dataclass
class DeployPlan:
    copy_safe: list = field(default_factory=list)     # copied while the site is online
    copy_static: list = field(default_factory=list)   # always overwritten, also online
    copy: list = field(default_factory=list)          # copied while offline
    skipped: list = field(default_factory=list)
    delete_files: list = field(default_factory=list)
    delete_folders: list = field(default_factory=list)  # deepest first

    @property
    def copy_count(self) -> int:
        return len(self.copy_safe) + len(self.copy_static) + len(self.copy)

    @property
    def delete_count(self) -> int:
        return len(self.delete_files) + len(self.delete_folders)


def needs_copy(local, remote_by_path: dict) -> bool:
    """
    A local file is skipped only when a remote file with the same relative
    path, size and last-write time exists. Static files are always copied.
    """
    if local.static:
        return True
    remote = remote_by_path.get(local.relative_path)
    if remote is None or not remote.is_file:
        return True
    return remote.size_bytes != local.size_bytes or remote.last_write_time != local.last_write_time


def find_orphans(local: Iterable, remote: Iterable) -> list:
    local_paths = {entry.relative_path for entry in local}
    return [entry for entry in remote if entry.relative_path not in local_paths]


def protect_enclosing_paths(orphans: list, protected_paths: Iterable[str]) -> list:
    """
    Drop orphan folders that contain a protected path, and orphans that are
    a protected path themselves.
    """
    protected = [to_comparable_separators(p) for p in protected_paths]
    kept = []
    for orphan in orphans:
        if orphan.relative_path in protected:
            continue
        if orphan.is_folder and any(is_nested_under(p, orphan.relative_path) for p in protected):
            continue
        kept.append(orphan)
    return kept


def collapse_descendants(orphans: list) -> list:
    """
    Folder deletes are recursive, so anything nested under a remaining
    orphan folder is dropped. Folders are processed shallowest first.
    """
    folders: list = []
    kept = []
    for orphan in sorted(orphans, key=lambda e: (e.level, e.relative_path)):
        if any(orphan.is_under(folder) for folder in folders):
            continue
        kept.append(orphan)
        if orphan.is_folder:
            folders.append(orphan)
    return kept


def protected_paths(config) -> list:
    """Ignore-by-path rules plus the remote files this tool writes outside the plan."""
    paths = list(IgnoreRules.from_config(config).protected_paths)
    for copies in (config.paths.static_file_copies, config.paths.file_copies):
        paths.extend(to_comparable_separators(c.destination) for c in copies)
    paths.append(to_comparable_separators(config.offline.marker_file_name))
    return paths


def build_plan(local: list, remote: list, config) -> DeployPlan:
    plan = DeployPlan()
    remote_by_path = {entry.relative_path: entry for entry in remote}

    for entry in local:
        if not entry.is_file:
            continue
        if entry.static:
            plan.copy_static.append(entry)
        elif not needs_copy(entry, remote_by_path):
            plan.skipped.append(entry)
        elif entry.online_safe:
            plan.copy_safe.append(entry)
        else:
            plan.copy.append(entry)

    if config.delete_orphans:
        orphans = find_orphans(local, remote)
        orphans = protect_enclosing_paths(orphans, protected_paths(config))
        orphans = collapse_descendants(orphans)
        plan.delete_files = [e for e in orphans if e.is_file]
        plan.delete_folders = sorted((e for e in orphans if e.is_folder),
                                     key=lambda e: (-e.level, e.relative_path))

    return plan
