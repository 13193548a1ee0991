"""Operations (index, plan, transfer, delete, maintenance window, build)"""
from .scanner import index_local, index_remote
from .planner import DeployPlan, build_plan
from .transfer import ensure_path_exists, copy_file, upload_bytes, copy_entry
from .delete import RemoteIndex, delete_file, delete_folder, delete_folder_recursive, delete_orphans
from .offline import take_offline, bring_online
from .build import run_build

__all__ = [
    "index_local", "index_remote",
    "DeployPlan", "build_plan",
    "ensure_path_exists", "copy_file", "upload_bytes", "copy_entry",
    "RemoteIndex", "delete_file", "delete_folder", "delete_folder_recursive", "delete_orphans",
    "take_offline", "bring_online",
    "run_build",
]
