"""
Configuration for smbdeploy
Author: Younes Rahimi

Settings are read from a YAML file (smbdeploy.yml or smbdeploy-<name>.yml)
into typed dataclasses. Every default lives on the dataclass field; the
loader only overrides what the file provides.
"""
import os
import shlex
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigError

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS
# ══════════════════════════════════════════════════════════════════════════════

CONFIG_FILE_NAME = "smbdeploy.yml"
PASSWORD_ENV_VAR = "SMBDEPLOY_PASSWORD"

SMB_PORT = 445
OFFLINE_MARKER_FILE = "app_offline.htm"


@dataclass
class ServerConnectionSettings:
    server_address: str = ""
    port: int = SMB_PORT
    share_name: str = ""
    domain: str = ""
    user_name: str = ""
    password: str = ""
    connect_timeout_ms: int = 15000
    response_timeout_ms: int = 15000
    encrypt: bool = False


@dataclass
class ProjectSettings:
    working_path: str = "."
    # A string is shell-split; a list is used as-is. Empty skips the build.
    build_command: Union[str, list] = ""
    publish_path: str = "publish"

    def build_argv(self) -> list:
        if isinstance(self.build_command, list):
            return [str(a) for a in self.build_command]
        return shlex.split(self.build_command) if self.build_command else []

    def resolved_working_path(self) -> Path:
        return Path(self.working_path).expanduser().resolve()

    def resolved_publish_path(self) -> Path:
        publish = Path(self.publish_path).expanduser()
        if not publish.is_absolute():
            publish = self.resolved_working_path() / publish
        return publish


@dataclass
class FileCopySettings:
    source: str = ""
    destination: str = ""


@dataclass
class PathSettings:
    remote_root_path: str = ""

    online_copy_folder_paths: list = field(default_factory=list)
    online_copy_file_paths: list = field(default_factory=list)
    # Always overwritten and copied while the site is still online.
    # static_paths matches a file or the files directly inside a folder;
    # static_paths_recursive also matches everything further down.
    static_paths: list = field(default_factory=list)
    static_paths_recursive: list = field(default_factory=list)

    ignore_folder_paths: list = field(default_factory=list)
    ignore_file_paths: list = field(default_factory=list)
    ignore_folders_named: list = field(default_factory=list)
    ignore_files_named: list = field(default_factory=list)

    # list[FileCopySettings]; static copies run before the site goes offline
    static_file_copies: list = field(default_factory=list)
    file_copies: list = field(default_factory=list)


@dataclass
class OfflineSettings:
    marker_file_name: str = OFFLINE_MARKER_FILE
    meta_title: str = "Unavailable for Maintenance"
    page_title: str = "Unavailable for Maintenance"
    content_html: str = (
        "<p>The website is being updated and should be available shortly.</p>"
        "<p><strong>Check back soon!</strong></p>"
    )


@dataclass
class DeployConfig:
    delete_orphans: bool = True
    take_server_offline: bool = True

    server_offline_delay_seconds: float = 0.0
    server_online_delay_seconds: float = 0.0

    retry_count: int = 10
    write_retry_delay_seconds: float = 5.0
    # 0 means one worker per host CPU
    max_parallelism: int = 0

    server_connection: ServerConnectionSettings = field(default_factory=ServerConnectionSettings)
    project: ProjectSettings = field(default_factory=ProjectSettings)
    paths: PathSettings = field(default_factory=PathSettings)
    offline: OfflineSettings = field(default_factory=OfflineSettings)

    @property
    def attempts(self) -> int:
        """Number of tries for any retried operation (never less than one)."""
        return self.retry_count if self.retry_count > 0 else 1

    @property
    def workers(self) -> int:
        if self.max_parallelism > 0:
            return self.max_parallelism
        return os.cpu_count() or 1


# ══════════════════════════════════════════════════════════════════════════════
#  CONFIG FILE DISCOVERY  ── smbdeploy.yml (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def config_file_name(name: Optional[str] = None) -> str:
    return f"smbdeploy-{name}.yml" if name else CONFIG_FILE_NAME


def find_config_file(start: Optional[Path] = None, name: Optional[str] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for smbdeploy.yml, or
    smbdeploy-<name>.yml when *name* is given.
    Returns the Path if found, or None if no such file exists in any parent.
    """
    file_name = config_file_name(name)
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / file_name
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def resolve_config_path(target: Optional[str] = None, start: Optional[Path] = None) -> Optional[Path]:
    """
    Turn a CLI argument into a config file path.

    Accepts nothing (nearest smbdeploy.yml), a path to a .yml file, or the
    bare <name> part of smbdeploy-<name>.yml.
    """
    if not target:
        return find_config_file(start)
    candidate = Path(target).expanduser()
    if target.lower().endswith((".yml", ".yaml")):
        if not candidate.is_absolute() and start is not None:
            candidate = start / candidate
        return candidate if candidate.is_file() else None
    return find_config_file(start, name=target)


# ══════════════════════════════════════════════════════════════════════════════
#  LOADING
# ══════════════════════════════════════════════════════════════════════════════

def load_yaml_file(path: Path) -> dict:
    """Parse a YAML settings file and return its contents as a dict."""
    import yaml

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file `{path}`: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in `{path}`: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file `{path}` must contain a mapping at the top level")
    return data


def _coerce(value, default, key: str):
    """Convert a YAML scalar to the type of *default*."""
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        raise ConfigError(f"`{key}` must be true or false")
    if isinstance(default, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"`{key}` must be a number")
        if isinstance(default, int):
            if not float(value).is_integer():
                raise ConfigError(f"`{key}` must be a whole number")
            return int(value)
        return float(value)
    if isinstance(default, list):
        if value is None:
            return []
        if not isinstance(value, list):
            raise ConfigError(f"`{key}` must be a list")
        return value
    if isinstance(default, str):
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            raise ConfigError(f"`{key}` must be a string")
        return str(value)
    return value


def _apply(target, data: dict, prefix: str = ""):
    """Copy known keys from *data* onto dataclass *target*. Unknown keys are ignored."""
    for f in fields(target):
        if f.name not in data:
            continue
        key = f"{prefix}{f.name}"
        current = getattr(target, f.name)
        value = data[f.name]
        if is_dataclass(current):
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigError(f"`{key}` must be a mapping")
            _apply(current, value, prefix=f"{key}.")
        elif f.name == "build_command" and isinstance(value, list):
            setattr(target, f.name, [str(v) for v in value])
        else:
            setattr(target, f.name, _coerce(value, current, key))


def _file_copies(raw: list, name: str) -> list:
    copies = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("source") or not item.get("destination"):
            raise ConfigError(f"`paths.{name}[{i}]` needs `source` and `destination`")
        copies.append(FileCopySettings(source=str(item["source"]), destination=str(item["destination"])))
    return copies


def config_from_dict(data: dict) -> DeployConfig:
    """Build a DeployConfig from parsed YAML data."""
    config = DeployConfig()
    _apply(config, data)

    for name in ("static_file_copies", "file_copies"):
        setattr(config.paths, name, _file_copies(getattr(config.paths, name), name))
    for list_name in ("online_copy_folder_paths", "online_copy_file_paths",
                      "static_paths", "static_paths_recursive",
                      "ignore_folder_paths", "ignore_file_paths",
                      "ignore_folders_named", "ignore_files_named"):
        setattr(config.paths, list_name, [str(v) for v in getattr(config.paths, list_name)])

    if not config.server_connection.password:
        config.server_connection.password = os.environ.get(PASSWORD_ENV_VAR, "")

    return config


def validate_config(config: DeployConfig):
    """Raise ConfigError when a setting needed to deploy is missing or out of range."""
    conn = config.server_connection
    if not conn.server_address:
        raise ConfigError("`server_connection.server_address` is required")
    if not conn.share_name:
        raise ConfigError("`server_connection.share_name` is required")
    if not conn.user_name:
        raise ConfigError("`server_connection.user_name` is required")
    if conn.connect_timeout_ms <= 0 or conn.response_timeout_ms <= 0:
        raise ConfigError("connection timeouts must be positive")
    if config.retry_count < 0:
        raise ConfigError("`retry_count` cannot be negative")
    if config.write_retry_delay_seconds < 0:
        raise ConfigError("`write_retry_delay_seconds` cannot be negative")
    if config.max_parallelism < 0:
        raise ConfigError("`max_parallelism` cannot be negative")
    if not config.offline.marker_file_name:
        raise ConfigError("`offline.marker_file_name` cannot be empty")


def load_config(path: Path) -> DeployConfig:
    """
    Load and validate a settings file.

    A relative project.working_path is taken relative to the settings file.
    """
    config = config_from_dict(load_yaml_file(path))
    working = Path(config.project.working_path).expanduser()
    if not working.is_absolute():
        config.project.working_path = str((path.parent / working).resolve())
    validate_config(config)
    return config
