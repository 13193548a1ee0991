#!/usr/bin/env python3
"""
smbdeploy  —  Deploy a build folder to an SMB file share
========================================================
Author: Younes Rahimi

Subcommands:
  init      Create a smbdeploy.yml settings file in the current directory.
  deploy    Build the project and sync its publish folder to the share.
  version   Print the smbdeploy version.

Run 'smbdeploy <subcommand> --help' for more details.
"""
import sys
import argparse
from pathlib import Path

from smbdeploy import __version__


STARTER_CONFIG = """\
# smbdeploy.yml — smbdeploy deployment settings
#
# The password may be left empty and supplied through $SMBDEPLOY_PASSWORD.
delete_orphans: true
take_server_offline: true
server_offline_delay_seconds: 0
server_online_delay_seconds: 0
retry_count: 10
write_retry_delay_seconds: 5
max_parallelism: 0

server_connection:
  server_address: ''
  port: 445
  share_name: ''
  domain: ''
  user_name: ''
  password: ''
  connect_timeout_ms: 15000
  response_timeout_ms: 15000
  encrypt: false

project:
  working_path: '.'
  build_command: ''
  publish_path: 'publish'

paths:
  remote_root_path: ''
  online_copy_folder_paths: []
  online_copy_file_paths: []
  static_paths: []
  static_paths_recursive: []
  ignore_folder_paths: []
  ignore_file_paths: []
  ignore_folders_named: []
  ignore_files_named: []
  static_file_copies: []
  file_copies: []

offline:
  marker_file_name: app_offline.htm
  meta_title: Unavailable for Maintenance
  page_title: Unavailable for Maintenance
  content_html: '<p>The website is being updated and should be available shortly.</p><p><strong>Check back soon!</strong></p>'
"""


def _error(msg: str):
    from smbdeploy.utils.logging import ERROR_PREFIX
    print(f"{ERROR_PREFIX}{msg}", file=sys.stderr)


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args) -> int:
    """Create a smbdeploy.yml file in the current directory."""
    from smbdeploy.config import CONFIG_FILE_NAME

    target = Path.cwd() / CONFIG_FILE_NAME

    if target.exists() and not args.force:
        _error(f"{CONFIG_FILE_NAME} already exists in {Path.cwd()}")
        print("Use --force to overwrite.", file=sys.stderr)
        return 1

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(STARTER_CONFIG)
        return 0

    target.write_text(STARTER_CONFIG, encoding="utf-8")
    print(f"Created {target}")
    return 0


# ── deploy ───────────────────────────────────────────────────────────────────

def _print_summary(result):
    print()
    print(f"{'─' * 64}")
    print(" SUMMARY")
    print(f"  Copied     : {result.copied:,}")
    print(f"  Unchanged  : {result.skipped:,}")
    print(f"  Deleted    : {result.deleted:,}")
    if result.static_file_copies:
        print(f"  Static file copies: {result.static_file_copies:,}")
    if result.file_copies:
        print(f"  File copies: {result.file_copies:,}")
    print(f"  Elapsed    : {result.elapsed_seconds:.1f}s")
    print(f"{'─' * 64}")


def cmd_deploy(args) -> int:
    """Run a deployment using the nearest (or the named) settings file."""
    from smbdeploy.config import load_config, resolve_config_path
    from smbdeploy.core.deployer import Deployer
    from smbdeploy.core.run_context import RunContext
    from smbdeploy.errors import ConfigError
    from smbdeploy.utils.logging import ConsoleReporter, log, set_verbose

    set_verbose(args.verbose)

    config_path = resolve_config_path(args.target)
    if config_path is None:
        what = args.target or "smbdeploy.yml"
        _error(f"no settings file found for `{what}` in this directory or any parent.")
        print("Run 'smbdeploy init' to create one.", file=sys.stderr)
        return 1

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        _error(str(exc))
        return 1

    if args.no_delete:
        config.delete_orphans = False

    log(f"[config] Using {config_path}")
    ctx = RunContext(ConsoleReporter())
    result = Deployer(config, ctx, skip_build=args.skip_build).run()

    _print_summary(result)

    if not result.success:
        print()
        for message in result.errors:
            _error(message)
        if not result.errors:
            _error("deployment cancelled")
        return 1

    log("Deployment complete ✓")
    return 0


# ── version ──────────────────────────────────────────────────────────────────

def cmd_version(args) -> int:
    print(f"smbdeploy {__version__}")
    return 0


# ── main ─────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smbdeploy",
        description="Deploy a build folder to an SMB file share",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create a smbdeploy.yml settings file in the current directory",
        description="Create a starter smbdeploy.yml settings file for this project.",
    )
    init_p.add_argument("--force", action="store_true",
                        help="Overwrite existing smbdeploy.yml")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")

    # ── deploy ────────────────────────────────────────────────────────────────
    deploy_p = subparsers.add_parser(
        "deploy",
        help="Build and deploy using the nearest smbdeploy.yml",
        description="Build the project and sync its publish folder to the share.",
    )
    deploy_p.add_argument("target", nargs="?", metavar="NAME_OR_PATH",
                          help="Settings file path, or NAME for smbdeploy-NAME.yml")
    deploy_p.add_argument("-v", "--verbose", action="store_true",
                          help="Show every progress line")
    deploy_p.add_argument("--skip-build", action="store_true",
                          help="Deploy the existing publish folder without building")
    deploy_p.add_argument("--no-delete", action="store_true",
                          help="Leave orphaned remote files in place")

    # ── version ───────────────────────────────────────────────────────────────
    subparsers.add_parser("version", help="Print the smbdeploy version")

    return parser


def main(argv=None) -> int:
    """CLI entry point for smbdeploy"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    if args.command == "deploy":
        return cmd_deploy(args)
    if args.command == "version":
        return cmd_version(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
