#!/usr/bin/env python3
"""
gemini-updater-manage - install, inspect and maintain the Gemini CLI updater.

Usage:
    gemini-updater-manage setup [--validate]
    gemini-updater-manage remove [--clean] [--dry-run]
    gemini-updater-manage status
    gemini-updater-manage history [--json]
    gemini-updater-manage check
    gemini-updater-manage rollback
    gemini-updater-manage reset
    gemini-updater-manage config [--cooldown-minutes N] [--max-history N]
                                 [--auto-update on|off] [--logging on|off]
                                 [--import PATH]
    gemini-updater-manage export [PATH]
    gemini-updater-manage logs [--lines N] [--clear]
"""

from __future__ import annotations

import argparse
import datetime
import json
import sys

from .common import UpdaterError
from .config import UpdaterOptions, load_options, validate_options
from .config_store import ConfigStore
from .logging_config import clear_log, get_log_path, get_recent_logs, log_system_info, setup_logging
from .shell_alias import (
    AliasError,
    ShellConfig,
    add_alias,
    alias_exists,
    detect_shell,
    generate_alias_command,
    get_all_shell_config_files,
    get_shell_config_file,
    get_system_info,
    remove_alias,
)
from .updater import Updater


def format_timestamp(ms: int | None) -> str:
    """Render epoch milliseconds as local time, or 'never'."""
    if not ms:
        return "never"
    moment = datetime.datetime.fromtimestamp(ms / 1000)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def print_manual_alias_instructions(options: UpdaterOptions, action: str = "Add") -> None:
    alias_command = generate_alias_command(options.alias_name, options.wrapper_command)
    print(f"\n{action} the following alias in your shell configuration file:", file=sys.stderr)
    print(f"\n  {alias_command}\n", file=sys.stderr)
    print("Shell configuration files:", file=sys.stderr)
    print("  bash: ~/.bashrc or ~/.bash_profile", file=sys.stderr)
    print("  zsh: ~/.zshrc", file=sys.stderr)
    print("  fish: ~/.config/fish/config.fish", file=sys.stderr)
    print("  PowerShell: $PROFILE", file=sys.stderr)


def _shell_targets() -> list[ShellConfig]:
    """Detected shell plus every other shell with an existing rc file."""
    targets = get_all_shell_config_files()
    shell = detect_shell()
    primary = get_shell_config_file(shell)
    if primary is not None and not any(t.path == primary for t in targets):
        targets.insert(0, ShellConfig(shell=shell, path=primary))
    return targets


def cmd_setup(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Initialize config and install shell aliases."""
    if args.validate:
        return cmd_validate(args, options, store)

    print(f"Installing {options.wrapper_command}...", file=sys.stderr)
    store.ensure_exists()
    print(f"✓ Configuration initialized: {store.path}", file=sys.stderr)

    for warning in validate_options(options):
        print(f"⚠️  {warning}", file=sys.stderr)

    info = get_system_info()
    print(f"# Detected shell: {info['shell']}", file=sys.stderr)

    if not info["config_file"]:
        print("⚠️  Could not detect shell config file. Manual setup may be required.", file=sys.stderr)
        print_manual_alias_instructions(options)
        return 0

    added_any = False
    for target in _shell_targets():
        try:
            if add_alias(options.alias_name, options.wrapper_command, target.shell):
                print(f"✓ Added alias for {target.shell}: {target.path}", file=sys.stderr)
                added_any = True
            else:
                print(f"# Alias already present for {target.shell}: {target.path}", file=sys.stderr)
        except AliasError as e:
            print(f"⚠️  Could not add alias for {target.shell}: {e}", file=sys.stderr)

    log_system_info()

    print("\nUsage:", file=sys.stderr)
    print(f"  {options.alias_name} [arguments]                # update if needed, then run", file=sys.stderr)
    print(f"  {options.alias_name} --skip-update [arguments]  # run without checking", file=sys.stderr)
    if added_any:
        print(f"\nRestart your terminal or run: source {info['config_file']}", file=sys.stderr)
    return 0


def cmd_validate(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Check that the config document and alias are in place."""
    config_ok = store.path.exists()
    alias_ok = alias_exists(options.alias_name)
    print(f"Config file: {'✓' if config_ok else '✗'} {store.path}")
    print(f"Shell alias: {'✓' if alias_ok else '✗'} {options.alias_name}")
    return 0 if config_ok and alias_ok else 1


def cmd_remove(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Remove shell aliases and, with --clean, user data."""
    log_path = get_log_path(store.path.parent)
    targets = _shell_targets()

    if args.dry_run:
        print("Dry run - nothing will be changed")
        for target in targets:
            present = alias_exists(options.alias_name, target.shell)
            print(f"  {target.shell}: {target.path} {'✓' if present else '✗'}")
        print(f"  Config: {store.path} {'✓' if store.path.exists() else '✗'}")
        print(f"  Logs: {log_path} {'✓' if log_path.exists() else '✗'}")
        return 0

    removed = 0
    for target in targets:
        try:
            if remove_alias(options.alias_name, target.shell):
                print(f"✓ Removed alias from {target.shell}: {target.path}", file=sys.stderr)
                removed += 1
        except AliasError as e:
            print(f"⚠️  Could not remove alias from {target.shell}: {e}", file=sys.stderr)

    if removed == 0:
        print("⚠️  No aliases found to remove", file=sys.stderr)
        print_manual_alias_instructions(options, action="Check for and remove")

    if not args.clean:
        print("\nUser data preserved. Remove it with: gemini-updater-manage remove --clean", file=sys.stderr)
        return 0

    # Release the log file before deleting it
    setup_logging(quiet=True)
    for path in (store.path, log_path, log_path.with_name(log_path.name + ".1")):
        try:
            path.unlink()
            print(f"✓ Removed {path}", file=sys.stderr)
        except FileNotFoundError:
            pass
        except OSError as e:
            print(f"⚠️  Could not remove {path}: {e}", file=sys.stderr)

    try:
        store.path.parent.rmdir()
        print(f"✓ Removed {store.path.parent}", file=sys.stderr)
    except OSError:
        pass  # Not empty or already gone
    return 0


def cmd_status(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Show versions, timestamps and settings."""
    doc = store.read()
    updater = Updater(store, options)
    current = updater.get_current_version()
    try:
        latest = updater.get_latest_version()
    except UpdaterError as e:
        latest = f"unknown ({e})"

    settings = doc.settings
    print(f"Package:            {options.package_name}")
    print(f"Installed version:  {current or 'not installed'}")
    print(f"Latest version:     {latest}")
    print(f"Last check:         {format_timestamp(doc.last_update_check)}")
    print(f"Last update:        {format_timestamp(doc.last_update_time)}")
    print(f"Update cooldown:    {settings.update_cooldown // 60000} min")
    print(f"Auto update:        {'on' if settings.auto_update else 'off'}")
    print(f"Logging:            {'on' if settings.enable_logging else 'off'}")
    print(f"History entries:    {len(doc.version_history)}/{settings.max_version_history}")
    print(f"Config file:        {store.path}")
    print(f"Log file:           {get_log_path(store.path.parent)}")
    if options.source:
        print(f"Options file:       {options.source}")
    return 0


def cmd_history(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """List recorded update transitions, oldest first."""
    history = store.get_version_history()
    if args.json:
        print(json.dumps([entry.to_dict() for entry in history], indent=2))
        return 0

    if not history:
        print("No updates recorded")
        return 0

    for entry in history:
        status = "✓" if entry.success else "✗"
        print(f"{status} {format_timestamp(entry.timestamp)}  {entry.from_version} → {entry.to_version}")
    return 0


def cmd_check(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Force an update check, installing if needed."""
    updater = Updater(store, options)
    try:
        installed = updater.force_update()
    except UpdaterError as e:
        print(f"✗ Update failed: {e}", file=sys.stderr)
        if e.remediation:
            print(f"  {e.remediation}", file=sys.stderr)
        return 1

    if installed:
        print(f"✓ {options.package_name} updated", file=sys.stderr)
    else:
        print(f"✓ {options.package_name} is up to date", file=sys.stderr)
    return 0


def cmd_rollback(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Reinstall the version in use before the last update."""
    updater = Updater(store, options)
    try:
        target = updater.rollback_to_previous_version()
    except UpdaterError as e:
        print(f"✗ Rollback failed: {e}", file=sys.stderr)
        if e.remediation:
            print(f"  {e.remediation}", file=sys.stderr)
        return 1

    print(f"✓ Rolled back {options.package_name} to {target}", file=sys.stderr)
    return 0


def cmd_reset(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Restore the default config document."""
    store.reset()
    print(f"✓ Configuration reset: {store.path}", file=sys.stderr)
    return 0


def cmd_config(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Change settings stored in the config document."""
    if args.import_path:
        try:
            with open(args.import_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"✗ Could not read {args.import_path}: {e}", file=sys.stderr)
            return 1
        if not store.import_config(data):
            print(f"✗ {args.import_path} does not hold a config object", file=sys.stderr)
            return 2
        print(f"✓ Imported configuration from {args.import_path}", file=sys.stderr)

    changes = {}
    if args.cooldown_minutes is not None:
        changes["update_cooldown"] = args.cooldown_minutes * 60 * 1000
    if args.max_history is not None:
        changes["max_version_history"] = args.max_history
    if args.auto_update is not None:
        changes["auto_update"] = args.auto_update == "on"
    if args.logging is not None:
        changes["enable_logging"] = args.logging == "on"

    if changes:
        try:
            settings = store.update_settings(**changes)
        except ValueError as e:
            print(f"✗ {e}", file=sys.stderr)
            return 2
    else:
        settings = store.get_settings()

    print(json.dumps(settings.to_dict(), indent=2))
    return 0


def cmd_export(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Write the whole config document as JSON, for backups."""
    text = json.dumps(store.export_config(), indent=2, ensure_ascii=False)
    if not args.output or args.output == "-":
        print(text)
        return 0
    try:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    except OSError as e:
        print(f"✗ Could not write {args.output}: {e}", file=sys.stderr)
        return 1
    print(f"✓ Exported configuration to {args.output}", file=sys.stderr)
    return 0


def cmd_logs(args: argparse.Namespace, options: UpdaterOptions, store: ConfigStore) -> int:
    """Show recent log lines or delete the log."""
    log_path = get_log_path(store.path.parent)
    if args.clear:
        # Release the log file before deleting it
        setup_logging(quiet=True)
        removed = clear_log(log_path)
        for path in removed:
            print(f"✓ Removed {path}", file=sys.stderr)
        if not removed:
            print(f"No log file at {log_path}", file=sys.stderr)
        return 0

    lines = get_recent_logs(log_path, args.lines)
    if not lines:
        print(f"No log entries in {log_path}", file=sys.stderr)
        return 0
    for line in lines:
        print(line)
    return 0


COMMANDS = {
    "setup": cmd_setup,
    "remove": cmd_remove,
    "status": cmd_status,
    "history": cmd_history,
    "check": cmd_check,
    "rollback": cmd_rollback,
    "reset": cmd_reset,
    "config": cmd_config,
    "export": cmd_export,
    "logs": cmd_logs,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gemini-updater-manage",
        description="Gemini CLI Updater - setup, status and maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--options",
        metavar="PATH",
        help="YAML options file (overrides $GEMINI_UPDATER_CONFIG)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    setup = sub.add_parser("setup", help="Initialize config and add shell aliases")
    setup.add_argument("--validate", action="store_true", help="Only check the installation")

    remove = sub.add_parser("remove", help="Remove shell aliases")
    remove.add_argument("--clean", "--purge", action="store_true", help="Also delete config and logs")
    remove.add_argument("--dry-run", action="store_true", help="Show what would be removed")

    sub.add_parser("status", help="Show versions and settings")

    history = sub.add_parser("history", help="List recorded updates")
    history.add_argument("--json", action="store_true", help="Print raw JSON")

    sub.add_parser("check", help="Check for an update now and install it")
    sub.add_parser("rollback", help="Reinstall the previous version")
    sub.add_parser("reset", help="Reset the config document to defaults")

    config = sub.add_parser("config", help="Show or change settings")
    config.add_argument("--cooldown-minutes", type=int, metavar="N", help="Minimum minutes between checks")
    config.add_argument("--max-history", type=int, metavar="N", help="Version history entries to keep")
    config.add_argument("--auto-update", choices=("on", "off"), help="Check for updates on every run")
    config.add_argument("--logging", choices=("on", "off"), help="Write the log file")
    config.add_argument("--import", dest="import_path", metavar="PATH", help="Restore a document written by export")

    export = sub.add_parser("export", help="Print or save the config document")
    export.add_argument("output", nargs="?", metavar="PATH", help="File to write (default: stdout)")

    logs = sub.add_parser("logs", help="Show recent log entries")
    logs.add_argument("--lines", "-n", type=int, default=50, metavar="N", help="Number of lines to show")
    logs.add_argument("--clear", action="store_true", help="Delete the log file")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the management CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = load_options(args.options)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2

    store = ConfigStore()
    log_file = None
    if store.get_settings().enable_logging:
        log_file = str(get_log_path(store.path.parent))
    setup_logging(verbose=args.verbose, log_file=log_file)

    return COMMANDS[args.command](args, options, store)


if __name__ == "__main__":
    sys.exit(main())
