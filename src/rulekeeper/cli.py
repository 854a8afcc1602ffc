"""Command-line entry point (``rk`` / ``rulekeeper``)."""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from . import __version__, commands
from .config import load_config
from .errors import ConfigMissingError, RuleKeeperError
from .logger import setup_logging
from .sync.resolver import STRATEGIES

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rk",
        description="Keep shared rule files in sync across projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Point rulekeeper at a rules repository
  rk init --source git@github.com:acme/rules.git

  # Install two rules in the current project
  rk add laravel testing

  # Bring local copies up to date, replacing local edits
  rk pull --force

  # Stop tracking a rule you customised
  rk detach laravel
        """,
    )
    parser.add_argument(
        "--project",
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default="interactive",
        help="How conflicts are resolved (default: interactive)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable reports",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rulekeeper version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    p = sub.add_parser("init", help="Configure the rules source")
    p.add_argument("--source", help="Local path or git URL")
    p.add_argument("--clone-to", help="Where to clone a git source")
    p.add_argument("--frequency", help="Pull frequency: always, daily, weekly, never")
    p.add_argument("--force", action="store_true", help="Overwrite an existing config")
    p.set_defaults(handler=commands.cmd_init)

    p = sub.add_parser("add", help="Add rules to the project")
    p.add_argument("rules", nargs="*", help="Rule names")
    p.add_argument("-a", "--all", action="store_true", help="Add every available rule")
    p.set_defaults(handler=commands.cmd_add)

    p = sub.add_parser("remove", help="Remove rules from the project")
    p.add_argument("rules", nargs="+", help="Rule names")
    p.add_argument("-k", "--keep-file", action="store_true", help="Keep the local file")
    p.set_defaults(handler=commands.cmd_remove)

    p = sub.add_parser("status", help="Show the status of installed rules")
    p.set_defaults(handler=commands.cmd_status)

    p = sub.add_parser("pull", help="Update rules from the source")
    p.add_argument("rules", nargs="*", help="Rule names (default: all)")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite local changes")
    p.add_argument(
        "--include-detached", action="store_true", help="Also update detached rules"
    )
    p.set_defaults(handler=commands.cmd_pull)

    p = sub.add_parser("diff", help="Compare local rules with the source")
    p.add_argument("rule", nargs="?", help="Rule name")
    p.add_argument("-a", "--all", action="store_true", help="Every locally changed rule")
    p.add_argument("--unified", action="store_true", help="Show a unified diff")
    p.set_defaults(handler=commands.cmd_diff)

    p = sub.add_parser("list", help="List available rules")
    p.add_argument(
        "-i", "--installed", action="store_true", help="Only rules installed here"
    )
    p.set_defaults(handler=commands.cmd_list)

    p = sub.add_parser("detach", help="Stop syncing a rule")
    p.add_argument("rule", help="Rule name")
    p.set_defaults(handler=commands.cmd_detach)

    p = sub.add_parser("attach", help="Resume syncing a detached rule")
    p.add_argument("rule", help="Rule name")
    p.set_defaults(handler=commands.cmd_attach)

    p = sub.add_parser("source", help="Show or change the rules source")
    source_sub = p.add_subparsers(dest="source_command", metavar="<action>")
    source_sub.add_parser("show", help="Show the configured source")
    set_parser = source_sub.add_parser("set", help="Use another source")
    set_parser.add_argument("value", help="Local path or git URL")
    source_sub.add_parser("pull", help="Pull the git source now")
    p.set_defaults(handler=commands.cmd_source)

    p = sub.add_parser("doctor", help="Check the installation")
    p.set_defaults(handler=commands.cmd_doctor)

    return parser


def _configured_logging() -> tuple[str, str | None]:
    """Return ``(level, file)`` from the config's ``logging`` section."""
    try:
        config = load_config()
    except (ConfigMissingError, ValueError):
        return "WARNING", None
    return config.logging.level, config.logging.file


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return its exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    level, config_log_file = _configured_logging()
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config_log_file,
        debug_format=args.log_format,
        default_level=level,
    )

    try:
        return args.handler(args)
    except RuleKeeperError as exc:
        logger.error("%s", exc)
        return 1
    except ValueError as exc:
        logger.error("%s", exc)
        return 1


def run() -> None:
    """Entry point that handles interrupts and sets the exit code."""
    try:
        code = main()
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    run()
