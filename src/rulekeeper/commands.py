"""Command implementations for the ``rk`` CLI.

Each ``cmd_*`` function takes the parsed ``argparse.Namespace`` and returns
an exit code.  Commands load the global config and the project manifest,
hand the manifest to a ``ReconciliationEngine``, and save it once at the
end.  ``RuleKeeperError`` and ``ValueError`` are left to ``cli.main`` to
turn into exit code 1.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .config import (
    config_exists,
    create_config,
    expand_tilde,
    load_config,
    save_config,
    update_last_pull,
)
from .config_loader import config_file_path
from .config_schema import PULL_FREQUENCIES, GlobalConfig, SourceConfig
from .errors import ConfigMissingError, GitError, UserCancelledError
from .file_handler import ensure_dir
from .git import (
    clone_repo,
    get_remote_url,
    has_remote,
    is_git_repo,
    is_git_url,
    pull_repo,
    pull_source_if_needed,
    repo_name_from_url,
)
from .sync.engine import ReconciliationEngine
from .sync.models import RuleStatus, SyncReport
from .sync.reporter import (
    format_rule_diff,
    format_status,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .sync.resolver import create_resolver
from .sync.rules import find_rule_match, list_available_rules, rule_filename
from .sync.state import ManifestStore

logger = logging.getLogger(__name__)

DEFAULT_CLONE_PARENT = "~/Documents"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _prompt(question: str, default: str | None = None) -> str:
    """Ask *question* on stdin.

    Raises:
        UserCancelledError: On end of input or Ctrl-C.
    """
    suffix = f" [{default}]" if default else ""
    try:
        answer = input(f"{question}{suffix}: ").strip()
    except (EOFError, KeyboardInterrupt) as exc:
        raise UserCancelledError("Cancelled.") from exc
    return answer or (default or "")


def _project_root(args: argparse.Namespace) -> Path:
    if args.project:
        return Path(expand_tilde(args.project)).resolve()
    return Path.cwd()


def _source_dir(config: GlobalConfig) -> Path:
    return Path(expand_tilde(config.source.path))


def _refresh_source(config: GlobalConfig) -> None:
    """Pull a git source when due; failures only warn."""
    result = pull_source_if_needed(config)
    if result.error:
        logger.warning("Could not check for updates: %s", result.error)
    elif result.pulled:
        update_last_pull()
        logger.info("Source refreshed from remote")


def _load(args: argparse.Namespace, refresh: bool = True):
    """Return ``(config, store)`` for the current project."""
    config = load_config()
    if refresh:
        _refresh_source(config)
    return config, ManifestStore(_project_root(args))


def _make_engine(
    args: argparse.Namespace, config: GlobalConfig, store: ManifestStore
) -> ReconciliationEngine:
    unified = getattr(args, "unified", False)

    def show_diff(rule_diff):
        print(format_rule_diff(rule_diff, unified=unified))
        print()

    return ReconciliationEngine(
        source_dir=_source_dir(config),
        rules_dir=store.rules_dir,
        resolver=create_resolver(args.strategy),
        diff_viewer=show_diff,
    )


def _print_report(args: argparse.Namespace, report: SyncReport) -> int:
    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    return 1 if report.failed else 0


def _resolve_local_source(value: str) -> SourceConfig | None:
    """Build a ``SourceConfig`` for an existing local directory."""
    path = Path(expand_tilde(value)).resolve()
    if not path.is_dir():
        logger.error("Source path does not exist: %s", path)
        return None
    remote = get_remote_url(path)
    if remote:
        return SourceConfig(type="git", path=str(path), remote=remote)
    return SourceConfig(type="local", path=str(path))


def _clone_source(url: str, target: Path) -> SourceConfig:
    """Clone *url* into *target* unless a clone is already there.

    Raises:
        GitError: If cloning fails.
    """
    if is_git_repo(target):
        print(f"Using existing clone at {target}")
    else:
        print(f"Cloning {url} into {target}...")
        clone_repo(url, target)
    return SourceConfig(type="git", path=str(target), remote=url)


def _default_clone_target(url: str) -> str:
    return f"{DEFAULT_CLONE_PARENT}/{repo_name_from_url(url)}"


# ---------------------------------------------------------------------------
# init / source
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> int:
    """Create the global config, prompting for anything not given."""
    if config_exists() and not args.force:
        logger.error(
            "Config already exists at %s. Use --force to overwrite.",
            config_file_path(),
        )
        return 1

    interactive = args.source is None
    value = args.source

    while True:
        if value is None:
            value = _prompt("Rules source (local path or git URL)")
        if not value:
            logger.error("A rules source is required.")
            return 1

        if not is_git_url(value):
            source = _resolve_local_source(value)
            if source is None:
                if not interactive:
                    return 1
                value = None
                continue
            break

        clone_to = args.clone_to
        if clone_to is None:
            default = _default_clone_target(value)
            clone_to = _prompt("Clone to", default) if interactive else default
        try:
            source = _clone_source(value, Path(expand_tilde(clone_to)))
        except GitError as exc:
            logger.error("Clone failed: %s", exc)
            if not interactive:
                return 1
            value = None
            continue
        break

    frequency = args.frequency
    if frequency is None:
        frequency = (
            _prompt(f"Pull frequency ({'/'.join(PULL_FREQUENCIES)})", "daily")
            if interactive
            else "daily"
        )
    if frequency not in PULL_FREQUENCIES:
        logger.error("Invalid pull frequency: %s", frequency)
        return 1

    config = create_config(
        source.type, source.path, remote=source.remote,
        pull_frequency=frequency,
    )
    path = save_config(config)
    count = len(list_available_rules(Path(source.path)))
    print(f"Configuration saved to {path}")
    print(f"Source: {source.path} ({count} rules available)")
    return 0


def cmd_source(args: argparse.Namespace) -> int:
    """Dispatch ``source show|set|pull``."""
    if args.source_command == "set":
        return _source_set(args)
    if args.source_command == "pull":
        return _source_pull(args)
    return _source_show(args)


def _source_show(args: argparse.Namespace) -> int:
    config = load_config()
    source = config.source
    remote = source.remote or get_remote_url(source.path)
    settings = config.settings
    print(f"Type:      {source.type}")
    print(f"Path:      {source.path}")
    print(f"Remote:    {remote or '-'}")
    print(f"Auto pull: {'yes' if settings.auto_pull else 'no'}")
    print(f"Frequency: {settings.pull_frequency}")
    print(f"Last pull: {settings.last_pull or 'never'}")
    return 0


def _source_set(args: argparse.Namespace) -> int:
    config = load_config(apply_env=False)
    value = args.value

    if is_git_url(value):
        target = Path(expand_tilde(_default_clone_target(value)))
        try:
            source = _clone_source(value, target)
        except GitError as exc:
            logger.error("Clone failed: %s", exc)
            return 1
    else:
        source = _resolve_local_source(value)
        if source is None:
            return 1

    save_config(config.model_copy(update={"source": source}))
    print(f"Source set to {source.path} ({source.type})")
    return 0


def _source_pull(args: argparse.Namespace) -> int:
    config = load_config()
    path = config.source.path
    if not is_git_repo(path) or not has_remote(path):
        logger.error("Source %s is not a git repository with a remote.", path)
        return 1
    try:
        pull_repo(path)
    except GitError as exc:
        logger.error("Pull failed: %s", exc)
        return 1
    update_last_pull()
    print("Source updated.")
    return 0


# ---------------------------------------------------------------------------
# Rule commands
# ---------------------------------------------------------------------------


def cmd_list(args: argparse.Namespace) -> int:
    """List available rules, or the rules installed in this project."""
    config, store = _load(args)
    manifest = store.load_or_create()

    if args.installed:
        if not manifest.rules:
            print("No rules installed.")
            return 0
        print(f"Installed rules in {store.project_root}:")
        for name, entry in manifest.rules.items():
            hint = "" if entry.status == RuleStatus.SYNCED else f" ({entry.status.value})"
            print(f"  {name}{hint}")
        return 0

    source_dir = _source_dir(config)
    available = list_available_rules(source_dir)
    if not available:
        print(f"No rules found in {source_dir}")
        return 0
    print(f"Available rules in {source_dir}:")
    for rule in available:
        marker = "✓" if find_rule_match(rule.name, manifest.rules) else " "
        print(f"  {marker} {rule.name}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    config, store = _load(args)
    manifest = store.load()
    engine = _make_engine(args, config, store)

    before = manifest.to_dict()
    checks = engine.status(manifest)
    if manifest.to_dict() != before:
        store.save(manifest)

    if args.json:
        print(json.dumps(status_to_json(checks), indent=2))
    else:
        print(format_status(checks, str(store.project_root)))
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    config, store = _load(args)
    if not args.rules and not args.all:
        logger.error("No rules specified. Use `rk add <rule>` or `rk add --all`.")
        return 1
    if args.all and not list_available_rules(_source_dir(config)):
        logger.error("No rules found in source %s", config.source.path)
        return 1

    manifest = store.load_or_create()
    ensure_dir(store.rules_dir)
    engine = _make_engine(args, config, store)
    try:
        report = engine.add(manifest, args.rules, all_rules=args.all)
    finally:
        # A new project gets no manifest until something is tracked
        if manifest.rules or store.exists():
            store.save(manifest)
    return _print_report(args, report)


def cmd_remove(args: argparse.Namespace) -> int:
    config, store = _load(args, refresh=False)
    manifest = store.load()
    engine = _make_engine(args, config, store)
    report = engine.remove(manifest, args.rules, keep_file=args.keep_file)
    store.save(manifest)
    return _print_report(args, report)


def cmd_pull(args: argparse.Namespace) -> int:
    config, store = _load(args)
    manifest = store.load()
    engine = _make_engine(args, config, store)
    try:
        report = engine.pull(
            manifest,
            rules=args.rules or None,
            force=args.force,
            include_detached=args.include_detached,
        )
    finally:
        # Rules finished before a cancel or an error stay recorded
        store.save(manifest)
    return _print_report(args, report)


def cmd_diff(args: argparse.Namespace) -> int:
    if not args.rule and not args.all:
        logger.error("Specify a rule or use --all.")
        return 1
    config, store = _load(args, refresh=False)
    manifest = store.load()
    engine = _make_engine(args, config, store)

    rules = [args.rule] if args.rule else []
    diffs = engine.diff(manifest, rules, all_rules=args.all)
    if not diffs:
        print("No local changes." if args.all else "Nothing to compare.")
        return 0
    for rule_diff in diffs:
        print(format_rule_diff(rule_diff, unified=args.unified))
        print()
    return 0


def cmd_detach(args: argparse.Namespace) -> int:
    config, store = _load(args, refresh=False)
    manifest = store.load()
    report = _make_engine(args, config, store).detach(manifest, args.rule)
    store.save(manifest)
    return _print_report(args, report)


def cmd_attach(args: argparse.Namespace) -> int:
    config, store = _load(args)
    manifest = store.load()
    report = _make_engine(args, config, store).attach(manifest, args.rule)
    store.save(manifest)
    return _print_report(args, report)


# ---------------------------------------------------------------------------
# doctor
# ---------------------------------------------------------------------------


def cmd_doctor(args: argparse.Namespace) -> int:
    """Run health checks and print one ``[pass|warn|fail]`` line each."""
    results: list[tuple[str, str]] = []

    def check(level: str, message: str) -> None:
        results.append((level, message))
        print(f"[{level}] {message}")

    config = None
    try:
        config = load_config()
        check("pass", f"Config found at {config_file_path()}")
    except ConfigMissingError:
        check("fail", "No config found. Run `rk init`.")
    except ValueError as exc:
        check("fail", str(exc))

    if config is not None:
        source_dir = _source_dir(config)
        if source_dir.is_dir():
            check("pass", f"Source path exists: {source_dir}")
            count = len(list_available_rules(source_dir))
            if count:
                check("pass", f"Source has {count} rules")
            else:
                check("warn", "Source has no rules")
        else:
            check("fail", f"Source path does not exist: {source_dir}")

        if config.source.type == "git":
            remote = get_remote_url(source_dir)
            if remote:
                check("pass", f"Git remote: {remote}")
            else:
                check("warn", "Git source has no origin remote")

    store = ManifestStore(_project_root(args))
    if store.rules_dir.is_dir():
        check("pass", f"Rules directory exists: {store.rules_dir}")
    else:
        check("warn", f"No rules directory at {store.rules_dir}")

    if not store.exists():
        check("warn", "No manifest in this project")
    else:
        try:
            manifest = store.load()
        except ValueError as exc:
            check("fail", str(exc))
        else:
            check("pass", f"Manifest tracks {len(manifest.rules)} rules")
            missing = [
                name
                for name in manifest.rules
                if not (store.rules_dir / rule_filename(name)).is_file()
            ]
            if missing:
                check("warn", f"Missing local files: {', '.join(missing)}")
            elif manifest.rules:
                check("pass", "All tracked rule files present")

    failed = [message for level, message in results if level == "fail"]
    return 1 if failed else 0
