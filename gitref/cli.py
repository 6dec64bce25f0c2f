"""CLI interface for gitref."""

import logging
from pathlib import Path
from typing import Any, Optional, Sequence, TypeVar

import click

from . import __version__
from .config import config
from .exceptions import (
    AmbiguousMatchError,
    GitRefError,
    InvalidInputError,
    LoadingRecordNotFoundError,
)
from .git import GitClient
from .matcher import MatchOutcome
from .models import UpdateResult, UpdateStatus
from .output import OutputFormatter
from .repository import RepositoryCache
from .sync import LoadingRecord, LoadingStateStore, SyncEngine, SyncResult
from .utils import format_timestamp, short_revision
from .validation import validate_git_url
from .workspace import Workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Helpers
# =============================================================================


def _make_cache() -> RepositoryCache:
    return RepositoryCache(git=GitClient())


def _make_workspace(cache: Optional[RepositoryCache] = None) -> Workspace:
    return Workspace(
        root=Path.cwd(), cache=cache or _make_cache(), store=LoadingStateStore()
    )


def _describe(candidate: Any) -> str:
    if isinstance(candidate, LoadingRecord):
        return f"{candidate.name} -> {candidate.target_path}"
    return str(candidate)


def _fail(ctx: Any, out: OutputFormatter, error: GitRefError) -> None:
    """Print an error with its hints and exit with status 1."""
    hints = list(error.hints)
    if isinstance(error, AmbiguousMatchError):
        hints = [f"- {_describe(c)}" for c in error.candidates] + hints
    out.error(error.message, hints)
    ctx.exit(1)


def _select(
    out: OutputFormatter, query: str, candidates: Sequence[T]
) -> Optional[T]:
    """Ask the user to pick one of several matches.

    Returns:
        The selected candidate, or None if the user cancelled
    """
    out.warning(f"Found {len(candidates)} entries matching '{query}':")
    for index, candidate in enumerate(candidates, start=1):
        out.print(f"  {index}. {_describe(candidate)}")
    choice = click.prompt(
        "Select an entry (0 to cancel)",
        type=click.IntRange(0, len(candidates)),
        default=0,
    )
    if choice == 0:
        return None
    return candidates[choice - 1]


def _record_rows(records: Sequence[LoadingRecord]) -> list[dict[str, str]]:
    return [
        {
            "name": record.name,
            "target": record.target_path,
            "revision": short_revision(record.revision_id),
            "branch": record.branch or "-",
            "loaded": format_timestamp(record.loaded_at),
        }
        for record in records
    ]


def _show_records(out: OutputFormatter, records: Sequence[LoadingRecord]) -> None:
    out.output_table(
        _record_rows(records),
        ["name", "target", "revision", "branch", "loaded"],
        {
            "name": "Repository",
            "target": "Target",
            "revision": "Revision",
            "branch": "Branch",
            "loaded": "Loaded",
        },
    )


def _show_sync_results(out: OutputFormatter, results: Sequence[SyncResult]) -> int:
    """Print sync results and return the number of failures."""
    failed = [r for r in results if not r.success]
    if out.json_output:
        out.output_json([r.to_dict() for r in results])
        return len(failed)

    for result in results:
        if result.success:
            out.success(f"{result.target_path}: {result.message}")
        else:
            out.error(f"{result.target_path}: {result.message}")

    synced = sum(1 for r in results if r.changed)
    out.print_summary(
        "Sync Complete",
        [
            ("Synced", str(synced)),
            ("Up to date", str(sum(1 for r in results if r.success) - synced)),
            ("Failed", str(len(failed))),
        ],
    )
    return len(failed)


def _show_update_result(out: OutputFormatter, result: UpdateResult) -> None:
    if result.status is UpdateStatus.UP_TO_DATE:
        revision = short_revision(result.old_revision)
        out.success(f"{result.name}: up-to-date ({revision})")
    elif result.status is UpdateStatus.HAS_UPDATES:
        out.warning(f"{result.name}: updates available")
    elif result.status is UpdateStatus.UPDATED:
        out.success(
            f"{result.name}: updated {short_revision(result.old_revision)} -> "
            f"{short_revision(result.new_revision)}"
        )
    else:
        out.error(f"{result.name}: {result.error}")


# =============================================================================
# Command group
# =============================================================================


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="grf")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """gitref - Keep reference copies of git repositories next to your code."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("gitref").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


# =============================================================================
# Cache commands
# =============================================================================


@main.command()
@click.argument("url")
@click.option("--name", "-n", help="Custom repository name")
@click.option("--branch", "-b", help="Branch to clone")
@click.option("--depth", "-d", type=click.IntRange(min=1), help="Shallow clone depth")
@click.option("--no-shallow", is_flag=True, help="Clone the full history")
@click.pass_context
def add(
    ctx: Any,
    url: str,
    name: Optional[str],
    branch: Optional[str],
    depth: Optional[int],
    no_shallow: bool,
) -> None:
    """Clone a repository into the shared cache.

    URL: HTTPS or SSH git URL
    """
    out: OutputFormatter = ctx.obj["out"]

    result = validate_git_url(url)
    if not result:
        _fail(ctx, out, InvalidInputError(result.message or f"Invalid URL: {url}"))
        return

    try:
        cache = _make_cache()
        out.progress_message(f"Cloning {url}...")
        info = cache.add(
            url,
            name=name,
            branch=branch,
            shallow=False if no_shallow else None,
            depth=depth,
        )
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(info.to_dict())
        return

    out.success("Repository added successfully!")
    out.print_summary(
        "Repository",
        [
            ("Name", info.name),
            ("Path", info.path),
            ("Branch", info.branch or "-"),
            ("Revision", short_revision(info.revision_id)),
        ],
    )


@main.command("list")
@click.pass_context
def list_repos(ctx: Any) -> None:
    """List cached repositories."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        infos = _make_cache().list()
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json([info.to_dict() for info in infos])
        return

    if not infos:
        out.warning("No repositories found.")
        out.info("Use 'grf add <url>' to add a repository.")
        return

    out.output_table(
        [
            {
                "name": info.name,
                "branch": info.branch or "-",
                "revision": short_revision(info.revision_id),
                "updated": format_timestamp(info.updated_at),
            }
            for info in infos
        ],
        ["name", "branch", "revision", "updated"],
        {
            "name": "Name",
            "branch": "Branch",
            "revision": "Revision",
            "updated": "Updated",
        },
    )
    out.info(f"Total: {len(infos)} repositor{'y' if len(infos) == 1 else 'ies'}")


@main.command()
@click.argument("name", required=False)
@click.option(
    "--all", "-a", "remove_all", is_flag=True, help="Remove every cached repository"
)
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clean(ctx: Any, name: Optional[str], remove_all: bool, force: bool) -> None:
    """Remove repositories from the shared cache.

    NAME: Full or short repository name
    """
    out: OutputFormatter = ctx.obj["out"]

    if not name and not remove_all:
        _fail(
            ctx,
            out,
            InvalidInputError(
                "Specify a repository name or --all",
                hints=["Use 'grf list' to see all cached repositories."],
            ),
        )
        return

    cache = _make_cache()
    try:
        if remove_all:
            infos = cache.list()
            if not infos:
                out.warning("No repositories found.")
                return
            if not force and not click.confirm(
                f"Remove all {len(infos)} cached repositories?", default=False
            ):
                out.warning("Operation cancelled.")
                return
            batch = cache.remove_all(infos)
            if out.json_output:
                out.output_json(batch.to_dict())
            else:
                for item, message in batch.failures:
                    out.error(f"{item}: {message}")
                out.print_summary(
                    "Clean Complete",
                    [
                        ("Removed", str(batch.succeeded)),
                        ("Failed", str(batch.failed_count)),
                    ],
                )
            if not batch.all_succeeded:
                ctx.exit(1)
            return

        try:
            info = cache.require(name)
        except AmbiguousMatchError as e:
            if force or out.json_output:
                raise
            selected = _select(out, name, e.candidates)
            if selected is None:
                out.warning("Operation cancelled.")
                return
            info = cache.require(selected)

        still_loaded = [
            record
            for record in LoadingStateStore().get_all().values()
            if record.name == info.name
        ]
        if still_loaded:
            out.warning(
                f"{info.name} is still loaded in {len(still_loaded)} location(s); "
                "those copies are kept"
            )

        if not force and not click.confirm(f"Remove '{info.name}'?", default=False):
            out.warning("Operation cancelled.")
            return

        cache.remove(info.name)
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json({"removed": info.name})
    else:
        out.success(f"Removed {info.name}")


# =============================================================================
# Workspace commands
# =============================================================================


@main.command()
@click.argument("name")
@click.argument("path", required=False)
@click.option("--subdir", "-s", help="Copy only this subdirectory")
@click.option("--no-ignore", is_flag=True, help="Do not update .gitignore")
@click.option("--branch", "-b", help="Switch the cached repository to this branch")
@click.pass_context
def load(
    ctx: Any,
    name: str,
    path: Optional[str],
    subdir: Optional[str],
    no_ignore: bool,
    branch: Optional[str],
) -> None:
    """Copy a cached repository into the current directory.

    NAME: Repository name, short name or git URL

    PATH: Target path (default: .gitreference/<name>)
    """
    out: OutputFormatter = ctx.obj["out"]

    workspace = _make_workspace()

    def _load(query: str) -> LoadingRecord:
        return workspace.load(
            query,
            target=path,
            subdir=subdir,
            branch=branch,
            update_ignore=not no_ignore,
        )

    try:
        out.progress_message("Copying repository...")
        try:
            record = _load(name)
        except AmbiguousMatchError as e:
            if out.json_output:
                raise
            selected = _select(out, name, e.candidates)
            if selected is None:
                out.warning("Operation cancelled.")
                return
            record = _load(selected)
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(record.to_dict())
        return

    out.success("Repository copied successfully!")
    out.print_summary(
        "Loaded",
        [
            ("Repository", record.name),
            ("Target", record.target_path),
            ("Revision", short_revision(record.revision_id)),
        ],
    )


@main.command()
@click.argument("name", required=False)
@click.option(
    "--all", "-a", "unload_all", is_flag=True, help="Unload all reference code"
)
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@click.option("--dry-run", is_flag=True, help="Show what would be removed")
@click.option(
    "--list", "-l", "list_only", is_flag=True, help="List loaded reference code"
)
@click.option(
    "--keep-empty", is_flag=True, help="Keep an empty .gitreference directory"
)
@click.option(
    "--clean-empty", is_flag=True, help="Remove empty directories in .gitreference"
)
@click.pass_context
def unload(
    ctx: Any,
    name: Optional[str],
    unload_all: bool,
    force: bool,
    dry_run: bool,
    list_only: bool,
    keep_empty: bool,
    clean_empty: bool,
) -> None:
    """Remove loaded reference code from the current directory.

    NAME: Repository name, short name or target path
    """
    out: OutputFormatter = ctx.obj["out"]
    workspace = _make_workspace()

    try:
        if list_only:
            records = workspace.loaded_records()
            if out.json_output:
                out.output_json([r.to_dict() for r in records])
            elif not records:
                out.warning("No loaded reference code.")
            else:
                _show_records(out, records)
            return

        if clean_empty:
            _unload_clean_empty(ctx, out, workspace, force, dry_run, keep_empty)
            return

        if unload_all:
            _unload_all(ctx, out, workspace, force, dry_run, keep_empty)
            return

        if not name:
            raise InvalidInputError(
                "Specify a name, --all, --list or --clean-empty",
                hints=["Use 'grf unload --list' to see all loaded reference code."],
            )

        match = workspace.find(name)
        if match.outcome is MatchOutcome.NONE:
            raise LoadingRecordNotFoundError(name)
        if match.outcome is MatchOutcome.AMBIGUOUS:
            if force or out.json_output:
                raise AmbiguousMatchError(name, match.candidates)
            record = _select(out, name, match.candidates)
            if record is None:
                out.warning("Operation cancelled.")
                return
        else:
            record = match.candidates[0]

        out.info(f"Will delete: {record.name}")
        out.info(f"  Target path: {record.target_path}")
        if not record.absolute_target.exists():
            out.warning("Target path does not exist, only the record will be removed")

        if dry_run:
            out.info("(Dry run mode, no actual deletion)")
            return

        if not force and not click.confirm(
            f"Are you sure you want to delete '{record.name}'?", default=False
        ):
            out.warning("Operation cancelled.")
            return

        result = workspace.unload(record, keep_empty=keep_empty)
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(
            {
                "name": record.name,
                "target_path": record.target_path,
                "directory_removed": result.directory_removed,
                "ignore_entries_removed": result.ignore_entries_removed,
            }
        )
        return
    out.success(f"Unloaded {record.name} from {record.target_path}")


def _unload_all(
    ctx: Any,
    out: OutputFormatter,
    workspace: Workspace,
    force: bool,
    dry_run: bool,
    keep_empty: bool,
) -> None:
    records = workspace.loaded_records()
    if not records:
        out.warning("No loaded reference code.")
        return

    if dry_run:
        out.info(f"Would unload {len(records)} loaded entry(ies):")
        _show_records(out, records)
        return

    if not force and not click.confirm(
        f"Unload all {len(records)} loaded entries?", default=False
    ):
        out.warning("Operation cancelled.")
        return

    batch = workspace.unload_all(keep_empty=keep_empty)
    if out.json_output:
        out.output_json(batch.to_dict())
    else:
        for item, message in batch.failures:
            out.error(f"{item}: {message}")
        out.print_summary(
            "Unload Complete",
            [("Unloaded", str(batch.succeeded)), ("Failed", str(batch.failed_count))],
        )
    if not batch.all_succeeded:
        ctx.exit(1)


def _unload_clean_empty(
    ctx: Any,
    out: OutputFormatter,
    workspace: Workspace,
    force: bool,
    dry_run: bool,
    keep_empty: bool,
) -> None:
    dirs = workspace.scan_empty()
    if not dirs:
        out.info("No empty directories found.")
        return

    out.info(f"Found {len(dirs)} empty director{'y' if len(dirs) == 1 else 'ies'}:")
    for directory in dirs:
        out.print(f"  {directory.relative_path}")
    if dry_run:
        return

    if not force and not click.confirm("Remove these directories?", default=False):
        out.warning("Operation cancelled.")
        return

    removed = workspace.clean_empty(dirs, keep_empty=keep_empty)
    if out.json_output:
        out.output_json({"removed": removed})
    else:
        out.success(f"Removed {removed} empty director{'y' if removed == 1 else 'ies'}")


@main.command()
@click.argument("name", required=False)
@click.option("--check", "-c", is_flag=True, help="Only check for updates")
@click.option(
    "--status", "-s", "show_status", is_flag=True, help="Show workspace sync status"
)
@click.option(
    "--sync", "do_sync", is_flag=True, help="Sync loaded copies after updating"
)
@click.option("--sync-only", is_flag=True, help="Sync loaded copies without updating")
@click.option("--force", "-f", is_flag=True, help="Re-copy even if already up to date")
@click.option("--dry-run", is_flag=True, help="Show what would be synced")
@click.pass_context
def update(
    ctx: Any,
    name: Optional[str],
    check: bool,
    show_status: bool,
    do_sync: bool,
    sync_only: bool,
    force: bool,
    dry_run: bool,
) -> None:
    """Update cached repositories and optionally sync workspace copies.

    NAME: Repository to update (all if omitted)
    """
    out: OutputFormatter = ctx.obj["out"]
    cache = _make_cache()
    store = LoadingStateStore()
    engine = SyncEngine(cache, store, output=out)
    working_directory = str(Path.cwd().resolve())

    try:
        if show_status:
            _show_status(out, engine, working_directory)
            return

        if sync_only:
            _run_sync(ctx, out, engine, working_directory, force, dry_run)
            return

        if name:
            infos = [cache.require(name)]
        else:
            infos = cache.list()
            if not infos:
                out.warning("No repositories found.")
                out.info("Use 'grf add <url>' to add a repository.")
                return

        out.info("Checking repositories..." if check else "Updating repositories...")
        results: list[UpdateResult] = []
        for info in infos:
            result = cache.refresh(info, check_only=check)
            results.append(result)
            if not out.json_output:
                _show_update_result(out, result)
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json([r.to_dict() for r in results])

    errors = [r for r in results if r.status is UpdateStatus.ERROR]
    updated = [r for r in results if r.status is UpdateStatus.UPDATED]
    pending = [r for r in results if r.status is UpdateStatus.HAS_UPDATES]
    up_to_date = [r for r in results if r.status is UpdateStatus.UP_TO_DATE]
    if check:
        counts = [("Has updates", str(len(pending)))]
    else:
        counts = [("Updated", str(len(updated)))]
    counts += [("Up to date", str(len(up_to_date))), ("Failed", str(len(errors)))]
    out.print_summary("Check Complete" if check else "Update Complete", counts)
    if errors:
        ctx.exit(1)
        return

    if do_sync and not check:
        sync_name = infos[0].name if name else None
        _run_sync(ctx, out, engine, working_directory, force, dry_run, sync_name)


def _show_status(
    out: OutputFormatter, engine: SyncEngine, working_directory: str
) -> None:
    statuses = engine.status_all(working_directory=working_directory)
    if out.json_output:
        out.output_json(
            [
                {"name": r.name, "target_path": r.target_path, **s.to_dict()}
                for r, s in statuses
            ]
        )
        return
    if not statuses:
        out.warning("No loaded reference code.")
        return

    out.output_table(
        [
            {
                "name": record.name,
                "target": record.target_path,
                "loaded": short_revision(status.loaded_revision),
                "cache": short_revision(status.cache_revision),
                "state": "needs sync" if status.needs_sync else status.reason,
            }
            for record, status in statuses
        ],
        ["name", "target", "loaded", "cache", "state"],
        {
            "name": "Repository",
            "target": "Target",
            "loaded": "Loaded",
            "cache": "Cache",
            "state": "Status",
        },
    )


def _run_sync(
    ctx: Any,
    out: OutputFormatter,
    engine: SyncEngine,
    working_directory: str,
    force: bool,
    dry_run: bool,
    name: Optional[str] = None,
) -> None:
    if dry_run:
        pending = [
            (record, status)
            for record, status in engine.status_all(working_directory=working_directory)
            if (name is None or record.name == name)
            and (status.needs_sync or (force and status.cache_exists))
        ]
        if out.json_output:
            out.output_json(
                [{"name": r.name, "target_path": r.target_path} for r, _ in pending]
            )
            return
        if not pending:
            out.info("Everything is in sync.")
            return
        out.info("[Dry run] Would sync:")
        for record, status in pending:
            out.print(
                f"  {record.target_path}: {short_revision(status.loaded_revision)} -> "
                f"{short_revision(status.cache_revision)}"
            )
        return

    results = engine.sync_all(
        force=force, working_directory=working_directory, name=name
    )
    if not results:
        if out.json_output:
            out.output_json([])
        else:
            out.warning("No loaded reference code.")
        return

    if _show_sync_results(out, results):
        ctx.exit(1)


# =============================================================================
# Configuration
# =============================================================================


@main.command("config")
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "show_path", is_flag=True, help="Show the config file location")
@click.pass_context
def config_command(
    ctx: Any, key: Optional[str], value: Optional[str], show_path: bool
) -> None:
    """Show or change settings.

    KEY: Setting name (default_branch, shallow_clone, shallow_depth)

    VALUE: New value for KEY
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        if show_path:
            path = config.get_config_path(key)
            if out.json_output:
                out.output_json({"path": str(path)})
            else:
                click.echo(str(path))
            return

        if key is None:
            values = config.get_all()
            if out.json_output:
                out.output_json(values)
            else:
                out.print_summary(
                    "Configuration", [(k, str(v)) for k, v in values.items()]
                )
            return

        if value is None:
            current = config.get(key)
            if out.json_output:
                out.output_json({key: current})
            else:
                click.echo(str(current))
            return

        stored = config.set(key, value)
    except GitRefError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json({key: stored})
    else:
        out.success(f"Set {key} = {stored}")


if __name__ == "__main__":
    main()
