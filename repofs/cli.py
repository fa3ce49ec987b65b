"""CLI interface for comparing and syncing repository trees."""

import difflib
import logging
from pathlib import Path
from typing import Any, Optional

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from .api import RepoFSClient
from .backends import LocalBackend, RemoteBackend
from .config import config
from .exceptions import RepoFSError
from .fs import DirectoryEntry, Entry, FileEntry, repository_root, resolve
from .output import OutputFormatter
from .sync import ChangeKind, ChangeRecord, DiffEngine, DiffResult, SyncEngine
from .utils import normalize_path

logger = logging.getLogger(__name__)


def _local_root(ctx: Any) -> DirectoryEntry:
    backend = LocalBackend(ctx.obj["repo"])
    return repository_root(backend, artifact_categories=config.artifact_categories)


def _remote_root(ctx: Any) -> DirectoryEntry:
    client = RepoFSClient(
        server_url=ctx.obj["server"],
        api_key=ctx.obj["api_key"],
        timeout=config.timeout,
    )
    ctx.call_on_close(client.close)
    backend = RemoteBackend(
        client,
        categories=config.categories,
        artifact_categories=config.artifact_categories,
    )
    return repository_root(backend, artifact_categories=config.artifact_categories)


def _resolve_pattern(root: DirectoryEntry, pattern: Optional[str]) -> Entry:
    try:
        path = normalize_path(pattern)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="PATTERN")
    return resolve(root, path)


def _workers(workers: Optional[int]) -> int:
    return workers if workers is not None else config.workers


@click.group()
@click.option(
    "--repo",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Local repository directory (default: REPOFS_REPO_PATH or .)",
)
@click.option("--server", "-s", help="Server API URL (default: REPOFS_SERVER_URL)")
@click.option("--api-key", "-k", envvar="REPOFS_API_KEY", help="Server API token")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="repofs")
@click.pass_context
def main(
    ctx: Any,
    repo: Optional[Path],
    server: Optional[str],
    api_key: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """repofs - Compare and sync a local repository with a remote server."""
    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo or config.repo_path
    ctx.obj["server"] = server
    ctx.obj["api_key"] = api_key
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("repofs").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


# =========================
# diff
# =========================


def _record_to_dict(record: ChangeRecord) -> dict:
    return {
        "path": record.path,
        "status": record.kind.value,
        "note": record.note,
    }


def _print_unified(out: OutputFormatter, record: ChangeRecord) -> None:
    left, right = record.left, record.right
    if not (isinstance(left, FileEntry) and isinstance(right, FileEntry)):
        out.print(f"Modified: {record.path}")
        return
    try:
        old = left.read().decode("utf-8").splitlines(keepends=True)
        new = right.read().decode("utf-8").splitlines(keepends=True)
    except UnicodeDecodeError:
        out.print(f"Binary files {record.path} differ")
        return
    lines = difflib.unified_diff(
        old,
        new,
        fromfile=f"{left.backend.label}/{record.path}",
        tofile=f"{right.backend.label}/{record.path}",
    )
    for line in lines:
        out.print(line.rstrip("\n"))


def _print_diff(
    out: OutputFormatter,
    result: DiffResult,
    left_label: str,
    right_label: str,
    name_status: bool,
) -> None:
    if out.json_output:
        out.print_json(
            {
                "changes": [_record_to_dict(r) for r in result.changes],
                "errors": [{"path": e.path, "error": e.message} for e in result.errors],
            }
        )
        return

    for record in result.changes:
        if name_status:
            out.print(f"{record.status_letter}\t{record.path}")
        elif record.kind == ChangeKind.ADDED:
            out.print(f"Only in {right_label}: {record.path}")
        elif record.kind == ChangeKind.REMOVED:
            out.print(f"Only in {left_label}: {record.path}")
        elif record.kind_changed:
            left_kind = record.left.kind.value if record.left else "?"
            right_kind = record.right.kind.value if record.right else "?"
            out.print(
                f"{record.path} is a {left_kind} in {left_label} "
                f"and a {right_kind} in {right_label}"
            )
        elif record.kind == ChangeKind.MODIFIED:
            try:
                _print_unified(out, record)
            except RepoFSError as e:
                out.error(f"Cannot show diff for {record.path}: {e}")
        else:
            out.print(f"Unchanged: {record.path}")

    for error in result.errors:
        out.error(f"{error.path}: {error.message}")


@main.command()
@click.argument("pattern", required=False, default=None)
@click.option(
    "--name-status", is_flag=True, help="Only show the status letter and path"
)
@click.option(
    "--include-unchanged", is_flag=True, help="Also report identical files"
)
@click.option("--workers", type=int, default=None, help="Number of parallel workers")
@click.pass_context
def diff(
    ctx: Any,
    pattern: Optional[str],
    name_status: bool,
    include_unchanged: bool,
    workers: Optional[int],
) -> None:
    """Show differences between the server (left) and the local repository.

    PATTERN restricts the comparison to one path, e.g. roles or
    cookbook_artifacts/apache-1a2b.

    Exit status is 0 when the trees match, 1 when they differ and 2 when
    any path could not be compared.

    Examples:
        repofs diff
        repofs diff cookbook_artifacts --name-status
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        remote = _resolve_pattern(_remote_root(ctx), pattern)
        local = _resolve_pattern(_local_root(ctx), pattern)
        engine = DiffEngine(
            max_workers=_workers(workers), include_unchanged=include_unchanged
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=out.err_console,
            disable=out.quiet or out.json_output,
        ) as progress:
            progress.add_task("Comparing trees...", total=None)
            result = engine.diff(remote, local)
    except RepoFSError as e:
        out.error(str(e))
        ctx.exit(2)
        return

    _print_diff(
        out, result, remote.backend.label, local.backend.label, name_status
    )

    if not result.ok:
        ctx.exit(2)
    if result.has_changes:
        ctx.exit(1)


# =========================
# upload / download
# =========================


_PLANNED_VERBS = {
    ChangeKind.ADDED: "copy",
    ChangeKind.MODIFIED: "update",
    ChangeKind.REMOVED: "delete",
}


def _run_sync(
    ctx: Any,
    source: Entry,
    destination: Entry,
    purge: bool,
    dry_run: bool,
    workers: Optional[int],
) -> None:
    out: OutputFormatter = ctx.obj["out"]
    engine = SyncEngine(
        output=out,
        delete=purge,
        dry_run=dry_run,
        max_workers=_workers(workers),
    )
    result = engine.sync(source, destination)

    if out.json_output:
        out.print_json(
            {
                "outcomes": [
                    {
                        "path": o.path,
                        "change": o.record.kind.value,
                        "status": o.status.value,
                        "error": str(o.error) if o.error else None,
                    }
                    for o in result.outcomes
                ],
                "errors": [
                    {"path": e.path, "error": e.message} for e in result.diff_errors
                ],
            }
        )
    elif dry_run:
        for outcome in result.planned:
            verb = _PLANNED_VERBS.get(outcome.record.kind, "update")
            out.print(f"Would {verb}: {outcome.path}")

    if not result.ok:
        ctx.exit(1)


def _sync_options(func: Any) -> Any:
    func = click.option(
        "--workers", type=int, default=None, help="Number of parallel workers"
    )(func)
    func = click.option(
        "--dry-run", is_flag=True, help="Show what would be done without doing it"
    )(func)
    func = click.option(
        "--purge",
        is_flag=True,
        help="Delete destination paths that do not exist in the source",
    )(func)
    func = click.argument("pattern", required=False, default=None)(func)
    return func


@main.command()
@_sync_options
@click.pass_context
def upload(
    ctx: Any,
    pattern: Optional[str],
    purge: bool,
    dry_run: bool,
    workers: Optional[int],
) -> None:
    """Upload local repository content to the server.

    Examples:
        repofs upload
        repofs upload cookbook_artifacts --dry-run
        repofs upload roles --purge
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        local = _resolve_pattern(_local_root(ctx), pattern)
        remote = _resolve_pattern(_remote_root(ctx), pattern)
    except RepoFSError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    _run_sync(ctx, local, remote, purge, dry_run, workers)


@main.command()
@_sync_options
@click.pass_context
def download(
    ctx: Any,
    pattern: Optional[str],
    purge: bool,
    dry_run: bool,
    workers: Optional[int],
) -> None:
    """Download server content into the local repository.

    Examples:
        repofs download
        repofs download roles --purge
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        remote = _resolve_pattern(_remote_root(ctx), pattern)
        local = _resolve_pattern(_local_root(ctx), pattern)
    except RepoFSError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    _run_sync(ctx, remote, local, purge, dry_run, workers)


# =========================
# list / show
# =========================


@main.command(name="list")
@click.argument("path", required=False, default=None)
@click.option("--remote", "-r", is_flag=True, help="List the server tree")
@click.option("--recursive", "-R", is_flag=True, help="List recursively")
@click.pass_context
def list_cmd(ctx: Any, path: Optional[str], remote: bool, recursive: bool) -> None:
    """List entries of the local (or remote) tree.

    Directories are shown with a trailing slash.
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _remote_root(ctx) if remote else _local_root(ctx)
        entry = _resolve_pattern(root, path)
        if isinstance(entry, DirectoryEntry):
            entries = list(entry.walk()) if recursive else entry.children()
        elif entry.exists():
            entries = [entry]
        else:
            out.error(f"Path not found: {entry.display_path()}")
            ctx.exit(1)
            return
    except RepoFSError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.print_json([{"path": e.path, "kind": e.kind.value} for e in entries])
        return
    for child in entries:
        suffix = "/" if child.is_container else ""
        out.print(f"{child.path}{suffix}")


@main.command()
@click.argument("path")
@click.option("--remote", "-r", is_flag=True, help="Read from the server tree")
@click.pass_context
def show(ctx: Any, path: str, remote: bool) -> None:
    """Print the content of a file in the local (or remote) tree."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        root = _remote_root(ctx) if remote else _local_root(ctx)
        entry = _resolve_pattern(root, path)
        if not isinstance(entry, FileEntry):
            out.error(f"Not a file: {entry.display_path()}")
            ctx.exit(1)
            return
        data = entry.read()
    except RepoFSError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    try:
        out.print(data.decode("utf-8").rstrip("\n"))
    except UnicodeDecodeError:
        out.error(f"{entry.display_path()} is a binary file ({len(data)} bytes)")
        ctx.exit(1)


if __name__ == "__main__":
    main()
