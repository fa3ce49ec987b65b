"""Core sync engine replaying diff records against a destination tree."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..exceptions import RepoFSError
from ..fs.entries import Entry
from ..output import OutputFormatter
from .comparator import ChangeKind, ChangeRecord, DiffEngine, DiffResult, PathError
from .operations import SyncOperations

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    """What happened to one change record."""

    DONE = "done"
    """Applied to the destination"""

    SKIPPED = "skipped"
    """Not applied (e.g. removal without the delete policy)"""

    FAILED = "failed"
    """Applying raised an error"""

    PLANNED = "planned"
    """Would be applied (dry run)"""


@dataclass
class SyncOutcome:
    """Result of applying one change record."""

    record: ChangeRecord
    status: SyncStatus
    error: Optional[RepoFSError] = None
    files_written: int = 0

    @property
    def path(self) -> str:
        return self.record.path


@dataclass
class SyncResult:
    """Outcomes in record order plus the errors found while diffing."""

    outcomes: list[SyncOutcome] = field(default_factory=list)
    diff_errors: list[PathError] = field(default_factory=list)

    def _with_status(self, status: SyncStatus) -> list[SyncOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> list[SyncOutcome]:
        return self._with_status(SyncStatus.DONE)

    @property
    def failed(self) -> list[SyncOutcome]:
        return self._with_status(SyncStatus.FAILED)

    @property
    def skipped(self) -> list[SyncOutcome]:
        return self._with_status(SyncStatus.SKIPPED)

    @property
    def planned(self) -> list[SyncOutcome]:
        return self._with_status(SyncStatus.PLANNED)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.diff_errors

    def stats(self) -> dict:
        """Count outcomes per category.

        Returns:
            Dictionary with copies, deletes, skips, failures and planned counts
        """
        stats = {"copies": 0, "deletes": 0, "skips": 0, "failures": 0, "planned": 0}
        for outcome in self.outcomes:
            if outcome.status == SyncStatus.DONE:
                if outcome.record.kind == ChangeKind.REMOVED:
                    stats["deletes"] += 1
                else:
                    stats["copies"] += 1
            elif outcome.status == SyncStatus.SKIPPED:
                stats["skips"] += 1
            elif outcome.status == SyncStatus.FAILED:
                stats["failures"] += 1
            else:
                stats["planned"] += 1
        return stats


class SyncEngine:
    """Makes a destination tree match a source tree.

    The engine is not transactional: every record is attempted and its
    outcome reported, failures included.
    """

    def __init__(
        self,
        output: Optional[OutputFormatter] = None,
        delete: bool = False,
        dry_run: bool = False,
        max_workers: int = 1,
    ):
        """Initialize sync engine.

        Args:
            output: Output formatter for displaying progress/status
            delete: Whether paths missing from the source are deleted
                from the destination
            dry_run: If True, only report what would be done
            max_workers: Number of parallel workers (default: 1)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.output = output or OutputFormatter(quiet=True)
        self.delete = delete
        self.dry_run = dry_run
        self.max_workers = max_workers

    def sync(self, source: Entry, destination: Entry) -> SyncResult:
        """Diff two trees and apply the differences to the destination.

        Args:
            source: Entry whose state should be copied
            destination: Entry at the equivalent path in the destination tree

        Returns:
            SyncResult with one outcome per change record

        Examples:
            >>> engine = SyncEngine(delete=True)
            >>> result = engine.sync(local_root, remote_root)
            >>> [o.path for o in result.failed]
            []
        """
        if not self.output.quiet:
            self.output.info(
                f"Syncing: {source.backend.label}{source.display_path()} -> "
                f"{destination.backend.label}{destination.display_path()}"
            )
            if self.dry_run:
                self.output.info("Dry run: No changes will be made")

        diff = DiffEngine(max_workers=self.max_workers).diff(destination, source)
        result = self.apply(diff, destination)

        if not self.output.quiet:
            self._display_summary(result)
        return result

    def apply(self, diff: DiffResult, destination: Entry) -> SyncResult:
        """Replay change records against the destination backend.

        Args:
            diff: Result of ``DiffEngine.diff(destination, source)``
            destination: Any entry of the destination tree

        Returns:
            SyncResult with one outcome per change record
        """
        operations = SyncOperations(destination.backend)
        result = SyncResult(diff_errors=list(diff.errors))

        start = time.time()
        if self.max_workers > 1 and len(diff.changes) > 1:
            logger.debug(
                "Applying %d records with %d workers",
                len(diff.changes),
                self.max_workers,
            )
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [
                    executor.submit(self._apply_record, record, operations)
                    for record in diff.changes
                ]
                result.outcomes = [future.result() for future in futures]
        else:
            result.outcomes = [
                self._apply_record(record, operations) for record in diff.changes
            ]
        elapsed = time.time() - start
        logger.debug("Applied %d records in %.2fs", len(diff.changes), elapsed)

        destination.backend.refresh()
        return result

    def _apply_record(
        self, record: ChangeRecord, operations: SyncOperations
    ) -> SyncOutcome:
        """Apply a single record, capturing any failure in the outcome."""
        if record.kind == ChangeKind.UNCHANGED:
            return SyncOutcome(record, SyncStatus.SKIPPED)
        if record.kind == ChangeKind.REMOVED and not self.delete:
            logger.debug("Not deleting %s (delete disabled)", record.path)
            return SyncOutcome(record, SyncStatus.SKIPPED)
        if self.dry_run:
            return SyncOutcome(record, SyncStatus.PLANNED)

        try:
            if record.kind == ChangeKind.REMOVED:
                operations.delete_path(record.path)
                return SyncOutcome(record, SyncStatus.DONE)

            source = record.right
            if source is None:
                raise RepoFSError(
                    f"No source entry to copy for {record.path}", path=record.path
                )
            if record.kind_changed:
                written = operations.replace_entry(source)
            else:
                written = operations.copy_entry(source)
            return SyncOutcome(record, SyncStatus.DONE, files_written=written)
        except RepoFSError as e:
            if not self.output.quiet:
                self.output.error(f"Error syncing {record.path}: {e}")
            logger.debug("Failed %s: %s", record.path, e)
            return SyncOutcome(record, SyncStatus.FAILED, error=e)

    def _display_summary(self, result: SyncResult) -> None:
        """Display sync summary.

        Args:
            result: Result of the sync
        """
        stats = result.stats()
        self.output.print("")
        if self.dry_run:
            self.output.success("Dry run complete!")
        elif result.ok:
            self.output.success("Sync complete!")
        else:
            self.output.warning("Sync finished with errors")

        total_actions = stats["copies"] + stats["deletes"] + stats["planned"]
        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if stats["copies"] > 0:
                self.output.info(f"  Copied: {stats['copies']}")
            if stats["deletes"] > 0:
                self.output.info(f"  Deleted: {stats['deletes']}")
            if stats["planned"] > 0:
                self.output.info(f"  Planned: {stats['planned']}")
        elif not result.failed:
            self.output.info("No changes needed - everything is in sync!")

        if stats["skips"] > 0:
            self.output.info(f"  Skipped: {stats['skips']}")
        for outcome in result.failed:
            self.output.error(f"  Failed: {outcome.path}: {outcome.error}")
        for error in result.diff_errors:
            self.output.error(f"  Error: {error.path}: {error.message}")
