"""Tree comparison logic for diff and sync operations."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..exceptions import NotFoundError, RepoFSError
from ..fs.entries import DirectoryEntry, Entry, FileEntry
from ..utils import JSON_SUFFIX, join_path, json_equal

logger = logging.getLogger(__name__)

KIND_CHANGED = "kind changed"


class ChangeKind(str, Enum):
    """How a path differs between the left and right trees."""

    ADDED = "added"
    """Path exists only on the right"""

    REMOVED = "removed"
    """Path exists only on the left"""

    MODIFIED = "modified"
    """Path exists on both sides with different content or kind"""

    UNCHANGED = "unchanged"
    """Path exists on both sides with the same content"""


@dataclass
class ChangeRecord:
    """Represents one difference found between two trees."""

    path: str
    """Root-relative path of the entry"""

    kind: ChangeKind
    """Kind of change"""

    left: Optional[Entry]
    """Left entry (if exists)"""

    right: Optional[Entry]
    """Right entry (if exists)"""

    note: str = ""
    """Extra detail, e.g. "kind changed\""""

    @property
    def kind_changed(self) -> bool:
        return (
            self.left is not None
            and self.right is not None
            and self.left.kind != self.right.kind
        )

    @property
    def status_letter(self) -> str:
        """Single-letter status as printed by ``diff --name-status``."""
        if self.kind_changed:
            return "T"
        return {
            ChangeKind.ADDED: "A",
            ChangeKind.REMOVED: "D",
            ChangeKind.MODIFIED: "M",
            ChangeKind.UNCHANGED: "=",
        }[self.kind]


@dataclass
class PathError:
    """A failure resolving or comparing one path."""

    path: str
    error: RepoFSError

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class DiffResult:
    """Ordered change records plus per-path failures."""

    changes: list[ChangeRecord] = field(default_factory=list)
    errors: list[PathError] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(c.kind != ChangeKind.UNCHANGED for c in self.changes)

    @property
    def ok(self) -> bool:
        return not self.errors

    def by_kind(self) -> dict[ChangeKind, list[ChangeRecord]]:
        grouped: dict[ChangeKind, list[ChangeRecord]] = {k: [] for k in ChangeKind}
        for change in self.changes:
            grouped[change.kind].append(change)
        return grouped

    def paths(self, kind: ChangeKind) -> list[str]:
        return [c.path for c in self.changes if c.kind == kind]

    def extend(self, other: "DiffResult") -> None:
        self.changes.extend(other.changes)
        self.errors.extend(other.errors)


_Slot = Union[DiffResult, "Future[DiffResult]"]


class DiffEngine:
    """Walks two trees in lock-step by name and reports differences.

    Records come out in sorted-name order at every level. Errors while
    resolving a subtree are recorded against that path and the walk goes
    on with its siblings.

    Examples:
        >>> engine = DiffEngine()
        >>> result = engine.diff(remote_root, local_root)
        >>> result.paths(ChangeKind.ADDED)
        ['cookbook_artifacts/apache-2b3c']
    """

    def __init__(
        self,
        max_workers: int = 1,
        include_unchanged: bool = False,
        fan_out_depth: int = 1,
    ):
        """Initialize diff engine.

        Args:
            max_workers: Number of parallel workers (1 = sequential)
            include_unchanged: Whether to keep UNCHANGED records
            fan_out_depth: Directory depth below which subtrees are handed
                to the worker pool (0 = children of the roots)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.include_unchanged = include_unchanged
        self.fan_out_depth = fan_out_depth

    def diff(self, left: Entry, right: Entry) -> DiffResult:
        """Compare two trees rooted at equivalent paths.

        Args:
            left: Left (old) entry; names only here are REMOVED
            right: Right (new) entry; names only here are ADDED

        Returns:
            DiffResult with ordered change records and per-path errors
        """
        left.backend.refresh()
        if right.backend is not left.backend:
            right.backend.refresh()

        slots: list[_Slot] = []
        pool = (
            ThreadPoolExecutor(max_workers=self.max_workers)
            if self.max_workers > 1
            else nullcontext()
        )
        with pool as executor:
            self._diff_top(left, right, slots, executor)
            result = self._merge(slots)

        logger.debug(
            "Diff of %s: %d change(s), %d error(s)",
            left.display_path(),
            len(result.changes),
            len(result.errors),
        )
        return result

    def diff_subtree(self, left: Entry, right: Entry) -> DiffResult:
        """Sequentially compare two entries known to exist on both sides."""
        slots: list[_Slot] = []
        self._diff_pair(left, right, slots, None, depth=0)
        return self._merge(slots)

    # =========================
    # Traversal
    # =========================

    def _diff_top(
        self,
        left: Entry,
        right: Entry,
        slots: list[_Slot],
        executor: Optional[ThreadPoolExecutor],
    ) -> None:
        """Handle the starting pair, which may be absent on either side."""
        path = right.path
        try:
            left_exists = left.is_root or left.exists()
            right_exists = right.is_root or right.exists()
        except RepoFSError as e:
            self._error(slots, path, e)
            return

        if left_exists and right_exists:
            self._diff_pair(left, right, slots, executor, depth=0)
        elif left_exists:
            self._record(slots, ChangeRecord(path, ChangeKind.REMOVED, left, None))
        elif right_exists:
            self._record(slots, ChangeRecord(path, ChangeKind.ADDED, None, right))
        else:
            self._error(
                slots, path, NotFoundError(f"Path not found: /{path}", path=path)
            )

    def _diff_pair(
        self,
        left: Entry,
        right: Entry,
        slots: list[_Slot],
        executor: Optional[ThreadPoolExecutor],
        depth: int,
    ) -> None:
        if isinstance(left, DirectoryEntry) and isinstance(right, DirectoryEntry):
            self._diff_children(left, right, slots, executor, depth)
        elif isinstance(left, FileEntry) and isinstance(right, FileEntry):
            if executor is not None:
                slots.append(executor.submit(self._compare_leaves_result, left, right))
            else:
                slots.append(self._compare_leaves_result(left, right))
        else:
            self._record(
                slots,
                ChangeRecord(
                    right.path, ChangeKind.MODIFIED, left, right, note=KIND_CHANGED
                ),
            )

    def _diff_children(
        self,
        left: DirectoryEntry,
        right: DirectoryEntry,
        slots: list[_Slot],
        executor: Optional[ThreadPoolExecutor],
        depth: int,
    ) -> None:
        try:
            left_names = set(left.child_names())
        except RepoFSError as e:
            self._error(slots, left.path, e)
            return
        try:
            right_names = set(right.child_names())
        except RepoFSError as e:
            self._error(slots, right.path, e)
            return

        for name in sorted(left_names | right_names):
            path = join_path(right.path, name)
            try:
                left_child = left.make_child_entry(name) if name in left_names else None
                right_child = (
                    right.make_child_entry(name) if name in right_names else None
                )
            except RepoFSError as e:
                self._error(slots, path, e)
                continue

            if right_child is None:
                self._record(
                    slots, ChangeRecord(path, ChangeKind.REMOVED, left_child, None)
                )
            elif left_child is None:
                self._record(
                    slots, ChangeRecord(path, ChangeKind.ADDED, None, right_child)
                )
            elif (
                executor is not None
                and depth >= self.fan_out_depth
                and isinstance(left_child, DirectoryEntry)
                and isinstance(right_child, DirectoryEntry)
            ):
                slots.append(
                    executor.submit(self.diff_subtree, left_child, right_child)
                )
            else:
                self._diff_pair(left_child, right_child, slots, executor, depth + 1)

    # =========================
    # Content comparison
    # =========================

    def _compare_leaves_result(self, left: FileEntry, right: FileEntry) -> DiffResult:
        result = DiffResult()
        try:
            equal = self.contents_equal(left, right)
        except RepoFSError as e:
            result.errors.append(PathError(right.path, e))
            return result

        if not equal:
            result.changes.append(
                ChangeRecord(right.path, ChangeKind.MODIFIED, left, right)
            )
        elif self.include_unchanged:
            result.changes.append(
                ChangeRecord(right.path, ChangeKind.UNCHANGED, left, right)
            )
        return result

    @staticmethod
    def contents_equal(left: FileEntry, right: FileEntry) -> bool:
        """Compare two leaves.

        Matching backend checksums mean equal content. Otherwise the bytes
        are compared, and JSON documents are equal when they parse to the
        same value, so a checksum mismatch alone never makes two ``.json``
        leaves differ.
        """
        is_json = right.name.endswith(JSON_SUFFIX)
        left_sum = left.checksum()
        right_sum = right.checksum()
        if left_sum is not None and right_sum is not None:
            if left_sum == right_sum:
                return True
            if not is_json:
                return False

        left_data = left.read()
        right_data = right.read()
        if left_data == right_data:
            return True
        if is_json:
            return json_equal(left_data, right_data)
        return False

    # =========================
    # Slot helpers
    # =========================

    @staticmethod
    def _merge(slots: list[_Slot]) -> DiffResult:
        """Concatenate slots in order, waiting on pending futures."""
        result = DiffResult()
        for slot in slots:
            result.extend(slot if isinstance(slot, DiffResult) else slot.result())
        return result

    def _current(self, slots: list[_Slot]) -> DiffResult:
        last = slots[-1] if slots else None
        if isinstance(last, DiffResult):
            return last
        current = DiffResult()
        slots.append(current)
        return current

    def _record(self, slots: list[_Slot], record: ChangeRecord) -> None:
        if record.kind == ChangeKind.UNCHANGED and not self.include_unchanged:
            return
        self._current(slots).changes.append(record)

    def _error(self, slots: list[_Slot], path: str, error: RepoFSError) -> None:
        logger.debug("Error at %s: %s", path, error)
        self._current(slots).errors.append(PathError(path, error))
