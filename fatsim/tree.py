"""
Directory tree operations: create, remove, move, copy.

The tree is a flat collection of entries linked by parent_id. Deleting
never erases a record: the entry is tombstoned (deleted=True), its
storage freed, and it disappears from every live query. Ids are never
reused.
"""

from collections.abc import Iterator

from .constants import (
    ACTION_ATTR,
    ACTION_CP,
    ACTION_MKDIR,
    ACTION_MV,
    ACTION_RM,
    ACTION_TOUCH,
    ATTR_NAMES,
    ROOT_ID,
    TYPE_DIR,
    TYPE_FILE,
)
from .events import EventLog
from .exceptions import (
    DirectoryNotEmptyError,
    InvalidArgumentError,
    InvariantViolationError,
    NameConflictError,
    NotFoundError,
)
from .fat import ClusterAllocator
from .filedata import FileDataEngine
from .logging_config import get_logger
from .models import Attributes, Entry
from .paths import PathResolver
from .store import RecordStore
from .utils import now

log = get_logger('tree')


def sort_key(entry: Entry) -> tuple[int, str]:
    """Directories first, then by name."""
    return (0 if entry.is_directory else 1, entry.name)


class DirectoryTree:
    """Mutations of the directory tree that keep FAT and entries consistent."""

    def __init__(
        self,
        store: RecordStore,
        allocator: ClusterAllocator,
        data: FileDataEngine,
        resolver: PathResolver,
        events: EventLog,
    ):
        self.store = store
        self.allocator = allocator
        self.data = data
        self.resolver = resolver
        self.events = events

    # =========================================================================
    # Helpers
    # =========================================================================

    def _create_entry(self, parent_id: str, name: str, entry_type: str, attrs: Attributes) -> Entry:
        """
        Insert a live entry holding one freshly allocated cluster.

        The cluster is allocated before the entry is inserted, so a full
        disk leaves no half-created entry behind.
        """
        timestamp = now()
        entry = Entry(
            id=f"{entry_type}_{self.store.next_sequence()}",
            parent_id=parent_id,
            name=name,
            type=entry_type,
            attrs=attrs,
            size=0,
            first_cluster=0,
            deleted=False,
            created_at=timestamp,
            updated_at=timestamp,
        )
        entry.first_cluster = self.allocator.allocate(entry.id, 1).first_cluster
        return self.store.insert_entry(entry)

    def _alloc_one_cluster(self, entry: Entry) -> Entry:
        """Give an entry a single cluster unless it already has storage."""
        if entry.has_storage:
            return entry
        allocation = self.allocator.allocate(entry.id, 1)
        entry.first_cluster = allocation.first_cluster
        entry.updated_at = now()
        self.store.update_entry(entry)
        return entry

    def _free_storage(self, entry: Entry) -> None:
        if entry.first_cluster:
            self.allocator.free(entry.first_cluster)
        entry.first_cluster = 0
        entry.size = 0
        entry.updated_at = now()
        self.store.update_entry(entry)

    def _tombstone(self, entry: Entry) -> None:
        self._free_storage(entry)
        entry.deleted = True
        entry.updated_at = now()
        self.store.update_entry(entry)

    def _check_name_free(self, parent_id: str, name: str, message: str) -> None:
        if self.store.find_child(parent_id, name) is not None:
            raise NameConflictError(f"{message}: '{name}' already exists")

    def _resolve_destination(self, cwd_id: str, dst_path: str) -> tuple[str, str | None]:
        """
        Destination of a move or copy.

        An existing directory becomes the new parent and the source keeps
        its name (name None). Anything else names the new parent and name.
        """
        try:
            dst = self.resolver.resolve_entry(cwd_id, dst_path)
        except NotFoundError:
            dst = None

        if dst is not None and dst.is_directory:
            return dst.id, None

        parent_id, name = self.resolver.resolve_parent_and_name(cwd_id, dst_path)
        return parent_id, name

    # =========================================================================
    # Queries
    # =========================================================================

    def list_directory(self, dir_id: str) -> list[Entry]:
        """Live children of a directory, directories first, then by name."""
        directory = self.resolver.live_directory(dir_id)
        return sorted(self.store.children_of(directory.id), key=sort_key)

    def walk(self, dir_id: str) -> Iterator[tuple[str, Entry]]:
        """Yield (path, entry) for every live entry below dir_id, pre-order."""
        for entry in self.list_directory(dir_id):
            yield self.resolver.path_of(entry.id), entry
            if entry.is_directory:
                yield from self.walk(entry.id)

    # =========================================================================
    # Create
    # =========================================================================

    def create_directory(self, cwd_id: str, path: str) -> Entry:
        """Create an empty directory. It occupies one cluster."""
        with self.events.operation():
            parent_id, name = self.resolver.resolve_parent_and_name(cwd_id, path)
            self._check_name_free(parent_id, name, "mkdir")

            entry = self._create_entry(parent_id, name, TYPE_DIR, Attributes())

            self.events.emit(ACTION_MKDIR, f"mkdir {self.resolver.path_of(entry.id)}",
                             entries=[entry.id, parent_id])
            log.debug("Created directory %s (%s)", name, entry.id)
            return entry

    def create_file(self, cwd_id: str, path: str) -> Entry:
        """
        Create an empty file, or touch an existing entry.

        Touching refreshes updated_at and gives a file without storage one
        cluster; content is left alone.
        """
        with self.events.operation():
            parent_id, name = self.resolver.resolve_parent_and_name(cwd_id, path)

            existing = self.store.find_child(parent_id, name)
            if existing is not None:
                existing.updated_at = now()
                self.store.update_entry(existing)
                if existing.is_file:
                    self._alloc_one_cluster(existing)
                self.events.emit(ACTION_TOUCH, f"touch {self.resolver.path_of(existing.id)}",
                                 entries=[existing.id])
                return existing

            entry = self._create_entry(parent_id, name, TYPE_FILE, Attributes(archive=True))

            self.events.emit(ACTION_TOUCH, f"touch {self.resolver.path_of(entry.id)}",
                             entries=[entry.id, parent_id])
            log.debug("Created file %s (%s)", name, entry.id)
            return entry

    # =========================================================================
    # Remove
    # =========================================================================

    def _remove_recursive(self, entry: Entry) -> list[str]:
        """Tombstone an entry after all of its live descendants (post-order)."""
        removed = []
        if entry.is_directory:
            for child in self.store.children_of(entry.id):
                removed.extend(self._remove_recursive(child))
        self._tombstone(entry)
        removed.append(entry.id)
        return removed

    def remove(self, cwd_id: str, path: str, recursive: bool = False) -> list[str]:
        """
        Remove a file or directory. Returns the ids of the tombstoned entries.

        A directory with live children needs recursive=True.
        """
        with self.events.operation():
            target = self.resolver.resolve_entry(cwd_id, path)
            if target.id == ROOT_ID:
                raise InvariantViolationError("rm: cannot remove root")

            if target.is_directory and self.store.children_of(target.id) and not recursive:
                raise DirectoryNotEmptyError("rm: directory not empty (use -r)")

            if recursive:
                removed = self._remove_recursive(target)
            else:
                self._tombstone(target)
                removed = [target.id]

            self.events.emit(ACTION_RM, f"rm {path}", details={'removed': len(removed)},
                             entries=[target.id])
            log.debug("Removed %s (%d entries)", path, len(removed))
            return removed

    # =========================================================================
    # Move
    # =========================================================================

    def move(self, cwd_id: str, src_path: str, dst_path: str) -> Entry:
        """Reparent and/or rename an entry. No cluster is touched."""
        with self.events.operation():
            src = self.resolver.resolve_entry(cwd_id, src_path)
            if src.id == ROOT_ID:
                raise InvariantViolationError("mv: cannot move root")

            parent_id, name = self._resolve_destination(cwd_id, dst_path)
            name = name if name is not None else src.name
            self.resolver.live_directory(parent_id)

            if self.resolver.is_same_or_descendant(src.id, parent_id):
                raise InvariantViolationError("mv: cannot move a directory into itself")
            self._check_name_free(parent_id, name, "mv")

            src.parent_id = parent_id
            src.name = name
            src.updated_at = now()
            self.store.update_entry(src)

            self.events.emit(ACTION_MV, f"mv {src_path} {dst_path}", entries=[src.id, parent_id])
            log.debug("Moved %s to %s", src.id, self.resolver.path_of(src.id))
            return src

    # =========================================================================
    # Copy
    # =========================================================================

    def _clone_entry(self, src: Entry, dst_parent_id: str, dst_name: str) -> Entry:
        self.resolver.live_directory(dst_parent_id)
        self._check_name_free(dst_parent_id, dst_name, "cp")

        clone = self._create_entry(dst_parent_id, dst_name, src.type, src.attrs.copy())
        if src.is_file and src.has_storage:
            clone = self.data.clone(src.id, clone.id)
        return clone

    def _copy_tree(self, src: Entry, dst_parent_id: str, dst_name: str) -> Entry:
        # Children are listed before the clone exists so it can't copy itself
        children = self.list_directory(src.id) if src.is_directory else []
        clone = self._clone_entry(src, dst_parent_id, dst_name)
        for child in children:
            self._copy_tree(child, clone.id, child.name)
        return clone

    def copy(self, cwd_id: str, src_path: str, dst_path: str, recursive: bool = False) -> Entry:
        """
        Copy a file, or a directory subtree with recursive=True.

        Not transactional: a name collision deep in the tree aborts the copy
        and leaves the clones made so far in place.
        """
        with self.events.operation():
            src = self.resolver.resolve_entry(cwd_id, src_path)
            if src.is_directory and not recursive:
                raise InvalidArgumentError("cp: omitting directory (use -r)")

            parent_id, name = self._resolve_destination(cwd_id, dst_path)
            name = name if name is not None else src.name
            self.resolver.live_directory(parent_id)

            if src.is_directory and self.resolver.is_same_or_descendant(src.id, parent_id):
                raise InvariantViolationError("cp: cannot copy a directory into itself")

            clone = self._copy_tree(src, parent_id, name)

            self.events.emit(ACTION_CP, f"cp {src_path} {dst_path}",
                             entries=[src.id, clone.id, parent_id])
            log.debug("Copied %s to %s", src.id, clone.id)
            return clone

    # =========================================================================
    # Attributes
    # =========================================================================

    def set_attributes(self, cwd_id: str, path: str, **flags: bool) -> Entry:
        """Set any of readonly/hidden/system/archive on an entry."""
        unknown = set(flags) - set(ATTR_NAMES)
        if unknown:
            raise InvalidArgumentError(f"Unknown attribute(s): {', '.join(sorted(unknown))}")

        with self.events.operation():
            entry = self.resolver.resolve_entry(cwd_id, path)
            old = entry.attrs.attr_string()
            for name, value in flags.items():
                setattr(entry.attrs, name, bool(value))
            entry.updated_at = now()
            self.store.update_entry(entry)

            self.events.emit(ACTION_ATTR, f"attr {path}: {old} -> {entry.attrs.attr_string()}",
                             entries=[entry.id])
            return entry
