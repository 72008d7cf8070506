"""
Path resolution for the FAT volume simulator.

Paths are '/'-separated. An absolute path starts with the root marker
'X:/'; any other path is relative to a current-directory entry. '.' is
skipped and '..' steps to the parent (staying put at the root). The walk
follows live entries, so 'a/..' still requires 'a' to exist.
"""

from typing import NamedTuple

from .constants import ROOT_ID, ROOT_MARKER
from .exceptions import CorruptedVolumeError, InvalidPathError, NotFoundError, TypeMismatchError
from .models import Entry
from .store import RecordStore
from .utils import is_root_path, join_path, split_path, validate_name


class ParentAndName(NamedTuple):
    parent_id: str
    name: str


class PathResolver:
    """Turns textual paths into entry ids and entry ids back into paths."""

    def __init__(self, store: RecordStore):
        self.store = store

    def live_entry(self, entry_id: str | None) -> Entry:
        """Return a live entry or raise NotFoundError."""
        entry = self.store.get_entry(entry_id)
        if entry is None or entry.deleted:
            raise NotFoundError("No such file or directory")
        return entry

    def live_directory(self, entry_id: str | None) -> Entry:
        """Return a live directory entry or raise NotFoundError/TypeMismatchError."""
        entry = self.live_entry(entry_id)
        if not entry.is_directory:
            raise TypeMismatchError(f"'{entry.name}' is not a directory")
        return entry

    def _walk(self, start_id: str, segments: list[str]) -> str:
        """Follow segments from start_id. Every step must leave a directory."""
        current = self.live_directory(start_id)

        for segment in segments:
            if not current.is_directory:
                raise TypeMismatchError(f"'{current.name}' is not a directory")
            if segment == '.':
                continue
            if segment == '..':
                if current.parent_id is not None:
                    current = self.live_entry(current.parent_id)
                continue
            child = self.store.find_child(current.id, segment)
            if child is None:
                raise NotFoundError(f"No such file or directory: '{segment}'")
            current = child

        return current.id

    def resolve(self, cwd_id: str, path: str) -> str:
        """Resolve path (absolute, or relative to cwd_id) to an entry id."""
        if is_root_path(path):
            return ROOT_ID

        is_absolute, segments = split_path(path)
        return self._walk(ROOT_ID if is_absolute else cwd_id, segments)

    def resolve_entry(self, cwd_id: str, path: str) -> Entry:
        return self.live_entry(self.resolve(cwd_id, path))

    def resolve_parent_and_name(self, cwd_id: str, path: str) -> ParentAndName:
        """
        Resolve all but the last segment to a directory and return it with
        the last segment as the name to create or rename to.
        """
        is_absolute, segments = split_path(path)
        if not segments:
            raise InvalidPathError(f"Invalid path: '{path}'")

        name = validate_name(segments[-1])
        parent_id = self._walk(ROOT_ID if is_absolute else cwd_id, segments[:-1])
        self.live_directory(parent_id)
        return ParentAndName(parent_id, name)

    def ancestors(self, entry_id: str) -> list[Entry]:
        """
        Entries from entry_id up to the root, inclusive.

        Bounded by the number of stored entries; a cycle or a missing parent
        raises CorruptedVolumeError.
        """
        chain = []
        limit = self.store.count_entries()
        current = self.live_entry(entry_id)

        while True:
            chain.append(current)
            if current.parent_id is None:
                break
            if len(chain) > limit:
                raise CorruptedVolumeError(f"Parent cycle above entry {entry_id}")
            parent = self.store.get_entry(current.parent_id)
            if parent is None or parent.deleted:
                raise CorruptedVolumeError(f"Entry {current.id} has no live parent")
            current = parent

        if current.id != ROOT_ID:
            raise CorruptedVolumeError(f"Entry {entry_id} is not attached to the root")
        return chain

    def is_same_or_descendant(self, ancestor_id: str, entry_id: str) -> bool:
        """True if entry_id is ancestor_id or lies somewhere below it."""
        return any(e.id == ancestor_id for e in self.ancestors(entry_id))

    def path_of(self, entry_id: str) -> str:
        """Render the absolute path of an entry: 'X:/' for the root, 'X:/a/b' below it."""
        chain = self.ancestors(entry_id)
        if len(chain) == 1:
            return ROOT_MARKER
        names = [e.name for e in reversed(chain[:-1])]
        return join_path(*names)
