"""
Record store for the FAT volume simulator.

Holds the five collections (volume, entries, FAT slots, cluster payloads,
events) in memory with the indexes the core needs, notifies subscribers
when something changed, and loads/flushes the whole store as one JSON
document.
"""

import json
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from .constants import STORE_FORMAT_VERSION
from .exceptions import StoreError
from .logging_config import get_logger
from .models import ClusterData, Entry, Event, FatSlot, Volume

log = get_logger('store')

ChangeHandler = Callable[[], None]


class RecordStore:
    """
    Indexed in-memory record store with explicit flush to a JSON file.

    Entries are indexed by id and by parent id, FAT slots and cluster
    payloads by cluster number. Records are returned by reference;
    callers that mutate an entry must call update_entry() so the parent
    index stays current.
    """

    def __init__(self, path: str | os.PathLike | None = None):
        self.path: Path | None = Path(path) if path is not None else None
        self._volume: Volume | None = None
        self._entries: dict[str, Entry] = {}
        self._children: dict[str | None, dict[str, None]] = {}
        self._parent_of: dict[str, str | None] = {}
        self._fat: dict[int, FatSlot] = {}
        self._clusters: dict[int, ClusterData] = {}
        self._events: list[Event] = []
        self._sequence: int = 0
        self._subscribers: list[ChangeHandler] = []
        self._dirty: bool = False
        self._revision: int = 0

    # =========================================================================
    # Persistence
    # =========================================================================

    @classmethod
    def open(cls, path: str | os.PathLike) -> 'RecordStore':
        """Open a store file, creating an empty store if it does not exist."""
        store = cls(path)
        if store.path.exists():
            store.load()
        return store

    def load(self) -> None:
        """Replace the in-memory state with the contents of the store file."""
        if self.path is None:
            raise StoreError("Store has no file path")
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt store file {self.path}: {e}")
        except OSError as e:
            raise StoreError(f"Cannot read store file: {e}")

        self._load_document(document)
        self._dirty = False
        log.debug("Loaded store %s (%d entries, %d FAT slots)",
                  self.path, len(self._entries), len(self._fat))

    def _load_document(self, document: dict[str, Any]) -> None:
        if not isinstance(document, dict):
            raise StoreError("Store document must be a JSON object")
        version = document.get('format_version')
        if version != STORE_FORMAT_VERSION:
            raise StoreError(f"Unsupported store format version: {version}")

        self.clear()
        volume = document.get('volume')
        self._volume = Volume.from_dict(volume) if volume else None
        for data in document.get('entries', []):
            self.insert_entry(Entry.from_dict(data))
        for data in document.get('fat', []):
            self.insert_fat_slot(FatSlot.from_dict(data))
        for data in document.get('clusters', []):
            self.put_cluster_data(ClusterData.from_dict(data))
        self._events = [Event.from_dict(data) for data in document.get('events', [])]
        self._sequence = int(document.get('sequence', 0))

    def to_document(self) -> dict[str, Any]:
        """Serialize every collection into one JSON-compatible dictionary."""
        return {
            'format_version': STORE_FORMAT_VERSION,
            'sequence': self._sequence,
            'volume': self._volume.to_dict() if self._volume else None,
            'entries': [e.to_dict() for e in self._entries.values()],
            'fat': [self._fat[c].to_dict() for c in sorted(self._fat)],
            'clusters': [self._clusters[c].to_dict() for c in sorted(self._clusters)],
            'events': [e.to_dict() for e in self._events],
        }

    def flush(self) -> None:
        """Write the store to its file if anything changed since the last flush."""
        if self.path is None or not self._dirty:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file first so a failed dump keeps the old file
        fd, tmp_name = tempfile.mkstemp(prefix='.fatsim-', suffix='.tmp', dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self.to_document(), f)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Cannot write store file: {e}")

        self._dirty = False
        log.debug("Flushed store to %s", self.path)

    def close(self) -> None:
        """Flush and drop subscribers."""
        self.flush()
        self._subscribers.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def revision(self) -> int:
        """Counter bumped by every record change; id sequence draws do not count."""
        return self._revision

    def mark_dirty(self) -> None:
        self._dirty = True
        self._revision += 1

    # =========================================================================
    # Change notification
    # =========================================================================

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register a change handler. Returns a function that unregisters it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def notify_change(self) -> None:
        """Call every subscriber, in registration order."""
        for handler in list(self._subscribers):
            handler()

    # =========================================================================
    # Sequence (fresh ids)
    # =========================================================================

    def next_sequence(self) -> int:
        """Return the next value of the store-wide sequence. Never repeats."""
        self._sequence += 1
        self._dirty = True
        return self._sequence

    # =========================================================================
    # Volume
    # =========================================================================

    def get_volume(self) -> Volume | None:
        return self._volume

    def put_volume(self, volume: Volume) -> None:
        self._volume = volume
        self.mark_dirty()

    # =========================================================================
    # Entries
    # =========================================================================

    def get_entry(self, entry_id: str | None) -> Entry | None:
        if entry_id is None:
            return None
        return self._entries.get(entry_id)

    def insert_entry(self, entry: Entry) -> Entry:
        if entry.id in self._entries:
            raise StoreError(f"Duplicate entry id: {entry.id}")
        self._entries[entry.id] = entry
        self._index_parent(entry.id, entry.parent_id)
        self.mark_dirty()
        return entry

    def update_entry(self, entry: Entry) -> None:
        """Record changes made to an entry, reindexing it if its parent moved."""
        if entry.id not in self._entries:
            raise StoreError(f"Unknown entry id: {entry.id}")
        self._entries[entry.id] = entry
        if self._parent_of.get(entry.id) != entry.parent_id:
            self._unindex_parent(entry.id)
            self._index_parent(entry.id, entry.parent_id)
        self.mark_dirty()

    def remove_entry(self, entry_id: str) -> None:
        """Physically erase an entry. Only format does this; deletes tombstone."""
        if self._entries.pop(entry_id, None) is not None:
            self._unindex_parent(entry_id)
            self.mark_dirty()

    def _index_parent(self, entry_id: str, parent_id: str | None) -> None:
        self._children.setdefault(parent_id, {})[entry_id] = None
        self._parent_of[entry_id] = parent_id

    def _unindex_parent(self, entry_id: str) -> None:
        parent_id = self._parent_of.pop(entry_id, None)
        siblings = self._children.get(parent_id)
        if siblings is not None:
            siblings.pop(entry_id, None)
            if not siblings:
                del self._children[parent_id]

    def entries(self, include_deleted: bool = True) -> list[Entry]:
        return [e for e in self._entries.values() if include_deleted or e.is_live]

    def children_of(self, parent_id: str, include_deleted: bool = False) -> list[Entry]:
        """Entries whose parent is parent_id, in insertion order."""
        ids = self._children.get(parent_id, {})
        result = []
        for entry_id in ids:
            entry = self._entries[entry_id]
            if include_deleted or entry.is_live:
                result.append(entry)
        return result

    def find_child(self, parent_id: str, name: str) -> Entry | None:
        """Live child of parent_id named name, if any."""
        for entry in self.children_of(parent_id):
            if entry.name == name:
                return entry
        return None

    def count_entries(self) -> int:
        return len(self._entries)

    # =========================================================================
    # FAT slots
    # =========================================================================

    def get_fat_slot(self, cluster: int) -> FatSlot | None:
        return self._fat.get(cluster)

    def insert_fat_slot(self, slot: FatSlot) -> None:
        if slot.cluster in self._fat:
            raise StoreError(f"Duplicate FAT slot: {slot.cluster}")
        self._fat[slot.cluster] = slot
        self.mark_dirty()

    def update_fat_slot(self, slot: FatSlot) -> None:
        if slot.cluster not in self._fat:
            raise StoreError(f"Unknown FAT slot: {slot.cluster}")
        self._fat[slot.cluster] = slot
        self.mark_dirty()

    def fat_slots(self) -> Iterator[FatSlot]:
        """All FAT slots in cluster order."""
        for cluster in sorted(self._fat):
            yield self._fat[cluster]

    def fat_slots_owned_by(self, owner_entry_id: str) -> list[FatSlot]:
        return [s for s in self.fat_slots() if s.owner_entry_id == owner_entry_id]

    def clear_fat(self) -> None:
        self._fat.clear()
        self.mark_dirty()

    # =========================================================================
    # Cluster payloads
    # =========================================================================

    def get_cluster_data(self, cluster: int) -> ClusterData | None:
        return self._clusters.get(cluster)

    def put_cluster_data(self, record: ClusterData) -> None:
        """Insert or replace the payload record of a cluster."""
        self._clusters[record.cluster] = record
        self.mark_dirty()

    def remove_cluster_data(self, cluster: int) -> None:
        if self._clusters.pop(cluster, None) is not None:
            self.mark_dirty()

    def cluster_data_records(self) -> list[ClusterData]:
        return [self._clusters[c] for c in sorted(self._clusters)]

    def cluster_data_owned_by(self, owner_entry_id: str) -> list[ClusterData]:
        return [r for r in self.cluster_data_records() if r.owner_entry_id == owner_entry_id]

    def clear_cluster_data(self) -> None:
        self._clusters.clear()
        self.mark_dirty()

    # =========================================================================
    # Events
    # =========================================================================

    def append_event(self, event: Event) -> None:
        self._events.append(event)
        self.mark_dirty()

    def events(self, op_id: str | None = None, action: str | None = None) -> list[Event]:
        """Events in append order, optionally filtered by operation id and action."""
        return [
            e for e in self._events
            if (op_id is None or e.op_id == op_id) and (action is None or e.action == action)
        ]

    def clear_events(self) -> None:
        self._events.clear()
        self.mark_dirty()

    # =========================================================================
    # Whole-store
    # =========================================================================

    def clear(self) -> None:
        """Drop every record (subscribers and the id sequence are kept)."""
        self._volume = None
        self._entries.clear()
        self._children.clear()
        self._parent_of.clear()
        self._fat.clear()
        self._clusters.clear()
        self._events.clear()
        self.mark_dirty()
