"""
FAT volume facade.

FatFileSystem wires the record store, event log, allocator, data engine,
path resolver and directory tree together, formats volumes, and fires the
store's change notification after every mutation that changed a record.
"""

import functools
import os
from collections.abc import Callable, Iterator

from .constants import (
    ACTION_FORMAT,
    BOOTSTRAP_CLUSTER_SIZE,
    BOOTSTRAP_TOTAL_CLUSTERS,
    DEFAULT_BYTES_PER_SECTOR,
    DEFAULT_CLUSTER_SIZE,
    DEFAULT_FAT_TYPE,
    DEFAULT_LABEL,
    DEFAULT_TOTAL_CLUSTERS,
    FAT_EOC,
    FAT_FREE,
    FAT_RESERVED,
    FAT_TYPES,
    FIRST_DATA_CLUSTER,
    MIN_TOTAL_CLUSTERS,
    RESERVED_CLUSTERS,
    ROOT_CLUSTER,
    ROOT_ID,
    ROOT_NAME,
    TYPE_DIR,
    VOLUME_ID,
)
from .events import EventLog
from .exceptions import CorruptedVolumeError, InvalidArgumentError
from .fat import Allocation, ClusterAllocator
from .filedata import FileDataEngine
from .logging_config import get_logger
from .models import Attributes, ClusterData, Entry, Event, FatSlot, Volume
from .paths import ParentAndName, PathResolver
from .store import RecordStore
from .tree import DirectoryTree
from .utils import now

log = get_logger('filesystem')


def mutation(method):
    """
    Run a method as one logged operation.

    Subscribers are notified whenever the call changed a record, including
    a call that raised after a partial change (a copy cut short by a full
    disk keeps the clones it made).
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        revision = self.store.revision
        try:
            with self.events.operation():
                return method(self, *args, **kwargs)
        finally:
            if self.store.revision != revision:
                self.store.notify_change()
    return wrapper


def volume_geometry(cluster_size: int) -> tuple[int, int]:
    """
    Split a cluster size into (bytes_per_sector, sectors_per_cluster).

    Sectors are 512 bytes, or the whole cluster when clusters are smaller.
    """
    if cluster_size <= 0:
        raise InvalidArgumentError(f"Invalid cluster size: {cluster_size}")
    bytes_per_sector = min(DEFAULT_BYTES_PER_SECTOR, cluster_size)
    if cluster_size % bytes_per_sector:
        raise InvalidArgumentError(
            f"Cluster size {cluster_size} is not a multiple of {bytes_per_sector}-byte sectors")
    return bytes_per_sector, cluster_size // bytes_per_sector


class FatFileSystem:
    """
    A FAT volume living in a record store.

    Construct over an existing RecordStore, or use FatFileSystem.open() to
    load one from a JSON file. Usable as a context manager; leaving the
    block flushes the store.
    """

    def __init__(self, store: RecordStore | None = None):
        self.store = store if store is not None else RecordStore()
        self.events = EventLog(self.store)
        self.allocator = ClusterAllocator(self.store, self.events)
        self.data = FileDataEngine(self.store, self.allocator, self.events)
        self.resolver = PathResolver(self.store)
        self.tree = DirectoryTree(self.store, self.allocator, self.data, self.resolver, self.events)
        self._autosave_unsubscribe: Callable[[], None] | None = None

    @classmethod
    def open(
        cls,
        path: str | os.PathLike,
        autosave: bool = False,
        bootstrap_total_clusters: int = BOOTSTRAP_TOTAL_CLUSTERS,
        bootstrap_cluster_size: int = BOOTSTRAP_CLUSTER_SIZE,
        fat_type: str = DEFAULT_FAT_TYPE,
        label: str = DEFAULT_LABEL,
        bootstrap: bool = True,
    ) -> 'FatFileSystem':
        """
        Open the volume stored at path.

        A missing or never formatted store is formatted with the bootstrap
        geometry unless bootstrap is False (the caller formats it itself).
        With autosave the store is flushed after every change.
        """
        fs = cls(RecordStore.open(path))
        if bootstrap and not fs.is_formatted:
            log.info("Formatting new volume at %s", path)
            fs.format(total_clusters=bootstrap_total_clusters, cluster_size=bootstrap_cluster_size,
                      fat_type=fat_type, label=label)
        if autosave:
            fs._autosave_unsubscribe = fs.store.subscribe(fs.store.flush)
            fs.store.flush()
        return fs

    def flush(self) -> None:
        self.store.flush()

    def close(self) -> None:
        if self._autosave_unsubscribe is not None:
            self._autosave_unsubscribe()
            self._autosave_unsubscribe = None
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def subscribe(self, handler: Callable[[], None]) -> Callable[[], None]:
        """Register a change handler; returns the function that removes it."""
        return self.store.subscribe(handler)

    # =========================================================================
    # Volume
    # =========================================================================

    @property
    def is_formatted(self) -> bool:
        return (self.store.get_volume() is not None
                and self.store.get_entry(ROOT_ID) is not None
                and self.store.get_fat_slot(ROOT_CLUSTER) is not None)

    @property
    def volume(self) -> Volume:
        return self.allocator.volume

    @property
    def root(self) -> Entry:
        root = self.store.get_entry(ROOT_ID)
        if root is None:
            raise CorruptedVolumeError("Root directory missing")
        return root

    @property
    def cluster_size(self) -> int:
        return self.volume.cluster_size

    @property
    def total_clusters(self) -> int:
        return self.volume.total_clusters

    def format(
        self,
        total_clusters: int = DEFAULT_TOTAL_CLUSTERS,
        cluster_size: int = DEFAULT_CLUSTER_SIZE,
        fat_type: str = DEFAULT_FAT_TYPE,
        label: str | None = None,
    ) -> Volume:
        """
        Create a fresh volume.

        Every entry except the root is erased and the FAT, cluster data and
        event log are rebuilt. Cluster 2 is the root directory's only
        cluster. Entry ids keep counting from where they were.
        """
        if total_clusters < MIN_TOTAL_CLUSTERS:
            raise InvalidArgumentError(
                f"Volume needs at least {MIN_TOTAL_CLUSTERS} clusters, got {total_clusters}")
        if fat_type not in FAT_TYPES:
            raise InvalidArgumentError(f"Unknown FAT type: {fat_type} (use {', '.join(FAT_TYPES)})")
        bytes_per_sector, sectors_per_cluster = volume_geometry(cluster_size)

        timestamp = now()
        old = self.store.get_volume()
        volume = Volume(
            id=VOLUME_ID,
            label=label if label is not None else (old.label if old else DEFAULT_LABEL),
            fat_type=fat_type,
            bytes_per_sector=bytes_per_sector,
            sectors_per_cluster=sectors_per_cluster,
            total_clusters=total_clusters,
            next_alloc_hint=FIRST_DATA_CLUSTER,
            root_dir_entry_id=ROOT_ID,
            created_at=old.created_at if old else timestamp,
            updated_at=timestamp,
        )
        self.store.put_volume(volume)

        self.store.clear_fat()
        self.store.clear_cluster_data()
        self.store.clear_events()

        for entry in self.store.entries():
            if entry.id != ROOT_ID:
                self.store.remove_entry(entry.id)

        root = self.store.get_entry(ROOT_ID)
        if root is None:
            root = self.store.insert_entry(Entry(id=ROOT_ID, parent_id=None, name=ROOT_NAME,
                                                 type=TYPE_DIR, created_at=timestamp))
        root.parent_id = None
        root.name = ROOT_NAME
        root.type = TYPE_DIR
        root.attrs = Attributes()
        root.size = 0
        root.first_cluster = ROOT_CLUSTER
        root.deleted = False
        root.updated_at = timestamp
        self.store.update_entry(root)

        for cluster in range(total_clusters):
            value = FAT_RESERVED if cluster in RESERVED_CLUSTERS else FAT_FREE
            self.store.insert_fat_slot(FatSlot(cluster=cluster, value=value, touched_at=timestamp))

        self.allocator.set_fat_entry(ROOT_CLUSTER, FAT_EOC, ROOT_ID)
        self.store.put_cluster_data(ClusterData(cluster=ROOT_CLUSTER, owner_entry_id=ROOT_ID,
                                                touched_at=timestamp))

        self.events.emit(ACTION_FORMAT,
                         f"format {fat_type} clusters={total_clusters} cluster_size={cluster_size}",
                         details={'total_clusters': total_clusters, 'cluster_size': cluster_size},
                         clusters=[ROOT_CLUSTER], entries=[ROOT_ID])
        log.info("Formatted %s volume: %d clusters of %d bytes", fat_type, total_clusters, cluster_size)

        self.store.notify_change()
        return volume

    # =========================================================================
    # Cluster allocator
    # =========================================================================

    def chain_of(self, first_cluster: int) -> list[int]:
        return self.allocator.chain_of(first_cluster)

    def get_fat_entry(self, cluster: int):
        return self.allocator.get_fat_entry(cluster)

    @mutation
    def allocate(self, owner_entry_id: str | None, count: int) -> Allocation:
        return self.allocator.allocate(owner_entry_id, count)

    @mutation
    def free(self, first_cluster: int) -> list[int]:
        return self.allocator.free(first_cluster)

    @mutation
    def ensure_chain_length(self, entry_id: str, min_clusters: int) -> tuple[Entry, list[int]]:
        return self.allocator.ensure_chain_length(entry_id, min_clusters)

    @mutation
    def mark_bad(self, cluster: int) -> None:
        self.allocator.mark_bad(cluster)

    def count_free(self) -> int:
        return self.allocator.count_free()

    def count_owned(self) -> int:
        return self.allocator.count_owned()

    # =========================================================================
    # File data
    # =========================================================================

    @mutation
    def write(self, entry_id: str, content: bytes) -> Entry:
        return self.data.write(entry_id, content)

    def read(self, entry_id: str) -> bytes:
        return self.data.read(entry_id)

    @mutation
    def clone(self, src_entry_id: str, dst_entry_id: str) -> Entry:
        return self.data.clone(src_entry_id, dst_entry_id)

    @mutation
    def write_file(self, cwd_id: str, path: str, content: bytes) -> Entry:
        """Write content to the file at path, creating it first if needed."""
        if isinstance(content, str):
            raise InvalidArgumentError("File content must be bytes, not str")
        entry = self.tree.create_file(cwd_id, path)
        return self.data.write(entry.id, content)

    def read_file(self, cwd_id: str, path: str) -> bytes:
        return self.data.read(self.resolver.resolve(cwd_id, path))

    # =========================================================================
    # Paths
    # =========================================================================

    def resolve(self, cwd_id: str, path: str) -> str:
        return self.resolver.resolve(cwd_id, path)

    def resolve_parent_and_name(self, cwd_id: str, path: str) -> ParentAndName:
        return self.resolver.resolve_parent_and_name(cwd_id, path)

    def path_of(self, entry_id: str) -> str:
        return self.resolver.path_of(entry_id)

    def get_entry(self, cwd_id: str, path: str) -> Entry:
        """Live entry at path."""
        return self.resolver.resolve_entry(cwd_id, path)

    # =========================================================================
    # Directory tree
    # =========================================================================

    @mutation
    def create_directory(self, cwd_id: str, path: str) -> Entry:
        return self.tree.create_directory(cwd_id, path)

    @mutation
    def create_file(self, cwd_id: str, path: str) -> Entry:
        return self.tree.create_file(cwd_id, path)

    @mutation
    def remove(self, cwd_id: str, path: str, recursive: bool = False) -> list[str]:
        return self.tree.remove(cwd_id, path, recursive=recursive)

    @mutation
    def move(self, cwd_id: str, src_path: str, dst_path: str) -> Entry:
        return self.tree.move(cwd_id, src_path, dst_path)

    @mutation
    def copy(self, cwd_id: str, src_path: str, dst_path: str, recursive: bool = False) -> Entry:
        return self.tree.copy(cwd_id, src_path, dst_path, recursive=recursive)

    @mutation
    def set_attributes(self, cwd_id: str, path: str, **flags: bool) -> Entry:
        return self.tree.set_attributes(cwd_id, path, **flags)

    def list_directory(self, cwd_id: str, path: str = '.') -> list[Entry]:
        return self.tree.list_directory(self.resolver.resolve(cwd_id, path))

    def walk(self, cwd_id: str, path: str = '.') -> Iterator[tuple[str, Entry]]:
        return self.tree.walk(self.resolver.resolve(cwd_id, path))

    # =========================================================================
    # Event log
    # =========================================================================

    def events_log(self, op_id: str | None = None, action: str | None = None) -> list[Event]:
        return self.store.events(op_id=op_id, action=action)
