"""
Cluster allocator and FAT chain engine.

The FAT holds one slot per cluster. A chain is a singly linked list of
clusters: each slot stores the index of the next cluster and the last one
stores EOC. Allocation is next-fit: the scan starts at the volume's
rotating hint and wraps around, so consecutive allocations spread across
the cluster space instead of always reusing the lowest free index.
"""

from dataclasses import dataclass, field

from .constants import (
    ACTION_ALLOC_BEGIN,
    ACTION_ALLOC_FAIL,
    ACTION_ALLOC_PICK,
    ACTION_FAT_LINK,
    ACTION_FREE_BEGIN,
    ACTION_FREE_CLUSTER,
    ACTION_MARK_BAD,
    FAT_BAD,
    FAT_EOC,
    FAT_FREE,
    FIRST_DATA_CLUSTER,
    HIGHLIGHT_LIMIT,
)
from .events import EventLog
from .exceptions import CorruptedVolumeError, DiskFullError, InvalidArgumentError, NotFoundError
from .logging_config import get_logger
from .models import ClusterData, Entry, FatValue, Volume
from .store import RecordStore
from .utils import now

log = get_logger('fat')


@dataclass
class Allocation:
    """Result of allocate(): head cluster (0 when empty) and the full chain."""
    first_cluster: int = 0
    chain: list[int] = field(default_factory=list)


class ClusterAllocator:
    """Allocates, links, frees and walks cluster chains."""

    def __init__(self, store: RecordStore, events: EventLog):
        self.store = store
        self.events = events

    @property
    def volume(self) -> Volume:
        volume = self.store.get_volume()
        if volume is None:
            raise CorruptedVolumeError("Volume not formatted")
        return volume

    # =========================================================================
    # Slot access
    # =========================================================================

    def get_fat_entry(self, cluster: int) -> FatValue:
        """Read the FAT value of a cluster."""
        slot = self.store.get_fat_slot(cluster)
        if slot is None:
            raise NotFoundError(f"No FAT slot for cluster {cluster}")
        return slot.value

    def get_owner(self, cluster: int) -> str | None:
        """Entry id owning a cluster (None when free or reserved)."""
        slot = self.store.get_fat_slot(cluster)
        if slot is None:
            raise NotFoundError(f"No FAT slot for cluster {cluster}")
        return slot.owner_entry_id

    def set_fat_entry(self, cluster: int, value: FatValue, owner_entry_id: str | None = None) -> None:
        """Write the FAT value and owner of a cluster."""
        slot = self.store.get_fat_slot(cluster)
        if slot is None:
            raise NotFoundError(f"No FAT slot for cluster {cluster}")
        if isinstance(value, int) and value != FAT_FREE and not (
                FIRST_DATA_CLUSTER <= value < self.volume.total_clusters):
            raise InvalidArgumentError(f"FAT link out of range: {cluster} -> {value}")
        slot.value = value
        slot.owner_entry_id = owner_entry_id
        slot.touched_at = now()
        self.store.update_fat_slot(slot)

    def _ensure_cluster_data(self, cluster: int, owner_entry_id: str | None) -> None:
        record = self.store.get_cluster_data(cluster)
        if record is None:
            record = ClusterData(cluster=cluster, owner_entry_id=owner_entry_id)
        record.owner_entry_id = owner_entry_id
        record.touched_at = now()
        self.store.put_cluster_data(record)

    # =========================================================================
    # Chains
    # =========================================================================

    def chain_of(self, first_cluster: int) -> list[int]:
        """
        Return the clusters of the chain starting at first_cluster, in order.

        Stops after EOC. A revisited cluster, a missing slot or any value
        that is neither a link nor EOC ends the walk early, so a corrupted
        FAT yields a truncated chain rather than an endless loop.
        """
        if not first_cluster or first_cluster < FIRST_DATA_CLUSTER:
            return []

        chain = []
        seen = set()
        cluster = first_cluster

        while cluster not in seen:
            seen.add(cluster)
            slot = self.store.get_fat_slot(cluster)
            if slot is None:
                break
            chain.append(cluster)
            if not slot.is_next or slot.value < FIRST_DATA_CLUSTER:
                break
            cluster = slot.value

        return chain

    def _scan_for_free(self, count: int) -> list[int]:
        """Collect up to count free clusters starting at the hint, wrapping to 2."""
        volume = self.volume
        total = volume.total_clusters
        cluster = max(FIRST_DATA_CLUSTER, volume.next_alloc_hint)
        if cluster >= total:
            cluster = FIRST_DATA_CLUSTER

        picked: list[int] = []
        probes = 0
        while len(picked) < count and probes < total + 2:
            slot = self.store.get_fat_slot(cluster)
            if slot is not None and slot.is_free and cluster not in picked:
                picked.append(cluster)
            cluster += 1
            if cluster >= total:
                cluster = FIRST_DATA_CLUSTER
            probes += 1

        return picked

    def allocate(self, owner_entry_id: str | None, count: int) -> Allocation:
        """
        Allocate a chain of count clusters owned by owner_entry_id.

        All or nothing: when fewer than count clusters are free,
        DiskFullError is raised before any slot is touched.
        """
        if count <= 0:
            return Allocation()

        owner = [owner_entry_id]
        self.events.emit(ACTION_ALLOC_BEGIN, f"alloc {count} clusters", entries=owner)

        picked = self._scan_for_free(count)
        if len(picked) < count:
            self.events.emit(ACTION_ALLOC_FAIL, "no space",
                             details={'requested': count, 'available': len(picked)})
            raise DiskFullError(f"disk is full: need {count} clusters, only {len(picked)} free")

        for cluster in picked:
            self.events.emit(ACTION_ALLOC_PICK, f"pick cluster {cluster}", clusters=[cluster], entries=owner)

        for i, cluster in enumerate(picked):
            next_cluster = picked[i + 1] if i + 1 < len(picked) else None
            self.set_fat_entry(cluster, next_cluster if next_cluster is not None else FAT_EOC, owner_entry_id)
            self._ensure_cluster_data(cluster, owner_entry_id)
            if next_cluster is not None:
                self.events.emit(ACTION_FAT_LINK, f"{cluster} -> {next_cluster}",
                                 clusters=[cluster, next_cluster], entries=owner)
            else:
                self.events.emit(ACTION_FAT_LINK, f"{cluster} -> EOC", clusters=[cluster], entries=owner)

        volume = self.volume
        volume.next_alloc_hint = picked[-1] + 1
        if volume.next_alloc_hint >= volume.total_clusters:
            volume.next_alloc_hint = FIRST_DATA_CLUSTER
        volume.updated_at = now()
        self.store.put_volume(volume)

        log.debug("Allocated %d cluster(s) for %s: %s", count, owner_entry_id, picked)
        return Allocation(first_cluster=picked[0], chain=picked)

    def free(self, first_cluster: int) -> list[int]:
        """
        Release every cluster of a chain. Returns the freed clusters.

        When the chain is an entry's whole storage the entry is emptied
        too, so it never points at a free cluster.
        """
        chain = self.chain_of(first_cluster)
        if not chain:
            return []
        owner = self.store.get_entry(self.get_owner(first_cluster))

        self.events.emit(ACTION_FREE_BEGIN, f"free chain from {first_cluster}",
                         clusters=chain[:HIGHLIGHT_LIMIT])

        for cluster in chain:
            self.set_fat_entry(cluster, FAT_FREE, None)
            self.store.remove_cluster_data(cluster)
            self.events.emit(ACTION_FREE_CLUSTER, f"free {cluster}", clusters=[cluster])

        if owner is not None and owner.first_cluster == first_cluster:
            owner.first_cluster = 0
            owner.size = 0
            owner.updated_at = now()
            self.store.update_entry(owner)

        log.debug("Freed chain from %d (%d cluster(s))", first_cluster, len(chain))
        return chain

    def _live_entry(self, entry_id: str) -> Entry:
        entry = self.store.get_entry(entry_id)
        if entry is None or entry.deleted:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    def ensure_chain_length(self, entry_id: str, min_clusters: int) -> tuple[Entry, list[int]]:
        """
        Grow an entry's chain to at least min_clusters clusters.

        Only the shortfall is allocated; it is linked after the current
        last cluster, or becomes the entry's first chain if it had none.
        Returns the entry and its full chain.
        """
        entry = self._live_entry(entry_id)
        need = max(0, min_clusters)

        current = self.chain_of(entry.first_cluster)
        if len(current) >= need:
            return entry, current

        added = self.allocate(entry.id, need - len(current))

        if not current:
            entry.first_cluster = added.first_cluster
            entry.updated_at = now()
            self.store.update_entry(entry)
            return entry, added.chain

        last = current[-1]
        self.set_fat_entry(last, added.first_cluster, entry.id)
        self.events.emit(ACTION_FAT_LINK, f"{last} -> {added.first_cluster}",
                         clusters=[last, added.first_cluster], entries=[entry.id])

        return entry, current + added.chain

    # =========================================================================
    # Statistics and maintenance
    # =========================================================================

    def count_free(self) -> int:
        return sum(1 for slot in self.store.fat_slots() if slot.is_free)

    def count_owned(self) -> int:
        """Clusters that belong to a chain (link or EOC)."""
        return sum(1 for slot in self.store.fat_slots() if slot.is_next or slot.is_end_of_chain)

    def count_bad(self) -> int:
        return sum(1 for slot in self.store.fat_slots() if slot.is_bad)

    def mark_bad(self, cluster: int) -> None:
        """Mark a free data cluster as BAD so the allocator never hands it out."""
        slot = self.store.get_fat_slot(cluster)
        if slot is None:
            raise NotFoundError(f"No FAT slot for cluster {cluster}")
        if cluster < FIRST_DATA_CLUSTER or not slot.is_free:
            raise InvalidArgumentError(f"Cluster {cluster} is not a free data cluster")
        self.set_fat_entry(cluster, FAT_BAD, None)
        self.events.emit(ACTION_MARK_BAD, f"mark {cluster} bad", clusters=[cluster])
        log.debug("Marked cluster %d bad", cluster)
