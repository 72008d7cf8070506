"""
Volume verification.

Walks the FAT and the directory tree and reports every place where they
disagree: broken or cyclic chains, clusters claimed twice, allocated
clusters no entry reaches, payload records for free clusters, and tree
damage such as orphans or duplicate names.
"""

from dataclasses import dataclass, field

from .constants import (
    FIRST_DATA_CLUSTER,
    RESERVED_CLUSTERS,
    ROOT_CLUSTER,
    ROOT_ID,
)
from .exceptions import FatSimError
from .filesystem import FatFileSystem
from .models import Entry
from .utils import clusters_needed


@dataclass
class VerificationResult:
    """Results from volume verification."""
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    info: list[str] = field(default_factory=list)

    # Statistics
    files_checked: int = 0
    directories_checked: int = 0
    clusters_in_use: int = 0
    lost_clusters: int = 0
    cross_linked_clusters: list[int] = field(default_factory=list)
    bad_clusters: int = 0

    def add_error(self, message: str):
        """Add an error (volume is inconsistent)."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        """Add a warning (volume usable but has issues)."""
        self.warnings.append(message)

    def add_info(self, message: str):
        """Add informational message."""
        self.info.append(message)

    def to_dict(self) -> dict:
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'files_checked': self.files_checked,
            'directories_checked': self.directories_checked,
            'clusters_in_use': self.clusters_in_use,
            'lost_clusters': self.lost_clusters,
            'cross_linked_clusters': list(self.cross_linked_clusters),
            'bad_clusters': self.bad_clusters,
        }


def verify_volume(fs: FatFileSystem, verbose: bool = False) -> VerificationResult:
    """
    Verify a volume for consistency.

    Args:
        fs: An open FatFileSystem
        verbose: Whether to include detailed information

    Returns:
        VerificationResult with findings
    """
    result = VerificationResult()

    volume = fs.store.get_volume()
    if volume is None:
        result.add_error("Volume is not formatted")
        return result

    # cluster -> list of entry paths whose chain contains it
    cluster_usage: dict[int, list[str]] = {}

    result.add_info("Checking FAT structure...")
    _verify_fat_structure(fs, result)

    result.add_info("Checking directory structure...")
    _verify_tree(fs, result)
    _verify_directory(fs, ROOT_ID, cluster_usage, result, depth=0)

    for cluster, owners in sorted(cluster_usage.items()):
        if len(owners) > 1:
            result.add_error(f"Cross-linked cluster {cluster}: used by {', '.join(owners)}")
            result.cross_linked_clusters.append(cluster)

    result.add_info("Checking for lost clusters...")
    _find_lost_clusters(fs, cluster_usage, result)

    result.add_info("Checking cluster payloads...")
    _verify_cluster_data(fs, cluster_usage, result)

    result.bad_clusters = fs.allocator.count_bad()
    if result.bad_clusters > 0:
        result.add_warning(f"Found {result.bad_clusters} bad cluster(s) marked in FAT")

    result.clusters_in_use = len(cluster_usage)

    if verbose:
        result.add_info(f"Files checked: {result.files_checked}")
        result.add_info(f"Directories checked: {result.directories_checked}")
        result.add_info(f"Clusters in use: {result.clusters_in_use}")
        result.add_info(f"Free clusters: {fs.allocator.count_free()}")
        if result.lost_clusters > 0:
            result.add_info(f"Lost clusters: {result.lost_clusters}")

    return result


def _verify_fat_structure(fs: FatFileSystem, result: VerificationResult):
    """Check the slot set, reserved clusters, link ranges and the allocation hint."""
    volume = fs.volume
    total = volume.total_clusters

    clusters = [slot.cluster for slot in fs.store.fat_slots()]
    if clusters != list(range(total)):
        result.add_error(f"FAT has {len(clusters)} slot(s), expected one for each of {total} clusters")

    for cluster in RESERVED_CLUSTERS:
        slot = fs.store.get_fat_slot(cluster)
        if slot is None or not slot.is_reserved or slot.is_bad:
            result.add_error(f"Reserved cluster {cluster} is not marked RES")

    root_slot = fs.store.get_fat_slot(ROOT_CLUSTER)
    if root_slot is None or root_slot.owner_entry_id != ROOT_ID:
        result.add_error(f"Cluster {ROOT_CLUSTER} does not belong to the root directory")

    for slot in fs.store.fat_slots():
        if slot.is_next and not (FIRST_DATA_CLUSTER <= slot.value < total):
            result.add_error(f"Cluster {slot.cluster} links out of range to {slot.value}")
        if (slot.is_free or slot.is_reserved) and slot.owner_entry_id is not None:
            result.add_warning(f"Unallocated cluster {slot.cluster} still names owner {slot.owner_entry_id}")

    if not (FIRST_DATA_CLUSTER <= volume.next_alloc_hint < total):
        result.add_error(f"Allocation hint {volume.next_alloc_hint} outside [{FIRST_DATA_CLUSTER}, {total})")


def _verify_tree(fs: FatFileSystem, result: VerificationResult):
    """Check root, parent links and sibling name uniqueness over live entries."""
    root = fs.store.get_entry(ROOT_ID)
    if root is None or root.deleted or not root.is_directory or root.parent_id is not None:
        result.add_error("Root directory is missing or damaged")
        return

    for entry in fs.store.entries(include_deleted=False):
        if entry.id == ROOT_ID:
            continue
        try:
            fs.resolver.ancestors(entry.id)
        except FatSimError as e:
            result.add_error(f"Entry {entry.id} ({entry.name}): {e}")
            continue
        parent = fs.store.get_entry(entry.parent_id)
        if parent is not None and not parent.is_directory:
            result.add_error(f"Entry {entry.id} ({entry.name}) has a file as its parent")

    for entry in fs.store.entries(include_deleted=False):
        if not entry.is_directory:
            continue
        names: set[str] = set()
        for child in fs.store.children_of(entry.id):
            if child.name in names:
                result.add_error(f"Duplicate name '{child.name}' in directory {entry.id}")
            names.add(child.name)

    for entry in fs.store.entries():
        if entry.is_live:
            continue
        if entry.first_cluster:
            result.add_error(f"Deleted entry {entry.id} still holds cluster {entry.first_cluster}")
        owned = [s.cluster for s in fs.store.fat_slots_owned_by(entry.id)]
        if owned:
            result.add_error(f"Deleted entry {entry.id} still owns FAT slot(s) {owned[:5]}")
        if fs.store.cluster_data_owned_by(entry.id):
            result.add_error(f"Deleted entry {entry.id} still owns cluster payloads")


def _claim_chain(
    fs: FatFileSystem,
    entry: Entry,
    path: str,
    cluster_usage: dict[int, list[str]],
    result: VerificationResult,
) -> list[int]:
    chain = fs.allocator.chain_of(entry.first_cluster)
    if chain:
        last = fs.store.get_fat_slot(chain[-1])
        if last is None or not last.is_end_of_chain:
            result.add_error(f"Cluster chain of {path} is not terminated by EOC")

    for cluster in chain:
        cluster_usage.setdefault(cluster, []).append(path)
        slot = fs.store.get_fat_slot(cluster)
        if slot is not None and slot.owner_entry_id != entry.id:
            result.add_error(f"Cluster {cluster} of {path} is owned by {slot.owner_entry_id}")
    return chain


def _verify_directory(
    fs: FatFileSystem,
    dir_id: str,
    cluster_usage: dict[int, list[str]],
    result: VerificationResult,
    depth: int,
):
    """Recursively verify a directory and claim the clusters of everything below it."""
    directory = fs.store.get_entry(dir_id)
    path = fs.path_of(dir_id)
    result.directories_checked += 1

    if depth > fs.store.count_entries():
        result.add_error(f"Directory nesting below {path} does not terminate")
        return

    if directory.first_cluster < FIRST_DATA_CLUSTER:
        result.add_error(f"Directory {path} has invalid first cluster: {directory.first_cluster}")
    else:
        _claim_chain(fs, directory, path, cluster_usage, result)

    for entry in fs.store.children_of(dir_id):
        entry_path = fs.path_of(entry.id)

        if entry.is_directory:
            _verify_directory(fs, entry.id, cluster_usage, result, depth + 1)
            continue

        result.files_checked += 1

        if entry.first_cluster == 0:
            if entry.size != 0:
                result.add_error(f"File {entry_path} has size {entry.size} but no clusters")
            continue

        if entry.first_cluster < FIRST_DATA_CLUSTER:
            result.add_error(f"File {entry_path} has invalid first cluster: {entry.first_cluster}")
            continue

        chain = _claim_chain(fs, entry, entry_path, cluster_usage, result)

        expected = clusters_needed(entry.size, fs.cluster_size)
        if len(chain) < expected:
            result.add_error(
                f"File {entry_path}: size {entry.size} bytes needs {expected} clusters, "
                f"but chain has {len(chain)}"
            )
        elif len(chain) > expected:
            result.add_warning(
                f"File {entry_path}: chain has {len(chain)} clusters, "
                f"only {expected} needed for {entry.size} bytes"
            )


def _find_lost_clusters(
    fs: FatFileSystem,
    cluster_usage: dict[int, list[str]],
    result: VerificationResult,
):
    """Find clusters that are allocated but not reachable from any live entry."""
    lost_chains = []
    visited = set(cluster_usage)

    for slot in fs.store.fat_slots():
        if slot.cluster in visited:
            continue
        if not (slot.is_next or slot.is_end_of_chain):
            continue

        chain = fs.allocator.chain_of(slot.cluster)
        fresh = [c for c in chain if c not in visited]
        visited.update(fresh)
        result.lost_clusters += len(fresh)
        if fresh:
            lost_chains.append((slot.cluster, len(fresh)))

    if lost_chains:
        result.add_warning(f"Found {len(lost_chains)} lost cluster chain(s) totaling {result.lost_clusters} clusters")
        for start, length in lost_chains[:5]:
            result.add_warning(f"  Lost chain starting at cluster {start}, length {length}")
        if len(lost_chains) > 5:
            result.add_warning(f"  ... and {len(lost_chains) - 5} more")


def _verify_cluster_data(
    fs: FatFileSystem,
    cluster_usage: dict[int, list[str]],
    result: VerificationResult,
):
    """Payload records must exist exactly for allocated clusters and fit in a cluster."""
    cluster_size = fs.cluster_size

    for record in fs.store.cluster_data_records():
        slot = fs.store.get_fat_slot(record.cluster)
        if slot is None or not (slot.is_next or slot.is_end_of_chain):
            result.add_error(f"Cluster {record.cluster} has payload but is not allocated")
            continue
        if len(record.data) > cluster_size:
            result.add_error(f"Cluster {record.cluster} payload is {len(record.data)} bytes, "
                             f"larger than the {cluster_size}-byte cluster")

    for cluster in cluster_usage:
        if fs.store.get_cluster_data(cluster) is None:
            result.add_error(f"Allocated cluster {cluster} has no payload record")

    free = fs.allocator.count_free()
    owned = fs.allocator.count_owned()
    unusable = sum(1 for slot in fs.store.fat_slots() if slot.is_reserved)
    if free + owned + unusable != fs.total_clusters:
        result.add_error(f"FAT accounting mismatch: {free} free + {owned} allocated + "
                         f"{unusable} reserved != {fs.total_clusters}")


def format_verification_result(result: VerificationResult) -> str:
    """Format verification result as human-readable string."""
    lines = []

    if result.is_valid:
        lines.append("Volume verification: PASSED")
    else:
        lines.append("Volume verification: FAILED")

    lines.append("")

    if result.errors:
        lines.append(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            lines.append(f"  ERROR: {error}")
        lines.append("")

    if result.warnings:
        lines.append(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            lines.append(f"  WARNING: {warning}")
        lines.append("")

    lines.append("Summary:")
    lines.append(f"  Files checked: {result.files_checked}")
    lines.append(f"  Directories checked: {result.directories_checked}")
    lines.append(f"  Clusters in use: {result.clusters_in_use}")

    if result.lost_clusters > 0:
        lines.append(f"  Lost clusters: {result.lost_clusters}")
    if result.bad_clusters > 0:
        lines.append(f"  Bad clusters: {result.bad_clusters}")
    if result.cross_linked_clusters:
        lines.append(f"  Cross-linked clusters: {len(result.cross_linked_clusters)}")

    return '\n'.join(lines)
