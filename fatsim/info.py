"""
Volume information and statistics.

Provides functions to analyze a formatted volume and report capacity,
usage and tree counts.
"""

from typing import Any

from .constants import ROOT_ID
from .filesystem import FatFileSystem
from .utils import format_size


def get_volume_info(fs: FatFileSystem) -> dict[str, Any]:
    """
    Get comprehensive information about a volume.

    Args:
        fs: An open, formatted FatFileSystem

    Returns:
        Dictionary containing volume information
    """
    volume = fs.volume

    free_clusters = 0
    used_clusters = 0
    reserved_clusters = 0
    bad_clusters = 0
    for slot in fs.store.fat_slots():
        if slot.is_free:
            free_clusters += 1
        elif slot.is_bad:
            bad_clusters += 1
        elif slot.is_reserved:
            reserved_clusters += 1
        else:
            used_clusters += 1

    cluster_size = volume.cluster_size
    total_bytes = volume.total_clusters * cluster_size
    free_bytes = free_clusters * cluster_size
    used_bytes = used_clusters * cluster_size
    data_clusters = volume.total_clusters - reserved_clusters

    file_count, dir_count = _count_entries(fs)
    deleted_count = sum(1 for e in fs.store.entries() if e.deleted)

    return {
        'label': volume.label,
        'fat_type': volume.fat_type,
        'bytes_per_sector': volume.bytes_per_sector,
        'sectors_per_cluster': volume.sectors_per_cluster,
        'cluster_size': cluster_size,
        'total_clusters': volume.total_clusters,
        'free_clusters': free_clusters,
        'used_clusters': used_clusters,
        'reserved_clusters': reserved_clusters,
        'bad_clusters': bad_clusters,
        'next_alloc_hint': volume.next_alloc_hint,
        'total_bytes': total_bytes,
        'free_bytes': free_bytes,
        'used_bytes': used_bytes,
        'total_formatted': format_size(total_bytes),
        'free_formatted': format_size(free_bytes),
        'used_formatted': format_size(used_bytes),
        'percent_used': round(used_clusters / data_clusters * 100, 1) if data_clusters > 0 else 0,
        'file_count': file_count,
        'directory_count': dir_count,
        'deleted_count': deleted_count,
        'event_count': len(fs.store.events()),
        'store_path': str(fs.store.path) if fs.store.path else None,
    }


def _count_entries(fs: FatFileSystem) -> tuple[int, int]:
    """
    Count live files and directories below the root.

    Returns:
        Tuple of (file_count, directory_count)
    """
    file_count = 0
    dir_count = 0
    for _path, entry in fs.tree.walk(ROOT_ID):
        if entry.is_directory:
            dir_count += 1
        else:
            file_count += 1
    return file_count, dir_count


def format_volume_info(info: dict[str, Any], verbose: bool = False) -> str:
    """
    Format volume information as a human-readable string.

    Args:
        info: Dictionary from get_volume_info()
        verbose: Whether to include detailed information

    Returns:
        Formatted string
    """
    lines = []

    lines.append(f"Volume Label: {info.get('label', 'Unknown')}")
    lines.append(f"Filesystem: {info.get('fat_type', 'Unknown')}")
    lines.append(f"Capacity: {info.get('total_formatted', 'Unknown')}")
    lines.append(f"Used: {info.get('used_formatted', 'Unknown')} ({info.get('percent_used', 0):.1f}%)")
    lines.append(f"Free: {info.get('free_formatted', 'Unknown')}")
    lines.append(f"Files: {info.get('file_count', 0)}")
    lines.append(f"Directories: {info.get('directory_count', 0)}")

    if verbose:
        lines.append("")
        lines.append("Technical Details:")
        lines.append(f"  Cluster size: {info.get('cluster_size', 0)} bytes "
                     f"({info.get('sectors_per_cluster', 0)} x {info.get('bytes_per_sector', 0)}-byte sectors)")
        lines.append(f"  Total clusters: {info.get('total_clusters', 0)}")
        lines.append(f"  Free clusters: {info.get('free_clusters', 0)}")
        lines.append(f"  Used clusters: {info.get('used_clusters', 0)}")
        lines.append(f"  Reserved clusters: {info.get('reserved_clusters', 0)}")
        lines.append(f"  Next allocation hint: {info.get('next_alloc_hint', 0)}")
        lines.append(f"  Deleted entries: {info.get('deleted_count', 0)}")
        lines.append(f"  Logged events: {info.get('event_count', 0)}")
        if info.get('store_path'):
            lines.append(f"  Store: {info['store_path']}")

        if info.get('bad_clusters', 0) > 0:
            lines.append(f"  Bad clusters: {info['bad_clusters']}")

    return '\n'.join(lines)
