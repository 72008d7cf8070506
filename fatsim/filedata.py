"""
File data engine: maps a file's byte content onto the clusters of its chain.

Content is handled as raw bytes end to end. Slicing at fixed cluster
offsets would split multi-byte characters if text were stored, so text
must be encoded by the caller before it reaches write().
"""

from .constants import (
    ACTION_CP_CLUSTER,
    ACTION_CP_END,
    ACTION_WRITE_CLUSTER,
    ACTION_WRITE_END,
    HIGHLIGHT_LIMIT,
)
from .events import EventLog
from .exceptions import InvalidArgumentError, NotFoundError, TypeMismatchError
from .fat import ClusterAllocator
from .logging_config import get_logger
from .models import ClusterData, Entry
from .store import RecordStore
from .utils import clusters_needed, now

log = get_logger('filedata')


class FileDataEngine:
    """Reads, writes and clones file payloads."""

    def __init__(self, store: RecordStore, allocator: ClusterAllocator, events: EventLog):
        self.store = store
        self.allocator = allocator
        self.events = events

    def _file_entry(self, entry_id: str) -> Entry:
        entry = self.store.get_entry(entry_id)
        if entry is None or entry.deleted:
            raise NotFoundError(f"Entry not found: {entry_id}")
        if not entry.is_file:
            raise TypeMismatchError(f"'{entry.name}' is not a file")
        return entry

    def _store_payload(self, cluster: int, owner_entry_id: str, data: bytes) -> None:
        record = self.store.get_cluster_data(cluster)
        if record is None:
            record = ClusterData(cluster=cluster, owner_entry_id=owner_entry_id)
        record.owner_entry_id = owner_entry_id
        record.data = data
        record.touched_at = now()
        self.store.put_cluster_data(record)

    def write(self, entry_id: str, content: bytes) -> Entry:
        """
        Replace a file's content.

        The chain grows as needed but never shrinks; when the new content is
        shorter, trailing clusters keep their old payload and are ignored by
        read() because it stops at size.
        """
        if isinstance(content, str):
            raise InvalidArgumentError("File content must be bytes, not str")
        content = bytes(content)

        entry = self._file_entry(entry_id)
        cluster_size = self.allocator.volume.cluster_size

        needed = clusters_needed(len(content), cluster_size)
        entry, chain = self.allocator.ensure_chain_length(entry.id, needed)

        for i, cluster in enumerate(chain[:needed]):
            start = i * cluster_size
            chunk = content[start:start + cluster_size]
            self._store_payload(cluster, entry.id, chunk)
            self.events.emit(ACTION_WRITE_CLUSTER, f"write {cluster} ({len(chunk)} bytes)",
                             clusters=[cluster], entries=[entry.id])

        entry.size = len(content)
        entry.updated_at = now()
        self.store.update_entry(entry)

        self.events.emit(ACTION_WRITE_END, f"size={entry.size} bytes clusters={len(chain)}",
                         clusters=chain[:HIGHLIGHT_LIMIT], entries=[entry.id])
        log.debug("Wrote %d bytes to %s over %d cluster(s)", entry.size, entry.id, needed)
        return entry

    def read(self, entry_id: str) -> bytes:
        """Return a file's content, exactly size bytes long."""
        entry = self._file_entry(entry_id)
        chain = self.allocator.chain_of(entry.first_cluster)
        if not chain:
            return b''

        data = bytearray()
        for cluster in chain:
            record = self.store.get_cluster_data(cluster)
            if record is not None:
                data.extend(record.data)

        return bytes(data[:max(0, entry.size)])

    def clone(self, src_entry_id: str, dst_entry_id: str) -> Entry:
        """
        Copy the source's payload into the destination's own clusters.

        The destination chain is grown to the source's length and payloads
        are copied position by position, so the two files share nothing.
        """
        src = self._file_entry(src_entry_id)
        dst = self._file_entry(dst_entry_id)

        src_chain = self.allocator.chain_of(src.first_cluster)
        if not src_chain:
            return dst

        dst, dst_chain = self.allocator.ensure_chain_length(dst.id, len(src_chain))

        for src_cluster, dst_cluster in zip(src_chain, dst_chain):
            record = self.store.get_cluster_data(src_cluster)
            self._store_payload(dst_cluster, dst.id, record.data if record else b'')
            self.events.emit(ACTION_CP_CLUSTER, f"copy {src_cluster} -> {dst_cluster}",
                             clusters=[src_cluster, dst_cluster], entries=[src.id, dst.id])

        dst.size = src.size
        dst.updated_at = now()
        self.store.update_entry(dst)

        self.events.emit(ACTION_CP_END, f"copied clusters={len(src_chain)}", entries=[src.id, dst.id])
        return dst
