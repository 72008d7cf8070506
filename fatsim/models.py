"""
Data model classes for the FAT volume simulator.

Each record type maps to one collection of the record store and knows how
to convert itself to and from the plain dictionaries used for persistence.
"""

import base64
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    ATTR_NAMES,
    FAT_BAD,
    FAT_EOC,
    FAT_FREE,
    FAT_RESERVED,
    ROOT_ID,
    TYPE_DIR,
    TYPE_FILE,
)
from .exceptions import StoreError


@dataclass
class Volume:
    """Volume parameters (one per store)."""
    id: str
    label: str
    fat_type: str
    bytes_per_sector: int
    sectors_per_cluster: int
    total_clusters: int
    next_alloc_hint: int   # Rotating allocation cursor in [2, total_clusters)
    root_dir_entry_id: str = ROOT_ID
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def cluster_size(self) -> int:
        """Bytes per cluster."""
        return self.bytes_per_sector * self.sectors_per_cluster

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'label': self.label,
            'fat_type': self.fat_type,
            'bytes_per_sector': self.bytes_per_sector,
            'sectors_per_cluster': self.sectors_per_cluster,
            'cluster_size': self.cluster_size,
            'total_clusters': self.total_clusters,
            'next_alloc_hint': self.next_alloc_hint,
            'root_dir_entry_id': self.root_dir_entry_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Volume':
        try:
            return cls(
                id=data['id'],
                label=data['label'],
                fat_type=data['fat_type'],
                bytes_per_sector=int(data['bytes_per_sector']),
                sectors_per_cluster=int(data['sectors_per_cluster']),
                total_clusters=int(data['total_clusters']),
                next_alloc_hint=int(data['next_alloc_hint']),
                root_dir_entry_id=data.get('root_dir_entry_id', ROOT_ID),
                created_at=data.get('created_at', 0.0),
                updated_at=data.get('updated_at', 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Invalid volume record: {e}")


@dataclass
class Attributes:
    """The four attribute flags of an entry. Carried, never enforced."""
    readonly: bool = False
    hidden: bool = False
    system: bool = False
    archive: bool = False

    def copy(self) -> 'Attributes':
        return Attributes(self.readonly, self.hidden, self.system, self.archive)

    def attr_string(self) -> str:
        """Return attribute string like 'R--A'."""
        result = ''
        result += 'R' if self.readonly else '-'
        result += 'H' if self.hidden else '-'
        result += 'S' if self.system else '-'
        result += 'A' if self.archive else '-'
        return result

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in ATTR_NAMES}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> 'Attributes':
        data = data or {}
        return cls(**{name: bool(data.get(name, False)) for name in ATTR_NAMES})


@dataclass
class Entry:
    """A directory-tree node (file or directory)."""
    id: str
    parent_id: str | None   # None only for the root
    name: str
    type: str               # TYPE_DIR or TYPE_FILE
    attrs: Attributes = field(default_factory=Attributes)
    size: int = 0           # Exact byte length (files only)
    first_cluster: int = 0  # 0 = no storage
    deleted: bool = False   # Tombstone flag
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_directory(self) -> bool:
        return self.type == TYPE_DIR

    @property
    def is_file(self) -> bool:
        return self.type == TYPE_FILE

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_ID

    @property
    def is_live(self) -> bool:
        return not self.deleted

    @property
    def has_storage(self) -> bool:
        return self.first_cluster >= 2

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'name': self.name,
            'type': self.type,
            'attrs': self.attrs.to_dict(),
            'size': self.size,
            'first_cluster': self.first_cluster,
            'deleted': self.deleted,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Entry':
        try:
            entry_type = data['type']
            if entry_type not in (TYPE_DIR, TYPE_FILE):
                raise ValueError(f"unknown entry type {entry_type!r}")
            return cls(
                id=data['id'],
                parent_id=data.get('parent_id'),
                name=data['name'],
                type=entry_type,
                attrs=Attributes.from_dict(data.get('attrs')),
                size=int(data.get('size', 0)),
                first_cluster=int(data.get('first_cluster', 0)),
                deleted=bool(data.get('deleted', False)),
                created_at=data.get('created_at', 0.0),
                updated_at=data.get('updated_at', 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Invalid entry record: {e}")


FatValue = int | str


@dataclass
class FatSlot:
    """One File Allocation Table slot."""
    cluster: int
    value: FatValue = FAT_FREE
    owner_entry_id: str | None = None
    touched_at: float = 0.0

    @property
    def is_free(self) -> bool:
        return self.value == FAT_FREE

    @property
    def is_reserved(self) -> bool:
        """Reserved or bad: never handed out by the allocator."""
        return self.value in (FAT_RESERVED, FAT_BAD)

    @property
    def is_bad(self) -> bool:
        return self.value == FAT_BAD

    @property
    def is_end_of_chain(self) -> bool:
        return self.value == FAT_EOC

    @property
    def is_next(self) -> bool:
        """Value points at the next cluster of a chain."""
        return isinstance(self.value, int) and self.value != FAT_FREE

    def to_dict(self) -> dict[str, Any]:
        return {
            'cluster': self.cluster,
            'value': self.value,
            'owner_entry_id': self.owner_entry_id,
            'touched_at': self.touched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'FatSlot':
        try:
            value = data['value']
            if not isinstance(value, int) and value not in (FAT_RESERVED, FAT_BAD, FAT_EOC):
                raise ValueError(f"unknown FAT value {value!r}")
            return cls(
                cluster=int(data['cluster']),
                value=value,
                owner_entry_id=data.get('owner_entry_id'),
                touched_at=data.get('touched_at', 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Invalid FAT record: {e}")


@dataclass
class ClusterData:
    """Payload of one occupied cluster."""
    cluster: int
    owner_entry_id: str | None
    data: bytes = b''
    touched_at: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            'cluster': self.cluster,
            'owner_entry_id': self.owner_entry_id,
            'data': base64.b64encode(self.data).decode('ascii'),
            'touched_at': self.touched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'ClusterData':
        try:
            return cls(
                cluster=int(data['cluster']),
                owner_entry_id=data.get('owner_entry_id'),
                data=base64.b64decode(data.get('data', ''), validate=True),
                touched_at=data.get('touched_at', 0.0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Invalid cluster record: {e}")


@dataclass
class Event:
    """One append-only operation log record."""
    ts: float
    op_id: str
    action: str
    message: str = ''
    details: dict[str, Any] | None = None
    highlight_clusters: list[int] = field(default_factory=list)
    highlight_entries: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            'ts': self.ts,
            'op_id': self.op_id,
            'action': self.action,
            'message': self.message,
            'details': self.details,
            'highlight_clusters': list(self.highlight_clusters),
            'highlight_entries': list(self.highlight_entries),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Event':
        try:
            return cls(
                ts=data['ts'],
                op_id=data['op_id'],
                action=data['action'],
                message=data.get('message', ''),
                details=data.get('details'),
                highlight_clusters=list(data.get('highlight_clusters', [])),
                highlight_entries=list(data.get('highlight_entries', [])),
            )
        except (KeyError, TypeError) as e:
            raise StoreError(f"Invalid event record: {e}")
