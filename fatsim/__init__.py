"""
FAT Volume Simulator

A Python package modelling a FAT-style block-allocation filesystem as
records: a fixed pool of clusters, a File Allocation Table chaining them,
and a directory tree of file and directory entries, with every operation
recorded in an event log.
"""

from .constants import (
    ATTR_ARCHIVE,
    ATTR_HIDDEN,
    ATTR_READONLY,
    ATTR_SYSTEM,
    FAT_BAD,
    FAT_EOC,
    FAT_FREE,
    FAT_RESERVED,
    ROOT_ID,
    ROOT_MARKER,
    TYPE_DIR,
    TYPE_FILE,
)
from .exceptions import (
    CorruptedVolumeError,
    DirectoryNotEmptyError,
    DiskFullError,
    FatSimError,
    InvalidArgumentError,
    InvalidNameError,
    InvalidPathError,
    InvariantViolationError,
    NameConflictError,
    NotFoundError,
    StoreError,
    TypeMismatchError,
)
from .events import EventLog
from .fat import Allocation, ClusterAllocator
from .filedata import FileDataEngine
from .filesystem import FatFileSystem
from .formatter import OutputFormatter
from .models import Attributes, ClusterData, Entry, Event, FatSlot, Volume
from .paths import ParentAndName, PathResolver
from .store import RecordStore
from .tree import DirectoryTree
from .info import format_volume_info, get_volume_info
from .verify import VerificationResult, format_verification_result, verify_volume

__version__ = "1.0.0"

__all__ = [
    # Main classes
    "FatFileSystem",
    "RecordStore",
    "EventLog",
    "ClusterAllocator",
    "Allocation",
    "FileDataEngine",
    "PathResolver",
    "ParentAndName",
    "DirectoryTree",
    # Data models
    "Volume",
    "Attributes",
    "Entry",
    "FatSlot",
    "ClusterData",
    "Event",
    # Exceptions
    "FatSimError",
    "NotFoundError",
    "TypeMismatchError",
    "DiskFullError",
    "NameConflictError",
    "InvalidArgumentError",
    "InvalidNameError",
    "InvalidPathError",
    "DirectoryNotEmptyError",
    "InvariantViolationError",
    "CorruptedVolumeError",
    "StoreError",
    # Inspection
    "get_volume_info",
    "format_volume_info",
    "verify_volume",
    "format_verification_result",
    "VerificationResult",
    # Output
    "OutputFormatter",
    # Constants
    "ROOT_ID",
    "ROOT_MARKER",
    "TYPE_DIR",
    "TYPE_FILE",
    "FAT_FREE",
    "FAT_RESERVED",
    "FAT_BAD",
    "FAT_EOC",
    "ATTR_READONLY",
    "ATTR_HIDDEN",
    "ATTR_SYSTEM",
    "ATTR_ARCHIVE",
]
