"""
Utility functions for the FAT volume simulator.
"""

import time

from .constants import ATTR_LETTERS, PATH_SEPARATOR, ROOT_MARKER
from .exceptions import InvalidArgumentError, InvalidNameError
from .models import Attributes

# Spellings that all denote the root directory on their own
ROOT_SPELLINGS = ('', ROOT_MARKER, ROOT_MARKER.rstrip(PATH_SEPARATOR), PATH_SEPARATOR)


def now() -> float:
    """Current timestamp for created_at/updated_at fields."""
    return time.time()


def validate_name(name: str) -> str:
    """
    Validate an entry name.
    Returns the name unchanged.
    Raises InvalidNameError if empty, '.', '..' or containing the separator.
    """
    if not name:
        raise InvalidNameError("Invalid name: name cannot be empty")
    if PATH_SEPARATOR in name:
        raise InvalidNameError(f"Invalid name '{name}': contains '{PATH_SEPARATOR}'")
    if name in ('.', '..'):
        raise InvalidNameError(f"Invalid name '{name}'")
    return name


def is_root_path(path: str) -> bool:
    """True if path, with surrounding whitespace removed, names the root directly."""
    return path.strip() in ROOT_SPELLINGS


def split_path(path: str) -> tuple[bool, list[str]]:
    """
    Split a volume path into (is_absolute, segments).

    Absolute paths start with the root marker 'X:/' (or a bare '/').
    Empty segments are dropped; '.' and '..' are kept for the resolver.

    Examples:
        'X:/docs/a.txt' -> (True, ['docs', 'a.txt'])
        '/docs'         -> (True, ['docs'])
        'docs//a.txt/'  -> (False, ['docs', 'a.txt'])
        '../b'          -> (False, ['..', 'b'])
    """
    raw = (path or '').strip()
    marker = ROOT_MARKER.rstrip(PATH_SEPARATOR)

    is_absolute = False
    if raw.startswith(marker):
        is_absolute = True
        raw = raw[len(marker):]
    elif raw.startswith(PATH_SEPARATOR):
        is_absolute = True

    segments = [part for part in raw.split(PATH_SEPARATOR) if part]
    return is_absolute, segments


def join_path(*names: str) -> str:
    """Render names as an absolute path below the root marker."""
    return ROOT_MARKER + PATH_SEPARATOR.join(names)


def clusters_needed(size: int, cluster_size: int) -> int:
    """Clusters needed to hold size bytes. Always at least one."""
    if cluster_size <= 0:
        raise InvalidArgumentError(f"Invalid cluster size: {cluster_size}")
    return max(1, -(-size // cluster_size))


def format_size(num_bytes: int) -> str:
    """Human readable byte count: 512 B, 4.0 KB, 1.5 MB."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def apply_attr_modifications(current: Attributes, modifications: list[str]) -> Attributes:
    """
    Apply attribute modifications like +R, -A, etc.

    Args:
        current: Current attributes (not modified)
        modifications: List of modifications like ['+R', '-A', '+H']

    Returns:
        New Attributes

    Raises:
        InvalidArgumentError: for anything other than +X / -X with X in RHSA
    """
    attrs = current.copy()

    for mod in modifications:
        if len(mod) != 2 or mod[0] not in '+-' or mod[1].upper() not in ATTR_LETTERS:
            raise InvalidArgumentError(f"Invalid attribute modification: '{mod}' (use +R, -H, +S, -A)")
        setattr(attrs, ATTR_LETTERS[mod[1].upper()], mod[0] == '+')

    return attrs
