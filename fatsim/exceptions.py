"""
Custom exceptions for the FAT volume simulator.
"""


class FatSimError(Exception):
    """Base exception for all volume errors."""
    pass


class NotFoundError(FatSimError):
    """Entry, cluster or path segment does not exist."""
    pass


class TypeMismatchError(FatSimError):
    """Expected a directory and got a file, or vice versa."""
    pass


class DiskFullError(FatSimError):
    """Not enough free clusters on the volume."""
    pass


class NameConflictError(FatSimError):
    """A live sibling with the same name already exists."""
    pass


class InvalidArgumentError(FatSimError):
    """Argument is malformed or out of range."""
    pass


class InvalidNameError(InvalidArgumentError):
    """Entry name is empty or contains illegal characters."""
    pass


class InvalidPathError(InvalidArgumentError):
    """Path has no usable segments."""
    pass


class DirectoryNotEmptyError(InvalidArgumentError):
    """Directory has live children and recursive removal was not requested."""
    pass


class InvariantViolationError(FatSimError):
    """Operation would break the tree structure (move into itself, remove root)."""
    pass


class CorruptedVolumeError(FatSimError):
    """Volume structures are inconsistent."""
    pass


class StoreError(FatSimError):
    """Error loading or saving the record store."""
    pass
