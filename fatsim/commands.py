"""
Command handlers for the FAT volume simulator CLI.

Every handler takes the parsed argparse namespace and an OutputFormatter,
opens the volume store, runs one operation and returns the exit code.
"""

from pathlib import Path

from .config import Settings
from .constants import DEFAULT_CLUSTER_SIZE, DEFAULT_FAT_TYPE, DEFAULT_TOTAL_CLUSTERS, ROOT_ID
from .exceptions import FatSimError
from .filesystem import FatFileSystem
from .formatter import OutputFormatter
from .utils import apply_attr_modifications


def open_filesystem(args, bootstrap: bool = True) -> FatFileSystem:
    """
    Open the volume named by --store (or the configured store).

    With bootstrap False a missing store is left unformatted.
    """
    settings = Settings(getattr(args, 'config', None))
    store_path = getattr(args, 'store', None) or settings.store_path
    return FatFileSystem.open(store_path, bootstrap=bootstrap, **settings.open_kwargs())


def resolve_cwd(fs: FatFileSystem, args) -> str:
    """Entry id of the --cwd directory (root when not given)."""
    cwd = getattr(args, 'cwd', None)
    if not cwd:
        return ROOT_ID
    return fs.resolver.live_directory(fs.resolve(ROOT_ID, cwd)).id


def cmd_format(args, formatter: OutputFormatter) -> int:
    """Handle the 'format' command."""
    total_clusters = getattr(args, 'clusters', None) or DEFAULT_TOTAL_CLUSTERS
    cluster_size = getattr(args, 'cluster_size', None) or DEFAULT_CLUSTER_SIZE
    fat_type = getattr(args, 'fat_type', None) or DEFAULT_FAT_TYPE
    label = getattr(args, 'label', None)

    try:
        with open_filesystem(args, bootstrap=False) as fs:
            volume = fs.format(total_clusters=total_clusters, cluster_size=cluster_size,
                               fat_type=fat_type, label=label)
            formatter.success(
                f"Formatted {volume.fat_type} volume {volume.label}: "
                f"{volume.total_clusters} clusters of {volume.cluster_size} bytes",
                label=volume.label,
                fat_type=volume.fat_type,
                total_clusters=volume.total_clusters,
                cluster_size=volume.cluster_size,
                free_clusters=fs.count_free(),
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_info(args, formatter: OutputFormatter) -> int:
    """Handle the 'info' command."""
    from .info import get_volume_info, format_volume_info

    try:
        with open_filesystem(args) as fs:
            info = get_volume_info(fs)
            if formatter.json_mode:
                formatter.success("Volume information", **info)
            else:
                verbose = getattr(args, 'verbose', False)
                print(format_volume_info(info, verbose=verbose))
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_list(args, formatter: OutputFormatter) -> int:
    """Handle the 'list' command."""
    path = getattr(args, 'path', None) or '.'
    recursive = getattr(args, 'recursive', False)

    try:
        with open_filesystem(args) as fs:
            cwd = resolve_cwd(fs, args)
            dir_id = fs.resolve(cwd, path)
            display_path = fs.path_of(dir_id)

            if recursive:
                formatter.list_tree(list(fs.walk(dir_id)), display_path)
            else:
                formatter.list_entries(fs.list_directory(dir_id), display_path)
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_mkdir(args, formatter: OutputFormatter) -> int:
    """Handle the 'mkdir' command - create a directory."""
    try:
        with open_filesystem(args) as fs:
            entry = fs.create_directory(resolve_cwd(fs, args), args.path)
            formatter.success(
                f"Created directory {fs.path_of(entry.id)}",
                id=entry.id,
                directory=fs.path_of(entry.id),
                cluster=entry.first_cluster,
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_touch(args, formatter: OutputFormatter) -> int:
    """Handle the 'touch' command - create an empty file or refresh an existing one."""
    try:
        with open_filesystem(args) as fs:
            entry = fs.create_file(resolve_cwd(fs, args), args.path)
            formatter.success(
                f"Touched {fs.path_of(entry.id)}",
                id=entry.id,
                file=fs.path_of(entry.id),
                size=entry.size,
                cluster=entry.first_cluster,
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_write(args, formatter: OutputFormatter) -> int:
    """Handle the 'write' command - replace a file's content, creating the file if needed."""
    local_file = getattr(args, 'file', None)
    text = getattr(args, 'text', None)

    if local_file is None and text is None:
        formatter.error("Nothing to write. Give TEXT or --file LOCAL")
        return 1
    if local_file is not None and text is not None:
        formatter.error("Give either TEXT or --file LOCAL, not both")
        return 1

    try:
        if local_file is not None:
            content = Path(local_file).read_bytes()
        else:
            content = text.encode('utf-8')

        with open_filesystem(args) as fs:
            entry = fs.write_file(resolve_cwd(fs, args), args.path, content)
            chain = fs.chain_of(entry.first_cluster)
            formatter.success(
                f"Wrote {entry.size} bytes to {fs.path_of(entry.id)} ({len(chain)} cluster(s))",
                id=entry.id,
                file=fs.path_of(entry.id),
                size=entry.size,
                chain=chain,
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_cat(args, formatter: OutputFormatter) -> int:
    """Handle the 'cat' command - print a file's content."""
    try:
        with open_filesystem(args) as fs:
            content = fs.read_file(resolve_cwd(fs, args), args.path)
            formatter.data(content.decode('utf-8', errors='replace'), size=len(content))
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_rm(args, formatter: OutputFormatter) -> int:
    """Handle the 'rm' command - remove a file or directory."""
    recursive = getattr(args, 'recursive', False)

    try:
        with open_filesystem(args) as fs:
            cwd = resolve_cwd(fs, args)
            display_path = fs.path_of(fs.resolve(cwd, args.path))
            removed = fs.remove(cwd, args.path, recursive=recursive)
            formatter.success(
                f"Removed {display_path} ({len(removed)} entr{'y' if len(removed) == 1 else 'ies'})",
                path=display_path,
                removed=removed,
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_mv(args, formatter: OutputFormatter) -> int:
    """Handle the 'mv' command - move or rename an entry."""
    try:
        with open_filesystem(args) as fs:
            entry = fs.move(resolve_cwd(fs, args), args.source, args.dest)
            formatter.success(
                f"Moved {args.source} to {fs.path_of(entry.id)}",
                id=entry.id,
                path=fs.path_of(entry.id),
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_cp(args, formatter: OutputFormatter) -> int:
    """Handle the 'cp' command - copy a file or directory tree."""
    recursive = getattr(args, 'recursive', False)

    try:
        with open_filesystem(args) as fs:
            entry = fs.copy(resolve_cwd(fs, args), args.source, args.dest, recursive=recursive)
            formatter.success(
                f"Copied {args.source} to {fs.path_of(entry.id)}",
                id=entry.id,
                path=fs.path_of(entry.id),
            )
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_attr(args, formatter: OutputFormatter) -> int:
    """Handle the 'attr' command - view or modify attributes."""
    modifications = getattr(args, 'modifications', []) or []

    try:
        with open_filesystem(args) as fs:
            cwd = resolve_cwd(fs, args)
            entry = fs.get_entry(cwd, args.path)
            display_path = fs.path_of(entry.id)
            old_str = entry.attrs.attr_string()

            if modifications:
                new_attrs = apply_attr_modifications(entry.attrs, modifications)
                entry = fs.set_attributes(cwd, args.path, **new_attrs.to_dict())
                new_str = entry.attrs.attr_string()

                if formatter.json_mode:
                    formatter.success(
                        f"Updated attributes for {display_path}",
                        file=display_path,
                        old_attributes=old_str,
                        new_attributes=new_str,
                    )
                else:
                    print(f"{display_path}: {old_str} -> {new_str}")
            else:
                if formatter.json_mode:
                    formatter.success(
                        f"Attributes for {display_path}",
                        file=display_path,
                        attributes=old_str,
                        **entry.attrs.to_dict(),
                    )
                else:
                    print(f"{display_path}: {old_str}")
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_chain(args, formatter: OutputFormatter) -> int:
    """Handle the 'chain' command - show the cluster chain of an entry."""
    try:
        with open_filesystem(args) as fs:
            entry = fs.get_entry(resolve_cwd(fs, args), args.path)
            chain = fs.chain_of(entry.first_cluster)
            values = [fs.get_fat_entry(cluster) for cluster in chain]
            formatter.chain(fs.path_of(entry.id), entry, chain, values)
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_log(args, formatter: OutputFormatter) -> int:
    """Handle the 'log' command - show the operation event log."""
    limit = getattr(args, 'limit', None)
    op_id = getattr(args, 'op', None)

    if limit is not None and limit < 0:
        formatter.error(f"Invalid event count: {limit}")
        return 1

    try:
        with open_filesystem(args) as fs:
            events = fs.events_log(op_id=op_id)
            if limit is not None:
                events = events[-limit:] if limit else []
            formatter.events(events)
        return 0

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


def cmd_verify(args, formatter: OutputFormatter) -> int:
    """Handle the 'verify' command."""
    from .verify import verify_volume, format_verification_result

    try:
        with open_filesystem(args) as fs:
            verbose = getattr(args, 'verbose', False)
            result = verify_volume(fs, verbose=verbose)

            if formatter.json_mode:
                formatter.success(
                    "Verification complete",
                    valid=result.is_valid,
                    errors=result.errors,
                    warnings=result.warnings,
                    files_checked=result.files_checked,
                    directories_checked=result.directories_checked,
                    clusters_in_use=result.clusters_in_use,
                    lost_clusters=result.lost_clusters,
                    bad_clusters=result.bad_clusters,
                )
            else:
                print(format_verification_result(result))

        return 0 if result.is_valid else 1

    except FatSimError as e:
        formatter.error(str(e))
        return 1
    except OSError as e:
        formatter.error(f"Filesystem error: {e}")
        return 1


EXTENDED_HELP = """
FAT Volume Simulator - Detailed Help
====================================

OVERVIEW
--------
fatsim models a FAT-style filesystem as records: a pool of fixed-size
clusters, a File Allocation Table chaining them together, and a tree of
file and directory entries. Every operation is logged step by step
(allocation, FAT links, cluster writes, frees) so the effect on the FAT
can be inspected with the 'log' and 'chain' commands.

The whole volume lives in one JSON store file. It is created and
formatted with a small 256 x 64-byte geometry the first time it is used.

PATH SYNTAX
-----------
    X:/                 Root directory
    X:/DOCS             Entry in the root directory
    X:/DOCS/A.TXT       Nested entry
    /DOCS/A.TXT         Same as X:/DOCS/A.TXT
    A.TXT               Relative to the current directory (--cwd, default root)
    ../B.TXT            '..' steps to the parent, '.' stays put

Empty segments are ignored: X:/DOCS//A.TXT/ is X:/DOCS/A.TXT.
Names are case-sensitive and may not contain '/' or be '.' or '..'.

COMMANDS
--------

format [-c CLUSTERS] [-s SIZE] [-t TYPE] [-l LABEL]
    Erase everything and create a fresh volume.

        fatsim format                          # 2048 clusters of 4096 bytes
        fatsim format -c 16 -s 64              # Tiny volume, easy to read
        fatsim format -t FAT16 -l WORK

    Options:
        -c, --clusters  Total clusters including the two reserved ones (min 3)
        -s, --cluster-size  Bytes per cluster (512 multiple, or below 512)
        -t, --type      FAT12, FAT16 or FAT32 (label only)
        -l, --label     Volume label

info
    Show capacity, usage and entry counts. Use -v for geometry details.

list [PATH] [-r]
    List a directory (directories first, then by name).

mkdir PATH
    Create a directory. It occupies one cluster.

touch PATH
    Create an empty file (one cluster, archive flag set) or refresh the
    timestamp of an existing entry.

write PATH TEXT
write PATH --file LOCAL
    Replace the content of a file, creating it if needed. The chain grows
    as needed and never shrinks.

cat PATH
    Print a file's content.

rm PATH [-r]
    Remove a file or an empty directory; -r removes a whole subtree.
    Clusters return to the free pool.

mv SRC DST
    Move or rename. If DST is an existing directory SRC moves into it.

cp SRC DST [-r]
    Copy a file (or a directory tree with -r) into fresh clusters.

attr PATH [-- +R -H +S -A]
    View or change the R(eadonly) H(idden) S(ystem) A(rchive) flags.

chain PATH
    Show the cluster chain of an entry with each cluster's FAT value.

log [-n N] [--op OP_ID]
    Show the operation log, optionally the last N events or one operation.

verify
    Check the FAT and the directory tree against each other.

CONFIGURATION
-------------
Settings are read from ~/.config/fatsim/settings.json (or FATSIM_CONFIG):

    store_path                 Volume store file
    bootstrap_total_clusters   Geometry for a brand new store (256)
    bootstrap_cluster_size     (64)
    fat_type, label            Defaults for a brand new store
    autosave                   Flush after every change (true)

FATSIM_STORE or --store overrides store_path.

JSON OUTPUT
-----------
Use --json for machine-readable output. All commands support JSON mode.
Errors are returned as: {"status": "error", "message": "..."}

Example:
    fatsim --json list -r | jq '.files[].path'

EXIT CODES
----------
    0   Success
    1   Error (message printed to stderr or JSON output)

EXAMPLES
--------
fatsim format -c 16 -s 64
fatsim mkdir X:/DOCS
fatsim write X:/DOCS/A.TXT "hello, clusters"
fatsim chain X:/DOCS/A.TXT
fatsim cp -r X:/DOCS X:/BACKUP
fatsim rm -r X:/DOCS
fatsim log -n 20
fatsim verify
"""


def print_extended_help() -> None:
    """Print extended help documentation."""
    print(EXTENDED_HELP)
