"""
Entry point for the FAT volume simulator.

Allows running as: python -m fatsim
"""

import argparse
import sys

from . import __version__
from .commands import (
    cmd_attr,
    cmd_cat,
    cmd_chain,
    cmd_cp,
    cmd_format,
    cmd_info,
    cmd_list,
    cmd_log,
    cmd_mkdir,
    cmd_mv,
    cmd_rm,
    cmd_touch,
    cmd_verify,
    cmd_write,
    print_extended_help,
)
from .constants import FAT_TYPES
from .formatter import OutputFormatter
from .logging_config import level_from_flags, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fatsim',
        description='FAT-style block allocation filesystem simulator',
        epilog='Use --help-syntax for detailed syntax and examples.'
    )

    # Global options
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show detailed output and debug logging')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Suppress non-essential output')
    parser.add_argument('--json', action='store_true', help='Output in JSON format')
    parser.add_argument('--store', metavar='PATH',
                        help='Volume store file (default: from settings)')
    parser.add_argument('--config', metavar='PATH',
                        help='Settings file (default: ~/.config/fatsim/settings.json)')
    parser.add_argument('--cwd', metavar='PATH', default=None,
                        help='Current directory for relative paths (default: X:/)')
    parser.add_argument('--help-syntax', action='store_true',
                        help='Show detailed help with syntax and examples')

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Format command
    format_parser = subparsers.add_parser('format', help='Create a fresh volume')
    format_parser.add_argument('-c', '--clusters', type=int,
                               help='Total clusters including the 2 reserved ones (default: 2048)')
    format_parser.add_argument('-s', '--cluster-size', type=int, dest='cluster_size',
                               help='Bytes per cluster (default: 4096)')
    format_parser.add_argument('-t', '--type', dest='fat_type', choices=FAT_TYPES,
                               help='FAT type label (default: FAT32)')
    format_parser.add_argument('-l', '--label', help='Volume label')

    # Info command
    subparsers.add_parser('info', help='Show volume information',
                          epilog='Use -v for technical details.')

    # List command
    list_parser = subparsers.add_parser('list', help='List a directory',
                                        epilog='Use --help-syntax for path syntax.')
    list_parser.add_argument('path', nargs='?', default='.', help='Directory path (default: current)')
    list_parser.add_argument('-r', '--recursive', action='store_true',
                             help='List subdirectories recursively')

    # Mkdir command
    mkdir_parser = subparsers.add_parser('mkdir', help='Create a directory')
    mkdir_parser.add_argument('path', help='Directory path (X:/DIR or relative)')

    # Touch command
    touch_parser = subparsers.add_parser('touch', help='Create an empty file or refresh an entry')
    touch_parser.add_argument('path', help='File path')

    # Write command
    write_parser = subparsers.add_parser('write', help='Write content to a file')
    write_parser.add_argument('path', help='File path (created if missing)')
    write_parser.add_argument('text', nargs='?', help='Text to write (UTF-8)')
    write_parser.add_argument('--file', metavar='LOCAL', help='Write the bytes of a local file instead')

    # Cat command
    cat_parser = subparsers.add_parser('cat', help='Print a file')
    cat_parser.add_argument('path', help='File path')

    # Rm command
    rm_parser = subparsers.add_parser('rm', help='Remove a file or directory')
    rm_parser.add_argument('path', help='Entry path')
    rm_parser.add_argument('-r', '--recursive', action='store_true',
                           help='Remove a directory and all contents')

    # Mv command
    mv_parser = subparsers.add_parser('mv', help='Move or rename an entry')
    mv_parser.add_argument('source', help='Source path')
    mv_parser.add_argument('dest', help='Destination path or existing directory')

    # Cp command
    cp_parser = subparsers.add_parser('cp', help='Copy a file or directory')
    cp_parser.add_argument('source', help='Source path')
    cp_parser.add_argument('dest', help='Destination path or existing directory')
    cp_parser.add_argument('-r', '--recursive', action='store_true',
                           help='Copy directories recursively')

    # Attr command
    attr_parser = subparsers.add_parser('attr', help='View or modify attributes',
                                        epilog='Attributes: R=readonly, H=hidden, S=system, A=archive. '
                                               'Use -- before -X flags (e.g., attr path -- +R -A)')
    attr_parser.add_argument('path', help='Entry path')
    attr_parser.add_argument('modifications', nargs='*', metavar='MOD',
                             help='Attribute changes: +R +H +S +A to set, -R -H -S -A to clear')

    # Chain command
    chain_parser = subparsers.add_parser('chain', help='Show the cluster chain of an entry')
    chain_parser.add_argument('path', help='Entry path')

    # Log command
    log_parser = subparsers.add_parser('log', help='Show the operation log')
    log_parser.add_argument('-n', '--limit', type=int, help='Show only the last N events')
    log_parser.add_argument('--op', metavar='OP_ID', help='Show only events of one operation')

    # Verify command
    subparsers.add_parser('verify', help='Check FAT and directory tree consistency')

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv

    # Check for extended help before argparse
    if '--help-syntax' in argv:
        print_extended_help()
        return 0

    args = build_parser().parse_args(argv)

    # Configure logging based on verbosity flags
    setup_logging(level=level_from_flags(quiet=args.quiet, verbose=args.verbose))

    formatter = OutputFormatter(json_mode=args.json)

    match args.command:
        case 'format':
            return cmd_format(args, formatter)
        case 'info':
            return cmd_info(args, formatter)
        case 'list':
            return cmd_list(args, formatter)
        case 'mkdir':
            return cmd_mkdir(args, formatter)
        case 'touch':
            return cmd_touch(args, formatter)
        case 'write':
            return cmd_write(args, formatter)
        case 'cat':
            return cmd_cat(args, formatter)
        case 'rm':
            return cmd_rm(args, formatter)
        case 'mv':
            return cmd_mv(args, formatter)
        case 'cp':
            return cmd_cp(args, formatter)
        case 'attr':
            return cmd_attr(args, formatter)
        case 'chain':
            return cmd_chain(args, formatter)
        case 'log':
            return cmd_log(args, formatter)
        case 'verify':
            return cmd_verify(args, formatter)
        case _:
            formatter.error(f"Unknown command: {args.command}")
            return 1


if __name__ == '__main__':
    sys.exit(main())
