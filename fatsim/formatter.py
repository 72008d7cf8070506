"""
Output formatting for the FAT volume simulator CLI.
"""

import json
import sys
import time
from typing import Any

from .constants import FAT_FREE
from .models import Entry, Event, FatValue


def _format_timestamp(ts: float) -> str:
    """Render an event timestamp as HH:MM:SS.mmm local time."""
    seconds = int(ts)
    millis = int((ts - seconds) * 1000)
    return time.strftime('%H:%M:%S', time.localtime(seconds)) + f".{millis:03d}"


def _format_fat_value(value: FatValue) -> str:
    """FAT value as shown in chain dumps: '.' for free, the marker or the next index."""
    if value == FAT_FREE:
        return '.'
    return str(value)


def entry_to_dict(entry: Entry, path: str | None = None) -> dict[str, Any]:
    """Summary of an entry for JSON output."""
    result = {
        "id": entry.id,
        "name": entry.name,
        "type": entry.type,
        "size": entry.size,
        "attr": entry.attrs.attr_string(),
        "cluster": entry.first_cluster,
        "is_directory": entry.is_directory,
    }
    if path is not None:
        result["path"] = path
    return result


class OutputFormatter:
    """Handle output formatting (text or JSON)."""

    def __init__(self, json_mode: bool = False):
        self.json_mode = json_mode

    def success(self, message: str, **data) -> None:
        """Output success message."""
        if self.json_mode:
            output = {"status": "success", "message": message, **data}
            print(json.dumps(output))
        else:
            print(message)

    def error(self, message: str) -> None:
        """Output error message."""
        if self.json_mode:
            output = {"status": "error", "message": message}
            print(json.dumps(output))
        else:
            print(f"Error: {message}", file=sys.stderr)

    def list_entries(self, entries: list[Entry], path: str) -> None:
        """Output a directory listing."""
        if self.json_mode:
            files = [entry_to_dict(entry) for entry in entries]
            output = {"status": "success", "path": path, "files": files}
            print(json.dumps(output))
            return

        print(f"Directory of {path}")
        print()

        total_files = 0
        total_bytes = 0

        for entry in entries:
            if entry.is_directory:
                size_str = "<DIR>"
            else:
                size_str = str(entry.size)
                total_bytes += entry.size

            total_files += 1
            print(f"  {entry.name:<20}  {size_str:>10}  {entry.attrs.attr_string()}  @{entry.first_cluster}")

        print()
        print(f"  {total_files} entr{'y' if total_files == 1 else 'ies'}  {total_bytes:,} bytes")

    def list_tree(self, items: list[tuple[str, Entry]], path: str) -> None:
        """Output a recursive listing as full paths."""
        if self.json_mode:
            files = [entry_to_dict(entry, entry_path) for entry_path, entry in items]
            output = {"status": "success", "path": path, "files": files}
            print(json.dumps(output))
            return

        print(f"Tree of {path}")
        print()
        for entry_path, entry in items:
            size_str = "<DIR>" if entry.is_directory else str(entry.size)
            print(f"  {entry_path:<40}  {size_str:>10}  {entry.attrs.attr_string()}")
        print()
        print(f"  {len(items)} entr{'y' if len(items) == 1 else 'ies'}")

    def chain(self, path: str, entry: Entry, chain: list[int], values: list[FatValue]) -> None:
        """Output the cluster chain of an entry."""
        if self.json_mode:
            output = {
                "status": "success",
                "path": path,
                "entry": entry_to_dict(entry),
                "chain": chain,
                "fat": list(values),
            }
            print(json.dumps(output))
            return

        print(f"Chain of {path} ({entry.id}, {entry.size} bytes)")
        if not chain:
            print("  <no clusters>")
            return
        links = [f"{cluster}->{_format_fat_value(value)}" for cluster, value in zip(chain, values)]
        print("  " + "  ".join(links))
        print(f"  {len(chain)} cluster(s)")

    def events(self, events: list[Event]) -> None:
        """Output event log records, oldest first."""
        if self.json_mode:
            output = {"status": "success", "events": [e.to_dict() for e in events]}
            print(json.dumps(output))
            return

        for event in events:
            extra = ""
            if event.highlight_clusters:
                extra = f"  [{', '.join(str(c) for c in event.highlight_clusters)}]"
            print(f"{_format_timestamp(event.ts)}  {event.op_id:<8} {event.action:<13} {event.message}{extra}")

        if not events:
            print("(no events)")

    def data(self, text: str, **data) -> None:
        """Output raw text (or the same text inside a JSON object)."""
        if self.json_mode:
            output = {"status": "success", "content": text, **data}
            print(json.dumps(output))
        else:
            sys.stdout.write(text)
            if text and not text.endswith('\n'):
                sys.stdout.write('\n')
