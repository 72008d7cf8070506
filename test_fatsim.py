#!/usr/bin/env python3
"""
Test suite for the FAT Volume Simulator.

Run with: pytest test_fatsim.py -v
"""

import json
import sys
import tempfile
from pathlib import Path

import pytest

# Import the module under test
from fatsim import (
    # Constants
    FAT_BAD, FAT_EOC, FAT_FREE, FAT_RESERVED, ROOT_ID, ROOT_MARKER, TYPE_DIR, TYPE_FILE,
    # Exceptions
    FatSimError, NotFoundError, TypeMismatchError, DiskFullError, NameConflictError,
    InvalidArgumentError, InvalidNameError, InvalidPathError, DirectoryNotEmptyError,
    InvariantViolationError, StoreError,
    # Classes
    Attributes, FatFileSystem, OutputFormatter, RecordStore,
    # Inspection
    get_volume_info, format_volume_info, verify_volume, format_verification_result,
)
from fatsim.__main__ import main
from fatsim.commands import (
    cmd_attr, cmd_cat, cmd_chain, cmd_cp, cmd_format, cmd_info, cmd_list, cmd_log,
    cmd_mkdir, cmd_mv, cmd_rm, cmd_touch, cmd_verify, cmd_write,
)
from fatsim.config import Settings
from fatsim.filesystem import volume_geometry
from fatsim.logging_config import QUIET, VERBOSE, level_from_flags, level_from_name, setup_logging
from fatsim.utils import apply_attr_modifications, clusters_needed, split_path, validate_name


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fs():
    """A fresh in-memory volume of 16 clusters of 64 bytes (13 free)."""
    volume = FatFileSystem()
    volume.format(total_clusters=16, cluster_size=64)
    return volume


@pytest.fixture
def store_path(temp_dir):
    return temp_dir / "volume.json"


def fat_snapshot(fs):
    return [(s.cluster, s.value, s.owner_entry_id) for s in fs.store.fat_slots()]


def fill_for_partial_copy(fs):
    """
    Build d/{a (1 cluster), b (3 clusters)} on a 16x64 volume and leave 3 free.

    Copying d then fits e, e/a and the empty e/b but not b's other 2 clusters.
    """
    fs.create_directory(ROOT_ID, "d")
    fs.write_file(ROOT_ID, "d/a", b"a" * 64)
    fs.write_file(ROOT_ID, "d/b", b"b" * 192)
    fs.write_file(ROOT_ID, "fill", b"f" * 320)
    assert fs.count_free() == 3


# =============================================================================
# Utility Tests
# =============================================================================

class TestSplitPath:
    """Tests for split_path."""

    def test_absolute_with_marker(self):
        assert split_path("X:/docs/a.txt") == (True, ["docs", "a.txt"])

    def test_bare_slash_is_absolute(self):
        assert split_path("/docs") == (True, ["docs"])

    def test_relative(self):
        assert split_path("docs/a.txt") == (False, ["docs", "a.txt"])

    def test_empty_segments_dropped(self):
        assert split_path("docs//a.txt/") == (False, ["docs", "a.txt"])

    def test_dot_segments_kept(self):
        assert split_path("../b/.") == (False, ["..", "b", "."])

    def test_root_marker_alone(self):
        assert split_path("X:/") == (True, [])


class TestValidateName:
    """Tests for validate_name."""

    def test_valid_names(self):
        assert validate_name("a.txt") == "a.txt"
        assert validate_name("My File") == "My File"

    def test_empty_name(self):
        with pytest.raises(InvalidNameError):
            validate_name("")

    def test_separator(self):
        with pytest.raises(InvalidNameError):
            validate_name("a/b")

    def test_dot_names(self):
        for name in (".", ".."):
            with pytest.raises(InvalidNameError):
                validate_name(name)

    def test_invalid_name_is_invalid_argument(self):
        with pytest.raises(InvalidArgumentError):
            validate_name("")


class TestHelpers:
    """Tests for small helpers."""

    def test_clusters_needed(self):
        assert clusters_needed(0, 64) == 1
        assert clusters_needed(1, 64) == 1
        assert clusters_needed(64, 64) == 1
        assert clusters_needed(65, 64) == 2
        assert clusters_needed(100, 64) == 2

    def test_attr_modifications(self):
        attrs = apply_attr_modifications(Attributes(archive=True), ["+R", "-A", "+h"])
        assert attrs.attr_string() == "RH--"

    def test_attr_modifications_leave_input_alone(self):
        original = Attributes()
        apply_attr_modifications(original, ["+S"])
        assert original.system is False

    def test_attr_modifications_invalid(self):
        with pytest.raises(InvalidArgumentError):
            apply_attr_modifications(Attributes(), ["R"])
        with pytest.raises(InvalidArgumentError):
            apply_attr_modifications(Attributes(), ["+X"])

    def test_volume_geometry(self):
        assert volume_geometry(64) == (64, 1)
        assert volume_geometry(512) == (512, 1)
        assert volume_geometry(4096) == (512, 8)

    def test_volume_geometry_rejects_odd_sizes(self):
        with pytest.raises(InvalidArgumentError):
            volume_geometry(1000)
        with pytest.raises(InvalidArgumentError):
            volume_geometry(0)


# =============================================================================
# Format Tests
# =============================================================================

class TestFormat:
    """Tests for volume formatting."""

    def test_fresh_volume_layout(self, fs):
        assert fs.get_fat_entry(0) == FAT_RESERVED
        assert fs.get_fat_entry(1) == FAT_RESERVED
        assert fs.get_fat_entry(2) == FAT_EOC
        assert fs.store.get_fat_slot(2).owner_entry_id == ROOT_ID
        assert fs.count_free() == 13
        assert fs.volume.next_alloc_hint == 2

    def test_root_entry(self, fs):
        root = fs.root
        assert root.id == ROOT_ID
        assert root.parent_id is None
        assert root.type == TYPE_DIR
        assert root.name == "/"
        assert root.first_cluster == 2
        assert fs.store.get_cluster_data(2) is not None

    def test_geometry(self, fs):
        volume = fs.volume
        assert volume.bytes_per_sector == 64
        assert volume.sectors_per_cluster == 1
        assert volume.cluster_size == 64
        assert volume.total_clusters == 16

    def test_default_geometry(self):
        volume = FatFileSystem().format()
        assert volume.total_clusters == 2048
        assert volume.cluster_size == 4096
        assert volume.bytes_per_sector == 512
        assert volume.fat_type == "FAT32"
        assert volume.label == "FAT-SIM"

    def test_reformat_erases_everything_but_root(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.write_file(ROOT_ID, "a.txt", b"hello")
        fs.format(total_clusters=32, cluster_size=64)

        assert fs.list_directory(ROOT_ID) == []
        assert fs.count_free() == 29
        assert [e.action for e in fs.events_log()] == ["FORMAT"]
        assert [e.id for e in fs.store.entries()] == [ROOT_ID]

    def test_ids_not_reused_after_format(self, fs):
        first = fs.create_file(ROOT_ID, "a.txt")
        fs.format(total_clusters=16, cluster_size=64)
        second = fs.create_file(ROOT_ID, "a.txt")
        assert first.id != second.id

    def test_invalid_arguments_change_nothing(self, fs):
        before = fat_snapshot(fs)
        with pytest.raises(InvalidArgumentError):
            fs.format(total_clusters=2, cluster_size=64)
        with pytest.raises(InvalidArgumentError):
            fs.format(total_clusters=16, cluster_size=0)
        with pytest.raises(InvalidArgumentError):
            fs.format(total_clusters=16, cluster_size=64, fat_type="NTFS")
        with pytest.raises(InvalidArgumentError):
            fs.format(total_clusters=16, cluster_size=1000)
        assert fat_snapshot(fs) == before
        assert fs.total_clusters == 16

    def test_format_event(self, fs):
        events = fs.events_log()
        assert len(events) == 1
        assert events[0].action == "FORMAT"
        assert events[0].op_id.startswith("op_")


# =============================================================================
# Cluster Allocator Tests
# =============================================================================

class TestClusterAllocator:
    """Tests for allocation, chains and frees."""

    def test_allocate_zero(self, fs):
        before = fat_snapshot(fs)
        allocation = fs.allocate(None, 0)
        assert allocation.first_cluster == 0
        assert allocation.chain == []
        assert fat_snapshot(fs) == before

    def test_allocate_links_chain(self, fs):
        allocation = fs.allocate(None, 3)
        assert allocation.chain == [3, 4, 5]
        assert allocation.first_cluster == 3
        assert fs.get_fat_entry(3) == 4
        assert fs.get_fat_entry(4) == 5
        assert fs.get_fat_entry(5) == FAT_EOC
        assert fs.chain_of(3) == [3, 4, 5]
        assert fs.count_free() == 10

    def test_allocate_creates_empty_payloads(self, fs):
        allocation = fs.allocate(None, 2)
        for cluster in allocation.chain:
            assert fs.store.get_cluster_data(cluster).data == b""

    def test_next_fit_does_not_reuse_freed_cluster(self, fs):
        first = fs.allocate(None, 1)
        assert first.first_cluster == 3
        fs.free(3)
        second = fs.allocate(None, 1)
        assert second.first_cluster == 4

    def test_scan_wraps_around(self, fs):
        fs.allocate(None, 1)            # 3
        fs.allocate(None, 1)            # 4
        fs.free(3)
        allocation = fs.allocate(None, 12)
        assert allocation.chain == list(range(5, 16)) + [3]
        assert fs.volume.next_alloc_hint == 4
        assert fs.count_free() == 0

    def test_hint_stays_in_range(self, fs):
        fs.allocate(None, 13)
        assert 2 <= fs.volume.next_alloc_hint < 16

    def test_disk_full_mutates_nothing(self, fs):
        before = fat_snapshot(fs)
        hint = fs.volume.next_alloc_hint
        with pytest.raises(DiskFullError):
            fs.allocate(None, 14)
        assert fat_snapshot(fs) == before
        assert fs.volume.next_alloc_hint == hint
        assert fs.events_log(action="ALLOC_FAIL")

    def test_free_returns_clusters(self, fs):
        allocation = fs.allocate(None, 3)
        freed = fs.free(allocation.first_cluster)
        assert freed == [3, 4, 5]
        for cluster in freed:
            assert fs.get_fat_entry(cluster) == FAT_FREE
            assert fs.store.get_fat_slot(cluster).owner_entry_id is None
            assert fs.store.get_cluster_data(cluster) is None
        assert fs.count_free() == 13

    def test_free_empty_chain(self, fs):
        assert fs.free(0) == []

    def test_free_entry_chain_empties_entry(self, fs):
        entry = fs.write_file(ROOT_ID, "a.txt", b"x" * 100)
        fs.free(entry.first_cluster)

        entry = fs.get_entry(ROOT_ID, "a.txt")
        assert entry.first_cluster == 0
        assert entry.size == 0
        assert fs.read(entry.id) == b""

        # Later writes must not share clusters with the emptied file
        fs.write_file(ROOT_ID, "b.txt", b"y" * 64)
        fs.write(entry.id, b"z" * 64)
        assert fs.read_file(ROOT_ID, "b.txt") == b"y" * 64
        assert fs.read(entry.id) == b"z" * 64
        assert verify_volume(fs).is_valid

    def test_reallocation_never_takes_owned_cluster(self, fs):
        fs.write_file(ROOT_ID, "a.txt", b"a" * 128)
        fs.write_file(ROOT_ID, "b.txt", b"b" * 192)
        fs.write_file(ROOT_ID, "c.txt", b"c" * 64)
        fs.remove(ROOT_ID, "b.txt")

        for name, size in (("d.txt", 256), ("e.txt", 64), ("f.txt", 128)):
            free_before = {s.cluster for s in fs.store.fat_slots() if s.is_free}
            entry = fs.write_file(ROOT_ID, name, bytes(size))
            assert set(fs.chain_of(entry.first_cluster)) <= free_before

        claimed = {}
        for entry in fs.store.entries(include_deleted=False):
            for cluster in fs.chain_of(entry.first_cluster):
                assert cluster not in claimed, f"{cluster} in {claimed.get(cluster)} and {entry.id}"
                claimed[cluster] = entry.id
                assert fs.store.get_fat_slot(cluster).owner_entry_id == entry.id
        assert len(claimed) + fs.count_free() == 14
        assert verify_volume(fs).is_valid

    def test_chain_of_small_clusters(self, fs):
        assert fs.chain_of(0) == []
        assert fs.chain_of(1) == []

    def test_chain_of_stops_on_cycle(self, fs):
        fs.allocate(None, 2)
        fs.store.get_fat_slot(4).value = 3
        assert fs.chain_of(3) == [3, 4]

    def test_chain_of_returns_fresh_list(self, fs):
        fs.allocate(None, 2)
        chain = fs.chain_of(3)
        chain.append(99)
        assert fs.chain_of(3) == [3, 4]

    def test_get_fat_entry_unknown_cluster(self, fs):
        with pytest.raises(NotFoundError):
            fs.get_fat_entry(99)

    def test_ensure_chain_length_grows(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        entry, chain = fs.ensure_chain_length(entry.id, 3)
        assert len(chain) == 3
        assert chain[0] == entry.first_cluster
        assert fs.chain_of(entry.first_cluster) == chain
        for cluster in chain:
            assert fs.store.get_fat_slot(cluster).owner_entry_id == entry.id

    def test_ensure_chain_length_never_shrinks(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.ensure_chain_length(entry.id, 3)
        _, chain = fs.ensure_chain_length(entry.id, 1)
        assert len(chain) == 3

    def test_ensure_chain_length_missing_entry(self, fs):
        with pytest.raises(NotFoundError):
            fs.ensure_chain_length("file_999", 1)

    def test_mark_bad(self, fs):
        fs.mark_bad(3)
        assert fs.get_fat_entry(3) == FAT_BAD
        assert fs.allocate(None, 1).first_cluster == 4
        assert fs.count_free() == 11

    def test_mark_bad_rejects_used_or_reserved(self, fs):
        with pytest.raises(InvalidArgumentError):
            fs.mark_bad(2)
        with pytest.raises(InvalidArgumentError):
            fs.mark_bad(0)
        with pytest.raises(NotFoundError):
            fs.mark_bad(99)


# =============================================================================
# File Data Tests
# =============================================================================

class TestFileData:
    """Tests for reading and writing file content."""

    def test_write_spans_clusters(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        content = bytes(range(100))
        entry = fs.write(entry.id, content)
        assert entry.size == 100
        chain = fs.chain_of(entry.first_cluster)
        assert len(chain) == 2
        assert fs.store.get_cluster_data(chain[0]).data == content[:64]
        assert fs.store.get_cluster_data(chain[1]).data == content[64:]
        assert fs.read(entry.id) == content
        assert fs.count_free() == 11

    def test_write_exact_cluster_boundary(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.write(entry.id, b"x" * 128)
        assert len(fs.chain_of(entry.first_cluster)) == 2

    def test_shorter_write_keeps_chain(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.write(entry.id, b"a" * 200)
        fs.write(entry.id, b"short")
        assert len(fs.chain_of(entry.first_cluster)) == 4
        assert fs.read(entry.id) == b"short"

    def test_empty_write(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        entry = fs.write(entry.id, b"")
        assert entry.size == 0
        assert fs.read(entry.id) == b""
        assert len(fs.chain_of(entry.first_cluster)) == 1

    def test_binary_content_roundtrip(self, fs):
        entry = fs.create_file(ROOT_ID, "bin")
        content = "héllo wörld ✓".encode("utf-8") * 10
        fs.write(entry.id, content)
        assert fs.read(entry.id) == content

    def test_write_rejects_str(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        with pytest.raises(InvalidArgumentError):
            fs.write(entry.id, "text")

    def test_write_to_directory(self, fs):
        directory = fs.create_directory(ROOT_ID, "d")
        with pytest.raises(TypeMismatchError):
            fs.write(directory.id, b"x")
        with pytest.raises(TypeMismatchError):
            fs.read(directory.id)

    def test_write_disk_full_mutates_nothing(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        before = fat_snapshot(fs)
        with pytest.raises(DiskFullError):
            fs.write(entry.id, b"x" * (64 * 14))
        assert fat_snapshot(fs) == before
        assert fs.store.get_entry(entry.id).size == 0

    def test_read_deleted_file(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.remove(ROOT_ID, "a.txt")
        with pytest.raises(NotFoundError):
            fs.read(entry.id)

    def test_write_events_share_op(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.write(entry.id, b"x" * 100)
        end = fs.events_log(action="WRITE_END")[-1]
        actions = [e.action for e in fs.events_log(op_id=end.op_id)]
        assert "ALLOC_BEGIN" in actions
        assert "ALLOC_PICK" in actions
        assert "FAT_LINK" in actions
        assert actions.count("WRITE_CLUSTER") == 2
        assert actions[-1] == "WRITE_END"

    def test_clone_is_disjoint(self, fs):
        src = fs.write_file(ROOT_ID, "a.txt", b"y" * 100)
        dst = fs.create_file(ROOT_ID, "b.txt")
        dst = fs.clone(src.id, dst.id)
        assert dst.size == 100
        assert fs.read(dst.id) == b"y" * 100
        assert not set(fs.chain_of(src.first_cluster)) & set(fs.chain_of(dst.first_cluster))

    def test_write_file_creates_missing(self, fs):
        entry = fs.write_file(ROOT_ID, "X:/new.txt", b"hello")
        assert entry.is_file
        assert fs.read_file(ROOT_ID, "new.txt") == b"hello"


# =============================================================================
# Path Resolver Tests
# =============================================================================

class TestPathResolver:
    """Tests for path resolution."""

    @pytest.fixture
    def tree(self, fs):
        docs = fs.create_directory(ROOT_ID, "docs")
        sub = fs.create_directory(ROOT_ID, "docs/sub")
        a = fs.write_file(ROOT_ID, "docs/a.txt", b"a")
        return fs, docs, sub, a

    def test_root_spellings(self, fs):
        for path in ("", "X:/", "X:", "/"):
            assert fs.resolve(ROOT_ID, path) == ROOT_ID

    def test_absolute(self, tree):
        fs, docs, sub, a = tree
        assert fs.resolve(sub.id, "X:/docs/a.txt") == a.id
        assert fs.resolve(sub.id, "/docs/a.txt") == a.id

    def test_relative(self, tree):
        fs, docs, sub, a = tree
        assert fs.resolve(docs.id, "a.txt") == a.id
        assert fs.resolve(docs.id, "sub") == sub.id

    def test_dot_and_dotdot(self, tree):
        fs, docs, sub, a = tree
        assert fs.resolve(sub.id, "..") == docs.id
        assert fs.resolve(sub.id, "../a.txt") == a.id
        assert fs.resolve(sub.id, "./../../docs/./a.txt") == a.id

    def test_dotdot_at_root_stays(self, fs):
        assert fs.resolve(ROOT_ID, "../..") == ROOT_ID

    def test_empty_segments_ignored(self, tree):
        fs, docs, sub, a = tree
        assert fs.resolve(ROOT_ID, "X:/docs//a.txt/") == a.id

    def test_not_found(self, tree):
        fs, docs, sub, a = tree
        with pytest.raises(NotFoundError):
            fs.resolve(ROOT_ID, "X:/docs/missing")

    def test_walk_through_file(self, tree):
        fs, docs, sub, a = tree
        with pytest.raises(TypeMismatchError):
            fs.resolve(ROOT_ID, "X:/docs/a.txt/x")

    def test_names_are_case_sensitive(self, tree):
        fs, docs, sub, a = tree
        with pytest.raises(NotFoundError):
            fs.resolve(ROOT_ID, "X:/DOCS")

    def test_parent_and_name(self, tree):
        fs, docs, sub, a = tree
        assert fs.resolve_parent_and_name(ROOT_ID, "X:/docs/new") == (docs.id, "new")
        assert fs.resolve_parent_and_name(sub.id, "../new") == (docs.id, "new")

    def test_parent_and_name_no_segments(self, fs):
        with pytest.raises(InvalidPathError):
            fs.resolve_parent_and_name(ROOT_ID, "X:/")

    def test_parent_and_name_bad_last_segment(self, fs):
        with pytest.raises(InvalidNameError):
            fs.resolve_parent_and_name(ROOT_ID, "X:/docs/..")

    def test_parent_must_be_directory(self, tree):
        fs, docs, sub, a = tree
        with pytest.raises(TypeMismatchError):
            fs.resolve_parent_and_name(ROOT_ID, "X:/docs/a.txt/new")

    def test_path_of(self, tree):
        fs, docs, sub, a = tree
        assert fs.path_of(ROOT_ID) == ROOT_MARKER
        assert fs.path_of(docs.id) == "X:/docs"
        assert fs.path_of(a.id) == "X:/docs/a.txt"

    def test_deleted_entries_not_resolved(self, tree):
        fs, docs, sub, a = tree
        fs.remove(ROOT_ID, "X:/docs/a.txt")
        with pytest.raises(NotFoundError):
            fs.resolve(ROOT_ID, "X:/docs/a.txt")


# =============================================================================
# Directory Tree Tests
# =============================================================================

class TestCreate:
    """Tests for mkdir and touch."""

    def test_mkdir(self, fs):
        entry = fs.create_directory(ROOT_ID, "d")
        assert entry.type == TYPE_DIR
        assert entry.parent_id == ROOT_ID
        assert entry.id.startswith("dir_")
        assert len(fs.chain_of(entry.first_cluster)) == 1
        assert fs.store.get_fat_slot(entry.first_cluster).owner_entry_id == entry.id

    def test_mkdir_conflict(self, fs):
        fs.create_directory(ROOT_ID, "d")
        with pytest.raises(NameConflictError):
            fs.create_directory(ROOT_ID, "d")
        with pytest.raises(NameConflictError):
            fs.create_directory(ROOT_ID, "X:/d/")

    def test_mkdir_missing_parent(self, fs):
        with pytest.raises(NotFoundError):
            fs.create_directory(ROOT_ID, "X:/a/b")

    def test_touch_new_file(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        assert entry.type == TYPE_FILE
        assert entry.id.startswith("file_")
        assert entry.size == 0
        assert entry.attrs.archive is True
        assert entry.attrs.attr_string() == "---A"
        assert len(fs.chain_of(entry.first_cluster)) == 1

    def test_touch_existing_keeps_content(self, fs):
        entry = fs.write_file(ROOT_ID, "a.txt", b"keep me")
        touched = fs.create_file(ROOT_ID, "a.txt")
        assert touched.id == entry.id
        assert touched.first_cluster == entry.first_cluster
        assert fs.read(entry.id) == b"keep me"
        assert fs.count_free() == 12

    def test_touch_existing_directory(self, fs):
        directory = fs.create_directory(ROOT_ID, "d")
        assert fs.create_file(ROOT_ID, "d").id == directory.id

    def test_create_on_full_disk_leaves_no_entry(self, fs):
        fs.allocate(None, 13)
        with pytest.raises(DiskFullError):
            fs.create_directory(ROOT_ID, "d")
        with pytest.raises(DiskFullError):
            fs.create_file(ROOT_ID, "a.txt")
        assert fs.list_directory(ROOT_ID) == []

    def test_listing_order(self, fs):
        fs.create_file(ROOT_ID, "b.txt")
        fs.create_directory(ROOT_ID, "z")
        fs.create_file(ROOT_ID, "a.txt")
        fs.create_directory(ROOT_ID, "m")
        names = [e.name for e in fs.list_directory(ROOT_ID)]
        assert names == ["m", "z", "a.txt", "b.txt"]

    def test_walk(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_file(ROOT_ID, "d/f")
        fs.create_file(ROOT_ID, "top")
        assert [path for path, _ in fs.walk(ROOT_ID)] == ["X:/d", "X:/d/f", "X:/top"]


class TestRemove:
    """Tests for rm."""

    def test_remove_file(self, fs):
        entry = fs.write_file(ROOT_ID, "a.txt", b"x" * 100)
        removed = fs.remove(ROOT_ID, "a.txt")
        assert removed == [entry.id]
        tombstone = fs.store.get_entry(entry.id)
        assert tombstone.deleted is True
        assert tombstone.first_cluster == 0
        assert tombstone.size == 0
        assert fs.count_free() == 13

    def test_remove_root(self, fs):
        with pytest.raises(InvariantViolationError):
            fs.remove(ROOT_ID, "X:/")

    def test_remove_non_empty_directory(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_file(ROOT_ID, "d/f")
        with pytest.raises(DirectoryNotEmptyError):
            fs.remove(ROOT_ID, "d")

    def test_remove_empty_directory(self, fs):
        directory = fs.create_directory(ROOT_ID, "d")
        assert fs.remove(ROOT_ID, "d") == [directory.id]

    def test_recursive_remove_frees_everything(self, fs):
        d = fs.create_directory(ROOT_ID, "d")
        sub = fs.create_directory(ROOT_ID, "d/sub")
        f = fs.write_file(ROOT_ID, "d/sub/f", b"z" * 150)
        g = fs.create_file(ROOT_ID, "d/g")
        removed = fs.remove(ROOT_ID, "d", recursive=True)

        assert set(removed) == {d.id, sub.id, f.id, g.id}
        assert removed[-1] == d.id
        assert removed.index(f.id) < removed.index(sub.id)
        assert fs.count_free() == 13
        assert fs.list_directory(ROOT_ID) == []

    def test_name_reusable_after_remove(self, fs):
        first = fs.create_file(ROOT_ID, "a.txt")
        fs.remove(ROOT_ID, "a.txt")
        second = fs.create_file(ROOT_ID, "a.txt")
        assert second.id != first.id
        assert [e.id for e in fs.list_directory(ROOT_ID)] == [second.id]


class TestMove:
    """Tests for mv."""

    def test_rename(self, fs):
        entry = fs.write_file(ROOT_ID, "a.txt", b"data")
        moved = fs.move(ROOT_ID, "a.txt", "b.txt")
        assert moved.id == entry.id
        assert moved.name == "b.txt"
        assert moved.first_cluster == entry.first_cluster
        assert fs.read_file(ROOT_ID, "b.txt") == b"data"

    def test_move_into_directory(self, fs):
        d = fs.create_directory(ROOT_ID, "d")
        entry = fs.create_file(ROOT_ID, "a.txt")
        moved = fs.move(ROOT_ID, "a.txt", "d")
        assert moved.parent_id == d.id
        assert moved.name == "a.txt"
        assert fs.path_of(entry.id) == "X:/d/a.txt"

    def test_move_with_new_name_into_directory(self, fs):
        d = fs.create_directory(ROOT_ID, "d")
        fs.create_file(ROOT_ID, "a.txt")
        moved = fs.move(ROOT_ID, "a.txt", "d/b.txt")
        assert moved.parent_id == d.id
        assert moved.name == "b.txt"

    def test_move_touches_no_cluster(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.write_file(ROOT_ID, "a.txt", b"x" * 100)
        before = fat_snapshot(fs)
        fs.move(ROOT_ID, "a.txt", "d")
        assert fat_snapshot(fs) == before

    def test_move_root(self, fs):
        fs.create_directory(ROOT_ID, "d")
        with pytest.raises(InvariantViolationError):
            fs.move(ROOT_ID, "X:/", "d")

    def test_move_into_own_subtree(self, fs):
        fs.create_directory(ROOT_ID, "a")
        fs.create_directory(ROOT_ID, "a/b")
        with pytest.raises(InvariantViolationError):
            fs.move(ROOT_ID, "a", "a/b")
        with pytest.raises(InvariantViolationError):
            fs.move(ROOT_ID, "a", "a")
        with pytest.raises(InvariantViolationError):
            fs.move(ROOT_ID, "a", "a/b/c")

    def test_move_name_conflict(self, fs):
        fs.create_file(ROOT_ID, "a.txt")
        fs.create_file(ROOT_ID, "b.txt")
        with pytest.raises(NameConflictError):
            fs.move(ROOT_ID, "a.txt", "b.txt")

    def test_move_missing_source(self, fs):
        with pytest.raises(NotFoundError):
            fs.move(ROOT_ID, "nope", "b")


class TestCopy:
    """Tests for cp."""

    def test_copy_file(self, fs):
        src = fs.write_file(ROOT_ID, "a.txt", b"q" * 100)
        copy = fs.copy(ROOT_ID, "a.txt", "b.txt")
        assert copy.id != src.id
        assert copy.size == 100
        assert copy.attrs == src.attrs
        assert fs.read(copy.id) == b"q" * 100
        assert not set(fs.chain_of(src.first_cluster)) & set(fs.chain_of(copy.first_cluster))

    def test_copy_isolation(self, fs):
        fs.write_file(ROOT_ID, "a.txt", b"original")
        copy = fs.copy(ROOT_ID, "a.txt", "b.txt")
        fs.write(copy.id, b"changed copy")
        assert fs.read_file(ROOT_ID, "a.txt") == b"original"
        assert fs.read_file(ROOT_ID, "b.txt") == b"changed copy"

    def test_copy_into_directory(self, fs):
        d = fs.create_directory(ROOT_ID, "d")
        fs.write_file(ROOT_ID, "a.txt", b"x")
        copy = fs.copy(ROOT_ID, "a.txt", "d")
        assert copy.parent_id == d.id
        assert copy.name == "a.txt"

    def test_copy_directory_needs_recursive(self, fs):
        fs.create_directory(ROOT_ID, "d")
        with pytest.raises(InvalidArgumentError):
            fs.copy(ROOT_ID, "d", "e")

    def test_copy_tree(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_directory(ROOT_ID, "d/s")
        fs.write_file(ROOT_ID, "d/f", b"file f")
        fs.write_file(ROOT_ID, "d/s/g", b"file g")
        copy = fs.copy(ROOT_ID, "d", "e", recursive=True)

        assert copy.name == "e"
        assert [e.name for e in fs.list_directory(copy.id)] == ["s", "f"]
        assert fs.read_file(ROOT_ID, "X:/e/f") == b"file f"
        assert fs.read_file(ROOT_ID, "X:/e/s/g") == b"file g"
        assert verify_volume(fs).is_valid

    def test_copy_into_itself(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_directory(ROOT_ID, "d/sub")
        count = fs.store.count_entries()
        with pytest.raises(InvariantViolationError):
            fs.copy(ROOT_ID, "d", "d/sub", recursive=True)
        with pytest.raises(InvariantViolationError):
            fs.copy(ROOT_ID, "d", "d", recursive=True)
        assert fs.store.count_entries() == count

    def test_copy_name_conflict(self, fs):
        fs.create_file(ROOT_ID, "a.txt")
        fs.create_file(ROOT_ID, "b.txt")
        with pytest.raises(NameConflictError):
            fs.copy(ROOT_ID, "a.txt", "b.txt")

    def test_copy_disk_full(self, fs):
        fs.write_file(ROOT_ID, "a.txt", b"x" * (64 * 7))
        with pytest.raises(DiskFullError):
            fs.copy(ROOT_ID, "a.txt", "b.txt")

    def test_copy_disk_full_keeps_partial_tree(self, fs):
        fill_for_partial_copy(fs)
        with pytest.raises(DiskFullError):
            fs.copy(ROOT_ID, "d", "e", recursive=True)

        # No rollback: the clones made before the failure stay live
        copy = fs.get_entry(ROOT_ID, "e")
        assert [e.name for e in fs.list_directory(copy.id)] == ["a", "b"]
        assert fs.read_file(ROOT_ID, "e/a") == b"a" * 64
        assert fs.read_file(ROOT_ID, "e/b") == b""
        assert fs.read_file(ROOT_ID, "d/b") == b"b" * 192
        assert fs.count_free() == 0
        assert fs.events_log(action="ALLOC_FAIL")

        result = verify_volume(fs)
        assert result.is_valid, result.errors
        assert result.cross_linked_clusters == []


class TestAttributes:
    """Tests for attribute changes."""

    def test_set_attributes(self, fs):
        fs.create_file(ROOT_ID, "a.txt")
        entry = fs.set_attributes(ROOT_ID, "a.txt", readonly=True, archive=False)
        assert entry.attrs.attr_string() == "R---"
        assert fs.events_log(action="ATTR")

    def test_unknown_attribute(self, fs):
        fs.create_file(ROOT_ID, "a.txt")
        with pytest.raises(InvalidArgumentError):
            fs.set_attributes(ROOT_ID, "a.txt", executable=True)

    def test_readonly_is_not_enforced(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.set_attributes(ROOT_ID, "a.txt", readonly=True)
        fs.write(entry.id, b"still writable")
        assert fs.read(entry.id) == b"still writable"


# =============================================================================
# Change Notification Tests
# =============================================================================

class TestChangeNotification:
    """Tests for subscriber callbacks."""

    def test_fires_once_per_mutation(self, fs):
        calls = []
        fs.subscribe(lambda: calls.append(1))
        fs.create_directory(ROOT_ID, "d")
        assert len(calls) == 1
        fs.write_file(ROOT_ID, "d/a.txt", b"x" * 100)
        assert len(calls) == 2

    def test_not_fired_when_failure_changes_nothing(self, fs):
        calls = []
        fs.create_directory(ROOT_ID, "d")
        fs.subscribe(lambda: calls.append(1))
        with pytest.raises(NameConflictError):
            fs.create_directory(ROOT_ID, "d")
        with pytest.raises(NotFoundError):
            fs.remove(ROOT_ID, "missing")
        assert calls == []

    def test_fired_when_failure_is_logged(self, fs):
        calls = []
        fs.subscribe(lambda: calls.append(1))
        with pytest.raises(DiskFullError):
            fs.allocate(None, 100)
        assert calls == [1]
        assert fs.events_log(action="ALLOC_FAIL")

    def test_fired_after_partial_copy(self, fs):
        fill_for_partial_copy(fs)
        entries_before = fs.store.count_entries()
        calls = []
        fs.subscribe(lambda: calls.append(1))
        with pytest.raises(DiskFullError):
            fs.copy(ROOT_ID, "d", "e", recursive=True)
        assert fs.store.count_entries() == entries_before + 3
        assert calls == [1]

    def test_fired_when_write_touches_directory(self, fs):
        fs.create_directory(ROOT_ID, "d")
        calls = []
        fs.subscribe(lambda: calls.append(1))
        with pytest.raises(TypeMismatchError):
            fs.write_file(ROOT_ID, "d", b"data")
        assert calls == [1]

    def test_unsubscribe(self, fs):
        calls = []
        unsubscribe = fs.subscribe(lambda: calls.append(1))
        unsubscribe()
        fs.create_directory(ROOT_ID, "d")
        assert calls == []

    def test_queries_do_not_notify(self, fs):
        calls = []
        fs.create_file(ROOT_ID, "a.txt")
        fs.subscribe(lambda: calls.append(1))
        fs.list_directory(ROOT_ID)
        fs.read_file(ROOT_ID, "a.txt")
        fs.resolve(ROOT_ID, "a.txt")
        assert calls == []


# =============================================================================
# Event Log Tests
# =============================================================================

class TestEventLog:
    """Tests for the operation log."""

    def test_operation_ids_distinct(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_file(ROOT_ID, "a.txt")
        mkdir = fs.events_log(action="MKDIR")[0]
        touch = fs.events_log(action="TOUCH")[0]
        assert mkdir.op_id != touch.op_id

    def test_copy_events_grouped(self, fs):
        fs.write_file(ROOT_ID, "a.txt", b"x" * 100)
        fs.copy(ROOT_ID, "a.txt", "b.txt")
        cp = fs.events_log(action="CP")[0]
        actions = [e.action for e in fs.events_log(op_id=cp.op_id)]
        assert "CP_CLUSTER" in actions
        assert "CP_END" in actions
        assert actions[-1] == "CP"

    def test_free_events(self, fs):
        fs.write_file(ROOT_ID, "a.txt", b"x" * 100)
        fs.remove(ROOT_ID, "a.txt")
        rm = fs.events_log(action="RM")[0]
        actions = [e.action for e in fs.events_log(op_id=rm.op_id)]
        assert actions.count("FREE_CLUSTER") == 2
        assert "FREE_BEGIN" in actions

    def test_highlights(self, fs):
        entry = fs.write_file(ROOT_ID, "a.txt", b"x")
        event = fs.events_log(action="WRITE_CLUSTER")[-1]
        assert event.highlight_clusters == [entry.first_cluster]
        assert event.highlight_entries == [entry.id]


# =============================================================================
# Persistence Tests
# =============================================================================

class TestPersistence:
    """Tests for the JSON record store."""

    def test_open_bootstraps(self, store_path):
        with FatFileSystem.open(store_path) as fs:
            assert fs.total_clusters == 256
            assert fs.cluster_size == 64
        assert store_path.exists()

    def test_roundtrip(self, store_path):
        content = bytes(range(256)) * 2
        with FatFileSystem.open(store_path) as fs:
            fs.create_directory(ROOT_ID, "d")
            entry = fs.write_file(ROOT_ID, "d/data.bin", content)
            chain = fs.chain_of(entry.first_cluster)
            fat = fat_snapshot(fs)
            removed = fs.create_file(ROOT_ID, "gone")
            fs.remove(ROOT_ID, "gone")

        with FatFileSystem.open(store_path) as fs:
            assert fs.read_file(ROOT_ID, "X:/d/data.bin") == content
            assert fs.chain_of(entry.first_cluster) == chain
            assert fat_snapshot(fs) == fat
            assert fs.store.get_entry(removed.id).deleted is True
            new = fs.create_file(ROOT_ID, "new")
            assert new.id not in {e.id for e in fs.store.entries() if e is not new}

    def test_autosave(self, store_path):
        fs = FatFileSystem.open(store_path, autosave=True)
        fs.create_directory(ROOT_ID, "d")
        reloaded = RecordStore.open(store_path)
        assert any(e.name == "d" for e in reloaded.entries())
        fs.close()

    def test_autosave_after_partial_copy(self, store_path):
        fs = FatFileSystem.open(store_path, autosave=True)
        fs.format(total_clusters=16, cluster_size=64)
        fill_for_partial_copy(fs)
        with pytest.raises(DiskFullError):
            fs.copy(ROOT_ID, "d", "e", recursive=True)
        reloaded = RecordStore.open(store_path)
        assert any(e.name == "e" for e in reloaded.entries())
        fs.close()

    def test_no_flush_without_close(self, store_path):
        fs = FatFileSystem.open(store_path)
        fs.flush()
        fs.create_directory(ROOT_ID, "d")
        reloaded = RecordStore.open(store_path)
        assert not any(e.name == "d" for e in reloaded.entries())
        fs.close()

    def test_corrupt_store(self, store_path):
        store_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            FatFileSystem.open(store_path)

    def test_wrong_format_version(self, store_path):
        store_path.write_text(json.dumps({"format_version": 99}), encoding="utf-8")
        with pytest.raises(StoreError):
            RecordStore.open(store_path)

    def test_payload_stored_as_base64(self, store_path):
        with FatFileSystem.open(store_path) as fs:
            fs.write_file(ROOT_ID, "a.txt", b"\x00\xff")
        document = json.loads(store_path.read_text(encoding="utf-8"))
        assert set(document) >= {"volume", "entries", "fat", "clusters", "events", "sequence"}
        assert "AP8=" in [c["data"] for c in document["clusters"]]


# =============================================================================
# Info and Verify Tests
# =============================================================================

class TestInfo:
    """Tests for volume statistics."""

    def test_fresh_volume(self, fs):
        info = get_volume_info(fs)
        assert info["total_clusters"] == 16
        assert info["free_clusters"] == 13
        assert info["used_clusters"] == 1
        assert info["reserved_clusters"] == 2
        assert info["total_bytes"] == 1024
        assert info["file_count"] == 0
        assert info["directory_count"] == 0

    def test_counts(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.create_file(ROOT_ID, "d/a")
        fs.create_file(ROOT_ID, "b")
        fs.remove(ROOT_ID, "b")
        info = get_volume_info(fs)
        assert info["file_count"] == 1
        assert info["directory_count"] == 1
        assert info["deleted_count"] == 1

    def test_format_text(self, fs):
        text = format_volume_info(get_volume_info(fs), verbose=True)
        assert "FAT32" in text
        assert "Total clusters: 16" in text


class TestVerify:
    """Tests for consistency checking."""

    def test_fresh_volume_valid(self, fs):
        result = verify_volume(fs)
        assert result.is_valid
        assert result.errors == []

    def test_mutated_volume_valid(self, fs):
        fs.create_directory(ROOT_ID, "d")
        fs.write_file(ROOT_ID, "d/a", b"a" * 150)
        fs.write_file(ROOT_ID, "d/a", b"short")
        fs.copy(ROOT_ID, "d", "e", recursive=True)
        fs.move(ROOT_ID, "e/a", "moved")
        fs.remove(ROOT_ID, "d", recursive=True)
        fs.mark_bad(15)
        result = verify_volume(fs, verbose=True)
        assert result.is_valid, result.errors
        assert result.bad_clusters == 1

    def test_lost_clusters(self, fs):
        fs.allocate(None, 2)
        result = verify_volume(fs)
        assert result.is_valid
        assert result.lost_clusters == 2
        assert result.warnings

    def test_broken_chain(self, fs):
        entry = fs.create_file(ROOT_ID, "a.txt")
        fs.store.get_fat_slot(entry.first_cluster).value = FAT_FREE
        result = verify_volume(fs)
        assert not result.is_valid

    def test_cross_linked(self, fs):
        a = fs.create_file(ROOT_ID, "a")
        b = fs.create_file(ROOT_ID, "b")
        b.first_cluster = a.first_cluster
        fs.store.update_entry(b)
        result = verify_volume(fs)
        assert not result.is_valid
        assert a.first_cluster in result.cross_linked_clusters

    def test_deleted_entry_owning_payload(self, fs):
        gone = fs.create_file(ROOT_ID, "gone")
        fs.remove(ROOT_ID, "gone")
        assert verify_volume(fs).is_valid

        kept = fs.create_file(ROOT_ID, "kept")
        fs.store.get_cluster_data(kept.first_cluster).owner_entry_id = gone.id
        result = verify_volume(fs)
        assert not result.is_valid
        assert any("still owns cluster payloads" in e for e in result.errors)

    def test_format_result(self, fs):
        text = format_verification_result(verify_volume(fs))
        assert "PASSED" in text


# =============================================================================
# Configuration and Logging Tests
# =============================================================================

class TestSettings:
    """Tests for user settings."""

    def test_defaults(self, temp_dir, monkeypatch):
        monkeypatch.delenv("FATSIM_STORE", raising=False)
        settings = Settings(temp_dir / "missing.json")
        assert settings.get("bootstrap_total_clusters") == 256
        assert settings.get("bootstrap_cluster_size") == 64
        assert settings.autosave is True
        assert settings.store_path.name == "fatsim.db.json"

    def test_file_merged_over_defaults(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({"bootstrap_total_clusters": 32, "bogus": 1}), encoding="utf-8")
        settings = Settings(path)
        assert settings.get("bootstrap_total_clusters") == 32
        assert settings.get("bogus") is None
        assert settings.open_kwargs()["bootstrap_total_clusters"] == 32

    def test_unreadable_file_falls_back(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text("{broken", encoding="utf-8")
        settings = Settings(path)
        assert settings.get("bootstrap_cluster_size") == 64

    def test_store_env_override(self, temp_dir, monkeypatch):
        monkeypatch.setenv("FATSIM_STORE", str(temp_dir / "env.json"))
        settings = Settings(temp_dir / "missing.json")
        assert settings.store_path == temp_dir / "env.json"

    def test_save(self, temp_dir):
        path = temp_dir / "nested" / "settings.json"
        settings = Settings(path)
        settings.set("label", "SAVED")
        settings.save()
        assert Settings(path).get("label") == "SAVED"


class TestLogging:
    """Tests for logging level helpers."""

    def test_level_from_flags(self):
        assert level_from_flags(quiet=True, verbose=True) == QUIET
        assert level_from_flags(verbose=True) == VERBOSE

    def test_level_from_name(self):
        assert level_from_name("verbose") == VERBOSE
        assert level_from_name("QUIET") == QUIET
        assert level_from_name("unknown", default=QUIET) == QUIET


# =============================================================================
# CLI Tests
# =============================================================================

class TestCLI:
    """Tests for CLI command handlers."""

    @pytest.fixture
    def args(self, temp_dir):
        """Build argparse-like namespaces pointing at a temp store."""
        store = str(temp_dir / "cli.json")
        config = str(temp_dir / "settings.json")

        def make(**kwargs):
            class Args:
                pass
            namespace = Args()
            namespace.store = store
            namespace.config = config
            namespace.cwd = None
            namespace.verbose = False
            for key, value in kwargs.items():
                setattr(namespace, key, value)
            return namespace

        formatter = OutputFormatter(json_mode=False)
        assert cmd_format(make(clusters=16, cluster_size=64, fat_type=None, label=None), formatter) == 0
        return make

    def test_format_json(self, args, capsys):
        capsys.readouterr()
        formatter = OutputFormatter(json_mode=True)
        result = cmd_format(args(clusters=32, cluster_size=64, fat_type="FAT16", label="TEST"), formatter)
        assert result == 0

        output = json.loads(capsys.readouterr().out)
        assert output["status"] == "success"
        assert output["total_clusters"] == 32
        assert output["fat_type"] == "FAT16"
        assert output["free_clusters"] == 29

    def test_format_new_store_formats_once(self, args, temp_dir):
        store = temp_dir / "fresh.json"
        formatter = OutputFormatter(json_mode=False)
        assert cmd_format(args(store=str(store), clusters=16, cluster_size=64), formatter) == 0
        with FatFileSystem.open(store) as fs:
            assert fs.total_clusters == 16
            assert [e.op_id for e in fs.events_log(action="FORMAT")] == ["op_1"]

    def test_format_invalid_leaves_no_store(self, args, temp_dir):
        store = temp_dir / "fresh.json"
        formatter = OutputFormatter(json_mode=False)
        assert cmd_format(args(store=str(store), clusters=2, cluster_size=64), formatter) == 1
        assert not store.exists()

    def test_format_invalid(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        assert cmd_format(args(clusters=2, cluster_size=64), formatter) == 1
        assert "Error:" in capsys.readouterr().err

    def test_mkdir_write_cat(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        assert cmd_mkdir(args(path="X:/DOCS"), formatter) == 0
        assert cmd_write(args(path="X:/DOCS/A.TXT", text="hello clusters", file=None), formatter) == 0
        capsys.readouterr()

        assert cmd_cat(args(path="X:/DOCS/A.TXT"), formatter) == 0
        assert capsys.readouterr().out == "hello clusters\n"

    def test_write_from_local_file(self, args, temp_dir, capsys):
        local = temp_dir / "local.bin"
        local.write_bytes(b"x" * 100)
        formatter = OutputFormatter(json_mode=True)
        capsys.readouterr()
        assert cmd_write(args(path="B.BIN", text=None, file=str(local)), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["size"] == 100
        assert len(output["chain"]) == 2

    def test_write_needs_content(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        assert cmd_write(args(path="A", text=None, file=None), formatter) == 1

    def test_list(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        cmd_mkdir(args(path="DOCS"), formatter)
        cmd_touch(args(path="A.TXT"), formatter)
        capsys.readouterr()

        assert cmd_list(args(path=None, recursive=False), formatter) == 0
        out = capsys.readouterr().out
        assert "Directory of X:/" in out
        assert out.index("DOCS") < out.index("A.TXT")

    def test_list_recursive_json(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        cmd_mkdir(args(path="DOCS"), formatter)
        cmd_touch(args(path="DOCS/A.TXT"), formatter)
        capsys.readouterr()

        assert cmd_list(args(path="X:/", recursive=True), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert [f["path"] for f in output["files"]] == ["X:/DOCS", "X:/DOCS/A.TXT"]

    def test_cwd(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        cmd_mkdir(args(path="DOCS"), formatter)
        capsys.readouterr()
        assert cmd_touch(args(path="A.TXT", cwd="X:/DOCS"), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["file"] == "X:/DOCS/A.TXT"

    def test_rm_mv_cp(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        cmd_mkdir(args(path="D"), formatter)
        cmd_write(args(path="D/F", text="abc", file=None), formatter)
        assert cmd_cp(args(source="D", dest="E", recursive=True), formatter) == 0
        assert cmd_mv(args(source="E/F", dest="G"), formatter) == 0
        assert cmd_rm(args(path="D", recursive=False), formatter) == 1
        assert cmd_rm(args(path="D", recursive=True), formatter) == 0
        capsys.readouterr()

        assert cmd_cat(args(path="G"), formatter) == 0
        assert capsys.readouterr().out == "abc\n"

    def test_attr(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        cmd_touch(args(path="A.TXT"), formatter)
        capsys.readouterr()

        assert cmd_attr(args(path="A.TXT", modifications=[]), formatter) == 0
        assert "---A" in capsys.readouterr().out
        assert cmd_attr(args(path="A.TXT", modifications=["+R", "-A"]), formatter) == 0
        assert "---A -> R---" in capsys.readouterr().out

    def test_attr_invalid(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        cmd_touch(args(path="A.TXT"), formatter)
        capsys.readouterr()
        assert cmd_attr(args(path="A.TXT", modifications=["+Q"]), formatter) == 1
        assert json.loads(capsys.readouterr().out)["status"] == "error"

    def test_chain(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        cmd_write(args(path="A.TXT", text="x" * 100, file=None), formatter)
        capsys.readouterr()

        assert cmd_chain(args(path="A.TXT"), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert len(output["chain"]) == 2
        assert output["fat"] == [output["chain"][1], FAT_EOC]

    def test_log(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        cmd_mkdir(args(path="D"), formatter)
        capsys.readouterr()

        assert cmd_log(args(limit=1, op=None), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert [e["action"] for e in output["events"]] == ["MKDIR"]

    def test_log_text(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        capsys.readouterr()
        assert cmd_log(args(limit=None, op=None), formatter) == 0
        assert "FORMAT" in capsys.readouterr().out

    def test_info_and_verify(self, args, capsys):
        formatter = OutputFormatter(json_mode=True)
        capsys.readouterr()

        assert cmd_info(args(), formatter) == 0
        info = json.loads(capsys.readouterr().out)
        assert info["free_clusters"] == 13

        assert cmd_verify(args(), formatter) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["valid"] is True

    def test_errors(self, args, capsys):
        formatter = OutputFormatter(json_mode=False)
        cmd_mkdir(args(path="D"), formatter)
        capsys.readouterr()

        assert cmd_mkdir(args(path="D"), formatter) == 1
        assert "already exists" in capsys.readouterr().err
        assert cmd_cat(args(path="MISSING"), formatter) == 1
        assert cmd_cat(args(path="D"), formatter) == 1


class TestMain:
    """Tests for the argparse entry point."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        setup_logging(level=QUIET, stream=sys.__stderr__)

    def test_help_syntax(self, capsys):
        assert main(["--help-syntax"]) == 0
        assert "PATH SYNTAX" in capsys.readouterr().out

    def test_end_to_end(self, temp_dir, capsys):
        base = ["--store", str(temp_dir / "main.json"), "--config", str(temp_dir / "settings.json")]
        assert main(base + ["format", "-c", "16", "-s", "64"]) == 0
        assert main(base + ["mkdir", "X:/DOCS"]) == 0
        assert main(base + ["--cwd", "X:/DOCS", "write", "A.TXT", "hi there"]) == 0
        capsys.readouterr()

        assert main(base + ["--json", "cat", "X:/DOCS/A.TXT"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["content"] == "hi there"

        assert main(base + ["verify"]) == 0
        assert "PASSED" in capsys.readouterr().out

    def test_error_exit_code(self, temp_dir, capsys):
        base = ["--store", str(temp_dir / "main.json"), "--config", str(temp_dir / "settings.json")]
        assert main(base + ["rm", "X:/"]) == 1


class TestErrorTaxonomy:
    """Every error is a FatSimError."""

    def test_hierarchy(self):
        for cls in (NotFoundError, TypeMismatchError, DiskFullError, NameConflictError,
                    InvalidArgumentError, InvariantViolationError, StoreError):
            assert issubclass(cls, FatSimError)
        assert issubclass(DirectoryNotEmptyError, InvalidArgumentError)
        assert issubclass(InvalidPathError, InvalidArgumentError)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
