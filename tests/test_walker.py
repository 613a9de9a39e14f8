"""
Tests for the deterministic tree walker.

Uses an in-memory recording writer so that traversal order, pruning and
dedup can be checked without a real archive container.
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

from apppack.packer.archive_formats import ArchiveWriter
from apppack.packer.base_types import ConfigurationError, EntryIOError, SkipSubtree
from apppack.packer.exclusion import ExclusionConfig, ExclusionPolicy
from apppack.packer.walker import TreeWalker

requires_symlinks = pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")


class RecordingWriter(ArchiveWriter):
    """Writer that records compress calls instead of serializing."""

    format_name = "memory"

    def __init__(self):
        super().__init__(fileobj=None)
        self.calls = []

    def compress(self, name, fpath, info):
        self.calls.append((name, fpath, info))
        return True

    def _finalize(self):
        pass


class FailingWriter(RecordingWriter):
    """Writer raising a fixed exception for every entry."""

    def __init__(self, exc):
        super().__init__()
        self.exc = exc

    def compress(self, name, fpath, info):
        raise self.exc


class TestTreeWalker:
    """Test traversal, exclusion, pruning and dedup."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root = self.temp_dir / "app"
        self.root.mkdir()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, rel_path, content="x"):
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def _names(self, writer):
        return [name for name, _, _ in writer.calls]

    def test_reference_scenario(self):
        """main.go, .git and an empty dir are dropped; only the css file remains."""
        self._write("main.go", "package main")
        self._write("static/css/app.css", "body {}")
        (self.root / "static" / "empty").mkdir()
        self._write(".git/config", "[core]")

        writer = RecordingWriter()
        TreeWalker(writer).walk_root(str(self.root))

        assert self._names(writer) == ["static/css/app.css"]
        assert writer.entry_names == ["static/css/app.css"]

    def test_lexicographic_order(self):
        for name in ["b.txt", "a/z.txt", "C.txt", "a/b.txt", "ab.txt"]:
            self._write(name)

        writer = RecordingWriter()
        TreeWalker(writer).walk_root(str(self.root))

        assert self._names(writer) == ["C.txt", "a/b.txt", "a/z.txt", "ab.txt", "b.txt"]

    def test_virtual_path_uses_forward_slashes(self):
        self._write("a/b/c.txt")

        writer = RecordingWriter()
        walker = TreeWalker(writer)
        walker.walk_root(str(self.root))

        assert self._names(writer) == ["a/b/c.txt"]
        assert walker.virtual_path(str(self.root)) == ""
        assert walker.virtual_path(os.path.join(str(self.root), "a", "b")) == "a/b"

    def test_excluded_directory_prunes_subtree(self):
        self._write("vendor/lib/x.txt")
        self._write("src/y.txt")
        policy = ExclusionPolicy(ExclusionConfig(prefixes=["vendor"], suffixes=[]))

        writer = RecordingWriter()
        TreeWalker(writer, policy=policy).walk_root(str(self.root))

        assert self._names(writer) == ["src/y.txt"]

    def test_regex_prunes_directory_by_name(self):
        self._write("node_modules/pkg/index.js")
        self._write("src/node_modules/pkg/index.js")
        self._write("src/app.js")
        policy = ExclusionPolicy(ExclusionConfig(regexps=["^node_modules$"]))

        writer = RecordingWriter()
        TreeWalker(writer, policy=policy).walk_root(str(self.root))

        assert self._names(writer) == ["src/app.js"]

    def test_fully_excluded_directory_contributes_nothing(self):
        self._write("pkg/a.go")
        self._write("pkg/sub/b.go")
        self._write("pkg/sub/.DS_Store")
        self._write("README")

        writer = RecordingWriter()
        TreeWalker(writer).walk_root(str(self.root))

        assert self._names(writer) == ["README"]

    def test_is_empty(self):
        (self.root / "hollow" / "deeper").mkdir(parents=True)
        self._write("hollow/deeper/x.tmp")
        self._write("full/x.txt")

        walker = TreeWalker(RecordingWriter())
        walker.set_prefix(str(self.root))

        assert walker.is_empty(str(self.root / "hollow"))
        assert not walker.is_empty(str(self.root / "full"))

    def test_output_file_is_never_included(self):
        self._write("a.txt")
        output = self._write("app.tar.gz", "partial")

        writer = RecordingWriter()
        TreeWalker(writer, output_path=str(output)).walk_root(str(self.root))

        assert self._names(writer) == ["a.txt"]

    def test_dedup_across_roots_first_wins(self):
        other = self.temp_dir / "build"
        other.mkdir()
        (other / "shared.txt").write_text("from build")
        self._write("shared.txt", "from app")
        self._write("only_app.txt")

        writer = RecordingWriter()
        walker = TreeWalker(writer)
        walker.walk_root(str(other))
        walker.walk_root(str(self.root))

        assert self._names(writer) == ["shared.txt", "only_app.txt"]
        assert writer.calls[0][1] == str(other / "shared.txt")

    def test_missing_root_is_configuration_error(self):
        writer = RecordingWriter()

        with pytest.raises(ConfigurationError):
            TreeWalker(writer).walk_root(str(self.temp_dir / "missing"))

    def test_file_root_uses_basename(self):
        path = self._write("binary", "ELF")

        writer = RecordingWriter()
        TreeWalker(writer).walk_root(str(path))

        assert self._names(writer) == ["binary"]

    def test_conflicting_symlink_modes_rejected(self):
        with pytest.raises(ConfigurationError):
            TreeWalker(RecordingWriter(), follow_symlinks=True, skip_symlinks=True)

    def test_io_errors_propagate(self):
        self._write("a.txt")
        writer = FailingWriter(OSError("disk full"))

        with pytest.raises(OSError):
            TreeWalker(writer).walk_root(str(self.root))

    def test_skip_signal_from_file_entry_propagates(self):
        """Only directory children absorb the skip-subtree signal."""
        self._write("a.txt")
        writer = FailingWriter(SkipSubtree("a.txt"))

        with pytest.raises(SkipSubtree):
            TreeWalker(writer).walk_root(str(self.root))

    def test_failed_entry_is_not_recorded(self):
        self._write("a.txt")
        writer = FailingWriter(OSError("boom"))

        with pytest.raises(OSError):
            TreeWalker(writer).walk_root(str(self.root))
        assert not writer.is_written("a.txt")

    def test_verbose_logs_each_entry(self, caplog):
        self._write("a.txt")
        writer = RecordingWriter()

        with caplog.at_level("INFO", logger="apppack.packer.walker"):
            TreeWalker(writer, verbose=True).walk_root(str(self.root))

        assert any("compressed" in r.getMessage() and "a.txt" in r.getMessage() for r in caplog.records)


@requires_symlinks
class TestSymlinkPolicy:
    """Test store / follow / skip symlink handling."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root = self.temp_dir / "app"
        self.root.mkdir()
        (self.root / "target.txt").write_text("hello")
        os.symlink("target.txt", self.root / "link")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _walk(self, **kwargs):
        writer = RecordingWriter()
        TreeWalker(writer, **kwargs).walk_root(str(self.root))
        return {name: info for name, _, info in writer.calls}

    def test_default_stores_symlink(self):
        entries = self._walk()

        assert set(entries) == {"link", "target.txt"}
        assert entries["link"].is_symlink

    def test_follow_resolves_target(self):
        entries = self._walk(follow_symlinks=True)

        assert not entries["link"].is_symlink
        assert entries["link"].size == len("hello")

    def test_skip_omits_symlink(self):
        entries = self._walk(skip_symlinks=True)

        assert set(entries) == {"target.txt"}

    def test_dangling_symlink_skipped_when_following(self):
        os.symlink("nowhere.txt", self.root / "dangling")

        assert "dangling" not in self._walk(follow_symlinks=True)
        assert "dangling" in self._walk()

    def test_directory_with_only_symlink_is_not_empty_by_default(self):
        (self.root / "links").mkdir()
        os.symlink("../target.txt", self.root / "links" / "t")

        assert "links/t" in self._walk()
        assert "links/t" not in self._walk(skip_symlinks=True)

    def test_follow_into_symlinked_directory(self):
        (self.temp_dir / "shared").mkdir()
        (self.temp_dir / "shared" / "data.txt").write_text("data")
        os.symlink(str(self.temp_dir / "shared"), self.root / "shared")

        entries = self._walk(follow_symlinks=True)

        assert "shared/data.txt" in entries

    def test_symlink_cycle_terminates(self):
        (self.root / "loop").mkdir()
        (self.root / "loop" / "file.txt").write_text("x")
        os.symlink("..", self.root / "loop" / "parent")

        entries = self._walk(follow_symlinks=True)

        assert "loop/file.txt" in entries
        assert "target.txt" in entries

    def test_self_referencing_link_when_following(self):
        os.symlink("loop", self.root / "loop")

        with pytest.raises(EntryIOError):
            self._walk(follow_symlinks=True)
        assert "loop" in self._walk()

    def test_self_referencing_link_in_subdirectory_when_following(self):
        # the same link seen first by the emptiness check of its parent
        (self.root / "sub").mkdir()
        os.symlink("loop", self.root / "sub" / "loop")

        with pytest.raises(EntryIOError):
            self._walk(follow_symlinks=True)
        assert "sub/loop" not in self._walk(skip_symlinks=True)
