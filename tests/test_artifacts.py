"""Tests for rxprep.preprocessing.artifacts."""

import asyncio
import os
import time

import pytest

from rxprep.preprocessing import TempArtifactManager


@pytest.fixture
def manager(scratch_dir) -> TempArtifactManager:
    manager = TempArtifactManager(scratch_dir)
    manager.ensure_scratch_dir()
    return manager


class TestGeneratePath:
    def test_paths_are_unique(self, manager):
        paths = {manager.generate_path("rx.png", "contrast") for _ in range(50)}
        assert len(paths) == 50

    def test_name_layout(self, manager, scratch_dir):
        path = manager.generate_path("/uploads/rx.jpeg", "sharpen")

        assert path.parent == scratch_dir
        assert path.name.startswith("rx_sharpen_")
        assert path.suffix == ".jpeg"

    def test_extension_override(self, manager):
        assert manager.generate_path("rx.gif", "converted", extension="png").suffix == ".png"
        assert manager.generate_path("rx.gif", "converted", extension=".png").suffix == ".png"

    def test_does_not_create_file(self, manager):
        assert not manager.generate_path("rx.png", "resize").exists()

    def test_owns(self, manager, tmp_path):
        assert manager.owns(manager.generate_path("rx.png", "resize"))
        assert not manager.owns(tmp_path / "rx.png")


class TestCleanup:
    def test_removes_files(self, manager):
        paths = [manager.generate_path("rx.png", f"step{i}") for i in range(3)]
        for path in paths:
            path.write_bytes(b"x")

        removed = asyncio.run(manager.cleanup(paths))

        assert removed == paths
        assert not any(path.exists() for path in paths)

    def test_missing_files_are_ignored(self, manager):
        existing = manager.generate_path("rx.png", "kept")
        existing.write_bytes(b"x")
        missing = manager.generate_path("rx.png", "gone")

        removed = asyncio.run(manager.cleanup([missing, existing]))

        assert removed == [existing]

    def test_failures_do_not_raise(self, manager, scratch_dir):
        directory = scratch_dir / "not_a_file"
        directory.mkdir()

        assert asyncio.run(manager.cleanup([directory])) == []
        assert directory.exists()

    def test_empty(self, manager):
        assert asyncio.run(manager.cleanup([])) == []


class TestSweep:
    def test_only_old_files_are_removed(self, manager):
        old = manager.generate_path("rx.png", "old")
        fresh = manager.generate_path("rx.png", "fresh")
        old.write_bytes(b"x")
        fresh.write_bytes(b"x")
        two_days_ago = time.time() - 48 * 3600
        os.utime(old, (two_days_ago, two_days_ago))

        removed = asyncio.run(manager.cleanup_older_than(24))

        assert removed == [old]
        assert fresh.exists()

    def test_directories_are_skipped(self, manager, scratch_dir):
        nested = scratch_dir / "nested"
        nested.mkdir()
        long_ago = time.time() - 48 * 3600
        os.utime(nested, (long_ago, long_ago))

        assert asyncio.run(manager.cleanup_older_than(1)) == []
        assert nested.exists()

    def test_missing_scratch_dir(self, tmp_path):
        manager = TempArtifactManager(tmp_path / "never-created")
        assert asyncio.run(manager.cleanup_older_than(1)) == []

    def test_zero_age_removes_everything(self, manager):
        path = manager.generate_path("rx.png", "any")
        path.write_bytes(b"x")
        past = time.time() - 5
        os.utime(path, (past, past))

        assert asyncio.run(manager.cleanup_older_than(0)) == [path]
