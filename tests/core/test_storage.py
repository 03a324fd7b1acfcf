"""Tests for the local object storage gateway."""

from __future__ import annotations

import pytest

from jiralite.storage import LocalObjectStorage


class TestUpload:
    async def test_upload_and_public_url(self, storage: LocalObjectStorage) -> None:
        result = await storage.upload("avatars/u1.png", b"img")
        assert result.unwrap() == "avatars/u1.png"
        assert (storage.root / "avatars" / "u1.png").read_bytes() == b"img"
        assert storage.get_public_url("avatars/u1.png") == "http://test/storage/avatars/u1.png"

    async def test_existing_object_needs_overwrite(self, storage: LocalObjectStorage) -> None:
        await storage.upload("a.txt", b"one")
        dup = await storage.upload("a.txt", b"two")
        assert dup.error is not None
        assert dup.error.code == "DUPLICATE"
        assert (await storage.upload("a.txt", b"two", overwrite=True)).ok
        assert (storage.root / "a.txt").read_bytes() == b"two"

    @pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "", "a/../../b"])
    async def test_paths_outside_root_are_rejected(self, storage: LocalObjectStorage, path: str) -> None:
        result = await storage.upload(path, b"x")
        assert result.error is not None
        assert result.error.code == "INVALID_PATH"


class TestRemove:
    async def test_remove_counts_existing(self, storage: LocalObjectStorage) -> None:
        await storage.upload("a.txt", b"1")
        await storage.upload("b.txt", b"2")
        assert (await storage.remove(["a.txt", "b.txt", "missing.txt"])).unwrap() == 2
        assert not (storage.root / "a.txt").exists()

    async def test_remove_invalid_path(self, storage: LocalObjectStorage) -> None:
        assert (await storage.remove(["../x"])).error is not None
