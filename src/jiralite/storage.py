"""Object storage gateway backed by a local directory.

Only profile avatars live here. Paths are bucket-relative POSIX strings;
anything that would resolve outside the root is rejected.
"""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from jiralite.gateway.base import GatewayError, GatewayResult

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    def __init__(self, root: str | Path, *, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path | None:
        rel = PurePosixPath(path.replace("\\", "/"))
        if rel.is_absolute() or not rel.parts or ".." in rel.parts:
            return None
        return self.root.joinpath(*rel.parts)

    async def upload(self, path: str, data: bytes, *, overwrite: bool = False) -> GatewayResult[str]:
        target = self._resolve(path)
        if target is None:
            return GatewayResult(error=GatewayError(f"Invalid object path: {path!r}", "INVALID_PATH"))
        if target.exists() and not overwrite:
            return GatewayResult(error=GatewayError(f"Object already exists: {path}", "DUPLICATE"))
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, target)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            logger.error("Upload of %s failed: %s", path, exc)
            return GatewayResult(error=GatewayError(str(exc), "IO_ERROR"))
        return GatewayResult(data=path)

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{PurePosixPath(path.replace(chr(92), '/'))}"

    async def remove(self, paths: Sequence[str]) -> GatewayResult[int]:
        removed = 0
        for path in paths:
            target = self._resolve(path)
            if target is None:
                return GatewayResult(error=GatewayError(f"Invalid object path: {path!r}", "INVALID_PATH"))
            try:
                target.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.error("Removing %s failed: %s", path, exc)
                return GatewayResult(error=GatewayError(str(exc), "IO_ERROR"))
            removed += 1
        return GatewayResult(data=removed)
