"""Sandbox that mounts generated file trees into a local directory and runs commands there."""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable

from ..provider import Sandbox

logger = logging.getLogger(__name__)


class DirectorySandbox(Sandbox):
    """Writes each file of a mounted tree under ``root``.

    A mount is written to a staging directory next to ``root`` and swapped
    in only once every file is written, so a failed mount leaves the
    previous contents in place. Paths that would land outside the tree are
    skipped.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def mount(self, file_tree: dict) -> None:
        self.root.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{self.root.name}-", dir=self.root.parent)).resolve()
        try:
            written = self._write_tree(staging, file_tree)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        if self.root.exists():
            shutil.rmtree(self.root)
        staging.rename(self.root)
        logger.info("Mounted %d files into %s", written, self.root)

    async def run(self, argv: list[str], on_output: Callable[[str], Any]) -> int:
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("Running %s in %s", argv, self.root)
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=self.root,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        async for line in process.stdout:
            on_output(line.decode("utf-8", "replace").rstrip("\r\n"))
        return await process.wait()

    # ── Private helpers ──────────────────────────────────────────────

    @staticmethod
    def _write_tree(base: Path, file_tree: dict) -> int:
        written = 0
        for rel_path, entry in file_tree.items():
            target = (base / rel_path).resolve()
            if not target.is_relative_to(base) or target == base:
                logger.warning("Skipping file outside sandbox: %s", rel_path)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(entry["file"]["contents"], encoding="utf-8")
            written += 1
        return written
