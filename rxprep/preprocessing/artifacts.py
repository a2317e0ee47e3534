"""
Scratch storage for intermediate preprocessing artifacts.

Concurrent runs share one scratch directory. Correctness relies on unique
file names rather than locks, and the age-based sweep only touches files
older than its threshold so it can run alongside active writers.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[Path, str]


class TempArtifactManager:
    """Generates scratch paths and garbage-collects them."""

    def __init__(self, scratch_dir: PathLike):
        """
        Initialize the manager.

        Args:
            scratch_dir: Directory for intermediate files. Created on demand.
        """
        self.scratch_dir = Path(scratch_dir)

    def ensure_scratch_dir(self) -> Path:
        """Create the scratch directory if needed."""
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        return self.scratch_dir

    def generate_path(
        self,
        original_ref: PathLike,
        suffix: str,
        extension: Optional[str] = None,
    ) -> Path:
        """
        Build a unique scratch path for a stage output.

        The name is ``<stem>_<suffix>_<epoch ms>_<random hex><ext>`` so that
        concurrent runs over the same source never collide.

        Args:
            original_ref: Source the artifact derives from.
            suffix: Stage label.
            extension: File extension. Defaults to the source's extension.

        Returns:
            Path inside the scratch directory (not created).
        """
        original = Path(original_ref)
        ext = extension if extension is not None else original.suffix
        if ext and not ext.startswith("."):
            ext = f".{ext}"

        timestamp = int(time.time() * 1000)
        token = uuid.uuid4().hex[:8]
        return self.scratch_dir / f"{original.stem}_{suffix}_{timestamp}_{token}{ext}"

    def owns(self, path: PathLike) -> bool:
        """Whether a path lives in the scratch directory."""
        try:
            Path(path).resolve().relative_to(self.scratch_dir.resolve())
        except ValueError:
            return False
        return True

    async def cleanup(self, paths: Iterable[PathLike]) -> list[Path]:
        """
        Delete files, best-effort.

        Failures are logged and never raised.

        Returns:
            Paths that were actually removed.
        """
        return await asyncio.to_thread(self.cleanup_sync, list(paths))

    def cleanup_sync(self, paths: Iterable[PathLike]) -> list[Path]:
        """Synchronous variant of ``cleanup``."""
        removed = []

        for file_path in paths:
            path = Path(file_path)
            try:
                path.unlink()
                removed.append(path)
                logger.debug(f"Cleaned up: {path}")
            except FileNotFoundError:
                logger.debug(f"Already gone: {path}")
            except Exception as e:
                logger.warning(f"Failed to cleanup {path}: {e}")

        return removed

    async def cleanup_older_than(self, max_age_hours: float = 24) -> list[Path]:
        """
        Sweep scratch files older than max_age_hours.

        Returns:
            Paths that were removed.
        """
        return await asyncio.to_thread(self._sweep, max_age_hours)

    def _sweep(self, max_age_hours: float) -> list[Path]:
        if not self.scratch_dir.is_dir():
            logger.debug(f"Scratch directory does not exist: {self.scratch_dir}")
            return []

        cutoff = time.time() - max_age_hours * 3600
        removed = []

        try:
            entries = list(self.scratch_dir.iterdir())
        except Exception as e:
            logger.error(f"Temp file sweep failed: {e}")
            return removed

        for path in entries:
            try:
                stats = path.stat()
                if not path.is_file() or stats.st_mtime >= cutoff:
                    continue
                path.unlink()
                removed.append(path)
                logger.debug(f"Cleaned up old temp file: {path.name}")
            except FileNotFoundError:
                # Removed by a concurrent run
                continue
            except Exception as e:
                logger.warning(f"Failed to sweep {path}: {e}")

        logger.info(f"Temp file sweep removed {len(removed)} file(s) from {self.scratch_dir}")
        return removed
