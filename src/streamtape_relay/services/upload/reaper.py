"""Ownership and removal of request-scoped temporary files."""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List

from streamtape_relay.errors import CleanupError

logger = logging.getLogger(__name__)

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


class TemporaryArtifact:
    """A file on disk owned by exactly one request."""

    def __init__(self, path: Path):
        self.path = path
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the file. Only the first call touches the filesystem."""
        if self._released:
            return
        self._released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CleanupError(f"Could not remove {self.path.name}: {e.strerror}") from e

    def __repr__(self) -> str:
        return f"TemporaryArtifact({self.path.name!r}, released={self._released})"


class ResourceReaper:
    """Creates temporary artifacts for one request and removes all of them on exit.

    Usage:
        async with ResourceReaper() as reaper:
            artifact = reaper.create_artifact(upload_dir, suffix=".mp4")
            ...

    Removal failures are logged and swallowed: by the time the reaper runs
    the response has already been decided.
    """

    def __init__(self):
        self._artifacts: List[TemporaryArtifact] = []

    @property
    def artifacts(self) -> List[TemporaryArtifact]:
        return list(self._artifacts)

    def create_artifact(self, directory: Path, suffix: str = "") -> TemporaryArtifact:
        if not _SAFE_SUFFIX.match(suffix or ""):
            suffix = ""
        directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=directory)
        os.close(fd)
        artifact = TemporaryArtifact(Path(name))
        self._artifacts.append(artifact)
        logger.debug(f"Created temporary artifact {artifact.path.name}")
        return artifact

    def reap(self) -> int:
        """Release every artifact not yet released. Returns how many were removed."""
        removed = 0
        for artifact in self._artifacts:
            if artifact.released:
                continue
            try:
                artifact.release()
                removed += 1
                logger.debug(f"Removed temporary artifact {artifact.path.name}")
            except CleanupError as e:
                logger.error(f"Temporary file cleanup failed: {e.message}")
        return removed

    async def __aenter__(self) -> "ResourceReaper":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.reap()
