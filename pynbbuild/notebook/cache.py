"""Directory-based, content-addressed store of built notebook projects.

Each fingerprint owns ``<root>/notebook_<fingerprint>``.  An entry only counts
once the marker file is present, and the marker is written into a private
staging copy that is renamed into place in one step, so a reader never sees a
half-copied project.
"""

import json
import logging
import os
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from .lock import CacheLock, DEFAULT_STALE_AFTER

logger = logging.getLogger(__name__)

ENTRY_PREFIX = "notebook_"
MARKER_NAME = ".pynbbuild-complete"
STAGING_PREFIX = ".staging-"
OUTPUTS_SUFFIX = ".outputs"


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    path: Path
    valid: bool

    @property
    def marker(self) -> Path:
        return self.path / MARKER_NAME


def lock_name(fingerprint):
    """Name of the build lock guarding ``fingerprint``."""
    return f"{ENTRY_PREFIX}{fingerprint}"


def _tree_size(path):
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total


class CacheStore:
    def __init__(self, root, stale_after=DEFAULT_STALE_AFTER):
        self.root = Path(root).expanduser()
        self.stale_after = stale_after

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def resolve_path(self, fingerprint) -> Path:
        return self.root / f"{ENTRY_PREFIX}{fingerprint}"

    def lookup(self, fingerprint) -> CacheEntry:
        path = self.resolve_path(fingerprint)
        return CacheEntry(
            fingerprint=fingerprint,
            path=path,
            valid=(path / MARKER_NAME).is_file(),
        )

    def lock_for(self, fingerprint) -> CacheLock:
        return CacheLock(
            self.root, lock_name(fingerprint), stale_after=self.stale_after
        )

    def output_path(self, fingerprint, pid=None) -> Path:
        """Output-capture file for one execution of ``fingerprint``."""
        if pid is None:
            pid = os.getpid()
        return self.root / f"{ENTRY_PREFIX}{fingerprint}.{pid}{OUTPUTS_SUFFIX}"

    def commit(self, fingerprint, built_directory) -> CacheEntry:
        """Publish ``built_directory`` as the entry for ``fingerprint``.

        Only call this while holding ``lock_for(fingerprint)``.  The tree is
        copied to a staging directory next to the final location (same
        filesystem, so the closing rename is atomic) and the marker is the
        last file written before that rename.
        """
        self.ensure_root()
        canonical = self.resolve_path(fingerprint)
        existing = self.lookup(fingerprint)
        if existing.valid:
            # a committed entry may be executing right now; never replace it
            logger.info("keeping existing cache entry %s", canonical)
            return existing
        staging = self.root / (
            f"{STAGING_PREFIX}{fingerprint}-{uuid.uuid4().hex[:12]}"
        )
        try:
            shutil.copytree(built_directory, staging, symlinks=True)
            marker = {
                "fingerprint": fingerprint,
                "created": time.time(),
                "pid": os.getpid(),
            }
            (staging / MARKER_NAME).write_text(
                json.dumps(marker, indent=2), encoding="utf-8"
            )
            if canonical.exists():
                # leftover without a marker (or from an older layout); we
                # hold the lock so nobody else is producing into it
                logger.info("replacing incomplete cache entry %s", canonical)
                shutil.rmtree(canonical)
            os.rename(staging, canonical)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.debug("committed %s", canonical)
        return self.lookup(fingerprint)

    def entries(self):
        """List valid entries, oldest first."""
        if not self.root.is_dir():
            return []
        found = []
        for path in self.root.iterdir():
            if not path.is_dir() or not path.name.startswith(ENTRY_PREFIX):
                continue
            marker = path / MARKER_NAME
            if not marker.is_file():
                continue
            fingerprint = path.name[len(ENTRY_PREFIX):]
            found.append(
                (marker.stat().st_mtime, CacheEntry(fingerprint, path, True))
            )
        found.sort(key=lambda pair: pair[0])
        return [entry for _, entry in found]

    def prune(self, max_age=None, max_bytes=None):
        """Remove old entries; returns the paths that were deleted.

        Entries older than ``max_age`` seconds go first, then the oldest
        remaining entries until the store is no larger than ``max_bytes``.
        An entry whose build lock is held is skipped.  This is a maintenance
        operation and is never called while running a notebook.

        Runs of an already-built entry take no lock, so pruning while such a
        run is in progress can make that run fail.  Each entry is renamed out
        of the way in one step before it is deleted; later runs just rebuild.
        """
        removed = []
        if not self.root.is_dir():
            return removed
        now = time.time()
        keep = []
        for entry in self.entries():
            age = now - entry.marker.stat().st_mtime
            if max_age is not None and age > max_age:
                if self._remove_entry(entry):
                    removed.append(entry.path)
                    continue
            keep.append(entry)
        if max_bytes is not None:
            sizes = [(entry, _tree_size(entry.path)) for entry in keep]
            total = sum(size for _, size in sizes)
            for entry, size in sizes:
                if total <= max_bytes:
                    break
                if self._remove_entry(entry):
                    removed.append(entry.path)
                    total -= size
        if max_age is not None:
            removed.extend(self._remove_leftovers(now - max_age))
        return removed

    def _remove_entry(self, entry):
        lock = self.lock_for(entry.fingerprint)
        if not lock.try_acquire():
            logger.info("skipping %s: build lock is held", entry.path)
            return False
        with lock:
            # one rename takes the whole entry out of view, so lookups and
            # new runs never see a half-deleted tree
            doomed = self.root / (
                f"{STAGING_PREFIX}{entry.fingerprint}-pruned-"
                f"{uuid.uuid4().hex[:12]}"
            )
            try:
                os.rename(entry.path, doomed)
            except FileNotFoundError:
                return False
            shutil.rmtree(doomed, ignore_errors=True)
        logger.info("pruned %s", entry.path)
        return True

    def _remove_leftovers(self, cutoff):
        removed = []
        for path in self.root.iterdir():
            name = path.name
            if not (
                name.startswith(STAGING_PREFIX) or name.endswith(OUTPUTS_SUFFIX)
            ):
                continue
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            if mtime > cutoff:
                continue
            if path.is_dir():
                shutil.rmtree(path, ignore_errors=True)
            else:
                path.unlink(missing_ok=True)
            removed.append(path)
        return removed
