"""Non-blocking advisory locks scoped to a cache directory.

A lock is a file ``<scope>/<name>.lock`` created with ``O_EXCL``.  Acquiring
never waits: if the file exists the caller gets ``False`` straight away and is
expected to report the contention rather than retry.  The file holds an
ownership token so a lock left behind by a crashed process can be recognised
and reclaimed once.
"""

import json
import logging
import os
import socket
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
# a build is bounded by its timeout, so anything this old is abandoned
DEFAULT_STALE_AFTER = 600.0


def _pid_alive(pid):
    if pid is None or pid <= 0:
        return False
    if os.name == "nt":
        # no cheap liveness probe without extra dependencies; rely on age
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by somebody else
        return True
    return True


class CacheLock:
    """Exclusive named lock living inside ``scope``."""

    def __init__(self, scope, name, stale_after=DEFAULT_STALE_AFTER):
        self.scope = Path(scope)
        self.name = name
        self.path = self.scope / f"{name}{LOCK_SUFFIX}"
        self.stale_after = stale_after
        self.token = None

    @property
    def held(self) -> bool:
        return self.token is not None

    def try_acquire(self) -> bool:
        """Take the lock if it is free; never blocks."""
        if self.held:
            return True
        self.scope.mkdir(parents=True, exist_ok=True)
        if self._create():
            return True
        owner = self.read_owner()
        if not self._is_stale(owner):
            logger.debug("lock %s held by %s", self.path, owner)
            return False
        # Move the stale file aside rather than deleting it: rename is atomic,
        # so when several processes spot the same stale lock only one of them
        # gets to reclaim it.
        tombstone = self.path.with_name(
            f"{self.path.name}.stale-{uuid.uuid4().hex}"
        )
        try:
            os.rename(self.path, tombstone)
        except FileNotFoundError:
            return False
        moved = self._read_record(tombstone)
        if moved is not None and moved.get("token") != owner.get("token"):
            # somebody reclaimed it first and we moved their fresh lock
            self._restore(tombstone)
            return False
        logger.warning("reclaimed stale lock %s (owner %s)", self.path, owner)
        try:
            tombstone.unlink()
        except OSError:
            pass
        return self._create()

    def release(self):
        """Drop the lock; a no-op when this instance does not hold it."""
        if not self.held:
            return
        owner = self.read_owner()
        if owner is not None and owner.get("token") == self.token:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
        else:
            logger.warning(
                "lock %s no longer carries our token; leaving it", self.path
            )
        self.token = None

    def read_owner(self):
        """Return the ownership record of the current lock file, if any."""
        return self._read_record(self.path)

    def _restore(self, tombstone):
        try:
            os.link(tombstone, self.path)
        except OSError:
            logger.warning("could not restore lock %s", self.path)
        try:
            tombstone.unlink()
        except OSError:
            pass

    @staticmethod
    def _read_record(path):
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError:
            return None
        try:
            owner = json.loads(text)
        except ValueError:
            # half-written by a process that died between create and write
            return {}
        if not isinstance(owner, dict):
            return {}
        return owner

    def _create(self):
        token = uuid.uuid4().hex
        try:
            fd = os.open(
                self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644
            )
        except FileExistsError:
            return False
        record = {
            "token": token,
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "created": time.time(),
        }
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(record, fp)
        self.token = token
        logger.debug("acquired lock %s (pid %d)", self.path, os.getpid())
        return True

    def _is_stale(self, owner):
        if owner is None:
            # vanished between our create attempt and the read
            return False
        pid = owner.get("pid")
        if (
            os.name != "nt"
            and owner.get("host") == socket.gethostname()
            and isinstance(pid, int)
            and pid > 0
        ):
            # a live local owner keeps its lock however long it builds
            return not _pid_alive(pid)
        # liveness cannot be checked: fall back to age
        if not self.stale_after:
            return False
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_after

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        state = "held" if self.held else "free"
        return f"CacheLock({str(self.path)!r}, {state})"


# locks taken through the functional interface, keyed by (scope, name)
_HELD = {}


def try_acquire(scope, name, stale_after=DEFAULT_STALE_AFTER) -> bool:
    key = (str(Path(scope).resolve()), name)
    if key in _HELD:
        return True
    lock = CacheLock(scope, name, stale_after=stale_after)
    if not lock.try_acquire():
        return False
    _HELD[key] = lock
    return True


def release(scope, name):
    key = (str(Path(scope).resolve()), name)
    lock = _HELD.pop(key, None)
    if lock is not None:
        lock.release()
