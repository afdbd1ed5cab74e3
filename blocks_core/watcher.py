"""Repository change detection.

GitWatcher polls stat signatures of the git control files (index, HEAD,
refs/heads) and of every working-tree directory found by a walk at
startup. Directory listings are cached; a directory is relisted only
when its own signature changes. Each changed path counts as one raw
event and restarts the Debouncer's timer; the callback fires once the
tree has been quiet for the debounce period. Permission-only changes
(same mtime and size, new mode) are not events.

The walk and all polling run on the watcher's own thread.
"""

import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from blocks_core.config import Settings
from blocks_core.git_ops import find_git_dir
from blocks_core.paths import configure_logger

_log = configure_logger("blocks.watcher")

# (st_mtime_ns, st_size, st_mode)
Signature = tuple[int, int, int]

# A directory modified this recently may still gain entries without its
# mtime moving on coarse-timestamp filesystems, so it is always relisted
LISTING_SETTLE_NS = 2_000_000_000


class Debouncer:
    """Coalesce bursts of ``trigger()`` calls into one ``callback()``.

    Every trigger cancels the pending timer and starts a new one, so the
    callback runs ``delay`` seconds after the last trigger of a burst.
    ``timer_factory`` takes ``(delay, fn)`` and returns an object with
    ``start()`` and ``cancel()``, like ``threading.Timer``.
    """

    def __init__(self, delay: float, callback: Callable[[], None],
                 timer_factory: Callable = threading.Timer):
        self.delay = delay
        self.callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._generation = 0
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay, lambda: self._fire(generation))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A trigger that raced with this timer's expiry supersedes it
            if self._closed or generation != self._generation:
                return
            self._timer = None
        self.callback()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def _signature(path: str) -> Optional[Signature]:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size, st.st_mode)


def is_attrib_only(old: Optional[Signature], new: Optional[Signature]) -> bool:
    """True when only the permission bits changed."""
    return old is not None and new is not None and old[:2] == new[:2] and old[2] != new[2]


class GitWatcher:
    """Watches a repository and calls ``on_change`` once per burst of activity."""

    def __init__(self, root: Path, on_change: Callable[[], None],
                 settings: Settings | None = None,
                 timer_factory: Callable = threading.Timer):
        self.root = Path(root)
        self.settings = settings or Settings()
        self.debouncer = Debouncer(self.settings.watcher_debounce, on_change, timer_factory)
        self.git_dir: Optional[Path] = None
        self._files: list[str] = []
        self._dirs: set[str] = set()
        self._snapshot: dict[str, Signature] = {}
        self._listings: dict[str, tuple[Signature, list[str]]] = {}
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def watched_dirs(self) -> set[str]:
        return set(self._dirs)

    def start(self) -> bool:
        """Begin watching in a background thread.

        Returns False when there is no git directory to watch; live reload
        is then simply off.
        """
        self.git_dir = find_git_dir(self.root)
        if self.git_dir is None:
            _log.warning("watcher: no git directory under %s, live reload disabled", self.root)
            return False
        self._thread = threading.Thread(target=self._run, name="blocks-watcher", daemon=True)
        self._thread.start()
        _log.info("watcher: started for %s", self.root)
        return True

    def stop(self) -> None:
        self._stop.set()
        self.debouncer.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._thread = None

    def _run(self) -> None:
        try:
            self.prepare()
        except OSError as e:
            _log.warning("watcher: setup failed: %s", e)
            return
        _log.debug("watcher: %d directories, %d files", len(self._dirs), len(self._files))
        while not self._stop.wait(self.settings.watcher_poll_interval):
            try:
                self.poll_once()
            except OSError as e:
                _log.debug("watcher: poll error: %s", e)

    def prepare(self) -> None:
        """Collect watch targets and take the baseline snapshot."""
        if self.git_dir is None:
            self.git_dir = find_git_dir(self.root)
        if self.git_dir is None:
            raise FileNotFoundError(f"no git directory under {self.root}")
        self._files = [str(self.git_dir / "index"), str(self.git_dir / "HEAD")]
        self._dirs = set()
        refs = self.git_dir / "refs" / "heads"
        if refs.is_dir():
            self._dirs.add(str(refs))
        self._dirs |= self._walk(str(self.root))
        self._listings = {}
        self._snapshot = self._scan()

    def _excluded(self, name: str) -> bool:
        return name.startswith(".") or name in self.settings.watcher_exclude_dirs

    def _walk(self, top: str) -> set[str]:
        found = {top}
        for dirpath, dirnames, _files in os.walk(top, onerror=self._walk_error):
            dirnames[:] = [d for d in dirnames if not self._excluded(d)]
            found.update(os.path.join(dirpath, d) for d in dirnames)
        return found

    @staticmethod
    def _walk_error(err: OSError) -> None:
        _log.debug("watcher: skipping %s: %s", err.filename, err)

    def _scan(self) -> dict[str, Signature]:
        snap: dict[str, Signature] = {}
        for path in self._files:
            sig = _signature(path)
            if sig is not None:
                snap[path] = sig
        for directory in self._dirs:
            sig = _signature(directory)
            if sig is None:
                continue
            snap[directory] = sig
            try:
                children = self._children(directory, sig)
            except OSError:
                self._listings.pop(directory, None)
                continue
            for path in children:
                child = _signature(path)
                if child is not None:
                    snap[path] = child
        return snap

    def _children(self, directory: str, sig: Signature) -> list[str]:
        """Entries of ``directory``, relisted only when its signature moved."""
        cached = self._listings.get(directory)
        if cached is not None and cached[0] == sig and time.time_ns() - sig[0] >= LISTING_SETTLE_NS:
            return cached[1]
        children = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False) and self._excluded(entry.name):
                    continue
                children.append(entry.path)
        self._listings[directory] = (sig, children)
        return children

    def _in_work_tree(self, path: str) -> bool:
        return not path.startswith(str(self.git_dir))

    def poll_once(self) -> list[str]:
        """Compare against the last snapshot and trigger once per changed path."""
        current = self._scan()
        changed = []
        new_dirs: set[str] = set()
        for path in current.keys() | self._snapshot.keys():
            old, new = self._snapshot.get(path), current.get(path)
            if old == new or is_attrib_only(old, new):
                continue
            changed.append(path)
            if new is None:
                self._dirs.discard(path)
                self._listings.pop(path, None)
            elif old is None and os.path.isdir(path) and self._in_work_tree(path):
                new_dirs |= self._walk(path)
        if new_dirs:
            self._dirs |= new_dirs
            current = self._scan()
        self._snapshot = current
        for _ in changed:
            self.debouncer.trigger()
        return sorted(changed)
