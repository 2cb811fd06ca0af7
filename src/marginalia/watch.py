"""Watch mode for marginalia - drop cached notes when files change on disk."""

import json
import logging
import signal
import sys
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .runtime import Runtime

logger = logging.getLogger(__name__)


class DebounceHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        vault_path: Path,
        on_batch: Callable[[set[str], set[str]], None] | None,
        debounce_ms: int = 150,
        suffix: str = ".md",
    ):
        super().__init__()
        self.vault_path = vault_path
        self.on_batch = on_batch
        self.debounce_ms = debounce_ms
        self.suffix = suffix

        # Track pending changes by ID; the observer thread adds while the
        # flushing thread swaps the sets out, both under _lock
        self.changed: set[str] = set()
        self.deleted: set[str] = set()
        self.last_event_time = 0.0
        self._lock = Lock()

    def _should_skip(self, path: Path) -> bool:
        """Check if file should be skipped."""
        name = path.name

        # Skip hidden files, including our own write-then-rename temp files
        if name.startswith("."):
            return True

        # Skip editor swap/backup files
        if name.endswith("~") or name.endswith(".swp"):
            return True

        return not name.endswith(self.suffix)

    def _extract_id(self, path: str | bytes) -> str | None:
        p = Path(path.decode() if isinstance(path, bytes) else path)
        if self._should_skip(p):
            return None
        return p.stem

    def _touch(self, bucket: str, path: str | bytes) -> None:
        note_id = self._extract_id(path)
        if note_id:
            with self._lock:
                getattr(self, bucket).add(note_id)
                self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch("changed", event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch("changed", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch("deleted", event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """A rename is a deletion of the old id and a change of the new one."""
        if event.is_directory:
            return
        self._touch("deleted", event.src_path)
        self._touch("changed", event.dest_path)

    def check_and_flush(self) -> None:
        """Check if debounce period has elapsed and flush if so."""
        if not (self.changed or self.deleted):
            return

        elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        """Process accumulated events."""
        with self._lock:
            if not (self.changed or self.deleted):
                return
            changed, self.changed = self.changed, set()
            deleted, self.deleted = self.deleted, set()

        if self.on_batch:
            self.on_batch(changed, deleted)


def invalidate_batch(rt: Runtime, changed: set[str], deleted: set[str]) -> dict[str, Any]:
    """
    Drop stale cache entries for a batch of file events.

    A batch touching more notes than the cache can hold clears the cache
    outright instead of invalidating key by key.
    """
    ids = changed | deleted
    if len(ids) > rt.cache.capacity:
        rt.notes.clear()
        dropped = "all"
    else:
        dropped = sorted(nid for nid in ids if rt.cache.invalidate(nid))
    rt.resolver.invalidate()
    logger.debug("Invalidated %s after %d file events", dropped, len(ids))
    return {
        "type": "batch",
        "changed": sorted(changed),
        "deleted": sorted(deleted),
        "invalidated": dropped,
    }


def watch_vault(
    rt: Runtime,
    debounce_ms: int = 150,
    quiet: bool = False,
    json_output: bool = False,
) -> int:
    """
    Watch the vault directory and invalidate cached notes on change.

    Args:
        rt: Runtime whose cache and resolver are kept fresh
        debounce_ms: Debounce window in milliseconds
        quiet: Suppress output
        json_output: Output JSON events instead of human-readable

    Returns:
        Exit code
    """
    vault_path = rt.vault.storage.root
    if not vault_path.exists():
        print(f"Error: Vault not found: {vault_path}", file=sys.stderr)
        return 1

    running = True

    def handle_batch(changed: set[str], deleted: set[str]) -> None:
        event = invalidate_batch(rt, changed, deleted)
        if json_output:
            print(json.dumps(event), flush=True)
        elif not quiet:
            print(f"Changed: {len(changed)} Deleted: {len(deleted)}", flush=True)

    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet and not json_output:
            print("\nShutting down...", flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(vault_path, handle_batch, debounce_ms, suffix=rt.vault.storage.suffix)
    observer = Observer()
    observer.schedule(handler, str(vault_path), recursive=False)

    if not quiet and not json_output:
        print(f"Watching {vault_path} (debounce: {debounce_ms}ms)", flush=True)
        print("Press Ctrl+C to stop", flush=True)

    observer.start()

    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet and not json_output:
        print("Watch stopped", flush=True)

    return 0


def start_observer(
    rt: Runtime,
    debounce_ms: int = 150,
    on_batch: Callable[[set[str], set[str]], None] | None = None,
) -> tuple[Any, DebounceHandler]:
    """
    Start a background observer for a long-running host such as the API.

    Each flushed batch goes to on_batch, or to invalidate_batch() when no
    hook is given; a hook is then responsible for invalidating the cache.
    The caller must call handler.check_and_flush() periodically and stop
    and join the returned observer on shutdown.
    """
    handler = DebounceHandler(
        rt.vault.storage.root,
        on_batch or (lambda changed, deleted: invalidate_batch(rt, changed, deleted)),
        debounce_ms,
        suffix=rt.vault.storage.suffix,
    )
    observer = Observer()
    observer.schedule(handler, str(rt.vault.storage.root), recursive=False)
    observer.start()
    return observer, handler
