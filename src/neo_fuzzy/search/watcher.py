import asyncio
import os
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)

if os.environ.get("NEO_FUZZY_POLLING", "").lower() in ("1", "true"):
    from watchdog.observers.polling import PollingObserver as Observer
else:
    from watchdog.observers import Observer

from neo_fuzzy.logger import logging
from neo_fuzzy.search.session import FinderSession

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.5


class CorpusWatcher:
    """
    Watch the root of a session and rebuild its corpus when entries appear or disappear.

    Events arrive on the observer thread; they are handed to the session loop, where a
    burst of events collapses into a single refresh.
    """

    session: FinderSession
    directory: Path
    loop: asyncio.AbstractEventLoop
    debounce: float

    def __init__(
        self,
        session: FinderSession,
        directory: Path,
        loop: asyncio.AbstractEventLoop,
        debounce: float = DEBOUNCE_SECONDS,
    ):
        self.session = session
        self.directory = Path(directory)
        self.loop = loop
        self.debounce = debounce
        self.observer = Observer()
        self._pending: asyncio.TimerHandle | None = None

    def start(self) -> None:
        event_handler = _FSEventHandler(self)
        self.observer.schedule(
            event_handler,
            str(self.directory),
            recursive=True,
            event_filter=[
                FileCreatedEvent,
                FileDeletedEvent,
                FileMovedEvent,
                DirCreatedEvent,
                DirDeletedEvent,
                DirMovedEvent,
            ],
        )
        logger.info("Starting corpus watcher for %s", self.directory)
        self.observer.start()

    def stop(self) -> None:
        logger.info("Stopping corpus watcher for %s", self.directory)
        self.observer.stop()
        self.observer.join()
        if self._pending is not None:
            self.loop.call_soon_threadsafe(self._pending.cancel)

    def notify(self):
        """Called from the observer thread when the tree changed."""
        self.loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self):
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self.loop.call_later(self.debounce, self._refresh)

    def _refresh(self):
        self._pending = None
        if self.session.cwd != self.directory:
            logger.debug("Session moved away from %s, ignoring change", self.directory)
            return
        logger.info("Tree under %s changed, rebuilding corpus", self.directory)
        self.session.refresh()


class _FSEventHandler(FileSystemEventHandler):
    """
    Internal event handler class to forward tree changes to the watcher.
    """

    watcher: CorpusWatcher

    def __init__(self, watcher: CorpusWatcher):
        self.watcher = watcher
        super().__init__()

    def on_created(self, event):
        logger.debug("Created: %s", event.src_path)
        self.watcher.notify()

    def on_deleted(self, event):
        logger.debug("Deleted: %s", event.src_path)
        self.watcher.notify()

    def on_moved(self, event):
        logger.debug("Moved: %s -> %s", event.src_path, getattr(event, "dest_path", None))
        self.watcher.notify()
