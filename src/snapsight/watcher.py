"""Inbox watcher: analyze images as they are dropped into a folder."""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.markup import escape
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)
console = Console()

IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tif", ".tiff"
}


def is_image_path(path: str | Path) -> bool:
    p = Path(path)
    return p.suffix.lower() in IMAGE_EXTENSIONS and not p.name.startswith(".")


class InboxHandler(FileSystemEventHandler):
    """Collects file events and debounces them."""

    def __init__(self, debounce: float = 2.0):
        super().__init__()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._debounce = debounce
        self._callback: Callable[[list[str]], None] | None = None

    def set_callback(self, callback: Callable[[list[str]], None]) -> None:
        self._callback = callback

    def on_created(self, event):
        if not event.is_directory and is_image_path(event.src_path):
            self._add(event.src_path)

    def on_modified(self, event):
        if not event.is_directory and is_image_path(event.src_path):
            self._add(event.src_path)

    def on_moved(self, event):
        if not event.is_directory and is_image_path(event.dest_path):
            self._add(event.dest_path)

    def _add(self, path: str):
        with self._lock:
            self._pending.add(path)
            console.print(f"  [dim]Detected: {Path(path).name}[/]")
            if self._timer:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self):
        with self._lock:
            paths = sorted(self._pending)
            self._pending.clear()
            if self._timer:
                self._timer.cancel()
            self._timer = None
        if paths and self._callback:
            self._callback(paths)


class InboxWatcher:
    """Watches the inbox directory and analyzes new images in batches."""

    def __init__(self, config: dict[str, Any], debounce: float = 2.0, analyzer=None):
        self.config = config
        self.inbox_path = Path(config["inbox_path"])
        self.handler = InboxHandler(debounce=debounce)
        self.handler.set_callback(self.process_batch)
        self.observer = Observer()
        self._analyzer = analyzer

    @property
    def analyzer(self):
        if self._analyzer is None:
            from .analysis.analyzer import ImageAnalyzer
            self._analyzer = ImageAnalyzer(self.config)
        return self._analyzer

    def process_batch(self, paths: list[str]) -> int:
        """Analyze a batch of detected files. Returns how many succeeded."""
        console.print(f"\n[bold blue]Analyzing {len(paths)} image(s)...[/]")

        done = 0
        for p in paths:
            try:
                record = self.analyzer.analyze(p)
            except Exception as e:
                logger.warning(f"Failed to analyze {p}: {e}")
                console.print(f"  [red]✗ {Path(p).name}: {escape(str(e))}[/]")
                continue
            done += 1
            console.print(f"  [green]✓ {Path(p).name}[/] → {escape(record.domain)}: {escape(record.image_summary[:80])}")

        console.print(f"[bold green]✓ Batch complete ({done}/{len(paths)})[/]\n")
        console.print("[dim]Watching for more images...[/]")
        return done

    def run(self):
        """Start watching (blocks until Ctrl+C)."""
        self.inbox_path.mkdir(parents=True, exist_ok=True)
        self.observer.schedule(self.handler, str(self.inbox_path), recursive=True)
        self.observer.start()

        console.print(f"[bold]Watching {self.inbox_path} for new images... (Ctrl+C to stop)[/]")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watcher...[/]")
            self.observer.stop()
        self.observer.join()
        console.print("[green]✓ Watcher stopped.[/]")
