"""Core orchestrator - coordinates the queue, credentials, widget and URL list."""
import asyncio
from dataclasses import replace
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..models import FileEntry, FilesValue, UploadConfig, normalize_files
from ..protocols import ICredentialIssuer, IUploadTransport, IUploadWidget
from ..services.credentials import CredentialRefresher, CredentialStore
from ..services.hashing import get_hasher
from ..services.keygen import ContentKeyGenerator
from ..utils.debounce import Debouncer
from ..utils.events import EventEmitter, FileProgress
from .queue import UploadQueue
from .sync import ExternalListSync, Published
from .widget import FileListWidget

logger = logging.getLogger(__name__)

UPLOAD_WARNING = "Upload failed, please try again"

AcceptGate = Callable[[Path], Union[bool, Awaitable[bool]]]


class SignedUploadOrchestrator:
    """
    Orchestrates signed uploads using injected services.

    Follows:
    - Dependency Injection (issuer, transport, widget, hasher injected)
    - Single Responsibility (queue, credentials, keys, list sync are separate)

    Usage:
        async with SignedUploadOrchestrator(files=[], issuer=issuer, transport=transport) as orch:
            orch.on_update_files(lambda value: print(value))
            urls = await orch.upload([Path("a.jpg"), Path("b.png")])
    """

    def __init__(
        self,
        issuer: ICredentialIssuer,
        transport: Optional[IUploadTransport] = None,
        files: Optional[FilesValue] = None,
        config: Optional[UploadConfig] = None,
        widget: Optional[IUploadWidget] = None,
        hasher: Optional[Callable[[Path], Awaitable[str]]] = None,
        accept: Optional[AcceptGate] = None,
        store: Optional[CredentialStore] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            issuer: Credential-issuing endpoint adapter
            transport: Upload transport (needed when no widget is given)
            files: Current remote URLs, a single string or a list
            config: Upload configuration
            widget: Upload widget; defaults to a FileListWidget over transport
            hasher: Content hasher (default from config.hash_algorithm)
            accept: Optional gate deciding whether a selected file is uploaded
            store: Pre-built credential store
        """
        self._config = config or UploadConfig()
        self._issuer = issuer
        self._transport = transport
        self._accept = accept
        self._events = EventEmitter()

        if widget is None:
            if transport is None:
                raise ValueError("Either widget or transport must be provided")
            widget = FileListWidget(transport, limit=self._config.upload_limit)
        self._widget = widget
        if hasattr(widget, "bind"):
            widget.bind(self)

        self._store = store or CredentialStore(success_action_status=self._config.success_action_status)
        self._refresher = CredentialRefresher(
            self._store, issuer, safety_margin_seconds=self._config.safety_margin_seconds
        )
        self._keygen = ContentKeyGenerator(
            self._store, hasher or get_hasher(self._config.hash_algorithm)
        )
        self._queue = UploadQueue(self._store, self._refresher, self._keygen)
        self._queue.on_idle(self._on_idle)
        self._queue.on_release(self._on_release)
        self._queue.on_error(self._on_queue_error)

        self._sync = ExternalListSync(self._widget, self._publish, config=self._config)
        self._removal = Debouncer(self._on_remove_settled, self._config.removal_debounce_seconds)

        self._files: FilesValue = []
        self._settled = asyncio.Event()
        self._settled.set()
        self._blocked = asyncio.Event()
        self.percent = 0
        self._progress: Optional[FileProgress] = None
        self._publish_task: Optional[asyncio.Task] = None
        self.set_files(files if files is not None else [])

    async def __aenter__(self):
        for resource in (self._issuer, self._transport):
            enter = getattr(resource, "__aenter__", None)
            if enter is not None:
                await enter()
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        self._removal.cancel()
        pending_uploads = getattr(self._widget, "pending_uploads", None)
        if pending_uploads is not None:
            pending = pending_uploads()
            for task in pending:
                task.cancel()
            if pending:
                logger.info("Cancelled %d unfinished upload(s)", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)
        for resource in (self._transport, self._issuer):
            exit_ = getattr(resource, "__aexit__", None)
            if exit_ is not None:
                await exit_(*args)

    # Wiring
    @property
    def queue(self) -> UploadQueue:
        return self._queue

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def widget(self) -> IUploadWidget:
        return self._widget

    @property
    def files(self) -> FilesValue:
        return self._files

    @property
    def is_uploading(self) -> bool:
        return self._queue.is_uploading

    @property
    def action(self) -> str:
        return self._store.action

    @property
    def access(self) -> Dict[str, Any]:
        return self._store.access

    def set_files(self, value: FilesValue) -> None:
        """Bind the consumer's URL value (single string or list)."""
        self._files = value
        self._sync.single = isinstance(value, str)
        self._widget.load_entries(normalize_files(value))

    # Event subscription methods
    def on_update_files(self, callback: Callable[[Published], None]):
        """Called after each reconciliation. Receives a string or list, matching the input shape."""
        self._events.on("update_files", callback)

    def on_warning(self, callback: Callable[[str], None]):
        """Called with a user-facing message when an upload fails."""
        self._events.on("warning", callback)

    def on_progress(self, callback: Callable[[FileProgress], None]):
        """Called when the active upload's progress changes."""
        self._events.on("progress", callback)

    def on_release(self, callback: Callable[[Path, str], None]):
        """Called when a file is allowed to upload. Receives (file, key)."""
        self._events.on("release", callback)

    def on_uploaded(self, callback: Callable[[FileEntry, str], None]):
        """Called when a file upload succeeds. Receives (entry, url)."""
        self._events.on("uploaded", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called on hash, credential or transport failures."""
        self._events.on("error", callback)

    # Widget hooks
    async def before_upload(self, file: Path, identifier: Optional[str] = None) -> bool:
        """Gate a selected file and hold it until its turn to upload."""
        file = Path(file)
        if self._accept is not None:
            accepted = self._accept(file)
            if asyncio.iscoroutine(accepted):
                accepted = await accepted
            if not accepted:
                return False

        self._settled.clear()
        await self._queue.enqueue(file, owner=identifier)
        return True

    def on_upload_progress(self, percent: float) -> None:
        self.percent = max(0, min(100, int(percent)))
        if self._progress is not None:
            self._progress.percent = self.percent
            # Listeners run later, so each gets its own snapshot
            self._events.emit_nowait("progress", replace(self._progress))

    async def on_upload_success(self, response: Any, entry: FileEntry) -> str:
        """Advance the queue and swap the entry's placeholder for its remote URL."""
        upload_path = self._queue.advance(False)
        self._widget.set_resolved_url(entry.identifier, upload_path)
        await self._events.emit("uploaded", entry, upload_path)
        return upload_path

    async def on_upload_error(self, error: Exception, entry: Optional[FileEntry] = None) -> None:
        """Reset the queue after a failed upload and warn the user."""
        name = entry.name if entry is not None else "file"
        logger.warning("Upload of %s failed: %s", name, error)
        self._queue.reset()
        if self._queue.pending:
            # Waiting files stay queued until the next enqueue or retry()
            self._blocked.set()
        await self._events.emit("error", error)
        await self._events.emit("warning", UPLOAD_WARNING)

    def on_remove(self, entry: FileEntry) -> None:
        """Discard a queued file and schedule a coalesced reconciliation."""
        if entry.path is not None:
            self._queue.discard(entry.path, entry.identifier)
        self._removal()

    def retry(self) -> bool:
        """Manual re-trigger after a credential, hashing or transport failure."""
        if not self._queue.retry():
            return False
        self._blocked.clear()
        self._settled.clear()
        return True

    # Convenience
    async def upload(self, paths: Sequence[Path]) -> List[str]:
        """
        Select files in the widget and wait until the queue settles.

        Returns:
            The URLs published by the final reconciliation
        """
        add = getattr(self._widget, "add", None)
        if add is None:
            raise RuntimeError("Widget does not support adding files")
        if not self._queue.is_uploading:
            # A new enqueue re-primes a queue reset by a transport failure
            self._blocked.clear()
        for path in paths:
            add(Path(path))
        await self.wait_settled()
        return self.published_urls()

    async def wait_settled(self) -> bool:
        """
        Wait until every selected file has finished and the idle reconciliation ran.

        Returns:
            False if the queue blocked on a failure first (files still waiting)
        """
        pending_uploads = getattr(self._widget, "pending_uploads", None)
        while pending_uploads is not None:
            pending = pending_uploads()
            if not pending:
                break
            blocked = asyncio.get_running_loop().create_task(self._blocked.wait())
            done, _ = await asyncio.wait([*pending, blocked], return_when=asyncio.FIRST_COMPLETED)
            if blocked in done:
                return False
            blocked.cancel()

        await self._queue.join()
        await self._settled.wait()
        return True

    def published_urls(self) -> List[str]:
        value = self._sync.last_published
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        return list(value)

    # Internal methods
    def _publish(self, value: Published) -> None:
        self._files = value
        self._publish_task = self._events.emit_nowait("update_files", value)

    async def _on_idle(self) -> None:
        # Let the success hook finish writing the entry url first
        await asyncio.sleep(0)
        self._publish_task = None
        self._sync.reconcile()
        if self._publish_task is not None:
            await self._publish_task
        self._settled.set()

    def _on_remove_settled(self) -> None:
        if self._queue.is_uploading:
            # Entries are still being mutated by the active upload
            self._removal.schedule(self._config.removal_retry_seconds)
            return
        self._sync.reconcile()

    async def _on_release(self, file: Path, key: str) -> None:
        self._blocked.clear()
        self.percent = 0
        self._progress = FileProgress(filename=file.name, file_path=file)
        await self._events.emit("release", file, key)

    async def _on_queue_error(self, error: Exception) -> None:
        self._blocked.set()
        await self._events.emit("error", error)
