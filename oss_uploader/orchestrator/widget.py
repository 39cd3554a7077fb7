"""
In-process upload widget.

Owns the authoritative file list and drives each selected file through the
before-upload gate, the transport and the result hooks, the way a file
picker component would.
"""
import asyncio
import itertools
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from ..errors import TaskDiscarded, TransportFailure
from ..models import EntryStatus, FileEntry
from ..protocols import IUploadTransport

if TYPE_CHECKING:
    from .core import SignedUploadOrchestrator

logger = logging.getLogger(__name__)

PLACEHOLDER_SCHEME = "blob:"


def placeholder_url(path: Path) -> str:
    """Local preview url shown until the upload resolves."""
    return PLACEHOLDER_SCHEME + Path(path).resolve().as_uri()


class FileListWidget:
    """
    File list with upload lifecycle hooks.

    Implements IUploadWidget protocol.
    """

    def __init__(self, transport: IUploadTransport, limit: Optional[int] = None):
        """
        Initialize widget.

        Args:
            transport: Performs the network upload
            limit: Maximum number of entries; overflowing selections are removed again
        """
        self._transport = transport
        self._limit = limit
        self._entries: List[FileEntry] = []
        self._hooks: Optional["SignedUploadOrchestrator"] = None
        self._uploads: Dict[str, asyncio.Task] = {}
        self._ids = itertools.count(1)

    def bind(self, hooks: "SignedUploadOrchestrator") -> None:
        self._hooks = hooks

    @property
    def entries(self) -> List[FileEntry]:
        return list(self._entries)

    @property
    def limit(self) -> Optional[int]:
        return self._limit

    # IUploadWidget
    def get_remote_entries(self) -> Sequence[FileEntry]:
        return list(self._entries)

    def set_resolved_url(self, identifier: str, url: str) -> None:
        entry = self.find(identifier)
        if entry is None:
            logger.debug("Entry %s no longer listed, url %s not recorded", identifier, url)
            return
        entry.url = url

    def load_entries(self, entries: Sequence[FileEntry]) -> None:
        in_flight = [
            entry for entry in self._entries
            if entry.status in (EntryStatus.READY, EntryStatus.QUEUED, EntryStatus.UPLOADING)
        ]
        self._entries = list(entries) + in_flight

    def find(self, identifier: str) -> Optional[FileEntry]:
        for entry in self._entries:
            if entry.identifier == identifier:
                return entry
        return None

    # Selection
    def add(self, path: Path) -> FileEntry:
        """Select a file for upload."""
        self._require_hooks()
        path = Path(path)
        entry = FileEntry(
            identifier=f"upload-{next(self._ids)}",
            url=placeholder_url(path),
            path=path,
            status=EntryStatus.READY,
        )
        self._entries.append(entry)

        if self._limit is not None and len(self._entries) > self._limit:
            logger.warning("Upload limit %d reached, dropping %s", self._limit, path.name)
            entry.status = EntryStatus.FAIL
            self.remove(entry.identifier)
            return entry

        task = asyncio.get_running_loop().create_task(self._upload(entry))
        self._uploads[entry.identifier] = task
        task.add_done_callback(lambda _t, key=entry.identifier: self._uploads.pop(key, None))
        return entry

    def add_many(self, paths: Sequence[Path]) -> List[FileEntry]:
        return [self.add(path) for path in paths]

    def remove(self, identifier: str) -> Optional[FileEntry]:
        """Remove an entry and notify the remove hook."""
        self._require_hooks()
        entry = self.find(identifier)
        if entry is None:
            return None
        self._entries.remove(entry)
        self._hooks.on_remove(entry)
        return entry

    def pending_uploads(self) -> List[asyncio.Task]:
        """Upload tasks that have not finished yet."""
        return [task for task in self._uploads.values() if not task.done()]

    async def wait(self) -> None:
        """Wait for every started upload to finish (successfully or not)."""
        while self.pending_uploads():
            await asyncio.wait(self.pending_uploads())

    # Internal methods
    async def _upload(self, entry: FileEntry) -> None:
        hooks = self._require_hooks()
        entry.status = EntryStatus.QUEUED
        try:
            accepted = await hooks.before_upload(entry.path, entry.identifier)
        except TaskDiscarded:
            logger.debug("%s removed before its turn", entry.name)
            return

        if accepted is False:
            logger.info("Upload of %s rejected", entry.name)
            entry.status = EntryStatus.FAIL
            self.remove(entry.identifier)
            return

        entry.status = EntryStatus.UPLOADING
        action = hooks.action
        fields = dict(hooks.access)

        def progress(sent: int, total: int) -> None:
            percent = sent * 100 / total if total else 100
            entry.percent = int(percent)
            hooks.on_upload_progress(percent)

        try:
            response = await self._transport.send(entry.path, action, fields, progress)
        except Exception as e:
            if not isinstance(e, TransportFailure):
                e = TransportFailure(f"Upload of {entry.name} failed: {e}")
            entry.status = EntryStatus.FAIL
            if entry in self._entries:
                self._entries.remove(entry)
            await hooks.on_upload_error(e, entry)
            return

        entry.status = EntryStatus.SUCCESS
        entry.percent = 100
        await hooks.on_upload_success(response, entry)

    def _require_hooks(self) -> "SignedUploadOrchestrator":
        if self._hooks is None:
            raise RuntimeError("FileListWidget is not bound to an orchestrator")
        return self._hooks
