"""
Upload Queue - serializes uploads so only one holds the signing state.

State machine:
    IDLE --enqueue--> AUTO_STARTING --(advance)--> DRAINING --(empty)--> IDLE

Each drain step takes the head task through
AWAITING_CREDENTIALS -> AWAITING_KEY -> RELEASED and then stops: the next
task only moves when the transport reports the released upload finished
(`advance()`), or when the caller re-triggers after a failure (`retry()`).
"""
import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional

from ..errors import TaskDiscarded, UploadError
from ..models import DrainPhase, QueueState, UploadTask
from ..services.credentials import CredentialRefresher, CredentialStore
from ..services.keygen import ContentKeyGenerator
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)


class UploadQueue:
    """
    FIFO queue of uploads with at most one released task at a time.

    Usage:
        queue = UploadQueue(store, refresher, keygen)
        await queue.enqueue(path)      # returns when it is path's turn
        ... upload with store.action / store.access ...
        queue.advance()                # on upload success
    """

    def __init__(
        self,
        store: CredentialStore,
        refresher: CredentialRefresher,
        keygen: ContentKeyGenerator,
    ):
        self._store = store
        self._refresher = refresher
        self._keygen = keygen
        self._tasks: Deque[UploadTask] = deque()
        self._events = EventEmitter()

        self._uploading = False
        self._state = QueueState.IDLE
        self._phase: Optional[DrainPhase] = None
        self._active: Optional[UploadTask] = None
        self._drain_task: Optional[asyncio.Task] = None
        self._last_error: Optional[Exception] = None
        self._idle = asyncio.Event()
        self._idle.set()

    # Event subscription methods
    def on_release(self, callback: Callable[[Path, str], None]):
        """Called when a task is released. Receives (file, key)."""
        self._events.on("release", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when a drain step fails. Receives the exception."""
        self._events.on("error", callback)

    def on_idle(self, callback: Callable[[], None]):
        """Called after each transition from uploading to not uploading."""
        self._events.on("idle", callback)

    # State properties
    @property
    def is_uploading(self) -> bool:
        return self._uploading

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def phase(self) -> Optional[DrainPhase]:
        return self._phase

    @property
    def active(self) -> Optional[Path]:
        """File of the released task whose upload has not reported back yet."""
        return self._active.file if self._active else None

    @property
    def pending(self) -> List[Path]:
        """Files waiting for their turn, in upload order."""
        return [task.file for task in self._tasks if not task.is_settled]

    @property
    def current_key(self) -> str:
        return self._store.current_key

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    # Control methods
    async def enqueue(self, file: Path, owner: Optional[str] = None) -> None:
        """
        Add file to the queue and wait until its turn to upload arrives.

        Args:
            file: Local file to upload
            owner: Identifier of the list entry that queued it, used by discard()

        Raises:
            TaskDiscarded: if the file is removed before its turn
        """
        file = Path(file)
        task = UploadTask(file=file, started=asyncio.get_running_loop().create_future(), owner=owner)
        self._tasks.append(task)
        logger.debug("Enqueued %s (%d waiting)", file.name, len(self._tasks))

        if not self._uploading:
            self._set_uploading()
            self.advance(True)
        else:
            self._state = QueueState.DRAINING

        await task.started

    def advance(self, is_auto_start: bool = False) -> Optional[str]:
        """
        Move to the next task.

        Args:
            is_auto_start: True when starting from idle (no finished task to report)

        Returns:
            Remote URL of the upload that just finished, None on auto-start
        """
        previous_path = None
        if not is_auto_start:
            previous_path = self._store.remote_path()
            self._active = None
            logger.info("Upload finished: %s", previous_path)

        self._prune()
        if not self._tasks:
            self._go_idle()
            return previous_path

        if self.is_draining:
            logger.warning("advance() while a drain step is running, ignoring")
            return previous_path

        self._set_uploading()
        self._state = QueueState.AUTO_STARTING if is_auto_start else QueueState.DRAINING
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return previous_path

    def retry(self) -> bool:
        """
        Re-run the drain step for the head task after a failure.

        Returns:
            True if a drain step was started
        """
        if self.is_draining or self._active is not None:
            return False
        self._prune()
        if not self._tasks:
            return False
        logger.info("Retrying queue at %s", self._tasks[0].file.name)
        self.advance(True)
        return True

    def reset(self) -> None:
        """Clear the uploading flag after a transport failure. Does not re-release anything."""
        if self._active is not None:
            logger.warning("Upload of %s failed, queue reset", self._active.file.name)
        self._active = None
        self._go_idle()

    def discard(self, file: Path, owner: Optional[str] = None) -> int:
        """
        Drop queued (not yet released) tasks for file.

        With owner, only that entry's task is dropped; other selections of
        the same file stay queued.

        Returns:
            Number of tasks removed
        """
        file = Path(file)
        removed = 0
        for task in list(self._tasks):
            if task.file == file and (owner is None or task.owner == owner):
                self._tasks.remove(task)
                task.discard(TaskDiscarded(f"{file.name} removed before upload"))
                removed += 1

        if removed:
            logger.debug("Discarded %d queued task(s) for %s", removed, file.name)
            if not self._tasks and self._active is None and not self.is_draining:
                self._go_idle()
        return removed

    async def join(self) -> None:
        """Wait until the queue is idle."""
        await self._idle.wait()

    # Internal methods
    async def _drain(self) -> None:
        while True:
            self._prune()
            if not self._tasks:
                self._go_idle()
                return
            head = self._tasks[0]

            try:
                self._phase = DrainPhase.AWAITING_CREDENTIALS
                await self._refresher.ensure_valid()
                self._phase = DrainPhase.AWAITING_KEY
                key = await self._keygen.derive_key(head.file)
            except UploadError as e:
                self._fail(head, e)
                await self._events.emit("error", e)
                return
            except Exception as e:
                logger.error(f"Unexpected error draining {head.file.name}: {e}", exc_info=True)
                self._fail(head, e)
                await self._events.emit("error", e)
                return

            if head.is_settled or not self._tasks or self._tasks[0] is not head:
                # Head was removed while its key was being derived
                continue

            self._store.assign_key(key)
            self._tasks.popleft()
            self._active = head
            self._phase = DrainPhase.RELEASED
            self._last_error = None

            # One loop tick so the new key is visible before the transport reads it
            await asyncio.sleep(0)
            if not head.release():
                logger.debug("%s was dropped before release, moving on", head.file.name)
                self._active = None
                continue

            logger.info("Released %s as %s", head.file.name, key)
            # The step is over once released; advance() may run while listeners await
            self._drain_task = None
            await self._events.emit("release", head.file, key)
            return

    def _fail(self, head: UploadTask, error: Exception) -> None:
        self._last_error = error
        self._phase = None
        logger.warning("Queue blocked at %s: %s", head.file.name, error)

    def _prune(self) -> None:
        """Drop tasks whose waiter has gone away."""
        while self._tasks and self._tasks[0].is_settled:
            dropped = self._tasks.popleft()
            logger.debug("Dropping settled task for %s", dropped.file.name)

    def _set_uploading(self) -> None:
        self._uploading = True
        self._idle.clear()

    def _go_idle(self) -> None:
        was_uploading = self._uploading
        self._uploading = False
        self._state = QueueState.IDLE
        self._phase = None
        self._idle.set()
        if was_uploading:
            self._events.emit_nowait("idle")
