"""Timer-backed debounce primitive for the running event loop."""
import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesce a burst of calls into one, fired after `delay` seconds of quiet.

    Each call re-arms the timer with the latest arguments. `pending` tells
    whether a call is armed, `flush()` fires it immediately and `cancel()`
    drops it. Coroutine functions are scheduled as tasks when fired.

    Usage:
        sync_later = Debouncer(sync, delay=0.25)
        sync_later()
        sync_later()          # only one sync() runs, 0.25s after this call
    """

    def __init__(self, func: Callable[..., Any], delay: float):
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self._func = func
        self._delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()
        self._kwargs: dict = {}
        self._tasks: set = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args, **kwargs) -> None:
        self.schedule(self._delay, *args, **kwargs)

    def schedule(self, delay: float, *args, **kwargs) -> None:
        """Arm the timer with an explicit delay, replacing any armed call."""
        self.cancel()
        self._args = args
        self._kwargs = kwargs
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)

    def flush(self) -> Any:
        """Fire the armed call now. Returns its result, or None when nothing was armed."""
        if self._handle is None:
            return None
        self._handle.cancel()
        return self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> Any:
        self._handle = None
        args, kwargs = self._args, self._kwargs
        self._args, self._kwargs = (), {}

        if asyncio.iscoroutinefunction(self._func):
            task = asyncio.get_running_loop().create_task(self._func(*args, **kwargs))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task

        try:
            return self._func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Debounced call {getattr(self._func, '__name__', self._func)} failed: {e}")
            return None
