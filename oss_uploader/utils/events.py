from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional
import asyncio
import logging
logger = logging.getLogger(__name__)


@dataclass
class FileProgress:
    """Progress information for the file currently uploading."""
    filename: str
    file_path: Optional[Path] = None
    bytes_uploaded: int = 0
    total_bytes: int = 0
    percent: int = 0


class EventEmitter:
    """Simple event emitter for upload events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(*args, **kwargs)
                else:
                    callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")

    def emit_nowait(self, event_name: str, *args, **kwargs) -> Optional[asyncio.Task]:
        """Schedule an emit on the running loop without blocking the caller."""
        if not self.has_listeners(event_name):
            return None
        loop = asyncio.get_running_loop()
        return loop.create_task(self.emit(event_name, *args, **kwargs))
