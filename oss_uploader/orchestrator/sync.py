"""Reconciles the widget's file list into the published URL list."""
import logging
from typing import Callable, List, Optional, Sequence, Union

from ..models import FileEntry, UploadConfig
from ..protocols import IUploadWidget

logger = logging.getLogger(__name__)

Published = Union[str, List[str]]


class ExternalListSync:
    """
    Derives the externally visible URL list from the widget's entries.

    Entries still pointing at a local preview placeholder are skipped. The
    published value keeps the consumer's shape: a single URL (the last
    resolved one, or "") when the consumer holds one file, else the list.
    """

    def __init__(
        self,
        widget: IUploadWidget,
        publish: Optional[Callable[[Published], None]] = None,
        single: bool = False,
        config: Optional[UploadConfig] = None,
    ):
        self._widget = widget
        self._publish = publish
        self._config = config or UploadConfig()
        self.single = single
        self._last_published: Optional[Published] = None

    @property
    def last_published(self) -> Optional[Published]:
        return self._last_published

    def reconcile(self, entries: Optional[Sequence[FileEntry]] = None) -> List[str]:
        """Return resolved remote URLs, in widget order, and publish them."""
        if entries is None:
            entries = self._widget.get_remote_entries()
        urls = [entry.url for entry in entries if self._config.is_remote(entry.url)]

        skipped = len(entries) - len(urls)
        if skipped:
            logger.debug("Reconcile skipped %d unresolved entr%s", skipped, "y" if skipped == 1 else "ies")

        self.publish(urls)
        return urls

    def shape(self, urls: Sequence[str]) -> Published:
        if self.single:
            return urls[-1] if urls else ""
        return list(urls)

    def publish(self, urls: Sequence[str]) -> Published:
        value = self.shape(urls)
        self._last_published = value
        if self._publish is not None:
            self._publish(value)
        return value
