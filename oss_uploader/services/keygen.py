"""
Content Key Generator - Single Responsibility: derive storage keys.

Keys are content-addressed, so byte-identical files with the same
extension always land on the same object.
"""
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..errors import HashFailure
from ..utils.paths import join_url
from .credentials import CredentialStore
from .hashing import blake3_file

logger = logging.getLogger(__name__)


def file_extension(path: Path) -> str:
    """Text after the last dot of the file name (the whole name when there is none)."""
    return Path(path).name.rsplit(".", 1)[-1]


class ContentKeyGenerator:
    """
    Derives '<storage directory>/<content hash>.<extension>' keys.

    The storage directory is read from the credential store at derivation
    time, so keys always follow the most recently issued credential.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: Optional[Callable[[Path], Awaitable[str]]] = None,
    ):
        self._store = store
        self._hasher = hasher or blake3_file

    async def derive_key(self, file: Path) -> str:
        """
        Hash file content and build its storage key.

        Raises:
            HashFailure: if the file cannot be read or hashed
        """
        file = Path(file)
        try:
            digest = await self._hasher(file)
        except Exception as e:
            raise HashFailure(file, str(e)) from e

        key = join_url(self._store.credential.storage_directory, f"{digest}.{file_extension(file)}")
        logger.debug("Derived key for %s -> %s", file.name, key)
        return key
