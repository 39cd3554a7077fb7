"""
Protocols (Interfaces) for the external collaborators.

The core only talks to the widget, the credential issuer, the transport and
the hasher through these small interfaces.
"""
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .models import FileEntry

ProgressCallback = Callable[[int, int], None]


@runtime_checkable
class IUploadWidget(Protocol):
    """Narrow view of the upload widget's authoritative file list."""

    def get_remote_entries(self) -> Sequence[FileEntry]:
        """Return the current entries, in display order."""
        ...

    def set_resolved_url(self, identifier: str, url: str) -> None:
        """Replace an entry's placeholder url with its remote address."""
        ...

    def load_entries(self, entries: Sequence[FileEntry]) -> None:
        """Bind the entries the consumer passed in."""
        ...


@runtime_checkable
class ICredentialIssuer(Protocol):
    """Interface for the credential-issuing endpoint."""

    async def issue(self) -> Mapping[str, Any]:
        """Fetch a fresh signed credential."""
        ...


@runtime_checkable
class IUploadTransport(Protocol):
    """Interface for the network upload itself."""

    async def send(
        self,
        path: Path,
        action: str,
        fields: Dict[str, Any],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Any:
        """Upload file to action using the signing fields."""
        ...


@runtime_checkable
class IContentHasher(Protocol):
    """Interface for content hashing."""

    async def __call__(self, path: Path) -> str:
        """Return the hex digest of the file's bytes."""
        ...
