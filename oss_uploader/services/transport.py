"""
Transport Service - posts a file to object storage with signed form fields.

Uses the browser-style POST Object form upload: signing fields first, the
file last, to the credential's endpoint URL.
"""
from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional

import httpx

from ..errors import TransportFailure
from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)


class _ProgressReader:
    """File wrapper that reports bytes read by the multipart encoder."""

    def __init__(self, fileobj: BinaryIO, total: int, callback: Optional[ProgressCallback]):
        self._fileobj = fileobj
        self._total = total
        self._callback = callback
        self._sent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        if chunk and self._callback:
            self._sent += len(chunk)
            try:
                self._callback(self._sent, self._total)
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        position = self._fileobj.seek(offset, whence)
        if whence == 0 and offset == 0:
            self._sent = 0
        return position

    def __getattr__(self, name: str) -> Any:
        return getattr(self._fileobj, name)


class PostObjectTransport:
    """
    HTTP transport for signed form uploads.

    Implements IUploadTransport protocol.

    Usage:
        async with PostObjectTransport() as transport:
            await transport.send(path, store.action, store.access, progress_callback)
    """

    def __init__(self, timeout: int = 60, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        path: Path,
        action: str,
        fields: Dict[str, Any],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> httpx.Response:
        """
        Upload file to action.

        Args:
            path: Local file
            action: Endpoint URL from the current credential
            fields: Signing fields (key, policy, signature, ...)
            progress_callback: Called with (bytes_sent, total_bytes)

        Returns:
            The storage service's response

        Raises:
            TransportFailure: on network errors or an error status
        """
        if not self._client:
            raise RuntimeError("PostObjectTransport not initialized. Use 'async with' context.")
        if not action:
            raise TransportFailure("No upload endpoint: credential has not been issued")

        path = Path(path)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        data = {name: str(value) for name, value in fields.items()}

        try:
            total = path.stat().st_size
            with open(path, "rb") as f:
                reader = _ProgressReader(f, total, progress_callback)
                response = await self._client.post(
                    action,
                    data=data,
                    files={"file": (path.name, reader, content_type)},
                )
        except OSError as e:
            raise TransportFailure(f"Cannot read {path.name}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Upload of {path.name} failed: {e}") from e

        if response.status_code >= 400:
            raise TransportFailure(
                f"Storage error {response.status_code} uploading {path.name}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logger.debug("Uploaded %s to %s (%d)", path.name, action, response.status_code)
        return response
