"""
Models for oss_uploader.

Credentials are immutable and replaced wholesale; file entries are the
mutable rows of the upload widget's list.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

# Epoch values below this are seconds, not milliseconds
_EPOCH_MS_THRESHOLD = 10 ** 11


class QueueState(Enum):
    """Upload queue state."""
    IDLE = "idle"
    AUTO_STARTING = "auto_starting"
    DRAINING = "draining"


class DrainPhase(Enum):
    """Progress of the head task through a drain step."""
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_KEY = "awaiting_key"
    RELEASED = "released"


class EntryStatus(Enum):
    """Status of a widget file entry."""
    READY = "ready"
    QUEUED = "queued"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAIL = "fail"


def _pick(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data and data[name] not in (None, ""):
            return data[name]
    return None


@dataclass(frozen=True)
class Credential:
    """Signed upload credential issued by the storage provider."""
    storage_directory: str = ""
    endpoint_url: str = ""
    expires_at: int = 0  # epoch milliseconds
    policy: str = ""
    signature: str = ""
    access_key_id: str = ""

    @classmethod
    def empty(cls) -> "Credential":
        return cls()

    @classmethod
    def from_response(cls, data: Mapping[str, Any]) -> "Credential":
        """
        Build a credential from the issuing endpoint's JSON body.

        Accepts snake_case, camelCase and the short OSS field names
        (dir, url, expire, accessKeyId).

        Raises:
            ValueError: if a signing field is missing or expiry is not a number
        """
        endpoint_url = _pick(data, "endpoint_url", "endpointURL", "endpointUrl", "host", "url")
        expire = _pick(data, "expires_at", "expiresAt", "expire")
        policy = _pick(data, "policy")
        signature = _pick(data, "signature")
        access_key_id = _pick(data, "access_key_id", "accessKeyId", "OSSAccessKeyId")

        missing = [
            name for name, value in (
                ("endpoint_url", endpoint_url),
                ("expires_at", expire),
                ("policy", policy),
                ("signature", signature),
                ("access_key_id", access_key_id),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"Credential response missing fields: {', '.join(missing)}")

        try:
            expires_at = int(float(expire))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid credential expiry: {expire!r}") from exc
        if expires_at < _EPOCH_MS_THRESHOLD:
            expires_at *= 1000

        return cls(
            storage_directory=str(_pick(data, "storage_directory", "storageDirectory", "dir") or ""),
            endpoint_url=str(endpoint_url),
            expires_at=expires_at,
            policy=str(policy),
            signature=str(signature),
            access_key_id=str(access_key_id),
        )


@dataclass
class FileEntry:
    """One row of the upload widget's authoritative file list."""
    identifier: str
    url: str
    path: Optional[Path] = None
    status: EntryStatus = EntryStatus.SUCCESS
    percent: int = 0

    @property
    def name(self) -> str:
        if self.path is not None:
            return self.path.name
        return self.url.rsplit("/", 1)[-1]


@dataclass
class UploadTask:
    """Pending upload owned by the queue until its turn arrives."""
    file: Path
    started: asyncio.Future = field(repr=False)
    owner: Optional[str] = None

    def release(self) -> bool:
        """Resolve the waiting enqueue call. Returns False if already settled."""
        if self.started.done():
            return False
        self.started.set_result(None)
        return True

    def discard(self, exc: BaseException) -> bool:
        if self.started.done():
            return False
        self.started.set_exception(exc)
        return True

    @property
    def is_settled(self) -> bool:
        return self.started.done()


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload orchestration."""
    safety_margin_seconds: float = 10
    removal_debounce_seconds: float = 0.25
    removal_retry_seconds: float = 1.0
    hash_algorithm: str = "blake3"
    remote_schemes: Tuple[str, ...] = ("http://", "https://")
    success_action_status: int = 200
    upload_limit: Optional[int] = None
    request_timeout: int = 60

    def is_remote(self, url: Optional[str]) -> bool:
        """True when url is a resolved remote address, not a local placeholder."""
        return bool(url) and url.startswith(self.remote_schemes)


FilesValue = Union[str, Sequence[str]]


def normalize_files(value: Optional[FilesValue]) -> List[FileEntry]:
    """Normalize a single URL or a sequence of URLs into indexed entries."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    # Identifiers are positions in the original value; empty slots mean "no file"
    return [FileEntry(identifier=str(idx), url=url) for idx, url in enumerate(value) if url]
