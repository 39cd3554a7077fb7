"""
oss_uploader - Serialized signed uploads to object storage.

Files are uploaded one at a time with short-lived credentials issued by your
backend. Keys are content-addressed, credentials are renewed before they
lapse, and the resolved remote URLs are published back to the caller.

Usage:
    from oss_uploader import SignedUploadOrchestrator, HTTPCredentialIssuer, PostObjectTransport

    issuer = HTTPCredentialIssuer("https://api.example.com/oss/policy")
    async with SignedUploadOrchestrator(issuer, PostObjectTransport(), files=[]) as uploader:
        uploader.on_update_files(print)
        urls = await uploader.upload([Path("cat.jpg"), Path("dog.png")])
"""
from .orchestrator import SignedUploadOrchestrator, UploadQueue, ExternalListSync, FileListWidget
from .models import Credential, FileEntry, UploadConfig, UploadTask, QueueState, DrainPhase, EntryStatus
from .errors import UploadError, HashFailure, CredentialRefreshFailure, TransportFailure, TaskDiscarded
from .services import (
    ContentKeyGenerator,
    CredentialRefresher,
    CredentialStore,
    HTTPCredentialIssuer,
    PostObjectTransport,
)
from .utils.debounce import Debouncer

__version__ = "0.1.0"
__all__ = [
    # Main
    "SignedUploadOrchestrator",
    "UploadQueue",
    "ExternalListSync",
    "FileListWidget",
    # Models
    "Credential",
    "FileEntry",
    "UploadConfig",
    "UploadTask",
    "QueueState",
    "DrainPhase",
    "EntryStatus",
    # Errors
    "UploadError",
    "HashFailure",
    "CredentialRefreshFailure",
    "TransportFailure",
    "TaskDiscarded",
    # Services
    "ContentKeyGenerator",
    "CredentialRefresher",
    "CredentialStore",
    "HTTPCredentialIssuer",
    "PostObjectTransport",
    "Debouncer",
]
