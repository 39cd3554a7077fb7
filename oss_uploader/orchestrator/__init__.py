"""Orchestrator package - coordinates the serialized upload workflow."""
from .core import SignedUploadOrchestrator
from .queue import UploadQueue
from .sync import ExternalListSync
from .widget import FileListWidget

__all__ = ["SignedUploadOrchestrator", "UploadQueue", "ExternalListSync", "FileListWidget"]
