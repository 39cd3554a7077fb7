"""Services for oss_uploader."""
from .credentials import CredentialStore, CredentialRefresher, DEFAULT_SAFETY_MARGIN
from .hashing import blake3_file, md5_file, get_hasher
from .issuer import HTTPCredentialIssuer
from .keygen import ContentKeyGenerator
from .transport import PostObjectTransport

__all__ = [
    "CredentialStore",
    "CredentialRefresher",
    "DEFAULT_SAFETY_MARGIN",
    "ContentKeyGenerator",
    "HTTPCredentialIssuer",
    "PostObjectTransport",
    "blake3_file",
    "md5_file",
    "get_hasher",
]
