"""
Credential Service - holds and renews signed upload credentials.

CredentialStore is the single owner of the shared signing state (credential
and current key). Only the upload queue writes to it; the transport reads
the `action` / `access` bundle.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

from ..errors import CredentialRefreshFailure
from ..models import Credential
from ..protocols import ICredentialIssuer
from ..utils.paths import join_url

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 10  # seconds


class CredentialStore:
    """
    Current signed credential plus the key of the task allowed to upload.

    Usage:
        store = CredentialStore()
        if store.is_expired():
            store.replace(Credential.from_response(payload))
        store.assign_key("uploads/abc.jpg")
        fields = store.access
    """

    def __init__(
        self,
        credential: Optional[Credential] = None,
        clock: Callable[[], float] = time.time,
        success_action_status: int = 200,
    ):
        """
        Initialize credential store.

        Args:
            credential: Initial credential (default: empty, always expired)
            clock: Returns current time in epoch seconds
            success_action_status: Status the storage service should answer with
        """
        self._credential = credential or Credential.empty()
        self._clock = clock
        self._success_action_status = success_action_status
        self._current_key = ""

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def current_key(self) -> str:
        return self._current_key

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_expired(self, safety_margin_seconds: float = DEFAULT_SAFETY_MARGIN) -> bool:
        """True when the credential lapses within the safety margin (equality counts as lapsed)."""
        return self.now_ms() + int(safety_margin_seconds * 1000) >= self._credential.expires_at

    def replace(self, credential: Credential) -> None:
        """Install a new credential wholesale."""
        self._credential = credential
        logger.debug(
            "Credential replaced (endpoint=%s, dir=%s, expires_at=%d)",
            credential.endpoint_url, credential.storage_directory, credential.expires_at,
        )

    def assign_key(self, key: str) -> None:
        self._current_key = key

    @property
    def action(self) -> str:
        """Endpoint the transport posts to."""
        return self._credential.endpoint_url

    @property
    def access(self) -> Dict[str, Any]:
        """Form fields signing the upload of the current key."""
        return {
            "key": self._current_key,
            "policy": self._credential.policy,
            "signature": self._credential.signature,
            "OSSAccessKeyId": self._credential.access_key_id,
            "success_action_status": self._success_action_status,
        }

    def remote_path(self) -> str:
        """Full remote URL of the current key."""
        return join_url(self._credential.endpoint_url, self._current_key)


class CredentialRefresher:
    """Renews the store's credential through the issuer when it is about to lapse."""

    def __init__(
        self,
        store: CredentialStore,
        issuer: ICredentialIssuer,
        safety_margin_seconds: float = DEFAULT_SAFETY_MARGIN,
    ):
        self._store = store
        self._issuer = issuer
        self._safety_margin = safety_margin_seconds
        self._refresh_count = 0

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    async def ensure_valid(self) -> None:
        """
        Make sure the stored credential is usable for the next upload.

        Raises:
            CredentialRefreshFailure: if the issuer fails or answers garbage;
                the previous credential is kept
        """
        if not self._store.is_expired(self._safety_margin):
            return

        logger.info("Credential expired or about to expire, refreshing")
        try:
            payload = await self._issuer.issue()
        except Exception as e:
            raise CredentialRefreshFailure(f"Credential issuer failed: {e}") from e

        try:
            credential = Credential.from_response(payload)
        except (TypeError, ValueError) as e:
            raise CredentialRefreshFailure(f"Invalid credential response: {e}") from e

        self._store.replace(credential)
        self._refresh_count += 1
        logger.info("Credential refreshed, valid until %d", credential.expires_at)
