"""
Credential store for access key rotation.

Provides a thread-safe store that holds several access keys at once, signs
with the active one and verifies requests by the access id named in their
Authorization header.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sigv4_lib.errors import ConfigError
from sigv4_lib.models import Credential, RequestView, SignerConfig
from sigv4_lib.sigv4 import parse_sigv4_header, sign_request_at, verify_sigv4_signature

logger = logging.getLogger(__name__)


@dataclass
class StoredCredential:
    """A credential plus its rotation state."""

    credential: Credential
    is_valid: bool = True  # Can be used for verification (during rotation)

    @property
    def access_id(self) -> str:
        return self.credential.access_id


class CredentialStore:
    """
    Manages multiple access keys for rotation support.

    Usage:
        store = CredentialStore()
        store.add_credential(Credential("AKID1", "secret-v1"))
        store.add_credential(Credential("AKID2", "secret-v2"), set_active=True)

        # Sign with the active key
        store.sign_request_at(request, config, now)

        # Verify (finds the secret by the access id in the header)
        is_valid, error = store.verify_request(request)

        # After rotation is complete, remove the old key
        store.remove_credential("AKID1")
    """

    def __init__(self):
        self._credentials: dict[str, StoredCredential] = {}
        self._active_access_id: Optional[str] = None
        self._lock = threading.RLock()

    def add_credential(self, credential: Credential, set_active: bool = False) -> None:
        """
        Add a credential.

        Args:
            credential: Access id and secret
            set_active: Whether to make this the credential used for signing

        Raises:
            ConfigError: If the access id or secret is empty
        """
        if not credential.access_id or not credential.secret:
            raise ConfigError("Credential requires an access id and a secret")

        with self._lock:
            self._credentials[credential.access_id] = StoredCredential(credential)
            if set_active or self._active_access_id is None:
                self._active_access_id = credential.access_id

    def set_active(self, access_id: str) -> None:
        """
        Set which credential signs new requests.

        Raises:
            ValueError: If the access id is unknown or marked invalid
        """
        with self._lock:
            stored = self._credentials.get(access_id)
            if stored is None:
                raise ValueError(f"Credential '{access_id}' not found")
            if not stored.is_valid:
                raise ValueError(f"Credential '{access_id}' is no longer valid")
            self._active_access_id = access_id

    def get_credential(self, access_id: str) -> Optional[Credential]:
        """Get a credential by access id."""
        with self._lock:
            stored = self._credentials.get(access_id)
            return stored.credential if stored else None

    def get_active_credential(self) -> Optional[Credential]:
        """Get the credential currently used for signing."""
        with self._lock:
            if self._active_access_id is None:
                return None
            return self._credentials[self._active_access_id].credential

    def list_credentials(self) -> dict[str, dict[str, Any]]:
        """
        List all credentials with their status.

        Returns:
            Dictionary of access_id -> {is_active, is_valid}
        """
        with self._lock:
            return {
                access_id: {
                    "is_active": access_id == self._active_access_id,
                    "is_valid": stored.is_valid,
                }
                for access_id, stored in self._credentials.items()
            }

    def remove_credential(self, access_id: str) -> None:
        """
        Remove a credential (after rotation is complete).

        Raises:
            ValueError: If trying to remove the active credential
        """
        with self._lock:
            if access_id == self._active_access_id:
                raise ValueError("Cannot remove the active credential. Set a different active credential first.")
            self._credentials.pop(access_id, None)

    def mark_invalid(self, access_id: str) -> None:
        """Mark a credential as invalid (won't be used for verification)."""
        with self._lock:
            if access_id in self._credentials:
                self._credentials[access_id].is_valid = False

    def sign_request_at(self, request: RequestView, config: SignerConfig, when: datetime) -> RequestView:
        """
        Sign a request with the active credential.

        Raises:
            ConfigError: If no active credential is set
        """
        credential = self.get_active_credential()
        if credential is None:
            raise ConfigError("No active credential set for signing")
        return sign_request_at(request, config, credential, when)

    def verify_request(
        self,
        request: RequestView,
        max_age_seconds: int = 300,
        now: Optional[datetime] = None,
    ) -> tuple[bool, Optional[str]]:
        """
        Verify a request, using the access id in its Authorization header to find the secret.

        Returns:
            Tuple of (is_valid, error_message)
        """
        auth_values = request.get_header_values("authorization")
        if not auth_values:
            return False, "Missing Authorization header"

        try:
            access_id = parse_sigv4_header(auth_values[0])["access_id"]
        except ValueError as e:
            return False, str(e)

        with self._lock:
            stored = self._credentials.get(access_id)
            if stored is None:
                logger.debug("Rejected request signed with unknown access id %s", access_id)
                return False, f"Unknown access id: {access_id}"
            if not stored.is_valid:
                return False, f"Credential '{access_id}' is no longer valid"
            secret = stored.credential.secret

        return verify_sigv4_signature(request, secret, max_age_seconds=max_age_seconds, now=now)
