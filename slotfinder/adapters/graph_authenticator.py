"""
Microsoft Graph token acquisition using MSAL.

With a client secret configured the application signs in as itself (Client
Credentials Flow). Without one, a person signs in once through the Device
Code Flow via ``sign_in``; afterwards tokens are refreshed silently from the
cache. ``get_access_token`` never prompts, so calendar lookups never block on
a human.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import keyring
import msal
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import AuthenticationError, InteractionRequiredError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "slotfinder"

DeviceCodePrompt = Callable[[Dict[str, Any]], None]


class TokenCacheStore:
    """
    Persists the serialized MSAL token cache.

    The OS keyring is used until it fails once; from then on the cache is
    written to a file readable only by the current user.
    """

    def __init__(self, key: str, cache_file: Path):
        self.key = key
        self.cache_file = cache_file
        self.backend = "keyring"
        self.fallback_reason: Optional[str] = None

    @property
    def warning(self) -> Optional[str]:
        if self.fallback_reason is None:
            return None
        return (
            f"Secure credential storage unavailable ({self.fallback_reason}). "
            f"Token cache is stored in plaintext at {self.cache_file}."
        )

    def _fall_back(self, reason: str) -> None:
        if self.backend == "keyring":
            logger.warning("OS keyring unavailable (%s); using %s", reason, self.cache_file)
        self.backend = "file"
        self.fallback_reason = self.fallback_reason or reason

    def read(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                stored = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:
                self._fall_back(f"reading credentials failed: {exc}")
            else:
                if stored is not None:
                    return stored

        try:
            return self.cache_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
            return None

    def write(self, serialized: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, serialized)
                return
            except KeyringError as exc:
                self._fall_back(f"writing credentials failed: {exc}")

        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(serialized, encoding="utf-8")
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def clear(self) -> None:
        self.cache_file.unlink(missing_ok=True)
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except PasswordDeleteError:
            logger.debug("No keyring entry to remove for %s", self.key)
        except KeyringError as exc:
            logger.warning("Could not remove credentials from keyring: %s", exc)


class GraphAuthenticator:
    """Hands out Microsoft Graph access tokens for the booking calendar."""

    # Delegated scopes for reading and booking on a shared calendar
    DELEGATED_SCOPES = ["Calendars.ReadWrite", "Calendars.ReadWrite.Shared"]
    # Application permissions are granted in the app registration
    APP_SCOPES = ["https://graph.microsoft.com/.default"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        client_secret: str | None = None,
        authority_url: str | None = None,
        cache_file: Path | None = None
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            client_secret: Optional secret enabling the client credentials flow
            authority_url: Optional custom authority URL
            cache_file: Token cache file used when the OS keyring is unavailable
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.store = TokenCacheStore(
            key=f"{client_id}:{tenant_id}",
            cache_file=cache_file or Path.home() / ".slotfinder_token_cache.json",
        )
        self.cache = self._load_cache()
        self.app = self._build_app()

    @property
    def uses_client_credentials(self) -> bool:
        return bool(self.client_secret)

    @property
    def cache_backend(self) -> str:
        return self.store.backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        return self.store.warning

    def _build_app(self) -> msal.ClientApplication:
        if self.uses_client_credentials:
            return msal.ConfidentialClientApplication(
                client_id=self.client_id,
                client_credential=self.client_secret,
                authority=self.authority,
                token_cache=self.cache
            )
        return msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache
        )

    def _load_cache(self) -> msal.SerializableTokenCache:
        cache = msal.SerializableTokenCache()
        serialized = self.store.read()
        if serialized:
            try:
                cache.deserialize(serialized)
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)
        return cache

    def _token_from(self, result: Optional[Dict[str, Any]]) -> str:
        if not result or "access_token" not in result:
            error = (result or {}).get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        if self.cache.has_state_changed:
            self.store.write(self.cache.serialize())
        return result["access_token"]

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Return an access token without any user interaction.

        Args:
            force_refresh: Skip cached access tokens and redeem the refresh token

        Raises:
            InteractionRequiredError: If nobody signed in yet or the sign-in expired
            AuthenticationError: If Azure AD rejects the request
        """
        if self.uses_client_credentials:
            return self._token_from(self.app.acquire_token_for_client(scopes=self.APP_SCOPES))

        accounts = self.app.get_accounts()
        if not accounts:
            raise InteractionRequiredError(
                "No cached Microsoft sign-in. Run `slotfinder test-auth` to sign in."
            )

        result = self.app.acquire_token_silent(
            scopes=self.DELEGATED_SCOPES,
            account=accounts[0],
            force_refresh=force_refresh,
        )
        if not result or "access_token" not in result:
            raise InteractionRequiredError(
                "Cached Microsoft sign-in is no longer valid. "
                "Run `slotfinder test-auth --force` to sign in again."
            )
        return self._token_from(result)

    def sign_in(self, prompt: DeviceCodePrompt) -> str:
        """
        Sign in interactively with the Device Code Flow.

        ``prompt`` receives MSAL's flow (``verification_uri``, ``user_code``
        and a ready-made ``message``) and must show it to the user. The call
        then blocks until the sign-in completes or the code expires.

        Raises:
            AuthenticationError: If the flow cannot start or the sign-in fails
        """
        if self.uses_client_credentials:
            return self.get_access_token()

        flow = self.app.initiate_device_flow(scopes=self.DELEGATED_SCOPES)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        prompt(flow)
        return self._token_from(self.app.acquire_token_by_device_flow(flow))

    def clear_cache(self) -> None:
        """Forget every cached token; the next call needs a fresh sign-in."""
        self.store.clear()
        self.cache = msal.SerializableTokenCache()
        self.app = self._build_app()
