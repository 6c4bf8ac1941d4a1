"""
Google Calendar authentication using the OAuth installed-app flow.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import keyring
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from keyring.errors import KeyringError, PasswordDeleteError
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()

KEYRING_SERVICE_NAME = "coffeechat"


class TokenCache:
    """
    Serialized OAuth tokens, kept in the OS keyring.

    When no keyring backend works the tokens go to ``path`` instead, a file
    only its owner may read. Once the keyring has failed it is not tried
    again for the lifetime of the cache object.
    """

    def __init__(self, path: Path, key: str):
        self.path = path
        self.key = key
        self.backend = "keyring"
        self.warning: Optional[str] = None

    def read(self) -> Optional[str]:
        if self.backend == "keyring":
            try:
                token = keyring.get_password(KEYRING_SERVICE_NAME, self.key)
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._use_file(f"could not read the keyring: {exc}")
            else:
                if token is not None:
                    return token

        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Token file %s is unreadable: %s", self.path, exc)
            return None

    def write(self, token: str) -> None:
        if self.backend == "keyring":
            try:
                keyring.set_password(KEYRING_SERVICE_NAME, self.key, token)
                return
            except KeyringError as exc:  # pragma: no cover - environment dependent
                self._use_file(f"could not write to the keyring: {exc}")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(token, encoding="utf-8")
            self.path.chmod(0o600)
        except OSError as exc:
            logger.warning("Token could not be written to %s: %s", self.path, exc)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self.key)
        except PasswordDeleteError:
            logger.debug("Keyring holds no token for %s", self.key)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Keyring token for %s could not be removed: %s", self.key, exc)

    def _use_file(self, reason: str) -> None:
        logger.warning("Keyring unavailable (%s); storing tokens in %s", reason, self.path)
        self.backend = "file"
        self.warning = self.warning or (
            f"Keyring unavailable ({reason}). Tokens are stored in plaintext at {self.path}."
        )


class GoogleAuthenticator:
    """
    Handles authentication with the Google Calendar API.
    
    This flow suits desktop and CLI applications:
    1. App opens the Google consent page in a browser
    2. User signs in and grants read access to their calendars
    3. Google redirects to a temporary local server
    4. App receives access and refresh tokens, which are cached
    """
    
    # Read-only access is enough for free/busy queries
    SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
    
    def __init__(self, credentials_path: Path, cache_file: Path | None = None):
        """
        Args:
            credentials_path: OAuth client secrets downloaded from Google Cloud Console
            cache_file: Token file used when no keyring is available
        """
        self.credentials_path = Path(credentials_path)
        self.cache_file = Path(cache_file) if cache_file else Path.home() / ".coffeechat_token.json"
        self._cache = TokenCache(self.cache_file, key=str(self.credentials_path.resolve()))

    @property
    def cache_backend(self) -> str:
        """Where tokens are stored: ``keyring`` or ``file``."""
        return self._cache.backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        return self._cache.warning

    def _load_credentials(self) -> Credentials | None:
        token = self._cache.read()
        if not token:
            return None

        try:
            return Credentials.from_authorized_user_info(json.loads(token), self.SCOPES)
        except ValueError as exc:
            logger.warning("Ignoring unreadable cached token: %s", exc)
            return None

    def _save_credentials(self, credentials: Credentials) -> None:
        self._cache.write(credentials.to_json())

    def get_credentials(self, force_refresh: bool = False) -> Credentials:
        """
        Get valid credentials, using the cache or running the browser flow.
        
        Args:
            force_refresh: Skip the cache and sign in again
            
        Returns:
            Authorized Google credentials
            
        Raises:
            AuthenticationError: If the browser sign-in fails
        """
        if not force_refresh:
            credentials = self._load_credentials()
            if credentials and credentials.valid:
                return credentials

            if credentials and credentials.expired and credentials.refresh_token:
                try:
                    credentials.refresh(Request())
                except RefreshError as exc:
                    logger.warning("Refreshing cached credentials failed: %s", exc)
                else:
                    self._save_credentials(credentials)
                    return credentials

        return self._run_browser_flow()

    def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a bearer token for the Calendar API."""
        return self.get_credentials(force_refresh=force_refresh).token
    
    def _run_browser_flow(self) -> Credentials:
        if not self.credentials_path.exists():
            raise AuthenticationError(
                f"OAuth client secrets not found: {self.credentials_path}. "
                "Download them from the Google Cloud Console."
            )

        console.print("\n[bold cyan]🔐 Google sign-in required[/bold cyan]")
        console.print("A browser window will open so you can grant read access to your calendar.\n")
        
        try:
            flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.SCOPES)
            credentials = flow.run_local_server(port=0)
        except (GoogleAuthError, OAuth2Error, ValueError, OSError) as exc:
            raise AuthenticationError(f"Google sign-in failed: {exc}") from exc
        
        console.print("[bold green]✓ Signed in to Google[/bold green]\n")
        self._save_credentials(credentials)
        return credentials
    
    def clear_cache(self) -> None:
        """Forget cached tokens so the next run signs in again."""
        self._cache.clear()
        console.print("[green]Cached Google tokens removed.[/green]")
