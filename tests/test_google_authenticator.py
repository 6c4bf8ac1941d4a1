"""
Tests for token caching in the Google authenticator.

The OS keyring and Google credentials are replaced with fakes, so no
browser flow or network access happens.
"""

import json
import stat

import keyring
import pytest
from keyring.errors import KeyringError, PasswordDeleteError
from oauthlib.oauth2.rfc6749.errors import MismatchingStateError

from coffeechat.adapters import google_authenticator
from coffeechat.adapters.google_authenticator import GoogleAuthenticator
from coffeechat.domain.exceptions import AuthenticationError


class FakeCredentials:
    def __init__(self, info, valid=True):
        self.info = info
        self.token = info.get("token")
        self.valid = valid
        self.expired = not valid
        self.refresh_token = info.get("refresh_token")

    @classmethod
    def from_authorized_user_info(cls, info, scopes=None):
        return cls(info)

    def to_json(self):
        return json.dumps(self.info)


@pytest.fixture
def memory_keyring(monkeypatch):
    store = {}

    def get_password(service, key):
        return store.get((service, key))

    def set_password(service, key, value):
        store[(service, key)] = value

    def delete_password(service, key):
        if (service, key) not in store:
            raise PasswordDeleteError("not found")
        del store[(service, key)]

    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return store


@pytest.fixture
def broken_keyring(monkeypatch):
    def fail(*args):
        raise KeyringError("no backend")

    monkeypatch.setattr(keyring, "get_password", fail)
    monkeypatch.setattr(keyring, "set_password", fail)
    monkeypatch.setattr(keyring, "delete_password", fail)


@pytest.fixture
def authenticator(tmp_path, monkeypatch):
    monkeypatch.setattr(google_authenticator, "Credentials", FakeCredentials)
    return GoogleAuthenticator(
        credentials_path=tmp_path / "credentials.json",
        cache_file=tmp_path / "token.json",
    )


class TestGoogleAuthenticator:
    """Tests for GoogleAuthenticator caching."""

    def test_uses_cached_token_from_keyring(self, authenticator, memory_keyring):
        authenticator._save_credentials(FakeCredentials({"token": "cached-token"}))

        assert authenticator.get_access_token() == "cached-token"
        assert authenticator.cache_backend == "keyring"
        assert not authenticator.cache_file.exists()

    def test_falls_back_to_private_file(self, authenticator, broken_keyring):
        authenticator._save_credentials(FakeCredentials({"token": "file-token"}))

        assert authenticator.cache_backend == "file"
        assert "plaintext" in authenticator.insecure_storage_warning
        assert stat.S_IMODE(authenticator.cache_file.stat().st_mode) == 0o600
        assert authenticator.get_access_token() == "file-token"

    def test_missing_client_secrets(self, authenticator, memory_keyring):
        with pytest.raises(AuthenticationError, match="client secrets not found"):
            authenticator.get_credentials(force_refresh=True)

    def test_clear_cache(self, authenticator, memory_keyring):
        authenticator._save_credentials(FakeCredentials({"token": "cached-token"}))
        authenticator.cache_file.write_text("{}", encoding="utf-8")

        authenticator.clear_cache()

        assert memory_keyring == {}
        assert not authenticator.cache_file.exists()

    def test_clear_empty_cache(self, authenticator, memory_keyring):
        authenticator.clear_cache()

        assert memory_keyring == {}

    def test_oauth_errors_become_authentication_errors(self, authenticator, memory_keyring, monkeypatch):
        """A rejected browser sign-in is reported as an AuthenticationError."""

        class RejectingFlow:
            @classmethod
            def from_client_secrets_file(cls, path, scopes):
                return cls()

            def run_local_server(self, port=0):
                raise MismatchingStateError()

        authenticator.credentials_path.write_text("{}", encoding="utf-8")
        monkeypatch.setattr(google_authenticator, "InstalledAppFlow", RejectingFlow)

        with pytest.raises(AuthenticationError, match="Google sign-in failed"):
            authenticator.get_credentials(force_refresh=True)

        assert memory_keyring == {}
