"""Tests for management API token acquisition."""

import asyncio

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError
from azure.identity.aio import ClientSecretCredential, ManagedIdentityCredential

from incident_reopener.config import ReopenerConfig
from incident_reopener.credentials import MANAGEMENT_SCOPE, CredentialProvider
from incident_reopener.errors import AuthError


class FakeCredential:
    def __init__(self, token="abc", error=None, delay=0.0):
        self.token = token
        self.error = error
        self.delay = delay
        self.scopes = []
        self.closed = False

    async def get_token(self, *scopes, **kwargs):
        self.scopes.append(scopes)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return AccessToken(self.token, 0)

    async def close(self):
        self.closed = True


class TestCredentialProvider:
    @pytest.mark.asyncio
    async def test_returns_raw_token_for_management_scope(self, config):
        credential = FakeCredential(token="eyJ0eXAi")

        token = await CredentialProvider(config, credential=credential).acquire_token()

        assert token == "eyJ0eXAi"
        assert credential.scopes == [(MANAGEMENT_SCOPE,)]
        assert not credential.closed

    @pytest.mark.asyncio
    async def test_authentication_failure(self, config):
        credential = FakeCredential(error=ClientAuthenticationError("IMDS endpoint unavailable"))

        with pytest.raises(AuthError, match="IMDS endpoint unavailable"):
            await CredentialProvider(config, credential=credential).acquire_token()

    @pytest.mark.asyncio
    async def test_timeout(self, config):
        credential = FakeCredential(delay=1.0)

        with pytest.raises(AuthError, match="Timed out"):
            await CredentialProvider(config, credential=credential, timeout=0.05).acquire_token()

    @pytest.mark.asyncio
    async def test_empty_token(self, config):
        credential = FakeCredential(token="")

        with pytest.raises(AuthError, match="empty or malformed"):
            await CredentialProvider(config, credential=credential).acquire_token()


class TestCredentialSelection:
    @pytest.mark.asyncio
    async def test_client_secret_when_fully_configured(self, environ):
        environ.update(AZURE_CLIENT_ID="app-id", AZURE_CLIENT_SECRET="secret", AZURE_TENANT_ID="tenant-1")
        credential = CredentialProvider(ReopenerConfig.from_env(environ))._build_credential()
        try:
            assert isinstance(credential, ClientSecretCredential)
        finally:
            await credential.close()

    @pytest.mark.asyncio
    async def test_managed_identity_otherwise(self, environ):
        environ.update(AZURE_CLIENT_ID="app-id")
        credential = CredentialProvider(ReopenerConfig.from_env(environ))._build_credential()
        try:
            assert isinstance(credential, ManagedIdentityCredential)
        finally:
            await credential.close()


@pytest.mark.asyncio
async def test_unexpected_credential_error_maps_to_auth_error(config):
    credential = FakeCredential(error=ValueError("malformed identity response"))

    with pytest.raises(AuthError, match="ValueError: malformed identity response") as exc_info:
        await CredentialProvider(config, credential=credential).acquire_token()

    assert isinstance(exc_info.value.__cause__, ValueError)
