"""Management API token acquisition."""

import asyncio
import logging
from typing import Optional

from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError
from azure.identity.aio import ClientSecretCredential, ManagedIdentityCredential

from incident_reopener.config import ReopenerConfig
from incident_reopener.errors import AuthError

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"
TOKEN_TIMEOUT_SECONDS = 10


class CredentialProvider:
    """
    Obtains a bearer token for the Azure management API.

    Uses a service principal when client id, secret and tenant are all
    configured, and the function app's managed identity otherwise. The token is
    fetched once per run and used for every call of that run.
    """

    def __init__(
        self,
        config: ReopenerConfig,
        credential: Optional[AsyncTokenCredential] = None,
        timeout: float = TOKEN_TIMEOUT_SECONDS,
    ):
        self._config = config
        self._credential = credential
        self._timeout = timeout

    def _build_credential(self) -> AsyncTokenCredential:
        if self._config.uses_client_secret:
            logger.info("Using client secret credential for the management API")
            return ClientSecretCredential(
                tenant_id=self._config.tenant_id,
                client_id=self._config.client_id,
                client_secret=self._config.client_secret,
            )
        if self._config.client_id:
            logger.info("Using user-assigned managed identity for the management API")
            return ManagedIdentityCredential(client_id=self._config.client_id)
        logger.info("Using system-assigned managed identity for the management API")
        return ManagedIdentityCredential()

    async def acquire_token(self) -> str:
        """
        Fetch a management API token.

        Returns:
            The raw bearer token string

        Raises:
            AuthError: On credential failure, timeout, or an empty token
        """
        owns_credential = self._credential is None
        credential = self._build_credential() if owns_credential else self._credential

        try:
            access_token = await asyncio.wait_for(
                credential.get_token(MANAGEMENT_SCOPE),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise AuthError(f"Timed out after {self._timeout}s acquiring a management API token") from e
        except AzureError as e:
            raise AuthError(f"Failed to acquire a management API token: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected error acquiring a management API token: {e}", exc_info=True)
            raise AuthError(f"Failed to acquire a management API token: {type(e).__name__}: {e}") from e
        finally:
            if owns_credential:
                await credential.close()

        token = getattr(access_token, "token", None)
        if not token or not isinstance(token, str):
            raise AuthError("Token endpoint returned an empty or malformed token")

        logger.info("Acquired management API token")
        return token
