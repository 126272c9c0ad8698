"""
Account balance client for OpenAI-compatible endpoints.

Performs one authenticated GET {endpoint}/account_balance per call and
validates the body into a BalanceRecord. Never retries.
"""

import json
import logging
from typing import Any, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from ..core.errors import ConfigurationError, NetworkError, ValidationError
from ..storage.models import BalanceRecord, CredentialKey

LOGGER = logging.getLogger(__name__)

BALANCE_PATH = "/account_balance"
DEFAULT_TIMEOUT_SECONDS = 10.0


def parse_balance_payload(payload: Any) -> BalanceRecord:
    """Validate a decoded response body field by field.

    Args:
        payload: Decoded JSON body

    Returns:
        BalanceRecord built from the body

    Raises:
        ValidationError: If balance_nanos is not numeric or keys_status
            is not a string
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid response format from account_balance endpoint")

    balance = payload.get("balance_nanos")
    keys_status = payload.get("keys_status")

    # bool is an int subclass but is not a numeric balance
    if isinstance(balance, bool) or not isinstance(balance, (int, float)):
        raise ValidationError("Invalid response format from account_balance endpoint")
    if isinstance(balance, float):
        if not balance.is_integer():
            raise ValidationError("balance_nanos must be a whole number of nanos")
        balance = int(balance)
    if not isinstance(keys_status, str):
        raise ValidationError("Invalid response format from account_balance endpoint")

    return BalanceRecord(balance_nanos=balance, keys_status=keys_status)


class BalanceClient:
    """Fetches the account balance through the OpenAI SDK transport.

    The SDK supplies bearer authorization and base URL joining. Retries are
    disabled; a failed call is reported once.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the balance client.

        Args:
            timeout: Transport timeout in seconds
            http_client: Shared httpx client; when given it is not closed
                after each call

        Raises:
            ValueError: If timeout is not positive
        """
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.timeout = timeout
        self._http_client = http_client

    def _build_client(self, credentials: CredentialKey) -> AsyncOpenAI:
        client = AsyncOpenAI(
            api_key=credentials.secret,
            base_url=credentials.endpoint,
            max_retries=0,
            timeout=self.timeout,
            http_client=self._http_client
        )
        # The SDK picks these up from OPENAI_ORG_ID / OPENAI_PROJECT_ID;
        # only the bearer token may identify the caller here
        client.organization = None
        client.project = None
        return client

    async def fetch(self, credentials: CredentialKey) -> BalanceRecord:
        """Fetch and validate the balance for one set of credentials.

        Args:
            credentials: Endpoint and secret to authenticate with

        Returns:
            Validated BalanceRecord

        Raises:
            ConfigurationError: If endpoint or secret is missing
            NetworkError: If the call fails or returns a non-success status
            ValidationError: If the body has the wrong shape
        """
        if not credentials.is_complete:
            raise ConfigurationError("API base URL and API key are required")

        client = self._build_client(credentials)
        try:
            LOGGER.debug("Requesting account balance from %s", credentials.endpoint)
            response = await client.get(BALANCE_PATH, cast_to=httpx.Response)
        except APIStatusError as e:
            raise NetworkError(
                f"account_balance request failed with status {e.status_code}",
                status_code=e.status_code
            ) from e
        except APIConnectionError as e:
            raise NetworkError(f"account_balance request failed: {e}") from e
        finally:
            if self._http_client is None:
                await client.close()

        try:
            payload = response.json()
        except json.JSONDecodeError as e:
            raise ValidationError("account_balance response is not valid JSON") from e

        return parse_balance_payload(payload)
