"""
Ponto bank-feed adapter.

    POST {api}/oauth2/token                    client-credentials, HTTP basic
    GET  {api}/accounts/{id}/transactions      JSON:API, newest first,
                                               ``page[after]`` cursor

Access tokens live in an ``AccessTokenHolder`` created for one scheduled
run and passed to every client of that run.  The holder is keyed by
client id and checks expiry (minus a safety margin) against the injected
Clock before each use.

Amounts arrive as euro decimals and are converted to minor units with
``Decimal``: ``|amount| * 100`` floored toward zero, sign kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Iterator

import httpx

from treasury_kernel.domain.clock import Clock
from treasury_kernel.domain.structured_message import clean_message
from treasury_kernel.domain.types import PontoCredentials, RawTransaction
from treasury_kernel.exceptions import TokenRequestError, TransactionSourceError
from treasury_kernel.logging_config import get_logger

logger = get_logger("ingestion.ponto")

PONTO_API_URL = "https://api.myponto.com"
PROVIDER = "ponto"
DEFAULT_PAGE_LIMIT = 100


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: datetime


class AccessTokenHolder:
    """Per-run access token cache keyed by credential identity."""

    def __init__(self, clock: Clock, expiry_margin: timedelta = timedelta(seconds=30)):
        self._clock = clock
        self._expiry_margin = expiry_margin
        self._tokens: dict[str, AccessToken] = {}

    def get(self, key: str) -> str | None:
        token = self._tokens.get(key)
        if token is None:
            return None
        if self._clock.now() >= token.expires_at - self._expiry_margin:
            del self._tokens[key]
            return None
        return token.value

    def store(self, key: str, value: str, expires_in: int) -> AccessToken:
        token = AccessToken(
            value=value,
            expires_at=self._clock.now() + timedelta(seconds=expires_in),
        )
        self._tokens[key] = token
        return token

    def invalidate(self, key: str) -> None:
        self._tokens.pop(key, None)


def to_minor_units(amount: Any) -> int:
    """Convert a decimal amount to signed minor units, truncating sub-cents.

    Raises:
        ValueError: If ``amount`` is not numeric.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    cents = int((abs(value) * 100).to_integral_value(rounding=ROUND_DOWN))
    return -cents if value < 0 else cents


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO8601 timestamp (``Z`` suffix accepted)."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def ponto_transaction_to_raw(transaction: dict[str, Any]) -> RawTransaction:
    """Normalize one JSON:API transaction resource.

    The reference is the remittance information, falling back to the
    description only when it is absent (an empty string is kept), cleaned of
    structured-reference separators.
    """
    attributes = transaction["attributes"]
    reference = attributes.get("remittanceInformation")
    if reference is None:
        reference = attributes.get("description")
    if reference is None:
        reference = ""
    return RawTransaction(
        id=str(transaction["id"]),
        created_at=parse_timestamp(attributes["createdAt"]),
        updated_at=parse_timestamp(attributes["updatedAt"]),
        amount_minor_units=to_minor_units(attributes["amount"]),
        reference=clean_message(reference),
    )


class PontoClient:
    """Bank feed client for one treasury's Ponto credentials."""

    def __init__(
        self,
        credentials: PontoCredentials,
        token_holder: AccessTokenHolder,
        http_client: httpx.Client,
        *,
        api_url: str = PONTO_API_URL,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ):
        self._credentials = credentials
        self._tokens = token_holder
        self._http = http_client
        self._api_url = api_url.rstrip("/")
        self._page_limit = page_limit

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def access_token(self) -> str:
        """
        Raises:
            TokenRequestError: If the token endpoint fails or refuses.
        """
        key = self._credentials.client_id
        cached = self._tokens.get(key)
        if cached is not None:
            return cached

        try:
            response = self._http.post(
                f"{self._api_url}/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self._credentials.client_id, self._credentials.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TokenRequestError(PROVIDER, str(exc)) from exc

        if response.status_code != 200:
            raise TokenRequestError(PROVIDER, _error_detail(response))

        payload = response.json()
        self._tokens.store(key, payload["access_token"], int(payload["expires_in"]))
        logger.debug("access_token_issued", extra={"provider": PROVIDER})
        return payload["access_token"]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def get_transactions(
        self, account_id: str, after: str | None = None,
    ) -> dict[str, Any]:
        """Fetch one page of transactions.

        Raises:
            TransactionSourceError: On transport errors or non-2xx responses.
        """
        params: dict[str, Any] = {"page[limit]": self._page_limit}
        if after:
            params["page[after]"] = after

        try:
            response = self._http.get(
                f"{self._api_url}/accounts/{account_id}/transactions",
                params=params,
                headers={
                    "Authorization": f"Bearer {self.access_token()}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            raise TransactionSourceError(PROVIDER, str(exc)) from exc

        if response.status_code == 401:
            self._tokens.invalidate(self._credentials.client_id)
        if response.is_error:
            raise TransactionSourceError(
                PROVIDER, _error_detail(response), status_code=response.status_code,
            )
        return response.json()

    def get_all_transactions_until_id(
        self, account_ref: str, since_id: str | None,
    ) -> Iterator[RawTransaction]:
        """Yield transactions newest first until ``since_id`` is reached."""
        after: str | None = None
        pages = 0
        while True:
            page = self.get_transactions(account_ref, after=after)
            pages += 1
            for item in page.get("data") or []:
                if since_id is not None and str(item["id"]) == since_id:
                    logger.debug(
                        "transactions_cursor_reached",
                        extra={"provider": PROVIDER, "pages": pages},
                    )
                    return
                yield ponto_transaction_to_raw(item)

            after = ((page.get("meta") or {}).get("paging") or {}).get("after")
            if not after or not page.get("data"):
                return


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict) and "error" in payload:
        description = payload.get("error_description") or ""
        return f"HTTP {response.status_code}: {payload['error']} {description}".strip()
    return f"HTTP {response.status_code}"
